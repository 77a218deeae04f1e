"""Tests for the stock rule sets."""

import pytest

from congruent import CongruenceEngine, LIBRARIES


@pytest.fixture
def order():
    return CongruenceEngine().with_library("order")


@pytest.fixture
def logic():
    return CongruenceEngine().with_library("logic")


class TestLibraries:
    """Every stock rule compiles."""

    @pytest.mark.parametrize("name,count", [("order", 15), ("logic", 6), ("full", 21)])
    def test_compiles(self, name, count):
        """No stock rule is rejected."""
        engine = CongruenceEngine().with_library(name)
        assert engine.rejected == []
        assert len(engine) == count

    def test_names(self):
        """The expected libraries exist."""
        assert set(LIBRARIES) == {"order", "logic", "full"}

    def test_groups(self):
        """Rules are tagged with their library group."""
        engine = CongruenceEngine().with_library("full")
        assert engine["add-le"].metadata.tags == ["order"]
        assert engine["and-imp"].metadata.tags == ["logic"]


class TestOrder:
    """Order rules on arithmetic goals."""

    def test_one_sided_add_preferred(self, order):
        """The one-sided rule wins when one argument is shared."""
        result = order.reduce("(le (add a c) (add b c))")
        assert result.targets() == [["le", "a", "b"]]

    def test_neg_reverses(self, order):
        """Negation is antitone."""
        assert order.reduce("(le (neg x) (neg y))").targets() == [["le", "y", "x"]]

    def test_sub(self, order):
        """Subtraction is antitone in its second argument."""
        result = order.reduce("(le (sub a c) (sub b d))")
        assert result.targets() == [["le", "a", "b"], ["le", "d", "c"]]

    def test_strict_add(self, order):
        """A strict sum needs one strict and one weak step."""
        result = order.reduce("(lt (add a c) (add b d))")
        assert result.targets() == [["lt", "a", "b"], ["le", "c", "d"]]

    def test_mul_with_side_conditions(self, order):
        """Sign conditions close from hypotheses."""
        result = order.reduce("(le (mul a c) (mul b d))", hypotheses=["(le 0 c)", "(le 0 b)"])
        assert result.targets() == [["le", "a", "b"], ["le", "c", "d"]]

    def test_mul_side_conditions_left_open(self, order):
        """Unproved sign conditions are returned after the main goals."""
        result = order.reduce("(le (mul a c) (mul b d))")
        assert result.targets() == [["le", "a", "b"], ["le", "c", "d"],
                                    ["le", 0, "c"], ["le", 0, "b"]]

    def test_div_by_literal(self, order):
        """A positive literal divisor is checked by evaluation."""
        assert order.reduce("(le (div a 2) (div b 2))").targets() == [["le", "a", "b"]]

    def test_sum(self, order):
        """Sums reduce pointwise over the index set."""
        [leaf] = order.reduce("(le (sum s (fun i (f i))) (sum s (fun i (g i))))",
                              names=["i", "hi"]).goals
        assert leaf.target == ["le", ["f", "i"], ["g", "i"]]
        assert leaf.context[1].type == ["mem", "i", "s"]


class TestLogic:
    """Logic rules on implication goals."""

    def test_not(self, logic):
        """Negation reverses implication."""
        assert logic.reduce("(imp (not p) (not q))").targets() == [["imp", "q", "p"]]

    def test_imp(self, logic):
        """Implication is antitone on the left, monotone on the right."""
        result = logic.reduce("(imp (imp p q) (imp r s))")
        assert result.targets() == [["imp", "r", "p"], ["imp", "q", "s"]]

    def test_exists(self, logic):
        """Existentials reduce under a named witness."""
        [leaf] = logic.reduce("(imp (exists (fun x (p x))) (exists (fun x (q x))))",
                              names=["w"]).goals
        assert leaf.target == ["imp", ["p", "w"], ["q", "w"]]

    def test_or_with_hypotheses(self, logic):
        """Leaves close from hypotheses."""
        result = logic.reduce("(imp (or p q) (or r s))",
                              hypotheses=["(imp p r)", "(imp q s)"])
        assert result.closed
