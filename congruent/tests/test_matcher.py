"""Tests for congruence decomposition."""

import pytest

from congruent import (
    E, Goal, NameQueue, Unifier, RuleIndex, MatchEngine, CongruenceEngine, compile_rule,
    NotARelation, HeadMismatch, TemplateMismatch, NoMatchingRule, AllRulesFailed,
    NoProgress, SubstitutionFailed,
)
from congruent.forward import forward_discharger


ADD_LE = "@add-le: (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))"
ADD_LE_RIGHT = "@add-le-right[2000]: (le ?a ?b) => (le (add ?a ?c) (add ?b ?c))"
MUL_LE_LEFT = "@mul-le-left: (le ?b ?c) (le 0 ?a) => (le (mul ?a ?b) (mul ?a ?c))"
SUM_LE = "@sum-le: (forall i (imp (mem i ?s) (le (?f i) (?g i)))) => (le (sum ?s ?f) (sum ?s ?g))"


@pytest.fixture
def engine():
    return CongruenceEngine.from_dsl(ADD_LE)


class TestDecomposition:
    """Tests for decomposition without templates."""

    def test_splits_both_positions(self, engine):
        """(le (add a c) (add b d)) reduces to (le a b) and (le c d)."""
        result = engine.reduce("(le (add a c) (add b d))")
        assert result.progressed
        assert result.targets() == [["le", "a", "b"], ["le", "c", "d"]]

    def test_falls_through_to_next_rule(self):
        """A higher-priority rule that does not unify is skipped."""
        engine = CongruenceEngine.from_dsl(ADD_LE_RIGHT + "\n" + ADD_LE)
        assert engine["add-le-right"].priority == 2000
        result = engine.reduce("(le (add a c) (add b d))")
        assert result.targets() == [["le", "a", "b"], ["le", "c", "d"]]

    def test_equal_positions_close_by_reflexivity(self, engine):
        """Subgoals with identical sides disappear."""
        result = engine.reduce("(le (add a c) (add b c))")
        assert result.targets() == [["le", "a", "b"]]

    def test_recursive_descent(self, engine):
        """Decomposition recurses into nested heads."""
        result = engine.reduce("(le (add (add a x) c) (add (add b y) d))")
        assert result.targets() == [["le", "a", "b"], ["le", "x", "y"], ["le", "c", "d"]]

    def test_no_rule_leaves_goal(self, engine):
        """A goal with no matching rule comes back unchanged."""
        result = engine.reduce("(le (mul a c) (mul b d))")
        assert not result.progressed
        assert result.targets() == [["le", ["mul", "a", "c"], ["mul", "b", "d"]]]

    def test_reflexive_goal_closes(self, engine):
        """A reflexive goal closes without decomposition."""
        result = engine.reduce("(le (add a c) (add a c))")
        assert result.progressed
        assert result.closed

    def test_require_progress(self, engine):
        """require_progress turns an unchanged goal into an error."""
        with pytest.raises(NoProgress):
            engine.reduce("(le (mul a c) (mul b d))", require_progress=True)

    def test_not_a_relation_without_template(self, engine):
        """Without a template, a non-relation is returned unchanged."""
        result = engine.reduce("(p a)")
        assert result.targets() == [["p", "a"]]


class TestDepth:
    """Tests for the depth budget."""

    def test_depth_zero_consults_discharger_once(self, engine):
        """At depth 0 the main discharger runs exactly once and the goal is returned."""
        calls = []

        def counting(goal, unifier):
            calls.append(goal.target)
            return False

        result = engine.reduce("(le (add a c) (add b d))", depth=0, main_discharger=counting)
        assert not result.progressed
        assert result.targets() == [E("(le (add a c) (add b d))")]
        assert len(calls) == 1

    def test_depth_zero_with_template(self, engine):
        """Templates with holes also respect the budget."""
        calls = []

        def counting(goal, unifier):
            calls.append(goal.target)
            return False

        result = engine.reduce("(le (add a c) (add b d))", template="(add ?_ ?_)",
                               depth=0, main_discharger=counting)
        assert len(result) == 1
        assert len(calls) == 1

    def test_depth_one_stops_after_one_level(self, engine):
        """With depth 1 the nested sums are not decomposed."""
        result = engine.reduce("(le (add (add a x) c) (add (add b y) d))", depth=1)
        assert result.targets() == [E("(le (add a x) (add b y))"), ["le", "c", "d"]]


class TestTemplates:
    """Tests for template-guided decomposition."""

    def test_hole_stops_descent(self, engine):
        """(add ?_ c) decomposes the left argument only."""
        result = engine.reduce("(le (add a c) (add b c))", template="(add ?_ c)")
        assert result.targets() == [["le", "a", "b"]]

    def test_nested_template(self, engine):
        """Templates follow nested structure and close hole-free positions."""
        result = engine.reduce("(le (add (add a b) c) (add (add a d) c))",
                               template="(add (add a ?_) c)")
        assert result.targets() == [["le", "b", "d"]]

    def test_hole_at_top(self, engine):
        """A bare hole means the goal itself is the leaf."""
        result = engine.reduce("(le (add a c) (add b d))", template="?_")
        assert not result.progressed
        assert len(result) == 1

    def test_hole_free_template_closes_reflexive_goal(self, engine):
        """A template without holes never decomposes; it closes identical sides."""
        result = engine.reduce("(le (add a c) (add a c))", template="(add a c)")
        assert result.closed

    def test_hole_free_template_mismatch(self, engine):
        """A template without holes on different sides is an error."""
        with pytest.raises(TemplateMismatch):
            engine.reduce("(le (add a c) (add b d))", template="(add a c)")

    def test_template_on_non_relation(self, engine):
        """Templates need a relational goal."""
        with pytest.raises(NotARelation):
            engine.reduce("(p a)", template="(add ?_ c)")

    def test_template_head_mismatch(self, engine):
        """The template head must match both sides."""
        with pytest.raises(HeadMismatch):
            engine.reduce("(le (add a c) (add b c))", template="(mul ?_ c)")
        with pytest.raises(HeadMismatch):
            engine.reduce("(le (add a c) (mul b c))", template="(add ?_ ?_)")

    def test_template_without_rules(self):
        """A template on a signature with no rules is an error."""
        with pytest.raises(NoMatchingRule):
            CongruenceEngine().reduce("(le (add a c) (add b c))", template="(add ?_ c)")

    def test_template_all_rules_failed(self):
        """A template whose candidate rules all fail lists what was tried."""
        engine = CongruenceEngine.from_dsl(ADD_LE_RIGHT)
        with pytest.raises(AllRulesFailed) as exc:
            engine.reduce("(le (add a c) (add b d))", template="(add ?_ ?_)")
        assert exc.value.attempted == ["add-le-right"]
        assert exc.value.goal.target == E("(le (add a c) (add b d))")


class TestSideObligations:
    """Tests for side conditions."""

    @pytest.fixture
    def mul_engine(self):
        return CongruenceEngine.from_dsl(MUL_LE_LEFT)

    def test_side_closed_by_hypothesis(self, mul_engine):
        """A hypothesis discharges the side condition."""
        result = mul_engine.reduce("(le (mul x a) (mul x b))", hypotheses=[("hx", "(le 0 x)")])
        assert result.targets() == [["le", "a", "b"]]

    def test_side_closed_by_literal(self, mul_engine):
        """Numeric side conditions are evaluated."""
        result = mul_engine.reduce("(le (mul 2 a) (mul 2 b))")
        assert result.targets() == [["le", "a", "b"]]

    def test_open_side_after_main(self, mul_engine):
        """Unresolved side obligations follow the main leaves."""
        result = mul_engine.reduce("(le (mul y a) (mul y b))")
        assert result.targets() == [["le", "a", "b"], ["le", 0, "y"]]

    def test_failed_side_discharger_is_rolled_back(self, mul_engine):
        """Assignments made by a side discharger that fails do not survive."""
        seen = []

        def assigns_then_fails(goal, unifier):
            seen.append(goal.target)
            unifier.unify(goal.target, E("(le 0 5)"))
            return False

        result = mul_engine.reduce("(le (mul ?k a) (mul ?k b))", side_discharger=assigns_then_fails)
        assert seen == [["le", 0, ["?", "k"]]]
        assert result.targets() == [["le", "a", "b"], ["le", 0, ["?", "k"]]]

    def test_failed_main_discharger_is_rolled_back(self, mul_engine):
        """Assignments made by a main discharger that fails do not survive."""
        seen = []

        def assigns_then_fails(goal, unifier):
            seen.append(goal.target)
            unifier.unify(goal.target, E("(le (mul 5 a) (mul 5 b))"))
            return False

        result = mul_engine.reduce("(le (mul ?k a) (mul ?k b))", main_discharger=assigns_then_fails)
        assert seen[0] == E("(le (mul ?k a) (mul ?k b))")
        # had ?k stayed 5, the side condition (le 0 5) would have closed
        assert result.targets() == [["le", "a", "b"], ["le", 0, ["?", "k"]]]


class TestBinders:
    """Tests for subgoals under binders."""

    @pytest.fixture
    def sum_engine(self):
        return CongruenceEngine.from_dsl(SUM_LE)

    GOAL = "(le (sum s (fun i (f i))) (sum s (fun i (g i))))"

    def test_named_binders(self, sum_engine):
        """Names are given to the introduced variable and hypothesis."""
        result = sum_engine.reduce(self.GOAL, names=["k", "hk"])
        [leaf] = result.goals
        assert leaf.target == ["le", ["f", "k"], ["g", "k"]]
        assert [d.name for d in leaf.context] == ["k", "hk"]
        assert leaf.context[1].type == ["mem", "k", "s"]
        assert len(result.names) == 0

    def test_unused_names_are_returned(self, sum_engine):
        """Names left over after the descent come back in the result."""
        result = sum_engine.reduce(self.GOAL, names=["k", "hk", "extra"])
        assert list(result.names) == ["extra"]

    def test_anonymous_binders(self, sum_engine):
        """Without names, binders are anonymous."""
        [leaf] = sum_engine.reduce(self.GOAL).goals
        assert [d.name for d in leaf.context] == ["i✝", "h✝"]

    def test_descent_continues_under_binder(self, sum_engine):
        """Subgoals under introduced binders are decomposed further."""
        sum_engine.load_dsl(ADD_LE)
        result = sum_engine.reduce(
            "(le (sum s (fun i (add (f i) c))) (sum s (fun i (add (g i) c))))",
            names=["k", "hk"])
        [leaf] = result.goals
        assert leaf.target == ["le", ["f", "k"], ["g", "k"]]
        assert [d.name for d in leaf.context] == ["k", "hk"]

    def test_lambda_template(self, sum_engine):
        """A lambda in the template is opened with the introduced variable."""
        result = sum_engine.reduce(self.GOAL, template="(sum s (fun i ?_))", names=["k"])
        assert result.targets() == [["le", ["f", "k"], ["g", "k"]]]


class TestImplications:
    """Tests for implication goals."""

    @pytest.fixture
    def logic(self):
        return CongruenceEngine().with_library("logic")

    def test_and_implication(self, logic):
        """Equal conjuncts close by reflexivity of imp."""
        result = logic.reduce("(imp (and p q) (and p r))")
        assert result.targets() == [["imp", "q", "r"]]

    def test_forall_implication(self, logic):
        """The bound variable is introduced under the given name."""
        [leaf] = logic.reduce("(imp (forall x (p x)) (forall x (q x)))", names=["y"]).goals
        assert leaf.target == ["imp", ["p", "y"], ["q", "y"]]
        assert [d.name for d in leaf.context] == ["y"]

    def test_transitivity_fallback(self):
        """imp (le a b) (le c d) reduces to (le c a) and (le b d) without any rule."""
        result = CongruenceEngine().reduce("(imp (le a b) (le c d))")
        assert result.targets() == [["le", "c", "a"], ["le", "b", "d"]]

    def test_transitivity_fallback_with_hypotheses(self):
        """The fallback's leaves close from hypotheses."""
        result = CongruenceEngine().reduce(
            "(imp (le a b) (le c d))", hypotheses=["(le c a)", "(le b d)"])
        assert result.closed

    def test_no_fallback_for_intransitive_relation(self):
        """Relations that are not transitive get no fallback."""
        result = CongruenceEngine().reduce("(imp (mem a b) (mem c d))")
        assert not result.progressed


class TestSubstitute:
    """Tests for substitute mode."""

    def test_closes_with_relationship(self, engine):
        """Every leaf follows from the listed relationship."""
        result = engine.substitute("(le (add a c) (add b c))", ["(le a b)"])
        assert result.closed

    def test_reports_unresolved(self, engine):
        """Steps not justified by the relationships are listed."""
        with pytest.raises(SubstitutionFailed) as exc:
            engine.substitute("(le (add a c) (add b d))", ["(le a b)"])
        assert [g.target for g in exc.value.unresolved] == [["le", "c", "d"]]

    def test_goal_context_is_not_searched(self, engine):
        """Only the listed relationships are used, not the goal's own hypotheses."""
        goal = Goal(E("(le (add a c) (add b c))"), [("h", E("(le a b)"))])
        with pytest.raises(SubstitutionFailed):
            engine.substitute(goal, [])

    def test_strict_relationship_weakens(self, engine):
        """(lt a b) justifies a (le a b) step."""
        assert engine.substitute("(le (add a c) (add b c))", ["(lt a b)"]).closed

    def test_not_a_relation(self, engine):
        """Substitute needs a relational goal."""
        with pytest.raises(NotARelation):
            engine.substitute("(p a)", ["(le a b)"])


class TestMatchEngine:
    """Tests for the MatchEngine itself."""

    def index(self, *rules):
        index = RuleIndex()
        for r in rules:
            index.insert(r)
        return index

    def test_failed_attempt_leaves_no_placeholders(self):
        """A rule that does not apply leaves the unifier unchanged."""
        r = compile_rule([E("(le ?a ?b)")], E("(le (add ?a ?c) (add ?b ?c))"), "right")
        unifier = Unifier()
        matcher = MatchEngine(self.index(r), unifier)
        progressed, _, leaves = matcher.solve(Goal(E("(le (add a c) (add b d))")))
        assert not progressed
        assert len(leaves) == 1
        assert unifier.placeholder_count() == 0

    def test_successful_attempt_keeps_placeholders(self):
        """A successful application keeps its placeholders."""
        r = compile_rule([E("(le ?a ?b)"), E("(le ?c ?d)")],
                         E("(le (add ?a ?c) (add ?b ?d))"), "add-le")
        unifier = Unifier()
        matcher = MatchEngine(self.index(r), unifier)
        progressed, names, leaves = matcher.solve(
            Goal(E("(le (add a c) (add b c))")), names=NameQueue(), main=forward_discharger)
        assert progressed
        assert [g.target for g in leaves] == [["le", "a", "b"]]
        assert unifier.placeholder_count() == 2
        assert unifier.is_solved(unifier.placeholders[1])
