"""Tests for the term model."""

import pytest

from congruent import E, parse_sexpr, format_sexpr, alpha_equal, subst, beta, eta
from congruent.terms import (
    relation, head_args, telescope, fold_telescope, replace, fresh_name,
    free_symbols, metas, is_hole, has_hole, app_fn, parse_sexprs,
)


class TestParsing:
    """Tests for s-expression parsing and formatting."""

    def test_parse_relation(self):
        """A relation parses to a nested list."""
        assert E("(le (add a c) (add b d))") == ["le", ["add", "a", "c"], ["add", "b", "d"]]

    def test_parse_numbers(self):
        """Integers and floats become numbers."""
        assert parse_sexpr("(f 1 2.5)") == ["f", 1, 2.5]

    def test_parse_meta_and_hole(self):
        """?x is a metavariable, ?_ a hole."""
        assert E("?x") == ["?", "x"]
        assert E("?_") == ["?", "_"]
        assert is_hole(E("?_"))
        assert not is_hole(E("?x"))

    def test_unbalanced_raises(self):
        """Unbalanced parentheses are rejected."""
        with pytest.raises(ValueError):
            parse_sexpr("(le a b")
        with pytest.raises(ValueError):
            parse_sexpr("(le a b))")

    def test_multiple_expressions_raise(self):
        """parse_sexpr wants exactly one expression."""
        with pytest.raises(ValueError):
            parse_sexpr("(le a b) (le c d)")

    def test_parse_sexprs(self):
        """parse_sexprs reads a sequence."""
        assert parse_sexprs("(le ?a ?b) (le 0 ?c)") == [
            ["le", ["?", "a"], ["?", "b"]], ["le", 0, ["?", "c"]]]

    def test_format(self):
        """Formatting inverts parsing."""
        text = "(forall x (imp (p x) (le ?a 1)))"
        assert format_sexpr(parse_sexpr(text)) == text

    def test_builder(self):
        """The builder produces the same terms as the parser."""
        built = E.rel("le", E.op("add", "a", E.hole), E.op("add", "b", "c"))
        assert built == E("(le (add a ?_) (add b c))")
        assert has_hole(built)
        assert E.forall("x", E.imp(E("(p x)"), E("(q x)"))) == E("(forall x (imp (p x) (q x)))")


class TestBinders:
    """Tests for alpha-equivalence, substitution and reduction."""

    def test_alpha_equal_renaming(self):
        """Bound variable names do not matter."""
        assert alpha_equal(E("(forall x (p x))"), E("(forall y (p y))"))

    def test_alpha_equal_free_vs_bound(self):
        """A free symbol is not equal to a bound one of the same name."""
        assert not alpha_equal(E("(forall x (p y))"), E("(forall y (p y))"))

    def test_alpha_equal_different_kinds(self):
        """forall and fun are different binders."""
        assert not alpha_equal(E("(forall x (p x))"), E("(fun x (p x))"))

    def test_subst_free_only(self):
        """Bound occurrences are untouched."""
        assert subst(E("(and (p x) (forall x (q x)))"), "x", "a") == \
            E("(and (p a) (forall x (q x)))")

    def test_subst_avoids_capture(self):
        """A binder capturing the substituted value is renamed."""
        assert subst(E("(forall y (le x y))"), "x", "y") == E("(forall y_1 (le y y_1))")

    def test_beta(self):
        """Applied lambdas reduce."""
        assert beta(E("((fun x (add x 1)) 2)")) == ["add", 2, 1]

    def test_beta_under_binder(self):
        """Reduction happens inside binders too."""
        assert beta(E("(forall i (le ((fun j (f j)) i) 0))")) == E("(forall i (le (f i) 0))")

    def test_beta_flattens_heads(self):
        """An application in head position is flattened."""
        assert beta([["g", "a"], "b"]) == ["g", "a", "b"]

    def test_eta(self):
        """(fun x (f x)) is f."""
        assert eta(E("(fun x (f x))")) == "f"
        assert eta(E("(fun x (?p x))")) == ["?", "p"]
        assert eta(E("(fun x (f x x))")) == E("(fun x (f x x))")

    def test_replace(self):
        """Replace rewrites every occurrence of a subterm."""
        assert replace(E("(le (add a y) y)"), "y", "x") == E("(le (add a x) x)")

    def test_fresh_name(self):
        """fresh_name appends the smallest free suffix."""
        assert fresh_name("x", set()) == "x"
        assert fresh_name("x", {"x", "x_1"}) == "x_2"

    def test_free_symbols_and_metas(self):
        """Free symbols exclude bound ones; metas are collected by name."""
        t = E("(forall x (le (f x) ?b))")
        assert free_symbols(t) == {"le", "f"}
        assert metas(t) == {"b"}


class TestDecomposition:
    """Tests for relation parsing, head extraction and telescopes."""

    def test_relation(self):
        """Three-element applications are relations."""
        assert relation(E("(le a b)")) == ("le", "a", "b")
        assert relation(E("(imp p q)")) == ("imp", "p", "q")

    def test_not_relation(self):
        """Binders, metas and other arities are not relations."""
        assert relation(E("(forall x (p x))")) is None
        assert relation(E("(p a)")) is None
        assert relation(E("?x")) is None

    def test_head_args(self):
        """Applications split into head and arguments."""
        assert head_args(E("(add a c)")) == ("add", ["a", "c"])
        assert head_args("a") == ("a", [])
        assert head_args(E("?x")) is None

    def test_head_args_forall(self):
        """forall has a single lambda argument."""
        assert head_args(E("(forall x (p x))")) == ("forall", [E("(fun x (p x))")])

    def test_app_fn(self):
        """app_fn strips argument lists."""
        assert app_fn(E("(?f i)")) == ["?", "f"]
        assert app_fn(E("?a")) == ["?", "a"]
        assert app_fn(E("(add a b)")) == "add"

    def test_telescope(self):
        """Leading foralls and implications are stripped in order."""
        t = E("(forall x (imp (p x) (q x)))")
        binders, body = telescope(t)
        assert binders == [("var", "x"), ("hyp", ["p", "x"])]
        assert body == ["q", "x"]
        assert fold_telescope(binders, body) == t

    def test_telescope_limit(self):
        """A limit stops stripping early."""
        binders, body = telescope(E("(forall x (imp (p x) (q x)))"), limit=1)
        assert binders == [("var", "x")]
        assert body == E("(imp (p x) (q x))")
