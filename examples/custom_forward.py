"""
Example custom dischargers for CONGRUENT.

Shows how to register a forward strategy and how to build a side
discharger with extra numeric folds.

Usage:
    python examples/custom_forward.py
"""

import math

from congruent import CongruenceEngine, forward_strategy
from congruent.dischargers import (
    ARITHMETIC_FOLDS, COMPARISONS, assumption_discharger, binary_only, evaluate, unary_only,
)
from congruent.terms import relation

# Extend the arithmetic folds
FOLDS = {
    **ARITHMETIC_FOLDS,
    "gcd": binary_only(math.gcd),
    "abs": unary_only(abs),
    "min": binary_only(min),
    "max": binary_only(max),
    "sqrt": unary_only(lambda x: math.sqrt(x) if x >= 0 else None),
}


def folding_side_discharger(goal, unifier):
    """Assumption, then comparisons of ground terms over FOLDS."""
    if assumption_discharger(goal, unifier):
        return True
    rel = relation(unifier.instantiate(goal.target))
    if rel is None or rel[0] not in COMPARISONS:
        return False
    lhs, rhs = evaluate(rel[1], FOLDS), evaluate(rel[2], FOLDS)
    return lhs is not None and rhs is not None and COMPARISONS[rel[0]](lhs, rhs)


@forward_strategy("le_of_eq")
def le_of_eq(hyp, goal, unifier):
    """h : eq a b closes le a b."""
    h = relation(unifier.instantiate(hyp))
    g = relation(unifier.instantiate(goal.target))
    if h is None or g is None or h[0] != "eq" or g[0] != "le":
        return False
    return unifier.unify(h[1], g[1]) and unifier.unify(h[2], g[2])


if __name__ == "__main__":
    engine = CongruenceEngine().with_library("order")

    goal = "(le (mul (gcd 4 6) a) (mul (gcd 4 6) b))"
    print(goal)
    print(engine.reduce(goal).format())
    print("with folds:")
    print(engine.reduce(goal, side_discharger=folding_side_discharger).format())

    goal = "(le (add a c) (add b c))"
    print(goal, "from (eq a b):")
    print(engine.substitute(goal, ["(eq a b)"]).format())
