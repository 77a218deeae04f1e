"""
Forward reasoning: closing a goal directly from a hypothesis.

Strategies have the signature (hypothesis, goal, unifier) -> bool and are
kept in an ordered registry. The main discharger tries every hypothesis
against every strategy, in registry order, and stops at the first hit.

Register a custom strategy with the decorator:

    @forward_strategy("mono_pos")
    def mono_pos(hyp, goal, unifier):
        ...

Strategies run inside a unifier checkpoint; a strategy returning False
may leave assignments behind, they are rolled back by the caller.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from .goals import Goal
from .terms import TermType, relation, replace, format_sexpr

logger = logging.getLogger(__name__)

Strategy = Callable[[TermType, Goal, "Unifier"], bool]

# Registry of forward strategies, in the order they are tried
FORWARD_STRATEGIES: Dict[str, Strategy] = {}


def forward_strategy(name: str):
    """Register a forward strategy under `name` (appended to the try order)."""
    def decorator(func: Strategy) -> Strategy:
        FORWARD_STRATEGIES[name] = func
        return func
    return decorator


def get_strategy(name: str) -> Strategy:
    """Get a strategy by name or raise with the available options."""
    if name not in FORWARD_STRATEGIES:
        raise ValueError(
            f"Unknown forward strategy: '{name}'. "
            f"Available strategies: {list(FORWARD_STRATEGIES)}"
        )
    return FORWARD_STRATEGIES[name]


# ============================================================
# Built-in strategies
# ============================================================

@forward_strategy("subst_refl")
def subst_refl(hyp: TermType, goal: Goal, unifier) -> bool:
    """h : eq x y. Rewrite y to x in the goal, then close by reflexivity."""
    rel = relation(unifier.instantiate(hyp))
    if rel is None or rel[0] != "eq":
        return False
    _, x, y = rel
    target = replace(unifier.instantiate(goal.target), y, x)
    return unifier.try_reflexivity(goal.with_target(target))


@forward_strategy("weaken_strict")
def weaken_strict(hyp: TermType, goal: Goal, unifier) -> bool:
    """h : lt a b closes le a b."""
    h = relation(unifier.instantiate(hyp))
    g = relation(unifier.instantiate(goal.target))
    if h is None or g is None:
        return False
    if unifier.config.strict_weakenings.get(h[0]) != g[0]:
        return False
    return unifier.unify(h[1], g[1]) and unifier.unify(h[2], g[2])


@forward_strategy("symm_exact")
def symm_exact(hyp: TermType, goal: Goal, unifier) -> bool:
    """h : r b a closes r a b when r is symmetric."""
    g = relation(unifier.instantiate(goal.target))
    if g is None or g[0] not in unifier.config.symmetric_relations:
        return False
    return unifier.unify(hyp, [g[0], g[2], g[1]])


@forward_strategy("exact")
def exact(hyp: TermType, goal: Goal, unifier) -> bool:
    return unifier.unify(hyp, goal.target)


# ============================================================
# Dischargers
# ============================================================

def discharge_with(terms: Iterable[TermType], goal: Goal, unifier,
                   strategies: Optional[List[Strategy]] = None) -> bool:
    """Try every term against every strategy; roll back each failed attempt."""
    strategies = list(FORWARD_STRATEGIES.values()) if strategies is None else strategies
    for term in terms:
        for strategy in strategies:
            state = unifier.checkpoint()
            if strategy(term, goal, unifier):
                logger.debug("%s closes %s with %s", strategy.__name__,
                             format_sexpr(goal.target), format_sexpr(term))
                return True
            unifier.restore(state)
    return False


def forward_discharger(goal: Goal, unifier) -> bool:
    """
    Default main discharger: forward reasoning from the goal's own hypotheses.

    Hypotheses are tried in context order, so with metavariables in the
    goal the earliest fitting hypothesis decides their assignment.
    """
    return discharge_with([d.type for d in goal.hypotheses()], goal, unifier)


def make_forward_discharger(terms: Iterable[TermType],
                            strategies: Optional[List[Strategy]] = None):
    """Build a main discharger that reasons forward from `terms` only."""
    terms = list(terms)

    def discharger(goal: Goal, unifier) -> bool:
        return discharge_with(terms, goal, unifier, strategies)
    return discharger
