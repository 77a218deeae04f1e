"""
Side-condition dischargers.

A discharger is any callable (goal, unifier) -> bool. It may assign
metavariables on success; the engine rolls the unifier back when it
returns False, so a discharger need not clean up after itself.

Built-ins:
    assumption_discharger  - the goal is one of the hypotheses
    literal_discharger     - the goal compares numeric literals, e.g. (lt 0 2)
    default_side_discharger - assumption, then literal
"""

import logging
from typing import Callable, Dict, List, Optional, Union

from .goals import Goal
from .terms import TermType, constant, compound, symbol, format_sexpr

logger = logging.getLogger(__name__)

NumericType = Union[int, float]

# Fold handler: receives list of numeric args, returns result or None (can't fold)
FoldHandler = Callable[[List[NumericType]], Optional[NumericType]]
FoldFuncsType = Dict[str, FoldHandler]

Discharger = Callable[[Goal, "Unifier"], bool]


# ============================================================
# Fold Operation Builders
# ============================================================

def nary_fold(
    identity: NumericType,
    binary_op: Callable[[NumericType, NumericType], NumericType],
) -> FoldHandler:
    """Create an n-ary folder with identity element.

    Examples:
        nary_fold(0, lambda a, b: a + b)  # (add) = 0, (add x) = x, (add x y z) = x+y+z
    """
    def handler(args: List[NumericType]) -> NumericType:
        result = identity
        for a in args:
            result = binary_op(result, a)
        return result
    return handler


def unary_only(f: Callable[[NumericType], NumericType]) -> FoldHandler:
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 1:
            return None
        return f(args[0])
    return handler


def binary_only(f: Callable[[NumericType, NumericType], NumericType]) -> FoldHandler:
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2:
            return None
        return f(args[0], args[1])
    return handler


def special_minus() -> FoldHandler:
    """Subtraction: (sub x) = -x, (sub x y) = x-y."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) == 1:
            return -args[0]
        if len(args) == 2:
            return args[0] - args[1]
        return None
    return handler


def safe_div() -> FoldHandler:
    """Division that refuses to fold a zero divisor."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2 or args[1] == 0:
            return None
        return args[0] / args[1]
    return handler


def safe_pow() -> FoldHandler:
    """Powers with a non-negative integer exponent only."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2 or not isinstance(args[1], int) or args[1] < 0:
            return None
        return args[0] ** args[1]
    return handler


ARITHMETIC_FOLDS: FoldFuncsType = {
    "add": nary_fold(0, lambda a, b: a + b),
    "mul": nary_fold(1, lambda a, b: a * b),
    "sub": special_minus(),
    "neg": unary_only(lambda a: -a),
    "div": safe_div(),
    "pow": safe_pow(),
}

COMPARISONS: Dict[str, Callable[[NumericType, NumericType], bool]] = {
    "le": lambda a, b: a <= b,
    "lt": lambda a, b: a < b,
    "ge": lambda a, b: a >= b,
    "gt": lambda a, b: a > b,
    "eq": lambda a, b: a == b,
    "ne": lambda a, b: a != b,
}


def evaluate(t: TermType, folds: Optional[FoldFuncsType] = None) -> Optional[NumericType]:
    """
    Evaluate a ground arithmetic term, or return None.

    Example:
        evaluate(E("(add 1 (mul 2 3))"))   # => 7
        evaluate(E("(add 1 x)"))           # => None
    """
    folds = ARITHMETIC_FOLDS if folds is None else folds
    if constant(t):
        return t
    if not compound(t) or not t or not symbol(t[0]) or t[0] not in folds:
        return None
    args = []
    for sub in t[1:]:
        value = evaluate(sub, folds)
        if value is None:
            return None
        args.append(value)
    return folds[t[0]](args)


# ============================================================
# Dischargers
# ============================================================

def assumption_discharger(goal: Goal, unifier) -> bool:
    """Close the goal with a hypothesis that unifies with it."""
    for decl in reversed(goal.hypotheses()):
        state = unifier.checkpoint()
        if unifier.unify(decl.type, goal.target):
            logger.debug("assumption %s closes %s", decl.name, format_sexpr(goal.target))
            return True
        unifier.restore(state)
    return False


def literal_discharger(goal: Goal, unifier) -> bool:
    """Close a true comparison between numeric literals."""
    rel = goal.relation()
    if rel is None or rel[0] not in COMPARISONS:
        return False
    lhs = evaluate(unifier.instantiate(rel[1]))
    rhs = evaluate(unifier.instantiate(rel[2]))
    if lhs is None or rhs is None:
        return False
    return bool(COMPARISONS[rel[0]](lhs, rhs))


def default_side_discharger(goal: Goal, unifier) -> bool:
    return assumption_discharger(goal, unifier) or literal_discharger(goal, unifier)
