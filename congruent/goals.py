"""
Goals, local contexts and binder-name queues.

A Goal is a target proposition together with the local declarations in
scope: variables introduced from foralls and hypotheses introduced from
implications. Goals are immutable; introducing a binder returns a new
goal.
"""

from typing import Callable, Iterable, List, Optional, Set, Tuple, Union

from .terms import (
    TermType, FORALL, HOLE, is_binder, is_imp, relation, subst,
    free_symbols, fresh_name, format_sexpr, alpha_equal,
)


class LocalDecl:
    """
    A local declaration: a variable (type None) or a named hypothesis.

    Implementation-detail declarations are hidden from the forward
    dischargers. Anonymous declarations were introduced without a
    user-supplied name.
    """

    __slots__ = ('name', 'type', 'implementation_detail', 'anonymous')

    def __init__(self, name: str, type: Optional[TermType] = None,
                 implementation_detail: bool = False, anonymous: bool = False):
        self.name = name
        self.type = type
        self.implementation_detail = implementation_detail
        self.anonymous = anonymous

    @property
    def is_hypothesis(self) -> bool:
        return self.type is not None

    def replace_type(self, type: Optional[TermType]) -> 'LocalDecl':
        return LocalDecl(self.name, type, self.implementation_detail, self.anonymous)

    def __eq__(self, other):
        if not isinstance(other, LocalDecl):
            return False
        if self.name != other.name or self.is_hypothesis != other.is_hypothesis:
            return False
        return not self.is_hypothesis or alpha_equal(self.type, other.type)

    def __repr__(self) -> str:
        if self.type is None:
            return self.name
        return f"{self.name} : {format_sexpr(self.type)}"


DeclLike = Union[LocalDecl, Tuple[str, TermType], str]


def _as_decl(decl: DeclLike) -> LocalDecl:
    if isinstance(decl, LocalDecl):
        return decl
    if isinstance(decl, str):
        return LocalDecl(decl)
    name, type = decl
    return LocalDecl(name, type)


class NameQueue:
    """
    An ordered, consumable sequence of binder-name hints.

    Queues are immutable: take() returns the next hint together with the
    rest of the queue, so the queue can be threaded through recursive
    calls. An exhausted queue yields None forever. The hint "_" asks for
    an anonymous binder.
    """

    __slots__ = ('_names',)

    def __init__(self, names: Iterable[str] = ()):
        self._names = tuple(names)

    def take(self) -> Tuple[Optional[str], 'NameQueue']:
        if not self._names:
            return None, self
        return self._names[0], NameQueue(self._names[1:])

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self):
        return iter(self._names)

    def __eq__(self, other):
        return isinstance(other, NameQueue) and self._names == other._names

    def __repr__(self) -> str:
        return f"NameQueue({list(self._names)})"


class Goal:
    """
    A proposition to prove, in a local context.

    Example:
        goal = Goal(E("(le (add a c) (add b d))"), [("h", E("(le a b)"))])
        goal.relation()   # => ("le", ["add", "a", "c"], ["add", "b", "d"])
    """

    __slots__ = ('target', 'context')

    def __init__(self, target: TermType, context: Iterable[DeclLike] = ()):
        self.target = target
        self.context: Tuple[LocalDecl, ...] = tuple(_as_decl(d) for d in context)

    def relation(self) -> Optional[Tuple[str, TermType, TermType]]:
        """Parse the target as (relation name, lhs, rhs), or None."""
        return relation(self.target)

    def hypotheses(self, include_implementation_details: bool = False) -> List[LocalDecl]:
        """Hypotheses in context order, innermost last."""
        return [d for d in self.context
                if d.is_hypothesis and (include_implementation_details or not d.implementation_detail)]

    def names(self) -> Set[str]:
        """Names of all local declarations."""
        return {d.name for d in self.context}

    def with_target(self, target: TermType) -> 'Goal':
        return Goal(target, self.context)

    def map_terms(self, fn: Callable[[TermType], TermType]) -> 'Goal':
        """Apply fn to the target and to every hypothesis type."""
        context = [d.replace_type(fn(d.type)) if d.is_hypothesis else d for d in self.context]
        return Goal(fn(self.target), context)

    def intro(self, count: int, names: Optional[NameQueue] = None,
              anonymous_suffix: str = "✝") -> Tuple['Goal', NameQueue, List[LocalDecl]]:
        """
        Introduce `count` leading binders of the target.

        Names are taken from the queue left to right; once it is exhausted
        (or on a "_" hint) the binder is anonymous.

        Returns:
            (new goal, remaining names, introduced declarations)

        Raises:
            ValueError: If the target has fewer than `count` leading binders
        """
        names = names if names is not None else NameQueue()
        goal = self
        introduced: List[LocalDecl] = []
        for _ in range(count):
            hint, names = names.take()
            goal, decl = goal._intro_one(hint, anonymous_suffix)
            introduced.append(decl)
        return goal, names, introduced

    def intro_all(self, anonymous_suffix: str = "✝") -> 'Goal':
        """Introduce every leading binder anonymously."""
        goal = self
        while is_binder(goal.target, FORALL) or is_imp(goal.target):
            goal, _ = goal._intro_one(None, anonymous_suffix)
        return goal

    def _intro_one(self, hint: Optional[str], suffix: str) -> Tuple['Goal', LocalDecl]:
        t = self.target
        if is_binder(t, FORALL):
            base = t[1]
        elif is_imp(t):
            base = "h"
        else:
            raise ValueError(f"intro: no binder to introduce in {format_sexpr(t)}")

        avoid = self.names() | free_symbols(t)
        anonymous = hint is None or hint == HOLE
        if anonymous:
            name = fresh_name(base + suffix, avoid)
        elif is_binder(t, FORALL) and hint != t[1] and hint in free_symbols(t[2]):
            # the hint is already used free in the body
            name = fresh_name(hint, avoid)
        else:
            name = hint

        if is_binder(t, FORALL):
            decl = LocalDecl(name, anonymous=anonymous)
            target = subst(t[2], t[1], name)
        else:
            decl = LocalDecl(name, t[1], anonymous=anonymous)
            target = t[2]
        return Goal(target, self.context + (decl,)), decl

    def format(self) -> str:
        lines = [repr(d) for d in self.context]
        lines.append(f"⊢ {format_sexpr(self.target)}")
        return "\n".join(lines)

    def __eq__(self, other):
        if not isinstance(other, Goal):
            return False
        return alpha_equal(self.target, other.target) and self.context == other.context

    def __repr__(self) -> str:
        return f"Goal({format_sexpr(self.target)})"
