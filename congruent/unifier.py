"""
Unification context for congruence queries.

CONGRUENT - Congruence reasoning over relational goals

A Unifier owns the metavariables of one query: their assignments, the
placeholders created by rule applications, and which placeholders have
been solved. Every mutation can be rolled back with checkpoint/restore,
which the match engine does around every rule attempt and discharger call.

Unification is first-order, alpha-aware under binders, with an occurs
check, plus the pattern case (?f x1 ... xn) where the xi are distinct
bound variables; there ?f is assigned a lambda.
"""

import logging
from typing import Any, Dict, List, Optional, Set

from .config import EngineConfig, DEFAULT_CONFIG
from .exceptions import ApplyError
from .goals import Goal
from .terms import (
    TermType, LAMBDA, make_meta, is_meta, is_binder, is_application, compound,
    constant, symbol, metas, free_symbols, subst_metas, beta, relation, format_sexpr,
)

logger = logging.getLogger(__name__)


# ============================================================
# Match results
# ============================================================

class Bindings(dict):
    """
    Assignments of a successful match, by variable name.

        if bindings := engine.match(rule_id, goal):
            print(bindings["a"], bindings["b"])

    Always truthy, even with no assignments; a failed match is NoMatch.
    """

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Bindings({dict.__repr__(self)})"

    def to_dict(self) -> Dict[str, Any]:
        return dict(self)


class _NoMatch:
    """Falsy result of a failed match."""

    def __bool__(self) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __repr__(self) -> str:
        return "NoMatch"


NoMatch = _NoMatch()


# ============================================================
# Placeholders
# ============================================================

class Placeholder:
    """A proof obligation created by applying a rule: one per antecedent."""

    __slots__ = ('id', 'index', 'type', 'context')

    def __init__(self, id: int, index: int, type: TermType, context):
        self.id = id
        self.index = index      # antecedent index within the rule
        self.type = type        # not instantiated; see Unifier.goal_of
        self.context = context

    def __repr__(self) -> str:
        return f"Placeholder(#{self.id}, antecedent {self.index}: {format_sexpr(self.type)})"


# ============================================================
# Unifier
# ============================================================

class Unifier:
    """
    Metavariable context with transactional rollback.

    Example:
        u = Unifier()
        state = u.checkpoint()
        if not u.unify(E("(add ?x c)"), E("(add a c)")):
            u.restore(state)
        u.instantiate(E("?x"))   # => "a"
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self._assignment: Dict[str, TermType] = {}
        self._placeholders: List[Placeholder] = []
        self._solved: Set[int] = set()
        self._counter = 0

    # ------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------

    def checkpoint(self) -> tuple:
        """Snapshot the whole context."""
        return (dict(self._assignment), len(self._placeholders),
                set(self._solved), self._counter)

    def restore(self, state: tuple) -> None:
        """Roll back to a snapshot taken by checkpoint()."""
        assignment, count, solved, counter = state
        self._assignment = dict(assignment)
        del self._placeholders[count:]
        self._solved = set(solved)
        self._counter = counter

    # ------------------------------------------------------------
    # Metavariables
    # ------------------------------------------------------------

    def fresh_meta(self, hint: str = "m") -> List:
        self._counter += 1
        return make_meta(f"{hint}.{self._counter}")

    def is_assigned(self, name: str) -> bool:
        return name in self._assignment

    def instantiate(self, t: TermType) -> TermType:
        """Replace assigned metavariables (transitively) and beta-normalize."""
        while metas(t).intersection(self._assignment):
            t = subst_metas(t, self._assignment)
        return beta(t)

    def instantiate_goal(self, goal: Goal) -> Goal:
        return goal.map_terms(self.instantiate)

    def bindings(self) -> Bindings:
        """Current assignments, fully instantiated."""
        return Bindings([[name, self.instantiate(value)]
                         for name, value in self._assignment.items()])

    # ------------------------------------------------------------
    # Placeholders
    # ------------------------------------------------------------

    @property
    def placeholders(self) -> List[Placeholder]:
        return list(self._placeholders)

    def placeholder_count(self) -> int:
        return len(self._placeholders)

    def goal_of(self, placeholder: Placeholder) -> Goal:
        return self.instantiate_goal(Goal(placeholder.type, placeholder.context))

    def mark_solved(self, placeholder: Placeholder) -> None:
        self._solved.add(placeholder.id)

    def is_solved(self, placeholder: Placeholder) -> bool:
        return placeholder.id in self._solved

    # ------------------------------------------------------------
    # Unification
    # ------------------------------------------------------------

    def unify(self, a: TermType, b: TermType) -> bool:
        """
        Unify two terms, assigning metavariables on either side.

        Not transactional: on failure, partial assignments remain until
        the caller restores a checkpoint.
        """
        return self._unify(self.instantiate(a), self.instantiate(b), {}, {}, 0)

    def _whnf(self, t: TermType) -> TermType:
        while True:
            if is_meta(t) and t[1] in self._assignment:
                t = self._assignment[t[1]]
            elif is_application(t) and is_meta(t[0]) and t[0][1] in self._assignment:
                t = beta([self._assignment[t[0][1]]] + t[1:])
            else:
                return t

    def _unify(self, a: TermType, b: TermType, env_a: Dict[str, int],
               env_b: Dict[str, int], depth: int) -> bool:
        a = self._whnf(a)
        b = self._whnf(b)

        if is_meta(a) and is_meta(b) and a[1] == b[1]:
            return True
        if is_meta(a):
            return self._assign(a[1], b, env_b)
        if is_meta(b):
            return self._assign(b[1], a, env_a)
        if self._is_pattern(a, env_a):
            return self._assign_pattern(a, b, env_a, env_b)
        if self._is_pattern(b, env_b):
            return self._assign_pattern(b, a, env_b, env_a)

        if is_binder(a) or is_binder(b):
            if not (is_binder(a) and is_binder(b)) or a[0] != b[0]:
                return False
            return self._unify(a[2], b[2], {**env_a, a[1]: depth},
                               {**env_b, b[1]: depth}, depth + 1)

        if symbol(a) and symbol(b):
            da, db = env_a.get(a), env_b.get(b)
            if da is None and db is None:
                return a == b
            return da == db

        if compound(a) and compound(b):
            if len(a) != len(b):
                return False
            return all(self._unify(x, y, env_a, env_b, depth) for x, y in zip(a, b))

        return constant(a) and constant(b) and a == b

    def _is_pattern(self, t: TermType, env: Dict[str, int]) -> bool:
        """(?f x1 ... xn) with distinct bound variables xi."""
        if not (is_application(t) and len(t) > 1 and is_meta(t[0])):
            return False
        args = t[1:]
        return (all(symbol(x) and x in env for x in args)
                and len(set(args)) == len(args))

    def _assign_pattern(self, pattern: List, other: TermType,
                        env_p: Dict[str, int], env_other: Dict[str, int]) -> bool:
        by_depth = {d: name for name, d in env_other.items()}
        names = []
        for var in pattern[1:]:
            name = by_depth.get(env_p[var])
            if name is None:
                return False
            names.append(name)
        value = other
        for name in reversed(names):
            value = [LAMBDA, name, value]
        return self._assign(pattern[0][1], value, env_other)

    def _assign(self, name: str, value: TermType, env: Dict[str, int]) -> bool:
        value = self.instantiate(value)
        if is_meta(value) and value[1] == name:
            return True
        if name in metas(value):
            return False
        if free_symbols(value).intersection(env):
            # value mentions a variable bound inside the term being unified
            return False
        self._assignment[name] = value
        return True

    # ------------------------------------------------------------
    # Rule application and reflexivity
    # ------------------------------------------------------------

    def apply(self, rule, goal: Goal) -> List[Placeholder]:
        """
        Instantiate a rule against a goal.

        The rule's variables are renamed to fresh metavariables and one
        placeholder is created per antecedent, then the conclusion is
        unified with the goal.

        Raises:
            ApplyError: If the conclusion does not unify. The caller must
                restore its checkpoint.
        """
        renaming = {name: self.fresh_meta(name) for name in sorted(rule.variables)}
        created = []
        for index, antecedent in enumerate(rule.antecedents):
            placeholder = Placeholder(len(self._placeholders), index,
                                      subst_metas(antecedent, renaming), goal.context)
            self._placeholders.append(placeholder)
            created.append(placeholder)

        conclusion = subst_metas(rule.conclusion, renaming)
        if not self.unify(conclusion, goal.target):
            logger.debug("apply %s: conclusion does not unify", rule.rule_id)
            raise ApplyError(
                f"{rule.rule_id} does not apply to {format_sexpr(self.instantiate(goal.target))}",
                {"rule": rule.rule_id},
            )
        return created

    def try_reflexivity(self, goal: Goal) -> bool:
        """Close `rel a b` when rel is reflexive and a unifies with b."""
        rel = relation(self.instantiate(goal.target))
        if rel is None or rel[0] not in self.config.reflexive_relations:
            return False
        state = self.checkpoint()
        if self.unify(rel[1], rel[2]):
            return True
        self.restore(state)
        return False
