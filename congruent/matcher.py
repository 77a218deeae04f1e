"""
The congruence match engine.

MatchEngine.solve decomposes a relational goal

    le (add a c) (add b d)

by finding a rule for its signature (le, add, 2), applying the first one
that unifies, and recursing into the rule's main subgoals (le a b),
(le c d). Side obligations go to the side discharger. Leaves that no
rule decomposes go to the main discharger, and stay unresolved if it
fails.

A template such as (add ?_ c) limits the descent: the engine follows the
template's structure and stops at holes.

Every rule attempt and every discharger call runs inside a unifier
checkpoint and is rolled back when it fails.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

from .config import EngineConfig
from .exceptions import (
    ApplyError, NotARelation, HeadMismatch, TemplateMismatch,
    NoMatchingRule, AllRulesFailed,
)
from .goals import Goal, LocalDecl, NameQueue
from .rules import Rule, RuleIndex, compile_rule
from .terms import (
    TermType, IMP, LAMBDA, make_meta, is_hole, has_hole, is_binder, head_args,
    subst, format_sexpr,
)
from .unifier import Placeholder, Unifier

logger = logging.getLogger(__name__)

Discharger = Callable[[Goal, Unifier], bool]

# the synthetic transitivity rule is always tried last
FALLBACK_PRIORITY = -(2 ** 31)

SolveResult = Tuple[bool, NameQueue, List[Goal]]


class MatchEngine:
    """
    Recursive congruence decomposition over a RuleIndex.

    One MatchEngine serves one query: it shares the query's Unifier.

    Example:
        matcher = MatchEngine(index, Unifier())
        progressed, names, leaves = matcher.solve(Goal(E("(le (add a c) (add b d))")))
        # leaves: [le a b, le c d]
    """

    def __init__(self, index: RuleIndex, unifier: Unifier,
                 config: Optional[EngineConfig] = None):
        self.index = index
        self.unifier = unifier
        self.config = config or unifier.config
        self._transitivity: Dict[str, Rule] = {}

    def solve(self, goal: Goal, template: Optional[TermType] = None,
              depth: Optional[int] = None, names: Optional[NameQueue] = None,
              main: Optional[Discharger] = None,
              side: Optional[Discharger] = None) -> SolveResult:
        """
        Decompose a goal.

        Args:
            goal: The goal to decompose
            template: Optional pattern for the sides of the goal; holes (?_)
                mark where to stop descending
            depth: Remaining recursion budget (default: config.max_depth)
            names: Binder-name hints, consumed left to right across the tree
            main: Discharger for leaves of the decomposition
            side: Discharger for side obligations

        Returns:
            (progressed, remaining names, unresolved goals)

        Raises:
            GoalError: Only when a template is given and does not fit
        """
        depth = self.config.max_depth if depth is None else depth
        names = names if names is not None else NameQueue()
        goal = self.unifier.instantiate_goal(goal)
        logger.debug("solve depth=%d template=%s: %s", depth,
                     format_sexpr(template) if template is not None else "-",
                     format_sexpr(goal.target))

        discharged = False
        if template is None:
            if self.unifier.try_reflexivity(goal):
                return True, names, []
            if self._discharge(main, goal):
                return True, names, []
            discharged = True
        elif is_hole(template):
            if self._discharge(main, goal):
                return True, names, []
            return False, names, [goal]
        elif not has_hole(template):
            if self.unifier.try_reflexivity(goal):
                return True, names, []
            raise TemplateMismatch(
                f"template {format_sexpr(template)} has no holes and does not close "
                f"{format_sexpr(goal.target)}", goal)

        if depth <= 0:
            if not discharged and self._discharge(main, goal):
                return True, names, []
            return False, names, [goal]

        rel = goal.relation()
        if rel is None:
            if template is not None:
                raise NotARelation(f"{format_sexpr(goal.target)} is not a relation", goal)
            return False, names, [goal]
        rel_name, lhs, rhs = rel

        left, right = head_args(lhs), head_args(rhs)
        if template is not None:
            shape = head_args(template)
            if (left is None or right is None or shape is None
                    or not shape[0] == left[0] == right[0]
                    or not len(shape[1]) == len(left[1]) == len(right[1])):
                raise HeadMismatch(
                    f"template {format_sexpr(template)} does not fit both sides of "
                    f"{format_sexpr(goal.target)}", goal)
        elif (left is None or right is None or left[0] != right[0]
              or len(left[1]) != len(right[1])):
            return False, names, [goal]
        head, arity = left[0], len(left[1])

        candidates = self.index.lookup((rel_name, head, arity))
        if rel_name == IMP:
            fallback = self._transitivity_rule(head, arity)
            if fallback is not None:
                candidates.append(fallback)

        for rule in candidates:
            state = self.unifier.checkpoint()
            try:
                placeholders = self.unifier.apply(rule, goal)
            except ApplyError:
                self.unifier.restore(state)
                continue
            logger.debug("rule %s applies to %s", rule.rule_id, format_sexpr(goal.target))
            return self._descend(rule, placeholders, template, depth, names, main, side)

        if template is None:
            return False, names, [goal]
        if not candidates:
            raise NoMatchingRule(
                f"no rule for signature ({rel_name}, {head}, {arity})", goal,
                {"signature": (rel_name, head, arity)})
        attempted = [rule.rule_id for rule in candidates]
        raise AllRulesFailed(
            f"no rule applies to {format_sexpr(goal.target)}; tried {', '.join(attempted)}",
            goal, attempted)

    def _descend(self, rule: Rule, placeholders: List[Placeholder],
                 template: Optional[TermType], depth: int, names: NameQueue,
                 main: Optional[Discharger], side: Optional[Discharger]) -> SolveResult:
        template_args = head_args(template)[1] if template is not None else None

        main_leaves: List[Goal] = []
        for entry in rule.main_subgoals:
            placeholder = placeholders[entry.antecedent_index]
            if self.unifier.is_solved(placeholder):
                continue
            subgoal = self.unifier.goal_of(placeholder)
            subgoal, names, introduced = subgoal.intro(
                entry.binders, names, self.config.anonymous_suffix)

            sub_template = None
            if template_args is not None:
                sub_template = template_args[rule.varying[entry.varying_index].position]
                sub_template = _enter(sub_template, introduced)

            _, names, leaves = self.solve(subgoal, sub_template, depth - 1, names, main, side)
            if not leaves:
                self.unifier.mark_solved(placeholder)
            main_leaves.extend(leaves)

        side_leaves: List[Goal] = []
        for index in rule.side_obligations:
            placeholder = placeholders[index]
            if self.unifier.is_solved(placeholder):
                continue
            obligation = self.unifier.goal_of(placeholder)
            if self._discharge(side, obligation.intro_all(self.config.anonymous_suffix)):
                self.unifier.mark_solved(placeholder)
            else:
                logger.debug("side obligation left open: %s", format_sexpr(obligation.target))
                side_leaves.append(obligation)

        return True, names, main_leaves + side_leaves

    def _discharge(self, discharger: Optional[Discharger], goal: Goal) -> bool:
        if discharger is None:
            return False
        state = self.unifier.checkpoint()
        if discharger(self.unifier.instantiate_goal(goal), self.unifier):
            return True
        self.unifier.restore(state)
        return False

    def _transitivity_rule(self, head: str, arity: int) -> Optional[Rule]:
        """(R ?c ?a) (R ?b ?d) => (imp (R ?a ?b) (R ?c ?d)) for a transitive R."""
        if arity != 2 or head not in self.config.transitive_relations:
            return None
        if head not in self._transitivity:
            a, b, c, d = (make_meta(n) for n in "abcd")
            self._transitivity[head] = compile_rule(
                [[head, c, a], [head, b, d]],
                [IMP, [head, a, b], [head, c, d]],
                f"{head}-trans-imp", priority=FALLBACK_PRIORITY, config=self.config)
        return self._transitivity[head]


def _enter(template: TermType, introduced: List[LocalDecl]) -> TermType:
    """Open lambda templates alongside the variables just introduced."""
    for decl in introduced:
        if decl.is_hypothesis:
            continue
        if not is_binder(template, LAMBDA):
            break
        template = subst(template[2], template[1], decl.name)
    return template
