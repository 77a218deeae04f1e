"""
Exception hierarchy for CONGRUENT.

All exceptions carry structured context so callers can
programmatically handle different failure modes.

Registration-time errors (RuleCompileError) reject a single rule.
Query-time errors (GoalError) abort a whole top-level query and carry
the offending goal.
"""

from typing import List, Optional


class CongruenceError(Exception):
    """Base exception for all CONGRUENT errors."""

    def __init__(self, message: str, context: Optional[dict] = None):
        super().__init__(message)
        self.context = context or {}


# ============================================================
# Registration time
# ============================================================

class RuleCompileError(CongruenceError):
    """Raised when a candidate rule cannot be compiled into a congruence rule."""

    def __init__(self, message: str, rule_id: Optional[str] = None,
                 context: Optional[dict] = None):
        super().__init__(message, context)
        self.rule_id = rule_id


class InvalidRuleKind(RuleCompileError):
    """The conclusion is not `rel (f ...) (f ...)` with matching heads and arities."""


class NonVariableVaryingArgument(RuleCompileError):
    """An argument differs between the two sides but is not a bare rule variable."""

    def __init__(self, message: str, rule_id: Optional[str] = None,
                 position: Optional[int] = None, context: Optional[dict] = None):
        super().__init__(message, rule_id, context)
        self.position = position


class NoVaryingArguments(RuleCompileError):
    """Both sides of the conclusion are identical."""


class DuplicateRuleError(RuleCompileError):
    """A rule with the same id is already registered."""


class RuleSyntaxError(CongruenceError):
    """Raised when rule text (DSL or JSON) cannot be parsed."""

    def __init__(self, message: str, line: Optional[str] = None,
                 rule_id: Optional[str] = None):
        super().__init__(message, {"line": line} if line is not None else None)
        self.line = line
        self.rule_id = rule_id


# ============================================================
# Query time
# ============================================================

class ApplyError(CongruenceError):
    """Raised by the unifier when a rule does not apply to a goal.

    Never escapes a query: the engine treats it as a failed attempt.
    """


class GoalError(CongruenceError):
    """Base for errors that abort a query; carries the offending goal."""

    def __init__(self, message: str, goal=None, context: Optional[dict] = None):
        super().__init__(message, context)
        self.goal = goal


class NotARelation(GoalError):
    """The goal is not a binary relation application."""


class HeadMismatch(GoalError):
    """The template and the two sides of the goal disagree on head or arity."""


class TemplateMismatch(GoalError):
    """A template without holes does not describe the goal."""


class NoMatchingRule(GoalError):
    """A template asked for decomposition but no rule has the goal's signature."""


class AllRulesFailed(GoalError):
    """A template asked for decomposition but no candidate rule unified."""

    def __init__(self, message: str, goal=None, attempted: Optional[List[str]] = None,
                 context: Optional[dict] = None):
        super().__init__(message, goal, context)
        self.attempted = attempted or []


class NoProgress(GoalError):
    """Reduce mode made no progress on the top-level goal."""


class SubstitutionFailed(GoalError):
    """Substitute mode left steps that the listed relationships do not justify."""

    def __init__(self, message: str, goal=None, unresolved: Optional[list] = None,
                 context: Optional[dict] = None):
        super().__init__(message, goal, context)
        self.unresolved = unresolved or []
