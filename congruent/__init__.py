"""
CONGRUENT - Congruence reasoning over relational goals

Decomposes a goal relating two similar terms, such as

    (le (add a c) (add b d))

into goals relating their differing parts, (le a b) and (le c d), by
applying registered congruence rules.

Quick Start:
    from congruent import CongruenceEngine

    engine = CongruenceEngine.from_dsl('''
        @add-le: (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))
    ''')

    engine.reduce("(le (add a c) (add b d))").targets()
    # => [["le", "a", "b"], ["le", "c", "d"]]

    engine.reduce("(le (add a c) (add b c))", template="(add ?_ c)").targets()
    # => [["le", "a", "b"]]

    engine.substitute("(le (add a c) (add b c))", ["(le a b)"])   # closes

DSL Syntax:
    # Comments start with #
    @rule-name: ANTECEDENT ... => CONCLUSION
    @rule-name[priority] "Description": ANTECEDENT ... => CONCLUSION

Term Syntax:
    (rel lhs rhs)          - a relational goal
    ?x                     - rule variable
    ?_                     - template hole
    (forall x body)        - universal quantification
    (fun x body)           - lambda
    (imp A B)              - implication

Example Rules File (order.rules):
    [order]
    @add-le: (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))
    @mul-le-left[1100]: (le ?b ?c) (le 0 ?a) => (le (mul ?a ?b) (mul ?a ?c))
"""

__version__ = "0.1.0"

# Terms
from .terms import (
    TermType,
    E,
    parse_sexpr,
    parse_sexprs,
    format_sexpr,
    alpha_equal,
    subst,
    beta,
    eta,
)

from .config import EngineConfig, DEFAULT_CONFIG

from .exceptions import (
    CongruenceError,
    RuleCompileError,
    InvalidRuleKind,
    NonVariableVaryingArgument,
    NoVaryingArguments,
    DuplicateRuleError,
    RuleSyntaxError,
    ApplyError,
    GoalError,
    NotARelation,
    HeadMismatch,
    TemplateMismatch,
    NoMatchingRule,
    AllRulesFailed,
    NoProgress,
    SubstitutionFailed,
)

from .goals import Goal, LocalDecl, NameQueue

from .unifier import Bindings, NoMatch, Placeholder, Unifier

from .rules import (
    Signature,
    VaryingPair,
    MainSubgoal,
    RuleMetadata,
    Rule,
    RuleIndex,
    compile_rule,
)

from .dischargers import (
    assumption_discharger,
    literal_discharger,
    default_side_discharger,
    evaluate,
)

from .forward import (
    FORWARD_STRATEGIES,
    forward_strategy,
    forward_discharger,
    make_forward_discharger,
)

from .matcher import MatchEngine

# Engine and DSL
from .engine import (
    CongruenceEngine,
    Reduction,
    parse_rule_line,
    load_rules_from_dsl,
    load_rules_from_file,
    load_rules_from_json,
)

from .library import LIBRARIES, ORDER_RULES, LOGIC_RULES

# Public API
__all__ = [
    # Version
    "__version__",
    # Terms
    "TermType",
    "E",
    "parse_sexpr",
    "parse_sexprs",
    "format_sexpr",
    "alpha_equal",
    "subst",
    "beta",
    "eta",
    # Config
    "EngineConfig",
    "DEFAULT_CONFIG",
    # Errors
    "CongruenceError",
    "RuleCompileError",
    "InvalidRuleKind",
    "NonVariableVaryingArgument",
    "NoVaryingArguments",
    "DuplicateRuleError",
    "RuleSyntaxError",
    "ApplyError",
    "GoalError",
    "NotARelation",
    "HeadMismatch",
    "TemplateMismatch",
    "NoMatchingRule",
    "AllRulesFailed",
    "NoProgress",
    "SubstitutionFailed",
    # Goals
    "Goal",
    "LocalDecl",
    "NameQueue",
    # Unifier
    "Bindings",
    "NoMatch",
    "Placeholder",
    "Unifier",
    # Rules
    "Signature",
    "VaryingPair",
    "MainSubgoal",
    "RuleMetadata",
    "Rule",
    "RuleIndex",
    "compile_rule",
    # Dischargers
    "assumption_discharger",
    "literal_discharger",
    "default_side_discharger",
    "evaluate",
    "FORWARD_STRATEGIES",
    "forward_strategy",
    "forward_discharger",
    "make_forward_discharger",
    # Engine
    "MatchEngine",
    "CongruenceEngine",
    "Reduction",
    # DSL utilities
    "parse_rule_line",
    "load_rules_from_dsl",
    "load_rules_from_file",
    "load_rules_from_json",
    # Libraries
    "LIBRARIES",
    "ORDER_RULES",
    "LOGIC_RULES",
]
