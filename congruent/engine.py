"""
Rule loading and the congruence engine.

Rules are written one per line:

    @name[priority] "description": ANTECEDENT ... => CONCLUSION

    @add-le "addition is monotone": (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))
    @mul-le-left[900]: (le ?a ?b) (le 0 ?c) => (le (mul ?c ?a) (mul ?c ?b))

Name, priority and description are optional; priority defaults to 1000
and may be negative. Lines starting with # are comments, [group] lines
tag the rules that follow, and `:include path` pulls in another file.

Queries come in two modes:

    engine.reduce(goal, template=None, names=())   # best effort
    engine.substitute(goal, hypotheses)             # must close every step
"""

import json
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .config import EngineConfig, DEFAULT_CONFIG
from .dischargers import default_side_discharger
from .exceptions import (
    CongruenceError, RuleCompileError, RuleSyntaxError, NotARelation, NoProgress,
    SubstitutionFailed,
)
from .forward import forward_discharger, make_forward_discharger
from .goals import Goal, NameQueue
from .matcher import Discharger, MatchEngine
from .rules import Rule, RuleIndex, RuleMetadata, compile_rule
from .terms import TermType, parse_sexpr, parse_sexprs, format_sexpr
from .unifier import Bindings, NoMatch, Unifier, _NoMatch

logger = logging.getLogger(__name__)

RuleSpec = Tuple[RuleMetadata, List]  # (metadata, [antecedents, conclusion])


# ============================================================
# Rule DSL
# ============================================================

_HEADER = re.compile(
    r'@([\w.-]+)'                  # name
    r'(?:\[(-?\d+)\])?'            # [priority]
    r'(?:\s+"([^"]*)")?'           # "description"
    r':\s*(.*)$'
)


def parse_rule_line(line: str) -> Optional[Tuple[RuleMetadata, List[TermType], TermType]]:
    """
    Parse a single rule line.

    Formats:
        @name: ANT ... => CONCL
        @name[priority]: ANT ... => CONCL
        @name "description": ANT ... => CONCL
        @name[priority] "description": ANT ... => CONCL
        ANT ... => CONCL

    Returns: (metadata, antecedents, conclusion) or None if not a rule

    Raises:
        RuleSyntaxError: If the line is a rule but cannot be parsed
    """
    original = line
    line = line.strip()

    # Skip empty lines and comments
    if not line or line.startswith('#'):
        return None

    metadata = RuleMetadata()
    if line.startswith('@'):
        match_obj = _HEADER.match(line)
        if not match_obj:
            raise RuleSyntaxError(f"malformed rule header: {line}", original)
        metadata.name = match_obj.group(1)
        if match_obj.group(2) is not None:
            metadata.priority = int(match_obj.group(2))
        metadata.description = match_obj.group(3)
        line = match_obj.group(4)

    # Must have =>
    if '=>' not in line:
        if metadata.name:
            raise RuleSyntaxError(f"rule {metadata.name} has no '=>'", original, metadata.name)
        return None

    antecedents_str, conclusion_str = line.split('=>', 1)
    try:
        antecedents = parse_sexprs(antecedents_str)
        conclusion = parse_sexpr(conclusion_str)
    except ValueError as e:
        raise RuleSyntaxError(str(e), original, metadata.name) from e
    if conclusion is None:
        raise RuleSyntaxError("rule has no conclusion", original, metadata.name)

    return metadata, antecedents, conclusion


def load_rules_from_dsl(
    text: str,
    base_path: Optional[Path] = None,
    _included_files: Optional[set] = None,
    errors: Optional[List[Tuple[RuleMetadata, CongruenceError]]] = None
) -> List[RuleSpec]:
    """
    Load rules from DSL text.

    Supports:
    - Named groups: [groupname]
    - File includes: :include path/to/file.rules

    Example:
        [order]
        @add-le: (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))

        :include logic.rules

    Args:
        text: DSL text containing rules
        base_path: Base path for resolving relative :include paths
        _included_files: Internal tracking for circular include detection
        errors: If given, malformed lines are logged, appended here as
            (metadata, RuleSyntaxError) and skipped instead of raised

    Returns:
        List of (metadata, [antecedents, conclusion]) tuples
    """
    rules = []
    current_group = None

    # Track included files to prevent circular includes
    if _included_files is None:
        _included_files = set()

    for line in text.split('\n'):
        line_stripped = line.strip()

        # Group declaration: [groupname]
        if line_stripped.startswith('[') and line_stripped.endswith(']'):
            current_group = line_stripped[1:-1].strip()
            continue

        # Include directive: :include path
        if line_stripped.startswith(':include '):
            include_path_str = line_stripped[9:].strip()
            if include_path_str:
                include_path = base_path / include_path_str if base_path else Path(include_path_str)

                # Resolve to absolute path for cycle detection
                abs_path = include_path.resolve()
                if abs_path in _included_files:
                    raise ValueError(f"Circular include detected: {include_path}")
                if not include_path.exists():
                    raise FileNotFoundError(f"Include file not found: {include_path}")

                _included_files.add(abs_path)
                included_rules = load_rules_from_file(include_path, _included_files=_included_files,
                                                      errors=errors)
                # Untagged included rules join the current group
                for meta, _ in included_rules:
                    if current_group and not meta.tags:
                        meta.tags.append(current_group)
                rules.extend(included_rules)
            continue

        try:
            result = parse_rule_line(line)
        except RuleSyntaxError as e:
            if errors is None:
                raise
            _skip(RuleMetadata(e.rule_id, tags=[current_group] if current_group else None),
                  e, errors)
            continue
        if result:
            metadata, antecedents, conclusion = result
            if current_group and current_group not in metadata.tags:
                metadata.tags.append(current_group)
            rules.append((metadata, [antecedents, conclusion]))
    return rules


def _skip(metadata: RuleMetadata, error: CongruenceError,
          errors: List[Tuple[RuleMetadata, CongruenceError]]) -> None:
    logger.warning("rejected rule %s: %s", metadata.name or "<anonymous>", error)
    errors.append((metadata, error))


def load_rules_from_file(
    path: Union[str, Path],
    _included_files: Optional[set] = None,
    errors: Optional[List[Tuple[RuleMetadata, CongruenceError]]] = None
) -> List[RuleSpec]:
    """
    Load rules from a .rules or .json file.

    :include paths in DSL files resolve relative to the containing file.
    """
    path = Path(path)
    text = path.read_text()

    if path.suffix == '.json':
        return load_rules_from_json(text, errors=errors)
    if _included_files is None:
        _included_files = {path.resolve()}
    return load_rules_from_dsl(text, base_path=path.parent, _included_files=_included_files,
                               errors=errors)


def _term(value) -> TermType:
    """Accept terms either as JSON structures or as s-expression strings."""
    if isinstance(value, str) and value.lstrip().startswith('('):
        return parse_sexpr(value)
    return value


def load_rules_from_json(
    text: str,
    errors: Optional[List[Tuple[RuleMetadata, CongruenceError]]] = None
) -> List[RuleSpec]:
    """
    Load rules from JSON text.

    A document that is not valid JSON always raises. With `errors`, a
    malformed entry is logged, recorded and skipped.

    Expected format:
        {
            "name": "ruleset-name",
            "rules": [
                {
                    "name": "add-le",
                    "description": "...",
                    "antecedents": ["(le ?a ?b)", ["le", ["?", "c"], ["?", "d"]]],
                    "conclusion": "(le (add ?a ?c) (add ?b ?d))",
                    "priority": 1000,     # optional
                    "tags": ["order"]     # optional
                },
                or just [antecedents, conclusion]
            ]
        }
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise RuleSyntaxError(f"invalid JSON: {e}") from e

    rules = []
    for rule in data.get('rules', []):
        metadata = RuleMetadata()
        try:
            if isinstance(rule, dict):
                metadata = RuleMetadata(
                    name=rule.get('name'),
                    description=rule.get('description'),
                    tags=rule.get('tags'),
                    priority=rule.get('priority'),
                )
                antecedents = rule.get('antecedents', [])
                conclusion = rule['conclusion']
            else:
                antecedents, conclusion = rule[0], rule[1]
            antecedents = [_term(a) for a in antecedents]
            conclusion = _term(conclusion)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            error = RuleSyntaxError(f"malformed rule entry {rule!r}: {e}", rule_id=metadata.name)
            if errors is None:
                raise error from e
            _skip(metadata, error, errors)
            continue
        rules.append((metadata, [antecedents, conclusion]))
    return rules


# ============================================================
# Query results
# ============================================================

class Reduction:
    """
    Result of a query.

    Attributes:
        progressed: Whether any rule, reflexivity or discharger made progress
        goals: Unresolved goals, left to right, depth first
        names: Binder-name hints that were not consumed
    """

    __slots__ = ('progressed', 'goals', 'names')

    def __init__(self, progressed: bool, goals: List[Goal], names: NameQueue):
        self.progressed = progressed
        self.goals = goals
        self.names = names

    @property
    def closed(self) -> bool:
        """True when no goal remains."""
        return not self.goals

    def targets(self) -> List[TermType]:
        return [g.target for g in self.goals]

    def format(self) -> str:
        if not self.goals:
            return "no goals"
        blocks = []
        for i, goal in enumerate(self.goals, 1):
            blocks.append(f"goal {i}:\n{goal.format()}")
        return "\n\n".join(blocks)

    def __len__(self) -> int:
        return len(self.goals)

    def __iter__(self):
        return iter(self.goals)

    def __repr__(self) -> str:
        targets = ", ".join(format_sexpr(t) for t in self.targets())
        return f"Reduction(progressed={self.progressed}, goals=[{targets}])"


# ============================================================
# Congruence Engine
# ============================================================

HypothesisLike = Union[str, TermType, Tuple[str, Union[str, TermType]]]


class CongruenceEngine:
    """
    A registry of congruence rules and the entry points that use it.

    Example:
        from congruent import CongruenceEngine

        engine = CongruenceEngine.from_dsl('''
            @add-le: (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))
        ''')
        result = engine.reduce("(le (add a c) (add b d))")
        result.targets()   # => [["le", "a", "b"], ["le", "c", "d"]]

        engine.substitute("(le (add a c) (add b c))", ["(le a b)"])   # closes
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.index = RuleIndex()
        # rules the loaders skipped, with the syntax or compile error
        self.rejected: List[Tuple[RuleMetadata, CongruenceError]] = []

    # ------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------

    def _next_id(self) -> str:
        n = len(self.index) + 1
        while f"rule-{n}" in self.index:
            n += 1
        return f"rule-{n}"

    def register(self, metadata: RuleMetadata, antecedents: List[TermType],
                  conclusion: TermType) -> Rule:
        """
        Compile and index one parsed rule.

        Raises:
            RuleCompileError: If the rule is rejected
        """
        rule_id = metadata.name or self._next_id()
        rule = compile_rule(antecedents, conclusion, rule_id, metadata.priority,
                            metadata, self.config)
        self.index.insert(rule)
        logger.info("registered rule %s for %s (varying %d, main %d)", rule_id,
                    tuple(rule.signature), rule.num_varying, len(rule.main_subgoals))
        return rule

    def add_rule(self, antecedents: Iterable[Union[str, TermType]],
                 conclusion: Union[str, TermType], name: Optional[str] = None,
                 priority: Optional[int] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None) -> 'CongruenceEngine':
        """
        Compile and register a single rule.

        Raises:
            RuleCompileError: If the rule is not a congruence rule
        """
        antecedents = [parse_sexpr(a) if isinstance(a, str) else a for a in antecedents]
        if isinstance(conclusion, str):
            conclusion = parse_sexpr(conclusion)
        self.register(RuleMetadata(name, description, tags, priority), antecedents, conclusion)
        return self

    def load_specs(self, specs: List[RuleSpec]) -> 'CongruenceEngine':
        """Register parsed rules; rules that do not compile are logged and skipped."""
        for metadata, (antecedents, conclusion) in specs:
            try:
                self.register(metadata, antecedents, conclusion)
            except RuleCompileError as e:
                logger.warning("rejected rule %s: %s", e.rule_id, e)
                self.rejected.append((metadata, e))
        return self

    def load_dsl(self, text: str) -> 'CongruenceEngine':
        """Load rules from DSL text."""
        return self.load_specs(load_rules_from_dsl(text, errors=self.rejected))

    def load_file(self, path: Union[str, Path]) -> 'CongruenceEngine':
        """Load rules from a file (.rules or .json)."""
        return self.load_specs(load_rules_from_file(path, errors=self.rejected))

    def load_json(self, text: str) -> 'CongruenceEngine':
        return self.load_specs(load_rules_from_json(text, errors=self.rejected))

    def with_library(self, name: str) -> 'CongruenceEngine':
        """Load a stock rule set (see congruent.library.LIBRARIES)."""
        from .library import LIBRARIES
        if name not in LIBRARIES:
            raise ValueError(f"Unknown library: '{name}'. Available: {sorted(LIBRARIES)}")
        return self.load_dsl(LIBRARIES[name])

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def _as_goal(self, goal: Union[Goal, str, TermType],
                 hypotheses: Iterable[HypothesisLike] = ()) -> Goal:
        if isinstance(goal, Goal):
            context = list(goal.context)
            target = goal.target
        else:
            context = []
            target = parse_sexpr(goal) if isinstance(goal, str) else goal
        taken = {d.name for d in context}
        for i, hyp in enumerate(hypotheses, 1):
            if isinstance(hyp, tuple):
                name, term = hyp
            else:
                name, term = f"h{i}", hyp
                while name in taken:
                    name += "'"
            taken.add(name)
            context.append((name, parse_sexpr(term) if isinstance(term, str) else term))
        return Goal(target, context)

    def reduce(self, goal: Union[Goal, str, TermType],
               template: Optional[Union[str, TermType]] = None,
               names: Iterable[str] = (), depth: Optional[int] = None,
               hypotheses: Iterable[HypothesisLike] = (),
               main_discharger: Optional[Discharger] = None,
               side_discharger: Optional[Discharger] = None,
               require_progress: bool = False) -> Reduction:
        """
        Decompose a goal as far as the rules allow.

        Args:
            goal: A Goal, a term, or an s-expression string
            template: Optional shape of the two sides; ?_ marks where to stop
            names: Names for introduced binders, left to right over the tree
            depth: Recursion budget (default: config.max_depth)
            hypotheses: Extra hypotheses added to the goal's context
            main_discharger: Closes leaves (default: forward reasoning)
            side_discharger: Closes side obligations (default: assumption, then literal)
            require_progress: Raise NoProgress if nothing happened

        Returns:
            Reduction with the unresolved goals

        Raises:
            GoalError: On a template that does not fit, or no progress when required
        """
        goal = self._as_goal(goal, hypotheses)
        if isinstance(template, str):
            template = parse_sexpr(template)
        if template is not None and goal.relation() is None:
            raise NotARelation(f"{format_sexpr(goal.target)} is not a relation", goal)

        unifier = Unifier(self.config)
        matcher = MatchEngine(self.index, unifier, self.config)
        progressed, rest, leaves = matcher.solve(
            goal, template, depth, NameQueue(names),
            main_discharger or forward_discharger,
            side_discharger or default_side_discharger,
        )
        leaves = [unifier.instantiate_goal(g) for g in leaves]
        if require_progress and not progressed:
            raise NoProgress(f"no progress on {format_sexpr(goal.target)}", goal)
        return Reduction(progressed, leaves, rest)

    def substitute(self, goal: Union[Goal, str, TermType],
                   hypotheses: Iterable[Union[str, TermType, Tuple[str, TermType]]],
                   depth: Optional[int] = None,
                   side_discharger: Optional[Discharger] = None,
                   strategies=None) -> Reduction:
        """
        Close a goal by congruence, using only the given relationships.

        The leaves of the decomposition must follow from `hypotheses` by
        forward reasoning; the goal's own context is not searched.

        Raises:
            NotARelation: If the goal is not a relation
            SubstitutionFailed: If some leaves remain, listed in order
        """
        goal = self._as_goal(goal)
        if goal.relation() is None:
            raise NotARelation(f"{format_sexpr(goal.target)} is not a relation", goal)
        terms = []
        for hyp in hypotheses:
            term = hyp[1] if isinstance(hyp, tuple) else hyp
            terms.append(parse_sexpr(term) if isinstance(term, str) else term)

        unifier = Unifier(self.config)
        matcher = MatchEngine(self.index, unifier, self.config)
        progressed, rest, leaves = matcher.solve(
            goal, None, depth, NameQueue(),
            make_forward_discharger(terms, strategies),
            side_discharger or default_side_discharger,
        )
        leaves = [unifier.instantiate_goal(g) for g in leaves]
        if leaves:
            listed = ", ".join(format_sexpr(g.target) for g in leaves)
            raise SubstitutionFailed(f"unresolved: {listed}", goal, leaves)
        return Reduction(progressed, [], rest)

    # ------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------

    def match(self, rule_id: str, goal: Union[str, TermType]) -> Union[Bindings, _NoMatch]:
        """Bindings of the rule's variables if its conclusion unifies with goal."""
        rule = self[rule_id]
        target = parse_sexpr(goal) if isinstance(goal, str) else goal
        unifier = Unifier(self.config)
        if not unifier.unify(rule.conclusion, target):
            return NoMatch
        return unifier.bindings()

    def rules_matching(self, goal: Union[str, TermType]) -> List[Tuple[Rule, Bindings]]:
        """
        Find all rules whose conclusion unifies with a goal.

        Useful for debugging why a goal does not decompose.

        Example:
            for rule, bindings in engine.rules_matching("(le (add a c) (add b d))"):
                print(rule.rule_id, bindings.to_dict())
        """
        matching = []
        for rule in self.index:
            bindings = self.match(rule.rule_id, goal)
            if bindings:
                matching.append((rule, bindings))
        return matching

    def _format_rule(self, rule: Rule) -> str:
        meta = rule.metadata
        name_part = f"@{rule.rule_id}"
        if rule.priority != self.config.default_priority:
            name_part += f"[{rule.priority}]"
        if meta.description:
            name_part += f" \"{meta.description}\""
        return f"{name_part}: {rule.statement()}"

    def list_rules(self) -> List[str]:
        """List all rules in DSL format, in index order."""
        return [self._format_rule(rule) for rule in self.index]

    def to_dsl(self, name: Optional[str] = None) -> str:
        """
        Export rules to DSL format string, organized by groups.

        Args:
            name: Optional name to include as a comment header
        """
        lines = []
        if name:
            lines.append(f"# {name}")
            lines.append("")

        current_group = None
        for rule in self.index:
            rule_group = rule.metadata.tags[0] if rule.metadata.tags else None
            if rule_group != current_group:
                if rule_group:
                    if lines and lines[-1] != "":
                        lines.append("")
                    lines.append(f"[{rule_group}]")
                current_group = rule_group
            lines.append(self._format_rule(rule))
        return "\n".join(lines)

    def to_dict(self) -> Dict:
        rules_list = []
        for rule in self.index:
            meta = rule.metadata
            rule_dict = {
                "name": rule.rule_id,
                "antecedents": rule.antecedents,
                "conclusion": rule.conclusion,
            }
            if meta.description:
                rule_dict["description"] = meta.description
            if rule.priority != self.config.default_priority:
                rule_dict["priority"] = rule.priority
            if meta.tags:
                rule_dict["tags"] = meta.tags
            rules_list.append(rule_dict)
        return {"rules": rules_list}

    def to_json(self, name: Optional[str] = None, description: Optional[str] = None,
                indent: Optional[int] = 2) -> str:
        """
        Export rules to JSON format string.

        Returns:
            JSON-formatted string compatible with load_rules_from_json().
        """
        result = self.to_dict()
        if name:
            result["name"] = name
        if description:
            result["description"] = description
        return json.dumps(result, indent=indent)

    def __len__(self) -> int:
        return len(self.index)

    def __repr__(self) -> str:
        return f"CongruenceEngine({len(self.index)} rules)"

    def __iter__(self):
        """Iterate over rules in index order."""
        return iter(self.index)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self.index

    def __getitem__(self, rule_id: str) -> Rule:
        rule = self.index.get(rule_id)
        if rule is None:
            raise KeyError(f"No rule named '{rule_id}'")
        return rule

    # Class method constructors for fluent creation
    @classmethod
    def from_dsl(cls, text: str, config: Optional[EngineConfig] = None) -> 'CongruenceEngine':
        """Create engine from DSL text."""
        return cls(config).load_dsl(text)

    @classmethod
    def from_file(cls, path: Union[str, Path],
                  config: Optional[EngineConfig] = None) -> 'CongruenceEngine':
        """Create engine from file."""
        return cls(config).load_file(path)
