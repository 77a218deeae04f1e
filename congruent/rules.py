"""
Congruence rules: compilation and indexing.

A congruence rule concludes a relation between two applications of the
same head symbol, e.g.

    @add-le: (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))

Compiling a rule finds the argument positions that vary between the two
sides (each must hold a distinct rule variable on either side) and the
antecedents that relate such a pair ("main subgoals", solved by
recursive descent). The remaining antecedents are side obligations.

Compiled rules are stored in a RuleIndex keyed by
(relation, head, arity), ordered by priority descending, then by the
number of varying positions ascending.
"""

import logging
from collections import namedtuple
from typing import Dict, Iterator, List, Optional, Set, Tuple

from .config import EngineConfig, DEFAULT_CONFIG
from .exceptions import (
    RuleCompileError, InvalidRuleKind, NonVariableVaryingArgument,
    NoVaryingArguments, DuplicateRuleError,
)
from .terms import (
    TermType, make_meta, is_meta, metas, relation, head_args, app_fn, eta,
    alpha_equal, subst, telescope, fold_telescope, fresh_name, format_sexpr,
)

logger = logging.getLogger(__name__)

Signature = namedtuple("Signature", ["relation", "head", "arity"])

# position: argument index; lhs_var/rhs_var: the rule variables on each side
VaryingPair = namedtuple("VaryingPair", ["position", "lhs_var", "rhs_var"])

# binders: how many leading binders of the antecedent to introduce before
# recursing into it
MainSubgoal = namedtuple("MainSubgoal", ["antecedent_index", "varying_index", "binders"])


class RuleMetadata:
    """Metadata for a rule: name, description, tags and priority."""

    def __init__(self, name: Optional[str] = None, description: Optional[str] = None,
                 tags: Optional[List[str]] = None, priority: Optional[int] = None):
        self.name = name
        self.description = description
        self.tags = tags or []
        self.priority = priority  # None means the engine default

    def __repr__(self) -> str:
        if not self.name:
            return "<anonymous>"
        base = f"@{self.name}"
        if self.priority is not None:
            base += f"[{self.priority}]"
        if self.description:
            base += f" \"{self.description}\""
        return base


class Rule:
    """A compiled congruence rule."""

    def __init__(self, rule_id: str, signature: Signature, antecedents: List[TermType],
                 conclusion: TermType, varying: List[VaryingPair], varying_flags: List[bool],
                 main_subgoals: List[MainSubgoal], priority: int,
                 metadata: Optional[RuleMetadata] = None):
        self.rule_id = rule_id
        self.signature = signature
        self.antecedents = antecedents
        self.conclusion = conclusion
        self.varying = varying
        self.varying_flags = varying_flags
        self.main_subgoals = main_subgoals
        self.priority = priority
        self.metadata = metadata or RuleMetadata(rule_id, priority=priority)

    @property
    def num_varying(self) -> int:
        return len(self.varying)

    @property
    def total_antecedents(self) -> int:
        return len(self.antecedents)

    @property
    def side_obligations(self) -> List[int]:
        """Indices of antecedents that are not main subgoals."""
        main = {m.antecedent_index for m in self.main_subgoals}
        return [i for i in range(len(self.antecedents)) if i not in main]

    @property
    def variables(self) -> Set[str]:
        found = metas(self.conclusion)
        for antecedent in self.antecedents:
            found |= metas(antecedent)
        return found

    def statement(self) -> str:
        """The rule in DSL form, without its name."""
        parts = [format_sexpr(a) for a in self.antecedents]
        parts.append("=>")
        parts.append(format_sexpr(self.conclusion))
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"Rule({self.rule_id}, {tuple(self.signature)}, priority={self.priority})"


# ============================================================
# Rule Compiler
# ============================================================

def compile_rule(antecedents: List[TermType], conclusion: TermType, rule_id: str,
                 priority: Optional[int] = None, metadata: Optional[RuleMetadata] = None,
                 config: Optional[EngineConfig] = None) -> Rule:
    """
    Compile a candidate rule.

    Leading binders of the conclusion count towards the rule's arity.
    The rule is tried with all of them stripped into antecedents, then
    with the last one and the last two folded back into the conclusion.
    Stripped variables become fresh rule variables.

    Raises:
        RuleCompileError: The error of the first attempt, if none succeeds
    """
    config = config or DEFAULT_CONFIG
    if priority is None:
        priority = config.default_priority
    binders, body = telescope(conclusion)

    first_error: Optional[RuleCompileError] = None
    for folded in range(3):
        keep = len(binders) - folded
        if keep < 0:
            break
        prefix = binders[:keep]
        remainder = fold_telescope(binders[keep:], body)
        try:
            extra, concl = _strip_prefix(prefix, remainder, list(antecedents))
            rule = _compile_at(list(antecedents) + extra, concl, rule_id, priority, metadata)
        except RuleCompileError as e:
            logger.debug("compile %s at arity %d: %s", rule_id, len(antecedents) + keep, e)
            if first_error is None:
                first_error = e
            continue
        return rule
    raise first_error


def _strip_prefix(prefix, conclusion: TermType,
                  antecedents: List[TermType]) -> Tuple[List[TermType], TermType]:
    """Turn kept conclusion binders into antecedents and rule variables."""
    used = set()
    for t in antecedents + [conclusion]:
        used |= metas(t)
    prefix = list(prefix)
    extra = []
    for i, (kind, value) in enumerate(prefix):
        if kind == "hyp":
            extra.append(value)
            continue
        name = fresh_name(value, used)
        used.add(name)
        var = make_meta(name)
        prefix[i + 1:] = [(k, subst(v, value, var) if k == "hyp" else v)
                          for k, v in prefix[i + 1:]]
        conclusion = subst(conclusion, value, var)
    return extra, conclusion


def _compile_at(antecedents: List[TermType], conclusion: TermType, rule_id: str,
                priority: int, metadata: Optional[RuleMetadata]) -> Rule:
    rel = relation(conclusion)
    if rel is None:
        raise InvalidRuleKind(
            f"{rule_id}: conclusion {format_sexpr(conclusion)} is not a binary relation",
            rule_id)
    rel_name, lhs, rhs = rel

    left, right = head_args(lhs), head_args(rhs)
    if left is None or right is None:
        raise InvalidRuleKind(f"{rule_id}: both sides must be applications of a head symbol",
                              rule_id)
    (head, args_l), (head_r, args_r) = left, right
    if head != head_r or len(args_l) != len(args_r):
        raise InvalidRuleKind(
            f"{rule_id}: sides disagree on head or arity ({head}/{len(args_l)} "
            f"vs {head_r}/{len(args_r)})", rule_id)

    rule_vars = metas(conclusion)
    for antecedent in antecedents:
        rule_vars |= metas(antecedent)

    varying: List[VaryingPair] = []
    flags: List[bool] = []
    for j, (a, b) in enumerate(zip(args_l, args_r)):
        if alpha_equal(a, b):
            flags.append(False)
            continue
        a, b = eta(a), eta(b)
        if alpha_equal(a, b):
            flags.append(False)
            continue
        if not (is_meta(a) and is_meta(b) and a[1] in rule_vars and b[1] in rule_vars):
            raise NonVariableVaryingArgument(
                f"{rule_id}: argument {j} differs but is not a rule variable on both sides",
                rule_id, position=j)
        varying.append(VaryingPair(j, a[1], b[1]))
        flags.append(True)

    if not varying:
        raise NoVaryingArguments(f"{rule_id}: both sides of the conclusion are identical",
                                 rule_id)

    main_subgoals = []
    for i, antecedent in enumerate(antecedents):
        entry = _main_subgoal(i, antecedent, varying)
        if entry is not None:
            main_subgoals.append(entry)

    return Rule(rule_id, Signature(rel_name, head, len(args_l)), antecedents, conclusion,
                varying, flags, main_subgoals, priority, metadata)


def _var_name(t: TermType) -> Optional[str]:
    f = app_fn(t)
    return f[1] if is_meta(f) else None


def _pair_index(x: Optional[str], y: Optional[str], varying: List[VaryingPair]) -> Optional[int]:
    if x is None or y is None:
        return None
    for k, pair in enumerate(varying):
        if {x, y} == {pair.lhs_var, pair.rhs_var} and x != y:
            return k
    return None


def _main_subgoal(index: int, antecedent: TermType,
                  varying: List[VaryingPair]) -> Optional[MainSubgoal]:
    binders, body = telescope(antecedent)

    # rel (?x ...) (?y ...)
    rel = relation(body)
    if rel is not None:
        k = _pair_index(_var_name(rel[1]), _var_name(rel[2]), varying)
        if k is not None:
            return MainSubgoal(index, k, len(binders))

    # ... -> (?x ...) -> (?y ...)
    if binders and binders[-1][0] == "hyp":
        k = _pair_index(_var_name(binders[-1][1]), _var_name(body), varying)
        if k is not None:
            return MainSubgoal(index, k, len(binders) - 1)
    return None


# ============================================================
# Rule Index
# ============================================================

class RuleIndex:
    """
    Compiled rules keyed by signature.

    Within a bucket, rules are ordered by priority (descending), then by
    number of varying positions (ascending), then by insertion order.
    """

    def __init__(self):
        self._buckets: Dict[Signature, List[Rule]] = {}
        self._by_id: Dict[str, Rule] = {}
        self._inserted: Dict[str, int] = {}

    def insert(self, rule: Rule) -> None:
        if rule.rule_id in self._by_id:
            raise DuplicateRuleError(f"rule {rule.rule_id} is already registered", rule.rule_id)
        self._by_id[rule.rule_id] = rule
        self._inserted[rule.rule_id] = len(self._inserted)
        bucket = self._buckets.setdefault(rule.signature, [])
        bucket.append(rule)
        self._sort_bucket(bucket)

    def _sort_bucket(self, bucket: List[Rule]) -> None:
        """Sort a bucket in place. Uses insertion order as the last key, so the sort is stable."""
        bucket.sort(key=lambda r: (-r.priority, r.num_varying, self._inserted[r.rule_id]))

    def lookup(self, signature: Tuple[str, str, int]) -> List[Rule]:
        return list(self._buckets.get(Signature(*signature), []))

    def signatures(self) -> List[Signature]:
        return list(self._buckets)

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._by_id.get(rule_id)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Rule]:
        for bucket in self._buckets.values():
            yield from bucket

    def __repr__(self) -> str:
        return f"RuleIndex({len(self)} rules, {len(self._buckets)} signatures)"
