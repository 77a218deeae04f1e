"""
Engine configuration for CONGRUENT.

All tunables in one place. Relation names refer to head symbols of
goals, e.g. "le" in (le a b).
"""

from dataclasses import dataclass, field
from typing import Dict, Set


@dataclass
class EngineConfig:
    default_priority: int = 1000
    max_depth: int = 1000000
    anonymous_suffix: str = "✝"    # appended to binder names introduced without a hint

    # goals `rel a a` of these relations close by reflexivity
    reflexive_relations: Set[str] = field(default_factory=lambda: {
        "eq", "iff", "imp", "le", "ge", "subset", "dvd",
    })
    symmetric_relations: Set[str] = field(default_factory=lambda: {
        "eq", "iff", "ne",
    })
    # `imp (R a b) (R c d)` falls back to `R c a` and `R b d` for these
    transitive_relations: Set[str] = field(default_factory=lambda: {
        "eq", "iff", "le", "lt", "ge", "gt", "subset", "ssubset", "dvd",
    })
    # a hypothesis of the strict relation closes a goal of the weak one
    strict_weakenings: Dict[str, str] = field(default_factory=lambda: {
        "lt": "le",
        "gt": "ge",
        "ssubset": "subset",
    })


# Singleton default config
DEFAULT_CONFIG = EngineConfig()
