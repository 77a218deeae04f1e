#!/usr/bin/env python3
"""
CONGRUENT Feature Demonstration

This script demonstrates the major features of the CONGRUENT library.
"""

from pathlib import Path
from congruent import (
    CongruenceEngine, E, Goal,
    GoalError, SubstitutionFailed,
    format_sexpr
)


def section(title: str):
    """Print a section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def show(goal: str, result):
    print(f"  {goal}")
    for target in result.targets():
        print(f"      => {format_sexpr(target)}")
    if result.closed:
        print("      => no goals")


def demo_basic_usage():
    """Decompose goals with a single rule."""
    section("Basic Usage")

    engine = CongruenceEngine.from_dsl('''
        @add-le: (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))
    ''')

    for goal in [
        "(le (add a c) (add b d))",
        "(le (add a c) (add b c))",
        "(le (add (add a x) c) (add (add b y) d))",
        "(le (mul a c) (mul b d))",
    ]:
        show(goal, engine.reduce(goal))


def demo_priorities():
    """One-sided rules are preferred over the general one."""
    section("Rule Priorities")

    engine = CongruenceEngine().with_library("order")
    for rule in engine.index.lookup(("le", "add", 2)):
        print(f"  {rule.rule_id:15} priority={rule.priority} varying={rule.num_varying}")
    show("(le (add a c) (add b c))", engine.reduce("(le (add a c) (add b c))"))


def demo_templates():
    """Templates stop the descent at holes."""
    section("Templates")

    engine = CongruenceEngine().with_library("order")
    goal = "(le (add (mul x a) c) (add (mul x b) d))"
    for template in [None, "(add ?_ ?_)", "(add (mul x ?_) ?_)"]:
        print(f"  template {template or '-'}")
        show(goal, engine.reduce(goal, template=template))

    try:
        engine.reduce("(le (add a c) (add b c))", template="(mul ?_ c)")
    except GoalError as e:
        print(f"  {type(e).__name__}: {e}")


def demo_side_conditions():
    """Side conditions close from hypotheses and literals."""
    section("Side Conditions")

    engine = CongruenceEngine().with_library("order")
    show("(le (mul 2 a) (mul 2 b))", engine.reduce("(le (mul 2 a) (mul 2 b))"))
    show("(le (mul x a) (mul x b)) with (le 0 x)",
         engine.reduce("(le (mul x a) (mul x b))", hypotheses=["(le 0 x)"]))
    show("(le (mul x a) (mul x b))", engine.reduce("(le (mul x a) (mul x b))"))


def demo_binders():
    """Subgoals under binders get the requested names."""
    section("Binders")

    engine = CongruenceEngine().with_library("full")
    goal = "(le (sum s (fun i (f i))) (sum s (fun i (g i))))"
    result = engine.reduce(goal, names=["k", "hk"])
    print(f"  {goal}")
    for leaf in result.goals:
        for line in leaf.format().splitlines():
            print(f"      {line}")

    goal = "(imp (forall x (p x)) (forall x (q x)))"
    print(f"  {goal}")
    for leaf in engine.reduce(goal).goals:
        print(f"      {leaf.format()}")


def demo_transitivity():
    """Implications between transitive relations need no rule."""
    section("Transitivity Fallback")

    engine = CongruenceEngine()
    show("(imp (le a b) (le c d))", engine.reduce("(imp (le a b) (le c d))"))
    show("(imp (le a b) (le c d)) with (le c a) (le b d)",
         engine.reduce("(imp (le a b) (le c d))", hypotheses=["(le c a)", "(le b d)"]))


def demo_substitute():
    """Substitute mode closes a goal from listed relationships only."""
    section("Substitute")

    engine = CongruenceEngine().with_library("order")
    goal = Goal(E("(le (add a (neg d)) (add b (neg c)))"))
    result = engine.substitute(goal, ["(lt a b)", "(le c d)"])
    print(f"  {format_sexpr(goal.target)} => {result.format()}")

    try:
        engine.substitute("(le (add a c) (add b d))", ["(le a b)"])
    except SubstitutionFailed as e:
        print(f"  unresolved: {[format_sexpr(g.target) for g in e.unresolved]}")


def demo_rules_file():
    """Load rules from a file with groups."""
    section("Rules Files")

    path = Path(__file__).parent / "order.rules"
    engine = CongruenceEngine.from_file(path)
    print(engine.to_dsl(name=path.name))


def demo_introspection():
    """Find out which rules apply."""
    section("Introspection")

    engine = CongruenceEngine().with_library("order")
    for rule, bindings in engine.rules_matching("(le (add a c) (add b c))"):
        print(f"  {rule.rule_id}: {bindings.to_dict()}")


if __name__ == "__main__":
    demo_basic_usage()
    demo_priorities()
    demo_templates()
    demo_side_conditions()
    demo_binders()
    demo_transitivity()
    demo_substitute()
    demo_rules_file()
    demo_introspection()
