"""
Stock rule sets.

Terms use prefix heads: add, sub, neg, mul, div, pow, sum for arithmetic;
le, lt for order; and, or, not, imp, forall, exists for logic.
Quantifiers over a body use a lambda: (exists (fun x (p x))), and
(sum s (fun i (f i))) sums f over the finite set s.

Usage:
    engine = CongruenceEngine().with_library("order")
"""

ORDER_RULES = """
[order]
@add-le-left[1100] "add on the left": (le ?c ?d) => (le (add ?a ?c) (add ?a ?d))
@add-le-right[1100] "add on the right": (le ?a ?b) => (le (add ?a ?c) (add ?b ?c))
@add-le "addition is monotone": (le ?a ?b) (le ?c ?d) => (le (add ?a ?c) (add ?b ?d))
@add-lt-left[1100]: (lt ?c ?d) => (lt (add ?a ?c) (add ?a ?d))
@add-lt-right[1100]: (lt ?a ?b) => (lt (add ?a ?c) (add ?b ?c))
@add-lt: (lt ?a ?b) (le ?c ?d) => (lt (add ?a ?c) (add ?b ?d))
@sub-le "subtraction is antitone in its second argument": (le ?a ?b) (le ?d ?c) => (le (sub ?a ?c) (sub ?b ?d))
@neg-le: (le ?b ?a) => (le (neg ?a) (neg ?b))
@mul-le-left[1100]: (le ?b ?c) (le 0 ?a) => (le (mul ?a ?b) (mul ?a ?c))
@mul-le-right[1100]: (le ?a ?b) (le 0 ?c) => (le (mul ?a ?c) (mul ?b ?c))
@mul-le: (le ?a ?b) (le ?c ?d) (le 0 ?c) (le 0 ?b) => (le (mul ?a ?c) (mul ?b ?d))
@mul-lt-left[1100]: (lt ?b ?c) (lt 0 ?a) => (lt (mul ?a ?b) (mul ?a ?c))
@div-le-right[1100]: (le ?a ?b) (lt 0 ?c) => (le (div ?a ?c) (div ?b ?c))
@pow-le[1100]: (le ?a ?b) (le 0 ?a) => (le (pow ?a ?n) (pow ?b ?n))
@sum-le "sums are monotone": (forall i (imp (mem i ?s) (le (?f i) (?g i)))) => (le (sum ?s ?f) (sum ?s ?g))
"""

LOGIC_RULES = """
[logic]
@and-imp: (imp ?a ?c) (imp ?b ?d) => (imp (and ?a ?b) (and ?c ?d))
@or-imp: (imp ?a ?c) (imp ?b ?d) => (imp (or ?a ?b) (or ?c ?d))
@not-imp "negation reverses implication": (imp ?b ?a) => (imp (not ?a) (not ?b))
@imp-imp: (imp ?b ?a) (imp ?c ?d) => (imp (imp ?a ?c) (imp ?b ?d))
@forall-imp: (forall x (imp (?p x) (?q x))) => (imp (forall x (?p x)) (forall x (?q x)))
@exists-imp: (forall x (imp (?p x) (?q x))) => (imp (exists (fun x (?p x))) (exists (fun x (?q x))))
"""

FULL_RULES = ORDER_RULES + LOGIC_RULES

LIBRARIES = {
    "order": ORDER_RULES,
    "logic": LOGIC_RULES,
    "full": FULL_RULES,
}
