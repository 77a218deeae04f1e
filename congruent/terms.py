"""
Term model for congruence goals and rule statements.

CONGRUENT - Congruence reasoning over relational goals

Terms are s-expressions built from Python lists, strings and numbers:

    "a", "add", 3                  - atoms (symbols and numeric constants)
    ["add", "a", "b"]              - application of a head symbol
    ["?", "x"]                     - pattern variable / metavariable (?x)
    ["?", "_"]                     - template hole (?_)
    ["forall", "x", body]          - universal quantification
    ["fun", "x", body]             - lambda
    ["imp", A, B]                  - implication

Terms are never mutated in place; every operation here builds new lists.
Equality of terms is structural up to renaming of bound variables
(see alpha_equal).
"""

from typing import Dict, List, Optional, Set, Tuple, Union

# Type aliases
TermType = Union[int, float, str, List]
BinderType = Tuple[str, TermType]  # ("var", name) or ("hyp", proposition)

META = "?"
HOLE = "_"
FORALL = "forall"
LAMBDA = "fun"
IMP = "imp"
BINDERS = (FORALL, LAMBDA)


# ============================================================
# Primitive Operations
# ============================================================

def compound(t: TermType) -> bool:
    """Check if a term is compound (a list)."""
    return isinstance(t, list)


def constant(t: TermType) -> bool:
    """Check if a term is a numeric constant."""
    return isinstance(t, (int, float)) and not isinstance(t, bool)


def symbol(t: TermType) -> bool:
    """Check if a term is a symbol (string)."""
    return isinstance(t, str)


def null(t: TermType) -> bool:
    """Check if a term is the empty list."""
    return t == []


# ============================================================
# Metavariables, Holes and Binders
# ============================================================

def is_meta(t: TermType) -> bool:
    """Check if a term is a pattern variable / metavariable (?x)."""
    return compound(t) and len(t) == 2 and t[0] == META and symbol(t[1])


def make_meta(name: str) -> List:
    """Build a metavariable term."""
    return [META, name]


def is_hole(t: TermType) -> bool:
    """Check if a term is a template hole (?_)."""
    return is_meta(t) and t[1] == HOLE


def has_hole(t: TermType) -> bool:
    """Check if a hole occurs anywhere in a term."""
    if is_hole(t):
        return True
    return compound(t) and any(has_hole(sub) for sub in t)


def is_binder(t: TermType, kind: Optional[str] = None) -> bool:
    """Check if a term is a binding form (forall or fun), optionally of one kind."""
    if not (compound(t) and len(t) == 3 and t[0] in BINDERS and symbol(t[1])):
        return False
    return kind is None or t[0] == kind


def is_imp(t: TermType) -> bool:
    """Check if a term is an implication (imp A B)."""
    return compound(t) and len(t) == 3 and t[0] == IMP


def is_application(t: TermType) -> bool:
    """Check if a term is an application (non-empty list, not a meta or binder)."""
    return compound(t) and not null(t) and not is_meta(t) and not is_binder(t)


def metas(t: TermType) -> Set[str]:
    """Return the names of all metavariables occurring in a term."""
    if is_meta(t):
        return {t[1]}
    if not compound(t):
        return set()
    found: Set[str] = set()
    for sub in t:
        found |= metas(sub)
    return found


def free_symbols(t: TermType) -> Set[str]:
    """Return every symbol occurring free (not bound by a binder) in a term."""
    if symbol(t):
        return {t}
    if not compound(t) or is_meta(t):
        return set()
    if is_binder(t):
        return free_symbols(t[2]) - {t[1]}
    found: Set[str] = set()
    for sub in t:
        found |= free_symbols(sub)
    return found


def free_in(var: str, t: TermType) -> bool:
    """Check if a symbol occurs free in a term."""
    return var in free_symbols(t)


def fresh_name(base: str, avoid: Set[str]) -> str:
    """Return base, or base_N for the smallest N that is not in avoid."""
    if base not in avoid:
        return base
    n = 1
    while f"{base}_{n}" in avoid:
        n += 1
    return f"{base}_{n}"


# ============================================================
# Substitution, Beta and Eta
# ============================================================

def subst(t: TermType, name: str, value: TermType) -> TermType:
    """
    Replace the free occurrences of symbol `name` in `t` by `value`.

    Substitution is capture-avoiding: a binder whose variable occurs free
    in `value` is renamed before descending into its body.
    """
    if symbol(t):
        return value if t == name else t
    if not compound(t) or is_meta(t):
        return t
    if is_binder(t):
        head, var, body = t
        if var == name or not free_in(name, body):
            return t
        value_free = free_symbols(value)
        if var in value_free:
            new_var = fresh_name(var, value_free | free_symbols(body) | {name})
            body = subst(body, var, new_var)
            var = new_var
        return [head, var, subst(body, name, value)]
    return [subst(sub, name, value) for sub in t]


def subst_metas(t: TermType, assignment: Dict[str, TermType]) -> TermType:
    """
    Replace metavariables by their assigned values (one level, no chasing).

    Binders that would capture a free symbol of a substituted value are
    renamed first.
    """
    if is_meta(t):
        return assignment.get(t[1], t)
    if not compound(t):
        return t
    if is_binder(t):
        head, var, body = t
        incoming: Set[str] = set()
        for name in metas(body):
            if name in assignment:
                incoming |= free_symbols(assignment[name])
        if var in incoming:
            new_var = fresh_name(var, incoming | free_symbols(body))
            body = subst(body, var, new_var)
            var = new_var
        return [head, var, subst_metas(body, assignment)]
    return [subst_metas(sub, assignment) for sub in t]


def beta(t: TermType) -> TermType:
    """
    Beta-normalize a term: ((fun x body) a) becomes body[x := a].

    Nested applications are flattened, so the result never has an
    application in head position.
    """
    if not compound(t) or null(t) or is_meta(t):
        return t
    if is_binder(t):
        return [t[0], t[1], beta(t[2])]
    items = [beta(sub) for sub in t]
    head, args = items[0], items[1:]
    reduced = False
    while is_binder(head, LAMBDA) and args:
        head = beta(subst(head[2], head[1], args[0]))
        args = args[1:]
        reduced = True
    if not reduced:
        # ((f a) b) is (f a b)
        if args and is_application(head):
            return head + args
        return items
    if not args:
        return head
    if is_application(head):
        return head + args
    return [head] + args


def eta(t: TermType) -> TermType:
    """Eta-reduce a term: (fun x (f ... x)) becomes (f ...) when x is not used elsewhere."""
    while is_binder(t, LAMBDA):
        var, body = t[1], t[2]
        if not (compound(body) and len(body) >= 2) or is_meta(body) or is_binder(body):
            break
        if body[-1] != var or any(free_in(var, sub) for sub in body[:-1]):
            break
        reduced = body[:-1]
        t = reduced[0] if len(reduced) == 1 else reduced
    return t


# ============================================================
# Alpha-equivalence and Replacement
# ============================================================

def alpha_equal(a: TermType, b: TermType) -> bool:
    """
    Structural equality up to renaming of bound variables.

    Bound variables are compared by the depth of the binder that
    introduced them, free symbols by name.
    """
    return _alpha(a, b, {}, {}, 0)


def _alpha(a: TermType, b: TermType, env_a: Dict[str, int],
           env_b: Dict[str, int], depth: int) -> bool:
    if symbol(a) and symbol(b):
        da, db = env_a.get(a), env_b.get(b)
        if da is None and db is None:
            return a == b
        return da == db
    if is_binder(a) and is_binder(b):
        if a[0] != b[0]:
            return False
        return _alpha(a[2], b[2], {**env_a, a[1]: depth}, {**env_b, b[1]: depth}, depth + 1)
    if is_meta(a) or is_meta(b):
        return a == b
    if compound(a) and compound(b):
        if len(a) != len(b):
            return False
        return all(_alpha(x, y, env_a, env_b, depth) for x, y in zip(a, b))
    return constant(a) and constant(b) and a == b


def replace(t: TermType, old: TermType, new: TermType) -> TermType:
    """Replace every free occurrence of the subterm `old` in `t` by `new`."""
    if alpha_equal(t, old):
        return new
    if not compound(t) or is_meta(t):
        return t
    if is_binder(t):
        head, var, body = t
        if var in free_symbols(old):
            return t
        new_free = free_symbols(new)
        if var in new_free:
            new_var = fresh_name(var, new_free | free_symbols(body) | free_symbols(old))
            body = subst(body, var, new_var)
            var = new_var
        return [head, var, replace(body, old, new)]
    return [replace(sub, old, new) for sub in t]


# ============================================================
# Relations and Head Decomposition
# ============================================================

def relation(t: TermType) -> Optional[Tuple[str, TermType, TermType]]:
    """
    Parse a term as a binary relation application (rel lhs rhs).

    Implications parse as the pseudo-relation "imp". Binders and
    metavariables are never relations.

    Returns: (relation name, lhs, rhs) or None
    """
    if compound(t) and len(t) == 3 and symbol(t[0]) and t[0] not in BINDERS and t[0] != META:
        return t[0], t[1], t[2]
    return None


def head_args(t: TermType) -> Optional[Tuple[str, List]]:
    """
    Decompose a term into its head symbol and argument list.

    A forall decomposes to head "forall" applied to a single lambda
    encoding the bound scope; an implication to head "imp" with two
    arguments; a bare symbol to itself with no arguments. Metavariables,
    lambdas, numbers and applications of a non-symbol head have no head.
    """
    if is_binder(t, FORALL):
        return FORALL, [[LAMBDA, t[1], t[2]]]
    if symbol(t):
        return t, []
    if is_application(t) and symbol(t[0]) and t[0] != LAMBDA:
        return t[0], list(t[1:])
    return None


def app_fn(t: TermType) -> TermType:
    """Strip the argument lists of an application: ((f a) b) gives f."""
    while is_application(t):
        t = t[0]
    return t


def telescope(t: TermType, limit: Optional[int] = None) -> Tuple[List[BinderType], TermType]:
    """
    Strip leading binders from a proposition.

    A forall contributes ("var", name), an implication ("hyp", premise).
    Names are not renamed: later binders and the body refer to the
    stripped variables by name.

    Returns: (binders, body)
    """
    binders: List[BinderType] = []
    while limit is None or len(binders) < limit:
        if is_binder(t, FORALL):
            binders.append(("var", t[1]))
            t = t[2]
        elif is_imp(t):
            binders.append(("hyp", t[1]))
            t = t[2]
        else:
            break
    return binders, t


def fold_telescope(binders: List[BinderType], body: TermType) -> TermType:
    """Inverse of telescope: rebuild the proposition from binders and body."""
    for kind, value in reversed(binders):
        if kind == "var":
            body = [FORALL, value, body]
        else:
            body = [IMP, value, body]
    return body


# ============================================================
# Parsing and Formatting
# ============================================================

def _split_top_level(text: str) -> List[str]:
    """Split text into its top-level s-expression items."""
    items: List[str] = []
    depth = 0
    current = ''
    for c in text:
        if c == '(':
            depth += 1
            current += c
        elif c == ')':
            depth -= 1
            if depth < 0:
                raise ValueError(f"Unbalanced parentheses in: {text}")
            current += c
            if depth == 0:
                items.append(current)
                current = ''
        elif c.isspace() and depth == 0:
            if current:
                items.append(current)
            current = ''
        else:
            current += c
    if depth != 0:
        raise ValueError(f"Unbalanced parentheses in: {text}")
    if current:
        items.append(current)
    return items


def _parse_atom(s: str) -> TermType:
    try:
        return int(s)
    except ValueError:
        pass
    try:
        return float(s)
    except ValueError:
        pass
    if s.startswith(META):
        return make_meta(s[1:] or HOLE)
    return s


def parse_sexpr(s: str) -> TermType:
    """
    Parse an S-expression string into a term.

    Examples:
        "(le a b)" -> ["le", "a", "b"]
        "(add ?_ c)" -> ["add", ["?", "_"], "c"]
        "(forall x (le (f x) 1))" -> ["forall", "x", ["le", ["f", "x"], 1]]
    """
    s = s.strip()
    if not s:
        return None
    items = _split_top_level(s)
    if len(items) != 1:
        raise ValueError(f"Expected a single expression, got {len(items)}: {s}")
    s = items[0]
    if s.startswith('('):
        if not s.endswith(')'):
            raise ValueError(f"Unbalanced parentheses in: {s}")
        return [parse_sexpr(part) for part in _split_top_level(s[1:-1])]
    return _parse_atom(s)


def parse_sexprs(s: str) -> List[TermType]:
    """Parse a whitespace-separated sequence of S-expressions."""
    return [parse_sexpr(item) for item in _split_top_level(s.strip())]


def format_sexpr(t: TermType) -> str:
    """
    Format a term as an S-expression string.

    Examples:
        ["le", "a", "b"] -> "(le a b)"
        ["?", "x"] -> "?x"
    """
    if is_meta(t):
        return f"?{t[1]}"
    if isinstance(t, list):
        return "(" + " ".join(format_sexpr(sub) for sub in t) + ")"
    return str(t)


# ============================================================
# Expression Builder
# ============================================================

class _TermBuilder:
    """
    Term builder for CONGRUENT.

    Examples:
        from congruent import E

        goal = E("(le (add a c) (add b d))")
        goal = E.rel("le", E.op("add", "a", "c"), E.op("add", "b", "d"))
        template = E.op("add", E.hole, "c")
        E.forall("x", E.imp(E("(p x)"), E("(q x)")))
    """

    def __call__(self, s: str) -> TermType:
        """Parse an s-expression string."""
        return parse_sexpr(s)

    def op(self, name: str, *args) -> List:
        """Build an application of a head symbol to arguments."""
        return [name] + list(args)

    def rel(self, name: str, lhs: TermType, rhs: TermType) -> List:
        """Build a binary relation application."""
        return [name, lhs, rhs]

    def imp(self, premise: TermType, conclusion: TermType) -> List:
        """Build an implication."""
        return [IMP, premise, conclusion]

    def forall(self, var: str, body: TermType) -> List:
        """Build a universal quantification."""
        return [FORALL, var, body]

    @property
    def hole(self) -> List:
        """A fresh template hole."""
        return make_meta(HOLE)

    def __repr__(self) -> str:
        return "E (term builder)"


# Singleton instance
E = _TermBuilder()
