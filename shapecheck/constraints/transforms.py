"""
Rewrites over constraint lists.

All passes are pure: they take a list of constraints and return a new one.
Order matters. ``inline`` only substitutes definitions into constraints that
come after them, and diagnostics report constraints in list order.

Passes:
- simplify: bottom-up constant folding and identity elimination
- inline: substitute small ``var == expr`` definitions, to a fixpoint
- deduplicate: stable removal of exact duplicates
- resolve_equalities: merge variables linked by ``a == b`` (union-find)
- inline_bool_vars: collapse ``b = cond; assert b``
- alpha_normalize: rename variables in order of appearance
"""

from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from ..config import AnalysisConfig
from .constraint import (
    Constraint,
    ExprConstraint,
    constraint_vars,
    substitute_constraint,
)
from .expressions import (
    FALSE,
    TRUE,
    Add,
    And,
    BoolEq,
    BoolExpr,
    BoolVar,
    Broadcast,
    Div,
    DimVar,
    Element,
    Expr,
    IntEq,
    IntExpr,
    IntLiteral,
    Length,
    ListEq,
    ListLiteral,
    Mul,
    Not,
    Or,
    ShapeVar,
    Sub,
    Var,
    complexity,
    free_vars,
    implies,
    map_children,
    substitute,
    var_like,
)
from .union_find import UnionFind

ONE = IntLiteral(1)


# ============================================================================
# Simplification
# ============================================================================

def smt_div(a: int, b: int) -> int:
    """Integer division as defined by SMT-LIB (the remainder is never negative)."""
    return a // b if b > 0 else -(a // -b)


_FOLDS = {
    Add: (lambda a, b: a + b, 0, 0),
    Sub: (lambda a, b: a - b, None, 0),
    Mul: (lambda a, b: a * b, 1, 1),
    Div: (smt_div, None, 1),
}


class _NotBroadcastable(Exception):
    pass


def _broadcast_dim(l: Optional[IntExpr], r: Optional[IntExpr]) -> Optional[IntExpr]:
    if l == ONE:
        return r
    if r == ONE:
        return l
    if l is None and r is None:
        return None
    # An unknown dimension is either 1 or equal to the other side
    if l is None and isinstance(r, IntLiteral):
        return r
    if r is None and isinstance(l, IntLiteral):
        return l
    if l is not None and l == r:
        return l
    raise _NotBroadcastable()


def broadcast_literals(lhs: ListLiteral, rhs: ListLiteral) -> Optional[ListLiteral]:
    """
    NumPy broadcasting of two literal shapes.

    Shapes are aligned on the right and the shorter one is padded with 1s.
    Returns None when the result cannot be decided syntactically (e.g. two
    different literal sizes, which is left for the solver to reject).
    """
    rank = max(len(lhs.dims), len(rhs.dims))
    padded_lhs = (ONE,) * (rank - len(lhs.dims)) + lhs.dims
    padded_rhs = (ONE,) * (rank - len(rhs.dims)) + rhs.dims
    try:
        return ListLiteral(tuple(_broadcast_dim(l, r) for l, r in zip(padded_lhs, padded_rhs)))
    except _NotBroadcastable:
        return None


def _simplify_node(expr: Expr) -> Expr:
    """Rewrite one node whose children are already simplified."""
    kind = type(expr)
    if kind in _FOLDS:
        fold, left_identity, right_identity = _FOLDS[kind]
        lhs, rhs = expr.lhs, expr.rhs
        if isinstance(lhs, IntLiteral) and isinstance(rhs, IntLiteral):
            if not (kind is Div and rhs.value == 0):
                return IntLiteral(fold(lhs.value, rhs.value))
        if left_identity is not None and lhs == IntLiteral(left_identity):
            return rhs
        if right_identity is not None and rhs == IntLiteral(right_identity):
            return lhs
        return expr

    if isinstance(expr, Length) and isinstance(expr.of, ListLiteral):
        return IntLiteral(len(expr.of.dims))

    if isinstance(expr, Element) and isinstance(expr.of, ListLiteral):
        dims = expr.of.dims
        offset = expr.offset + len(dims) if expr.offset < 0 else expr.offset
        if 0 <= offset < len(dims) and dims[offset] is not None:
            return dims[offset]
        return expr

    if isinstance(expr, Broadcast):
        if isinstance(expr.lhs, ListLiteral) and isinstance(expr.rhs, ListLiteral):
            result = broadcast_literals(expr.lhs, expr.rhs)
            if result is not None:
                return result
        return expr

    if isinstance(expr, Not):
        if isinstance(expr.expr, Not):
            return expr.expr.expr
        if expr.expr == TRUE:
            return FALSE
        if expr.expr == FALSE:
            return TRUE
        return expr

    if isinstance(expr, And):
        parts = []
        for e in expr.exprs:
            if e == FALSE:
                return FALSE
            if e != TRUE:
                parts.extend(e.exprs if isinstance(e, And) else (e,))
        if not parts:
            return TRUE
        return parts[0] if len(parts) == 1 else And(tuple(parts))

    if isinstance(expr, Or):
        parts = []
        for e in expr.exprs:
            if e == TRUE:
                return TRUE
            if e != FALSE:
                parts.extend(e.exprs if isinstance(e, Or) else (e,))
        if not parts:
            return FALSE
        return parts[0] if len(parts) == 1 else Or(tuple(parts))

    return expr


def simplify(expr: Expr) -> Expr:
    """
    Simplify an expression without any additional context.

    For example ``[1, 2, 3][1]`` becomes ``2`` and ``(d0 + 0) * 1`` becomes
    ``d0``. Idempotent.
    """
    return _simplify_node(map_children(expr, simplify))


def simplify_constraint(constraint: Constraint) -> Constraint:
    if isinstance(constraint, ExprConstraint):
        return replace(constraint,
                       expr=simplify(constraint.expr),
                       assuming=simplify(constraint.assuming))
    return replace(constraint,
                   args=tuple(None if a is None else simplify(a) for a in constraint.args),
                   result=None if constraint.result is None else simplify(constraint.result),
                   assuming=simplify(constraint.assuming))


# ============================================================================
# Deduplication and renaming
# ============================================================================

def deduplicate(constraints: List[Constraint]) -> List[Constraint]:
    """Drop repeated constraints, keeping the first occurrence of each."""
    seen = set()
    result = []
    for constraint in constraints:
        if constraint in seen:
            continue
        seen.add(constraint)
        result.append(constraint)
    return result


def alpha_normalize(constraints: List[Constraint]) -> List[Constraint]:
    """Rename variables to 0, 1, 2, ... in order of first appearance."""
    renaming: Dict[Var, Var] = {}
    for constraint in constraints:
        for var in constraint_vars(constraint):
            if var not in renaming:
                renaming[var] = var_like(var, len(renaming))
    return [substitute_constraint(c, renaming.get) for c in constraints]


# ============================================================================
# Inlining
# ============================================================================

def weakest_assumptions(constraints: List[Constraint]) -> Dict[Var, BoolExpr]:
    """
    For each variable, an assumption implied by every assumption under which
    the variable is used.

    This allows e.g. inlining an equality when every user of a variable is
    guarded by the same assumption as the equality itself.
    """
    users: Dict[Var, set] = {}
    for constraint in constraints:
        if not isinstance(constraint, ExprConstraint):
            continue
        for var in free_vars(constraint.expr):
            users.setdefault(var, set()).add(constraint.assuming)

    weakest: Dict[Var, BoolExpr] = {}
    for var, assumptions in users.items():
        ordered = sorted(assumptions, key=str)
        current = ordered[0]
        for assumption in ordered[1:]:
            if implies(assumption, current):
                continue
            elif implies(current, assumption):
                current = assumption
            else:
                current = TRUE
        weakest[var] = current
    return weakest


def definition_of(expr: BoolExpr) -> Optional[Tuple[Var, Expr]]:
    """``(v, e)`` if ``expr`` has the form ``v == e`` or ``e == v``."""
    sorts = {IntEq: DimVar, ListEq: ShapeVar, BoolEq: BoolVar}
    var_type = sorts.get(type(expr))
    if var_type is None:
        return None
    if isinstance(expr.lhs, var_type):
        return expr.lhs, expr.rhs
    if isinstance(expr.rhs, var_type):
        return expr.rhs, expr.lhs
    return None


def inline(constraints: List[Constraint],
           can_inline: Optional[Callable[[ExprConstraint], bool]] = None,
           simplifying: bool = True,
           budget: int = 20) -> List[Constraint]:
    """
    Substitute variable definitions into the constraints that follow them.

    A constraint ``v == e`` is dropped and ``e`` substituted for ``v`` when:
    - ``can_inline`` accepts it (by default: complexity within ``budget``)
    - every use of ``v`` happens under an assumption implying the
      constraint's assumption
    - ``v`` was not used by an earlier constraint and does not occur in ``e``

    With the default ``can_inline``, ``e`` must also stay within the budget
    once earlier definitions have been substituted into it, so that chains
    of definitions cannot grow without bound.

    Repeated until no definition gets inlined.
    """
    limited = can_inline is None
    if can_inline is None:
        can_inline = lambda c: complexity(c.expr) <= budget
    weakest = weakest_assumptions(constraints)
    simplify_expr = simplify if simplifying else (lambda e: e)

    while True:
        inlined: Dict[Var, Expr] = {}
        forbidden = set()
        result = []
        for constraint in constraints:
            if isinstance(constraint, ExprConstraint) and can_inline(constraint):
                definition = definition_of(constraint.expr)
                if definition is not None:
                    var, expr = definition
                    if (var not in inlined and var in weakest
                            and implies(weakest[var], constraint.assuming)):
                        forbidden.update(v for v in free_vars(expr) if v not in inlined)
                        if var not in forbidden:
                            expanded = simplify_expr(substitute(expr, inlined.get))
                            if not limited or complexity(expanded) <= budget:
                                inlined[var] = expanded
                                continue
            forbidden.update(v for v in constraint_vars(constraint) if v not in inlined)
            rewritten = substitute_constraint(constraint, inlined.get)
            result.append(simplify_constraint(rewritten) if simplifying else rewritten)
        constraints = result
        if not inlined:
            return constraints


def inline_bool_vars(constraints: List[Constraint]) -> List[Constraint]:
    """
    Collapse the ``b = <cond>; assert b`` pattern produced by assertions.

    Only boolean variables occurring exactly once besides their definition
    are inlined, so no condition is ever duplicated.
    """
    uses: Dict[Var, int] = {}

    def count(var: Var) -> None:
        if isinstance(var, BoolVar):
            uses[var] = uses.get(var, 0) + 1

    for constraint in constraints:
        substitute_constraint(constraint, count)

    def can_inline(constraint: ExprConstraint) -> bool:
        definition = definition_of(constraint.expr)
        return (definition is not None
                and isinstance(definition[0], BoolVar)
                and uses.get(definition[0]) == 2)

    return inline(constraints, can_inline=can_inline, simplifying=False)


# ============================================================================
# Equality resolution
# ============================================================================

def _variable_equality(expr: BoolExpr, include_scalars: bool) -> Optional[Tuple[Var, Var]]:
    if isinstance(expr, ListEq) and isinstance(expr.lhs, ShapeVar) and isinstance(expr.rhs, ShapeVar):
        return expr.lhs, expr.rhs
    if not include_scalars:
        return None
    if isinstance(expr, IntEq) and isinstance(expr.lhs, DimVar) and isinstance(expr.rhs, DimVar):
        return expr.lhs, expr.rhs
    if isinstance(expr, BoolEq) and isinstance(expr.lhs, BoolVar) and isinstance(expr.rhs, BoolVar):
        return expr.lhs, expr.rhs
    return None


def resolve_equalities(constraints: List[Constraint],
                       include_scalars: bool = False) -> List[Constraint]:
    """
    Merge variables linked by ``a == b`` constraints.

    Shape variables are always merged; integer and boolean variables only
    when ``include_scalars`` is set. Each equivalence class is replaced by its
    lowest-numbered member and the merged equalities are dropped.
    """
    weakest = weakest_assumptions(constraints)
    classes: UnionFind[Var] = UnionFind()
    merged = set()
    for index, constraint in enumerate(constraints):
        if not isinstance(constraint, ExprConstraint):
            continue
        pair = _variable_equality(constraint.expr, include_scalars)
        if pair is None:
            continue
        if not all(implies(weakest[v], constraint.assuming) for v in pair):
            continue
        for var in pair:
            if var not in classes:
                classes.add(var)
        classes.union(*pair)
        merged.add(index)

    representative: Dict[Var, Var] = {}
    for members in classes.classes():
        canonical = min(members, key=lambda v: v.name)
        for var in members:
            if var != canonical:
                representative[var] = canonical

    return [substitute_constraint(c, representative.get)
            for index, c in enumerate(constraints) if index not in merged]


# ============================================================================
# Pipelines
# ============================================================================

def optimize(constraints: List[Constraint],
             config: Optional[AnalysisConfig] = None,
             include_scalars: Optional[bool] = None) -> List[Constraint]:
    """
    Shrink a constraint list before handing it to the solver.

    ``include_scalars`` overrides ``config.resolve_lists_only`` for this run.
    """
    config = config or AnalysisConfig()
    if include_scalars is None:
        include_scalars = not config.resolve_lists_only
    constraints = deduplicate(constraints)
    constraints = inline_bool_vars(constraints)
    constraints = resolve_equalities(constraints, include_scalars=include_scalars)
    constraints = inline(constraints, budget=config.inline_budget)
    return deduplicate(constraints)


def readable(constraints: List[Constraint], budget: int = 20) -> List[Constraint]:
    """Form of a constraint list meant for display (e.g. an unsat core)."""
    return alpha_normalize(inline(deduplicate(constraints), budget=budget))
