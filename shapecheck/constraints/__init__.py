"""
Constraint IR: expressions, constraints and the passes over them.
"""

from .expressions import (
    IntExpr,
    ListExpr,
    BoolExpr,
    ShapeVar,
    DimVar,
    BoolVar,
    Var,
    IntLiteral,
    Length,
    Element,
    Add,
    Sub,
    Mul,
    Div,
    Hole,
    ListLiteral,
    Broadcast,
    BoolLiteral,
    TRUE,
    FALSE,
    Not,
    And,
    Or,
    IntEq,
    IntGt,
    IntGe,
    IntLt,
    IntLe,
    ListEq,
    BoolEq,
    TupleExpr,
    Expr,
    substitute,
    free_vars,
    complexity,
    conjoin,
    disjoin,
    implies,
)
from .constraint import (
    Origin,
    TOP,
    Frame,
    CallStack,
    local_stack,
    ExprConstraint,
    CallConstraint,
    Constraint,
    substitute_constraint,
    constraint_vars,
    equate,
)
from .union_find import UnionFind
from .transforms import (
    simplify,
    simplify_constraint,
    deduplicate,
    alpha_normalize,
    weakest_assumptions,
    inline,
    inline_bool_vars,
    resolve_equalities,
    optimize,
    readable,
)

__all__ = [
    # Expressions
    'IntExpr', 'ListExpr', 'BoolExpr',
    'ShapeVar', 'DimVar', 'BoolVar', 'Var',
    'IntLiteral', 'Length', 'Element', 'Add', 'Sub', 'Mul', 'Div', 'Hole',
    'ListLiteral', 'Broadcast',
    'BoolLiteral', 'TRUE', 'FALSE', 'Not', 'And', 'Or',
    'IntEq', 'IntGt', 'IntGe', 'IntLt', 'IntLe', 'ListEq', 'BoolEq',
    'TupleExpr', 'Expr',
    'substitute', 'free_vars', 'complexity', 'conjoin', 'disjoin', 'implies',
    # Constraints
    'Origin', 'TOP', 'Frame', 'CallStack', 'local_stack',
    'ExprConstraint', 'CallConstraint', 'Constraint',
    'substitute_constraint', 'constraint_vars', 'equate',
    # Union-Find
    'UnionFind',
    # Transforms
    'simplify', 'simplify_constraint', 'deduplicate', 'alpha_normalize',
    'weakest_assumptions', 'inline', 'inline_bool_vars', 'resolve_equalities',
    'optimize', 'readable',
]
