"""
Symbolic expressions over shapes, dimensions and booleans.

Three sorts of expressions exist:
- IntExpr: dimension sizes and other integers
- ListExpr: shapes (ordered lists of dimensions)
- BoolExpr: facts about the two above

Variables are the leaves of their sort (a ShapeVar is a ListExpr, a DimVar an
IntExpr, a BoolVar a BoolExpr). All nodes are frozen dataclasses, so they
compare and hash structurally and can be shared freely.

TupleExpr groups expressions of tuple and struct values. It only appears as
an argument or return expression, never inside a BoolExpr.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional, Tuple, Union

from ..frontend.ir import SourceLocation


class IntExpr:
    """Base class of integer-valued expressions."""
    __slots__ = ()


class ListExpr:
    """Base class of shape-valued expressions."""
    __slots__ = ()


class BoolExpr:
    """Base class of boolean expressions."""
    __slots__ = ()


# ============================================================================
# Variables
# ============================================================================

@dataclass(frozen=True)
class ShapeVar(ListExpr):
    name: int

    def __str__(self) -> str:
        return f"s{self.name}"


@dataclass(frozen=True)
class DimVar(IntExpr):
    name: int

    def __str__(self) -> str:
        return f"d{self.name}"


@dataclass(frozen=True)
class BoolVar(BoolExpr):
    name: int

    def __str__(self) -> str:
        return f"b{self.name}"


Var = Union[ShapeVar, DimVar, BoolVar]
VAR_TYPES = (ShapeVar, DimVar, BoolVar)


# ============================================================================
# Integer expressions
# ============================================================================

@dataclass(frozen=True)
class IntLiteral(IntExpr):
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Length(IntExpr):
    """Rank of a shape."""
    of: ListExpr

    def __str__(self) -> str:
        return f"rank({self.of})"


@dataclass(frozen=True)
class Element(IntExpr):
    """Dimension of a shape at an offset; negative offsets count from the end."""
    offset: int
    of: ListExpr

    def __str__(self) -> str:
        return f"{self.of}[{self.offset}]"


@dataclass(frozen=True)
class Add(IntExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"({self.lhs} + {self.rhs})"


@dataclass(frozen=True)
class Sub(IntExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"({self.lhs} - {self.rhs})"


@dataclass(frozen=True)
class Mul(IntExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"({self.lhs} * {self.rhs})"


@dataclass(frozen=True)
class Div(IntExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"({self.lhs} / {self.rhs})"


@dataclass(frozen=True)
class Hole(IntExpr):
    """An unknown integer the solver is asked to characterize."""
    location: Optional[SourceLocation]

    def __str__(self) -> str:
        return "?"


# ============================================================================
# List expressions
# ============================================================================

@dataclass(frozen=True)
class ListLiteral(ListExpr):
    """A shape with known rank. ``None`` marks an unconstrained dimension."""
    dims: Tuple[Optional[IntExpr], ...]

    def __post_init__(self):
        object.__setattr__(self, "dims", tuple(self.dims))

    def __str__(self) -> str:
        return "[" + ", ".join("*" if d is None else str(d) for d in self.dims) + "]"


@dataclass(frozen=True)
class Broadcast(ListExpr):
    lhs: ListExpr
    rhs: ListExpr

    def __str__(self) -> str:
        return f"broadcast({self.lhs}, {self.rhs})"


# ============================================================================
# Boolean expressions
# ============================================================================

@dataclass(frozen=True)
class BoolLiteral(BoolExpr):
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


TRUE = BoolLiteral(True)
FALSE = BoolLiteral(False)


@dataclass(frozen=True)
class Not(BoolExpr):
    expr: BoolExpr

    def __str__(self) -> str:
        return f"!{self.expr}"


@dataclass(frozen=True)
class And(BoolExpr):
    exprs: Tuple[BoolExpr, ...]

    def __post_init__(self):
        object.__setattr__(self, "exprs", tuple(self.exprs))

    def __str__(self) -> str:
        return "(" + " && ".join(str(e) for e in self.exprs) + ")"


@dataclass(frozen=True)
class Or(BoolExpr):
    exprs: Tuple[BoolExpr, ...]

    def __post_init__(self):
        object.__setattr__(self, "exprs", tuple(self.exprs))

    def __str__(self) -> str:
        return "(" + " || ".join(str(e) for e in self.exprs) + ")"


@dataclass(frozen=True)
class IntEq(BoolExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"{self.lhs} = {self.rhs}"


@dataclass(frozen=True)
class IntGt(BoolExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"{self.lhs} > {self.rhs}"


@dataclass(frozen=True)
class IntGe(BoolExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"{self.lhs} >= {self.rhs}"


@dataclass(frozen=True)
class IntLt(BoolExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"{self.lhs} < {self.rhs}"


@dataclass(frozen=True)
class IntLe(BoolExpr):
    lhs: IntExpr
    rhs: IntExpr

    def __str__(self) -> str:
        return f"{self.lhs} <= {self.rhs}"


@dataclass(frozen=True)
class ListEq(BoolExpr):
    lhs: ListExpr
    rhs: ListExpr

    def __str__(self) -> str:
        return f"{self.lhs} = {self.rhs}"


@dataclass(frozen=True)
class BoolEq(BoolExpr):
    lhs: BoolExpr
    rhs: BoolExpr

    def __str__(self) -> str:
        return f"{self.lhs} = {self.rhs}"


# ============================================================================
# Compound expressions
# ============================================================================

@dataclass(frozen=True)
class TupleExpr:
    elements: Tuple[Optional["Expr"], ...]

    def __post_init__(self):
        object.__setattr__(self, "elements", tuple(self.elements))

    def __str__(self) -> str:
        return "(" + ", ".join("*" if e is None else str(e) for e in self.elements) + ")"


Expr = Union[IntExpr, ListExpr, BoolExpr, TupleExpr]

ARITHMETIC_TYPES = (Add, Sub, Mul, Div)
INT_COMPARISON_TYPES = (IntEq, IntGt, IntGe, IntLt, IntLe)
EQUALITY_TYPES = (IntEq, ListEq, BoolEq)
_BINARY_TYPES = ARITHMETIC_TYPES + INT_COMPARISON_TYPES + (ListEq, BoolEq, Broadcast)


# ============================================================================
# Generic traversals
# ============================================================================

def map_children(expr: Expr, f: Callable[[Expr], Expr]) -> Expr:
    """
    Rebuild ``expr`` with ``f`` applied to each immediate sub-expression.

    Leaves (variables, literals, holes) are returned unchanged.
    """
    if isinstance(expr, _BINARY_TYPES):
        return type(expr)(f(expr.lhs), f(expr.rhs))
    if isinstance(expr, Length):
        return Length(f(expr.of))
    if isinstance(expr, Element):
        return Element(expr.offset, f(expr.of))
    if isinstance(expr, ListLiteral):
        return ListLiteral(tuple(None if d is None else f(d) for d in expr.dims))
    if isinstance(expr, Not):
        return Not(f(expr.expr))
    if isinstance(expr, (And, Or)):
        return type(expr)(tuple(f(e) for e in expr.exprs))
    if isinstance(expr, TupleExpr):
        return TupleExpr(tuple(None if e is None else f(e) for e in expr.elements))
    return expr


def children(expr: Expr) -> Iterator[Expr]:
    """Immediate sub-expressions of ``expr``, skipping absent slots."""
    if isinstance(expr, _BINARY_TYPES):
        yield expr.lhs
        yield expr.rhs
    elif isinstance(expr, (Length, Element)):
        yield expr.of
    elif isinstance(expr, ListLiteral):
        yield from (d for d in expr.dims if d is not None)
    elif isinstance(expr, Not):
        yield expr.expr
    elif isinstance(expr, (And, Or)):
        yield from expr.exprs
    elif isinstance(expr, TupleExpr):
        yield from (e for e in expr.elements if e is not None)


def substitute(expr: Expr, fn: Callable[[Var], Optional[Expr]]) -> Expr:
    """
    Replace variables in ``expr``.

    ``fn`` maps a variable to its replacement, or to None to keep it. The
    replacement is not traversed again.
    """
    if isinstance(expr, VAR_TYPES):
        replacement = fn(expr)
        return expr if replacement is None else replacement
    return map_children(expr, lambda e: substitute(e, fn))


def free_vars(expr: Expr) -> List[Var]:
    """Variables of ``expr`` in order of first occurrence."""
    seen = {}
    stack = [expr]
    while stack:
        current = stack.pop()
        if isinstance(current, VAR_TYPES):
            seen.setdefault(current, None)
            continue
        # Reversed so that the leftmost child is visited first
        stack.extend(reversed(list(children(current))))
    return list(seen)


def holes(expr: Expr) -> List[Hole]:
    found = []
    stack = [expr]
    while stack:
        current = stack.pop()
        if isinstance(current, Hole):
            if current not in found:
                found.append(current)
            continue
        stack.extend(reversed(list(children(current))))
    return found


def complexity(expr: Optional[Expr]) -> int:
    """
    Approximate printed size of an expression.

    Mostly the number of nodes in the tree, except that taking the rank or an
    element of a list does not count as a node, and an absent list or tuple
    slot counts as one.
    """
    if expr is None:
        return 1
    if isinstance(expr, (Length, Element)):
        return complexity(expr.of)
    if isinstance(expr, ListLiteral):
        return 1 + sum(complexity(d) for d in expr.dims)
    if isinstance(expr, TupleExpr):
        return 1 + sum(complexity(e) for e in expr.elements)
    return 1 + sum(complexity(c) for c in children(expr))


def var_like(var: Var, name: int) -> Var:
    """A variable of the same sort as ``var`` with a different identity."""
    return type(var)(name)


def conjoin(lhs: BoolExpr, rhs: BoolExpr) -> BoolExpr:
    """``lhs && rhs``, dropping trivially true operands and flattening."""
    if lhs == TRUE:
        return rhs
    if rhs == TRUE:
        return lhs
    parts: List[BoolExpr] = []
    for side in (lhs, rhs):
        parts.extend(side.exprs if isinstance(side, And) else (side,))
    return And(tuple(parts))


def disjoin(exprs: List[BoolExpr]) -> BoolExpr:
    """Disjunction of ``exprs``; a single operand is returned as is."""
    if not exprs:
        return FALSE
    if any(e == TRUE for e in exprs):
        return TRUE
    if len(exprs) == 1:
        return exprs[0]
    return Or(tuple(exprs))


def implies(lhs: BoolExpr, rhs: BoolExpr) -> bool:
    """
    Cheap syntactic check that ``lhs`` implies ``rhs``.

    Sound but incomplete: False only means the implication was not found.
    """
    if rhs == TRUE or lhs == FALSE or lhs == rhs:
        return True
    if isinstance(rhs, And):
        return all(implies(lhs, r) for r in rhs.exprs)
    if isinstance(lhs, And) and any(implies(l, rhs) for l in lhs.exprs):
        return True
    if isinstance(rhs, Or) and any(implies(lhs, r) for r in rhs.exprs):
        return True
    if isinstance(lhs, Or):
        return all(implies(l, rhs) for l in lhs.exprs)
    return False
