"""
Translation of constraint expressions into Z3 terms.

Shapes are modelled as uninterpreted functions from Int to Int together
with an Int rank. Functions are indexed from the END of the shape (index 0
is the last dimension), which keeps broadcasting, where shapes are aligned
on the right, free of rank arithmetic:

    s3 = [2, 5, 7]      s3_rank = 3, s3(0) = 7, s3(1) = 5, s3(2) = 2

List literals keep a positional representation (one Int term per
dimension) until they meet a symbolic shape.

Translating an expression can require side conditions (an element access
must be in range) and definitions of auxiliary symbols (broadcast results).
Both are returned with the term, so that the caller can guard them with the
same path assumption. Universal facts about every shape (non-negative
dimensions and ranks) are collected separately as axioms.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

import z3

from ..constraints.constraint import ExprConstraint
from ..constraints.expressions import (
    Add,
    And,
    BoolEq,
    BoolLiteral,
    BoolVar,
    Broadcast,
    DimVar,
    Div,
    Element,
    Hole,
    IntEq,
    IntGe,
    IntGt,
    IntLe,
    IntLiteral,
    IntLt,
    Length,
    ListEq,
    ListLiteral,
    Mul,
    Not,
    Or,
    ShapeVar,
    Sub,
)
from ..errors import AnalysisInvariantError
from ..frontend.ir import SourceLocation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymbolicList:
    """A shape of unknown rank: dimensions indexed from the end."""
    element: z3.FuncDeclRef
    rank: z3.ArithRef


@dataclass(frozen=True)
class LiteralList:
    """A shape of known rank: dimensions in order."""
    dims: Tuple[z3.ArithRef, ...]


ListTerm = Union[SymbolicList, LiteralList]


def _conjunction(terms: List[z3.BoolRef]) -> z3.BoolRef:
    if not terms:
        return z3.BoolVal(True)
    if len(terms) == 1:
        return terms[0]
    return z3.And(*terms)


class Denotation:
    """
    Z3 meaning of expressions, shared by all constraints of one verification.

    Attributes:
        axioms: Facts holding for every shape symbol created so far
        holes: Z3 constant standing for each hole, by location
    """

    def __init__(self):
        self.axioms: List[z3.BoolRef] = []
        self.holes: Dict[Optional[SourceLocation], z3.ArithRef] = {}
        self._shapes: Dict[ShapeVar, SymbolicList] = {}
        self._aux = itertools.count()
        self._sides: List[z3.BoolRef] = []

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------

    def _new_list(self, name: str) -> SymbolicList:
        element = z3.Function(name, z3.IntSort(), z3.IntSort())
        rank = z3.Int(f"{name}_rank")
        i = z3.Int("i")
        self.axioms.append(z3.ForAll([i], element(i) >= 0))
        self.axioms.append(rank >= 0)
        return SymbolicList(element, rank)

    def shape(self, var: ShapeVar) -> SymbolicList:
        if var not in self._shapes:
            self._shapes[var] = self._new_list(str(var))
        return self._shapes[var]

    def _fresh_dim(self) -> z3.ArithRef:
        dim = z3.Int(f"dim{next(self._aux)}")
        self._sides.append(dim >= 0)
        return dim

    def _hole(self, hole: Hole) -> z3.ArithRef:
        if hole.location not in self.holes:
            name = "hole" if hole.location is None else f"hole_{hole.location}"
            self.holes[hole.location] = z3.Int(name)
        return self.holes[hole.location]

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def list_term(self, expr) -> ListTerm:
        if isinstance(expr, ShapeVar):
            return self.shape(expr)
        if isinstance(expr, ListLiteral):
            dims = []
            for dim in expr.dims:
                if dim is None:
                    dims.append(self._fresh_dim())
                else:
                    term = self.int_term(dim)
                    self._sides.append(term >= 0)
                    dims.append(term)
            return LiteralList(tuple(dims))
        if isinstance(expr, Broadcast):
            return self._broadcast(self.list_term(expr.lhs), self.list_term(expr.rhs))
        raise AnalysisInvariantError(f"Not a list expression: {expr!r}")

    def _symbolic(self, term: ListTerm) -> SymbolicList:
        """A symbolic view of a list term, defining an auxiliary list for literals."""
        if isinstance(term, SymbolicList):
            return term
        aux = self._new_list(f"lit{next(self._aux)}")
        count = len(term.dims)
        self._sides.append(aux.rank == count)
        for position, dim in enumerate(term.dims):
            self._sides.append(aux.element(count - position - 1) == dim)
        return aux

    def _broadcast(self, lhs: ListTerm, rhs: ListTerm) -> SymbolicList:
        a, b = self._symbolic(lhs), self._symbolic(rhs)
        result = self._new_list(f"bc{next(self._aux)}")
        i = z3.Int("i")
        self._sides.append(result.rank == z3.If(a.rank >= b.rank, a.rank, b.rank))
        self._sides.append(z3.ForAll([i], z3.Implies(
            z3.And(i >= 0, i < result.rank),
            result.element(i) == z3.If(i >= a.rank, b.element(i),
                                       z3.If(i >= b.rank, a.element(i),
                                             z3.If(a.element(i) == 1, b.element(i), a.element(i)))))))
        # Dimensions present in both shapes must agree or be 1
        self._sides.append(z3.ForAll([i], z3.Implies(
            z3.And(i >= 0, i < a.rank, i < b.rank),
            z3.Or(a.element(i) == b.element(i), a.element(i) == 1, b.element(i) == 1))))
        return result

    def _length(self, term: ListTerm) -> z3.ArithRef:
        if isinstance(term, LiteralList):
            return z3.IntVal(len(term.dims))
        return term.rank

    def _element(self, offset: int, term: ListTerm) -> z3.ArithRef:
        if isinstance(term, LiteralList):
            count = len(term.dims)
            position = offset if offset >= 0 else count + offset
            if 0 <= position < count:
                return term.dims[position]
            self._sides.append(z3.BoolVal(False))
            return self._fresh_dim()
        if offset >= 0:
            self._sides.append(term.rank > offset)
            return term.element(term.rank - (offset + 1))
        self._sides.append(term.rank >= -offset)
        return term.element(z3.IntVal(-offset - 1))

    def _list_eq(self, lhs: ListTerm, rhs: ListTerm) -> z3.BoolRef:
        if isinstance(lhs, LiteralList) and isinstance(rhs, LiteralList):
            if len(lhs.dims) != len(rhs.dims):
                return z3.BoolVal(False)
            return _conjunction([l == r for l, r in zip(lhs.dims, rhs.dims)])
        if isinstance(lhs, LiteralList):
            lhs, rhs = rhs, lhs
        if isinstance(rhs, LiteralList):
            count = len(rhs.dims)
            return _conjunction([lhs.rank == count] +
                                [lhs.element(count - position - 1) == dim
                                 for position, dim in enumerate(rhs.dims)])
        i = z3.Int("i")
        return z3.And(lhs.rank == rhs.rank,
                      z3.ForAll([i], z3.Implies(z3.And(i >= 0, i < lhs.rank),
                                                lhs.element(i) == rhs.element(i))))

    # ------------------------------------------------------------------
    # Integers and booleans
    # ------------------------------------------------------------------

    def int_term(self, expr) -> z3.ArithRef:
        if isinstance(expr, DimVar):
            return z3.Int(str(expr))
        if isinstance(expr, IntLiteral):
            return z3.IntVal(expr.value)
        if isinstance(expr, Hole):
            return self._hole(expr)
        if isinstance(expr, Length):
            return self._length(self.list_term(expr.of))
        if isinstance(expr, Element):
            return self._element(expr.offset, self.list_term(expr.of))
        if isinstance(expr, Add):
            return self.int_term(expr.lhs) + self.int_term(expr.rhs)
        if isinstance(expr, Sub):
            return self.int_term(expr.lhs) - self.int_term(expr.rhs)
        if isinstance(expr, Mul):
            return self.int_term(expr.lhs) * self.int_term(expr.rhs)
        if isinstance(expr, Div):
            return self.int_term(expr.lhs) / self.int_term(expr.rhs)
        raise AnalysisInvariantError(f"Not an integer expression: {expr!r}")

    def bool_term(self, expr) -> z3.BoolRef:
        if isinstance(expr, BoolVar):
            return z3.Bool(str(expr))
        if isinstance(expr, BoolLiteral):
            return z3.BoolVal(expr.value)
        if isinstance(expr, Not):
            return z3.Not(self.bool_term(expr.expr))
        if isinstance(expr, And):
            return _conjunction([self.bool_term(e) for e in expr.exprs])
        if isinstance(expr, Or):
            if not expr.exprs:
                return z3.BoolVal(False)
            return z3.Or(*[self.bool_term(e) for e in expr.exprs])
        if isinstance(expr, IntEq):
            return self.int_term(expr.lhs) == self.int_term(expr.rhs)
        if isinstance(expr, IntGt):
            return self.int_term(expr.lhs) > self.int_term(expr.rhs)
        if isinstance(expr, IntGe):
            return self.int_term(expr.lhs) >= self.int_term(expr.rhs)
        if isinstance(expr, IntLt):
            return self.int_term(expr.lhs) < self.int_term(expr.rhs)
        if isinstance(expr, IntLe):
            return self.int_term(expr.lhs) <= self.int_term(expr.rhs)
        if isinstance(expr, ListEq):
            return self._list_eq(self.list_term(expr.lhs), self.list_term(expr.rhs))
        if isinstance(expr, BoolEq):
            return self.bool_term(expr.lhs) == self.bool_term(expr.rhs)
        raise AnalysisInvariantError(f"Not a boolean expression: {expr!r}")

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def denote(self, expr) -> Tuple[z3.BoolRef, List[z3.BoolRef]]:
        """
        Translate a boolean expression.

        Returns:
            (term, side conditions and auxiliary definitions the term needs)
        """
        outer, self._sides = self._sides, []
        try:
            term = self.bool_term(expr)
            return term, self._sides
        finally:
            self._sides = outer

    def constraint(self, constraint: ExprConstraint) -> z3.BoolRef:
        """``assumption => (side conditions && expr)``"""
        assumption, assumption_sides = self.denote(constraint.assuming)
        term, sides = self.denote(constraint.expr)
        body = _conjunction(sides + [term])
        if z3.is_true(assumption) and not assumption_sides:
            return body
        return z3.Implies(_conjunction(assumption_sides + [assumption]), body)
