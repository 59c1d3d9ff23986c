"""
Constraint records.

A constraint is either a boolean fact that holds under a path assumption
(ExprConstraint) or a deferred call to another function (CallConstraint),
expanded later by call instantiation. Both carry a CallStack recording where
they came from; provenance is only used for diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from ..errors import MalformedConstraintError
from ..frontend.ir import SourceLocation
from .expressions import (
    TRUE,
    BoolEq,
    BoolExpr,
    Expr,
    IntEq,
    IntExpr,
    ListEq,
    ListExpr,
    ListLiteral,
    TupleExpr,
    Var,
    free_vars,
    substitute,
)


class Origin(Enum):
    ASSERTED = "asserted"
    IMPLIED = "implied"


# ============================================================================
# Call stacks
# ============================================================================

class _Top:
    """Root of every call stack."""
    __slots__ = ()

    def rebase(self, onto: "CallStack") -> "CallStack":
        return onto

    @property
    def locations(self) -> List[Optional[SourceLocation]]:
        return []

    def __repr__(self) -> str:
        return "TOP"


TOP = _Top()


@dataclass(frozen=True)
class Frame:
    """A source location, linked to the stack of its caller."""
    location: Optional[SourceLocation]
    caller: "CallStack" = TOP

    def rebase(self, onto: "CallStack") -> "CallStack":
        """Replace the root of this stack with ``onto``."""
        return Frame(self.location, self.caller.rebase(onto))

    @property
    def locations(self) -> List[Optional[SourceLocation]]:
        """Frame locations, innermost first."""
        return [self.location] + self.caller.locations


CallStack = Union[_Top, Frame]


def local_stack(location: Optional[SourceLocation]) -> CallStack:
    """Stack of a constraint created directly inside the analyzed function."""
    return Frame(location, TOP)


# ============================================================================
# Constraints
# ============================================================================

@dataclass(frozen=True)
class ExprConstraint:
    expr: BoolExpr
    assuming: BoolExpr = TRUE
    origin: Origin = Origin.ASSERTED
    stack: CallStack = TOP

    @property
    def location(self) -> Optional[SourceLocation]:
        return self.stack.location if isinstance(self.stack, Frame) else None

    def __str__(self) -> str:
        if self.assuming == TRUE:
            return str(self.expr)
        return f"{self.expr}  (assuming {self.assuming})"


@dataclass(frozen=True)
class CallConstraint:
    name: str
    args: Tuple[Optional[Expr], ...]
    result: Optional[Expr]
    assuming: BoolExpr = TRUE
    stack: CallStack = TOP

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))

    @property
    def location(self) -> Optional[SourceLocation]:
        return self.stack.location if isinstance(self.stack, Frame) else None

    def __str__(self) -> str:
        args = ", ".join("*" if a is None else str(a) for a in self.args)
        result = "*" if self.result is None else str(self.result)
        text = f"{result} = {self.name}({args})"
        if self.assuming == TRUE:
            return text
        return f"{text}  (assuming {self.assuming})"


Constraint = Union[ExprConstraint, CallConstraint]


def substitute_constraint(constraint: Constraint,
                          fn: Callable[[Var], Optional[Expr]]) -> Constraint:
    """Apply a variable substitution to every expression of a constraint."""
    if isinstance(constraint, ExprConstraint):
        return replace(constraint,
                       expr=substitute(constraint.expr, fn),
                       assuming=substitute(constraint.assuming, fn))
    return replace(constraint,
                   args=tuple(None if a is None else substitute(a, fn) for a in constraint.args),
                   result=None if constraint.result is None else substitute(constraint.result, fn),
                   assuming=substitute(constraint.assuming, fn))


def constraint_vars(constraint: Constraint) -> List[Var]:
    """Variables of a constraint (including its assumption) in order of appearance."""
    if isinstance(constraint, ExprConstraint):
        exprs = [constraint.expr, constraint.assuming]
    else:
        exprs = [a for a in constraint.args if a is not None]
        if constraint.result is not None:
            exprs.append(constraint.result)
        exprs.append(constraint.assuming)
    seen = {}
    for expr in exprs:
        for var in free_vars(expr):
            seen.setdefault(var, None)
    return list(seen)


# ============================================================================
# Equalities between values
# ============================================================================

def make_equalities(lhs: Expr, rhs: Expr) -> List[BoolExpr]:
    """
    Equalities stating ``lhs == rhs``.

    Tuples are compared element-wise (absent elements are skipped). A shape
    compared with a tuple of integers is compared with the equivalent list
    literal.

    Raises:
        MalformedConstraintError: if the two sides cannot be compared
    """
    if isinstance(lhs, IntExpr) and isinstance(rhs, IntExpr):
        return [IntEq(lhs, rhs)]
    if isinstance(lhs, ListExpr) and isinstance(rhs, ListExpr):
        return [ListEq(lhs, rhs)]
    if isinstance(lhs, BoolExpr) and isinstance(rhs, BoolExpr):
        return [BoolEq(lhs, rhs)]
    if isinstance(lhs, TupleExpr) and isinstance(rhs, TupleExpr):
        if len(lhs.elements) != len(rhs.elements):
            raise MalformedConstraintError(f"Tuple arity mismatch: {lhs} vs {rhs}")
        result = []
        for l, r in zip(lhs.elements, rhs.elements):
            if l is not None and r is not None:
                result.extend(make_equalities(l, r))
        return result
    if isinstance(lhs, ListExpr) and isinstance(rhs, TupleExpr):
        if all(e is None or isinstance(e, IntExpr) for e in rhs.elements):
            return [ListEq(lhs, ListLiteral(rhs.elements))]
    raise MalformedConstraintError(f"Cannot equate {lhs} with {rhs}")


def equate(lhs: Expr, rhs: Expr) -> List[BoolExpr]:
    """
    Like make_equalities, but retries with the sides mirrored before giving up.

    Raises:
        MalformedConstraintError: if neither orientation can be compared
    """
    try:
        return make_equalities(lhs, rhs)
    except MalformedConstraintError:
        return make_equalities(rhs, lhs)
