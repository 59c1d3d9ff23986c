"""
Function summaries and call instantiation.

A FunctionSummary abstracts one function as the expressions of its formal
arguments and of its result, plus the constraints its body imposes on
them. Calls are kept as CallConstraints inside summaries and expanded only
when a function is verified, so the order in which functions are summarized
does not matter.
"""

import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterator, List, Optional

from ..constraints.constraint import (
    TOP,
    CallConstraint,
    CallStack,
    Constraint,
    ExprConstraint,
    Origin,
    equate,
)
from ..constraints.expressions import TRUE, BoolExpr, Expr, Var, conjoin, substitute, var_like
from ..errors import MalformedConstraintError, RecursiveCallError

logger = logging.getLogger(__name__)


def _describe(expr: Optional[Expr]) -> str:
    return "*" if expr is None else str(expr)


@dataclass
class FunctionSummary:
    """
    Constraint abstraction of one function.

    Attributes:
        arg_exprs: Expressions of the formal arguments (None for arguments of
            unsupported types)
        ret_expr: Expression of the returned value, if it has a supported type
        constraints: Constraints of the body, assumed under path conditions
    """
    arg_exprs: List[Optional[Expr]] = field(default_factory=list)
    ret_expr: Optional[Expr] = None
    constraints: List[Constraint] = field(default_factory=list)

    @property
    def signature(self) -> str:
        args = ", ".join(_describe(e) for e in self.arg_exprs)
        return f"({args}) -> {_describe(self.ret_expr)}"

    def __str__(self) -> str:
        if not self.constraints:
            return self.signature
        return "[" + ", ".join(str(c) for c in self.constraints) + "] => " + self.signature

    def pretty_description(self) -> str:
        if len(self.constraints) <= 4:
            return str(self)
        return "[" + ",\n ".join(str(c) for c in self.constraints) + "] => " + self.signature


Environment = Dict[str, FunctionSummary]


class _Instantiation:
    """State of one instantiate() call: the fresh-name counter and the active call chain."""

    def __init__(self, environment: Environment):
        self.environment = environment
        self.constraints: List[ExprConstraint] = []
        self._names: Iterator[int] = itertools.count()
        self._active: List[str] = []

    def _renaming(self) -> Callable[[Expr], Expr]:
        mapping: Dict[Var, Var] = {}

        def fresh(var: Var) -> Var:
            if var not in mapping:
                mapping[var] = var_like(var, next(self._names))
            return mapping[var]

        return lambda expr: substitute(expr, fresh)

    def _bind(self, lhs: Expr, rhs: Expr, assuming: BoolExpr, stack: CallStack) -> None:
        try:
            equalities = equate(lhs, rhs)
        except MalformedConstraintError as e:
            logger.warning(f"[INSTANTIATE] Dropping a call binding: {e}")
            return
        self.constraints.extend(ExprConstraint(eq, assuming, Origin.IMPLIED, stack)
                                for eq in equalities)

    def expand(self,
               name: str,
               summary: FunctionSummary,
               actual_args: Optional[List[Optional[Expr]]],
               assuming: BoolExpr,
               stack: CallStack) -> Optional[Expr]:
        """
        Append the constraints of one call to ``name`` with fresh variables.

        Returns:
            The renamed return expression of the callee
        """
        if name in self._active:
            raise RecursiveCallError(self._active[self._active.index(name):] + [name])
        self._active.append(name)
        try:
            rename = self._renaming()
            if actual_args is not None:
                for formal, actual in zip(summary.arg_exprs, actual_args):
                    if formal is not None and actual is not None:
                        self._bind(rename(formal), actual, assuming, stack)

            for constraint in summary.constraints:
                local_assumption = conjoin(assuming, rename(constraint.assuming))
                local_stack = constraint.stack.rebase(stack)
                if isinstance(constraint, ExprConstraint):
                    self.constraints.append(replace(constraint,
                                                    expr=rename(constraint.expr),
                                                    assuming=local_assumption,
                                                    stack=local_stack))
                    continue
                self._expand_call(constraint, rename, local_assumption, local_stack)

            return None if summary.ret_expr is None else rename(summary.ret_expr)
        finally:
            self._active.pop()

    def _expand_call(self,
                     call: CallConstraint,
                     rename: Callable[[Expr], Expr],
                     assuming: BoolExpr,
                     stack: CallStack) -> None:
        callee = self.environment.get(call.name)
        if callee is None:
            logger.debug(f"[INSTANTIATE] No summary for {call.name}, dropping the call")
            return
        args = [None if a is None else rename(a) for a in call.args]
        ret = self.expand(call.name, callee, args, assuming, stack)
        if call.result is not None and ret is not None:
            self._bind(rename(call.result), ret, assuming, stack)


def instantiate(name: str, environment: Environment) -> List[ExprConstraint]:
    """
    Constraints of a function with every call replaced by the constraints
    of its callee.

    Every expansion (including the top-level function) gets fresh variables,
    so separate calls to the same function never share state. Callee
    constraints are assumed under the path condition of the call and carry
    the call site on their stack. Calls to functions without a summary are
    dropped.

    Raises:
        RecursiveCallError: if the call graph reachable from ``name`` has a cycle
    """
    summary = environment.get(name)
    if summary is None:
        return []
    instantiation = _Instantiation(environment)
    instantiation.expand(name, summary, None, TRUE, TOP)
    logger.debug(f"[INSTANTIATE] {name}: {len(instantiation.constraints)} constraints")
    return instantiation.constraints
