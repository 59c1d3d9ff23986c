"""
Verification of constraint systems with Z3.

Every expression constraint is asserted under a tracking literal, so that an
unsatisfiable system can be explained by the subset of constraints in the
unsat core. A satisfiable system is further queried for the values its holes
may take.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

import z3

from ..config import AnalysisConfig
from ..constraints.constraint import Constraint, ExprConstraint
from ..frontend.ir import SourceLocation
from .denotation import Denotation

logger = logging.getLogger(__name__)


# ============================================================================
# Results
# ============================================================================

@dataclass(frozen=True)
class Anything:
    """The hole is not constrained at all."""

    def __str__(self) -> str:
        return "anything"


@dataclass(frozen=True)
class Only:
    value: int

    def __str__(self) -> str:
        return f"only {self.value}"


@dataclass(frozen=True)
class Examples:
    """Some of the values the hole may take."""
    values: Tuple[int, ...]

    def __str__(self) -> str:
        return "e.g. " + ", ".join(str(v) for v in self.values)


HoleValuation = Union[Anything, Only, Examples]


@dataclass(frozen=True)
class Sat:
    holes: Optional[Dict[Optional[SourceLocation], HoleValuation]] = field(default=None, hash=False)


@dataclass(frozen=True)
class Unsat:
    """
    Attributes:
        core: Constraints sufficient for the contradiction, when Z3 found any
    """
    core: Optional[List[ExprConstraint]] = field(default=None, hash=False)


@dataclass(frozen=True)
class Unknown:
    reason: str = ""


SolverResult = Union[Sat, Unsat, Unknown]


# ============================================================================
# Solving
# ============================================================================

@contextmanager
def solver_session(config: AnalysisConfig) -> Iterator[z3.Solver]:
    """A fresh solver, reset on exit."""
    solver = z3.Solver()
    if config.solver_timeout_ms is not None:
        solver.set("timeout", config.solver_timeout_ms)
    try:
        yield solver
    finally:
        solver.reset()


def _constant_names(terms: List[z3.ExprRef]) -> Set[str]:
    names: Set[str] = set()
    seen: Set[int] = set()
    stack = list(terms)
    while stack:
        term = stack.pop()
        if term.get_id() in seen:
            continue
        seen.add(term.get_id())
        if z3.is_const(term) and term.decl().kind() == z3.Z3_OP_UNINTERPRETED:
            names.add(term.decl().name())
        stack.extend(term.children())
    return names


def _model_value(solver: z3.Solver, term: z3.ArithRef) -> int:
    return solver.model().eval(term, model_completion=True).as_long()


def _valuate_hole(solver: z3.Solver, hole: z3.ArithRef, limit: int) -> HoleValuation:
    value = _model_value(solver, hole)
    values = [value]
    solver.push()
    try:
        solver.add(hole != value)
        if solver.check() == z3.unsat:
            return Only(value)
        while len(values) < limit and solver.check() == z3.sat:
            value = _model_value(solver, hole)
            values.append(value)
            solver.add(hole != value)
        return Examples(tuple(values))
    finally:
        solver.pop()


def _valuate_holes(solver: z3.Solver,
                   denotation: Denotation,
                   assertions: List[z3.BoolRef],
                   config: AnalysisConfig) -> Optional[Dict[Optional[SourceLocation], HoleValuation]]:
    if not denotation.holes:
        return None
    mentioned = _constant_names([z3.simplify(a) for a in assertions])
    holes = {}
    pending = []
    for location, hole in denotation.holes.items():
        if hole.decl().name() not in mentioned:
            holes[location] = Anything()
        else:
            pending.append((location, hole))
    for location, hole in pending:
        if solver.check() != z3.sat:
            break
        holes[location] = _valuate_hole(solver, hole, config.hole_examples)
    return holes


def verify(constraints: List[Constraint], config: Optional[AnalysisConfig] = None) -> SolverResult:
    """
    Check whether a constraint system is satisfiable.

    Call constraints are ignored: instantiate calls before verifying.

    Args:
        constraints: Constraints to check
        config: Analysis configuration (solver timeout, number of hole examples)

    Returns:
        Sat with the valuation of the holes (None when there are none),
        Unsat with the unsat core, or Unknown with Z3's reason
    """
    config = config or AnalysisConfig()
    denotation = Denotation()
    tracked: Dict[str, ExprConstraint] = {}
    assertions: List[z3.BoolRef] = []

    with solver_session(config) as solver:
        for constraint in constraints:
            if not isinstance(constraint, ExprConstraint):
                logger.debug(f"[SOLVER] Skipping call constraint {constraint}")
                continue
            term = denotation.constraint(constraint)
            literal = f"tr{len(tracked)}"
            tracked[literal] = constraint
            assertions.append(term)
            solver.assert_and_track(term, z3.Bool(literal))
        for axiom in denotation.axioms:
            solver.add(axiom)

        status = solver.check()
        logger.debug(f"[SOLVER] {len(tracked)} constraints: {status}")

        if status == z3.unsat:
            in_core = {str(literal) for literal in solver.unsat_core()}
            core = [c for literal, c in tracked.items() if literal in in_core]
            return Unsat(core or None)
        if status == z3.unknown:
            return Unknown(solver.reason_unknown())
        return Sat(_valuate_holes(solver, denotation, assertions, config))
