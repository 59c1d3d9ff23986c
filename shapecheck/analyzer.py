"""
Module-level driver.

The Analyzer summarizes every function of a module, then checks functions
on demand: the summary of the checked function is instantiated with the
summaries of everything it calls, optimized, and handed to Z3.

Typical use:

    analyzer = Analyzer()
    analyzer.analyze(module)
    for report in analyzer.check_all():
        print(report)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import AnalysisConfig
from .constraints.constraint import ExprConstraint
from .constraints.transforms import optimize
from .diagnostics import AnalysisWarning, Diagnostics, warn_about_unresolved_asserts
from .errors import RecursiveCallError
from .frontend.ir import Function, Module, StructField
from .semantics.interpreter import abstract
from .semantics.summaries import Environment, FunctionSummary, instantiate
from .z3model.solver import SolverResult, Unsat, verify

logger = logging.getLogger(__name__)


@dataclass
class FunctionReport:
    """
    Outcome of checking one function.

    Attributes:
        name: Function name
        summary: Summary of the function, if it could be analyzed
        constraints: Constraints handed to the solver
        result: Solver verdict (None when the function was not verified)
        warnings: Warnings issued for the function
        error: Why the function was not verified
    """
    name: str
    summary: Optional[FunctionSummary] = None
    constraints: List[ExprConstraint] = field(default_factory=list)
    result: Optional[SolverResult] = None
    warnings: List[AnalysisWarning] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        """True when some assertion is violated on every execution."""
        return isinstance(self.result, Unsat)

    def __str__(self) -> str:
        lines = [f"{self.name}: {self.error if self.error else self.result}"]
        lines.extend(f"  warning: {w}" for w in self.warnings)
        return "\n".join(lines)


class Analyzer:
    """
    Owner of the summaries of one module.

    Attributes:
        environment: Summary of every analyzed function, by name
        warnings: Warnings issued while summarizing each function
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()
        self.environment: Environment = {}
        self.warnings: Dict[str, List[AnalysisWarning]] = {}

    def analyze(self, module: Module) -> None:
        """Summarize every function of ``module``."""
        for function in module.functions:
            self.analyze_function(function, module.structs)
        logger.info(f"[ANALYZER] Summarized {len(self.environment)} of "
                    f"{len(module.functions)} functions")

    def analyze_function(self, function: Function,
                         type_environment: Optional[Dict[str, List[StructField]]] = None) -> Optional[FunctionSummary]:
        diagnostics = Diagnostics()
        with diagnostics.recording() as warnings:
            summary = abstract(function, type_environment, self.config, diagnostics)
        self.warnings[function.name] = list(warnings)
        if summary is not None:
            self.environment[function.name] = summary
            logger.debug(f"[ANALYZER] {function.name}: {summary.pretty_description()}")
        return summary

    def check(self, name: str) -> FunctionReport:
        """Verify the assertions reachable from function ``name``."""
        warnings = list(self.warnings.get(name, []))
        summary = self.environment.get(name)
        if summary is None:
            return FunctionReport(name, warnings=warnings, error="No summary available")

        try:
            constraints = instantiate(name, self.environment)
        except RecursiveCallError as e:
            logger.info(f"[ANALYZER] {name}: {e}")
            return FunctionReport(name, summary, warnings=warnings, error=str(e))

        diagnostics = Diagnostics()
        with diagnostics.recording() as unresolved:
            warn_about_unresolved_asserts(constraints, diagnostics)
        warnings.extend(unresolved)

        if self.config.optimize_before_solving:
            constraints = optimize(constraints, self.config)
        result = verify(constraints, self.config)
        logger.info(f"[ANALYZER] {name}: {result}")
        return FunctionReport(name, summary, constraints, result, warnings)

    def check_all(self) -> List[FunctionReport]:
        return [self.check(name) for name in sorted(self.environment)]
