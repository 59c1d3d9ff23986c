"""
User-facing warnings collected during one analysis.

Warnings describe parts of the analyzed program that could not be taken into
account (an unsupported terminator, an irreducible CFG, an assertion whose
condition could not be resolved). They are not errors: analysis continues
without the offending construct.

A Diagnostics object is owned by a single analysis call. Recording scopes can
be nested; a warning is delivered to every active scope.
"""

import logging
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .constraints.constraint import Constraint, ExprConstraint, Origin, constraint_vars
from .constraints.expressions import BoolVar
from .frontend.ir import SourceLocation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisWarning:
    issue: str
    location: Optional[SourceLocation] = None

    def __str__(self) -> str:
        if self.location is None:
            return self.issue
        return f"{self.location}: {self.issue}"


class Diagnostics:
    """Collector of warnings with nestable recording scopes."""

    def __init__(self):
        self._scopes: List[List[AnalysisWarning]] = []

    def warn(self, issue: str, location: Optional[SourceLocation] = None) -> AnalysisWarning:
        warning = AnalysisWarning(issue, location)
        logger.debug(f"[DIAGNOSTICS] {warning}")
        for scope in self._scopes:
            scope.append(warning)
        return warning

    @contextmanager
    def recording(self) -> Iterator[List[AnalysisWarning]]:
        """Collect the warnings issued inside a ``with`` block."""
        scope: List[AnalysisWarning] = []
        self._scopes.append(scope)
        try:
            yield scope
        finally:
            self._scopes.pop()


def warn_about_unresolved_asserts(constraints: List[Constraint],
                                  diagnostics: Diagnostics) -> None:
    """
    Warn about assertions of a boolean variable that nothing defines.

    Such an assertion comes from a condition computed by code the analyzer
    could not see into, so it constrains nothing.
    """
    # Number of constraints mentioning each variable
    mentions: Counter = Counter()
    for constraint in constraints:
        mentions.update(constraint_vars(constraint))
    for constraint in constraints:
        if (isinstance(constraint, ExprConstraint)
                and constraint.origin is Origin.ASSERTED
                and isinstance(constraint.expr, BoolVar)
                and mentions[constraint.expr] == 1):
            diagnostics.warn("Failed to resolve the condition of this assertion; "
                             "it will not be checked", constraint.location)
