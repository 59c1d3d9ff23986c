"""
Exception hierarchy for shapecheck.

Errors fall into three groups:
- Unanalyzable constructs and malformed constraints are recovered locally:
  the function or the single constraint is dropped and a warning recorded.
- Recursive calls are reported per checked function.
- Invariant violations are analyzer defects and always propagate.
"""


class ShapeCheckError(Exception):
    """Base class for all shapecheck errors."""


class AnalysisInvariantError(ShapeCheckError):
    """An internal invariant of the analyzer was violated."""


class UnsupportedConstructError(ShapeCheckError):
    """A construct the analyzer refuses to reason about (e.g. an unknown terminator)."""


class MalformedConstraintError(ShapeCheckError):
    """A constraint could not be built from the operands at hand."""


class RecursiveCallError(ShapeCheckError):
    """Call instantiation reached a function that is already being expanded."""

    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(f"Recursive call cycle: {' -> '.join(self.cycle)}")
