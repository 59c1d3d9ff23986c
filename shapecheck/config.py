"""
Analysis configuration.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass
class AnalysisConfig:
    """
    Configuration for a module analysis.

    Attributes:
        inline_budget: Maximum complexity of an expression that may be inlined
        resolve_lists_only: Restrict equality resolution to list variables
        optimize_before_solving: Run the transform pipeline before verification
        solver_timeout_ms: Z3 timeout for each check (None disables it)
        hole_examples: Number of sampled values reported for a loosely constrained hole
        builtin_aliases: Extra function names mapped to builtin kinds (by kind name)
    """
    inline_budget: int = 20
    resolve_lists_only: bool = True
    optimize_before_solving: bool = True
    solver_timeout_ms: Optional[int] = 10000
    hole_examples: int = 5
    builtin_aliases: Dict[str, str] = field(default_factory=dict)
