"""
Z3 backend: translation of constraints and verification.
"""

from .denotation import Denotation, LiteralList, SymbolicList
from .solver import (
    Anything,
    Examples,
    HoleValuation,
    Only,
    Sat,
    SolverResult,
    Unknown,
    Unsat,
    solver_session,
    verify,
)

__all__ = [
    # Translation
    'Denotation', 'LiteralList', 'SymbolicList',
    # Verification
    'Anything', 'Examples', 'HoleValuation', 'Only',
    'Sat', 'SolverResult', 'Unknown', 'Unsat',
    'solver_session', 'verify',
]
