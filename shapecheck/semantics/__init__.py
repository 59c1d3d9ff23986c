"""
Symbolic interpretation of IR functions and call instantiation.
"""

from .builtins import BuiltinFunction, lookup_builtin_function
from .array_literals import normalize_array_literals
from .summaries import Environment, FunctionSummary, instantiate
from .interpreter import (
    AbstractValue,
    BuiltinValue,
    FunctionValue,
    HolePointer,
    InterpreterState,
    PartialApplication,
    TensorValue,
    TupleValue,
    abstract,
    expr_of,
)

__all__ = [
    # Builtins
    'BuiltinFunction', 'lookup_builtin_function',
    # Preprocessing
    'normalize_array_literals',
    # Summaries
    'Environment', 'FunctionSummary', 'instantiate',
    # Interpreter
    'AbstractValue', 'BuiltinValue', 'FunctionValue', 'HolePointer',
    'InterpreterState', 'PartialApplication', 'TensorValue', 'TupleValue',
    'abstract', 'expr_of',
]
