"""
Functions, operators and types with a built-in meaning for the interpreter.

Function names are the (demangled) names the IR parser reports for
``function_ref`` instructions. Callers can extend the table through
``AnalysisConfig.builtin_aliases``, e.g. to map mangled symbols.

Calling conventions follow the compiled code: a method receives its
receiver last, and static operators may receive a trailing metatype
argument, which the interpreter ignores.
"""

from enum import Enum
from typing import Callable, Dict, Optional

from ..constraints.expressions import (
    Add,
    Div,
    IntEq,
    IntGe,
    IntGt,
    IntLe,
    IntLt,
    Mul,
    Not,
    Sub,
)


class BuiltinFunction(Enum):
    ASSERT = "assert"
    BROADCAST = "broadcast"
    INT_LITERAL_CONSTRUCTOR = "int_literal_constructor"
    INT_EQUAL = "int_equal"
    INT_GREATER = "int_greater"
    INT_GREATER_EQUAL = "int_greater_equal"
    INT_SMALLER = "int_smaller"
    INT_SMALLER_EQUAL = "int_smaller_equal"
    INT_PLUS = "int_plus"
    INT_MINUS = "int_minus"
    INT_MULTIPLY = "int_multiply"
    INT_DIVIDE = "int_divide"
    SHAPE_CONSTRUCTOR = "shape_constructor"
    RANK_GETTER = "rank_getter"
    SHAPE_GETTER = "shape_getter"
    SHAPE_SUBSCRIPT = "shape_subscript"
    SHAPE_EQUAL = "shape_equal"


BUILTIN_FUNCTIONS: Dict[str, BuiltinFunction] = {
    "assert": BuiltinFunction.ASSERT,
    "precondition": BuiltinFunction.ASSERT,
    "check": BuiltinFunction.ASSERT,
    "broadcast": BuiltinFunction.BROADCAST,
    "Int.init(_builtinIntegerLiteral:)": BuiltinFunction.INT_LITERAL_CONSTRUCTOR,
    "Int.==": BuiltinFunction.INT_EQUAL,
    "Int.>": BuiltinFunction.INT_GREATER,
    "Int.>=": BuiltinFunction.INT_GREATER_EQUAL,
    "Int.<": BuiltinFunction.INT_SMALLER,
    "Int.<=": BuiltinFunction.INT_SMALLER_EQUAL,
    "Int.+": BuiltinFunction.INT_PLUS,
    "Int.-": BuiltinFunction.INT_MINUS,
    "Int.*": BuiltinFunction.INT_MULTIPLY,
    "Int./": BuiltinFunction.INT_DIVIDE,
    "TensorShape.init(arrayLiteral:)": BuiltinFunction.SHAPE_CONSTRUCTOR,
    "Tensor.shape.getter": BuiltinFunction.SHAPE_GETTER,
    "Tensor.rank.getter": BuiltinFunction.RANK_GETTER,
    "TensorShape.subscript.read": BuiltinFunction.SHAPE_SUBSCRIPT,
    "TensorShape.==": BuiltinFunction.SHAPE_EQUAL,
}

# Int builtins taking (lhs, rhs[, metatype])
INT_BINARY_FUNCTIONS = {
    BuiltinFunction.INT_EQUAL: IntEq,
    BuiltinFunction.INT_GREATER: IntGt,
    BuiltinFunction.INT_GREATER_EQUAL: IntGe,
    BuiltinFunction.INT_SMALLER: IntLt,
    BuiltinFunction.INT_SMALLER_EQUAL: IntLe,
    BuiltinFunction.INT_PLUS: Add,
    BuiltinFunction.INT_MINUS: Sub,
    BuiltinFunction.INT_MULTIPLY: Mul,
    BuiltinFunction.INT_DIVIDE: Div,
}

# Operators of the ``builtin`` instruction, before their type suffix
# (``cmp_eq_Int64`` is ``cmp_eq``).
BUILTIN_OPERATORS: Dict[str, Callable] = {
    "cmp_eq": IntEq,
    "cmp_ne": lambda lhs, rhs: Not(IntEq(lhs, rhs)),
    "cmp_sgt": IntGt,
    "cmp_sge": IntGe,
    "cmp_slt": IntLt,
    "cmp_sle": IntLe,
    "add": Add,
    "sub": Sub,
    "mul": Mul,
    "sdiv": Div,
}

# Operators returning a (value, overflow flag) tuple
OVERFLOW_OPERATORS: Dict[str, Callable] = {
    "sadd_with_overflow": Add,
    "ssub_with_overflow": Sub,
    "smul_with_overflow": Mul,
}

INT_TYPE = "Int"
BOOL_TYPE = "Bool"
SHAPE_TYPE = "TensorShape"
TENSOR_TYPE = "Tensor"

# Stored property of the scalar wrapper structs
SCALAR_WRAPPER_FIELD = "_value"

# Allocation function used by compiled array literals
ALLOCATE_UNINITIALIZED_ARRAY = "_allocateUninitializedArray"

# Global variable standing for a hole in the analyzed program
HOLE_GLOBAL = "__"


def lookup_builtin_function(name: str,
                            aliases: Optional[Dict[str, str]] = None) -> Optional[BuiltinFunction]:
    """
    Builtin kind of a function name, if any.

    ``aliases`` maps extra names to BuiltinFunction values (e.g. ``"assert"``).
    """
    if aliases and name in aliases:
        return BuiltinFunction(aliases[name])
    return BUILTIN_FUNCTIONS.get(name)


def split_operator_name(name: str) -> str:
    """Strip the type suffix of a builtin operator (``cmp_slt_Int64`` -> ``cmp_slt``)."""
    if name in BUILTIN_OPERATORS or name in OVERFLOW_OPERATORS:
        return name
    base, _, suffix = name.rpartition("_")
    if base and suffix[:1].isupper():
        return base
    return name
