"""
Input contract: the typed SSA IR produced by the IR parser.
"""

from .ir import (
    SourceLocation,
    NamedType,
    TupleType,
    FunctionType,
    WrappedType,
    Type,
    unwrap_type,
    Op,
    PASS_THROUGH_OPS,
    Operand,
    Instruction,
    Return,
    Branch,
    CondBranch,
    SwitchCase,
    SwitchEnum,
    Unreachable,
    UnknownTerminator,
    Terminator,
    Argument,
    Block,
    Function,
    StructField,
    Module,
    HAVOC_BUILTIN,
    ARRAY_LITERAL_BUILTIN,
)

__all__ = [
    # Locations and types
    'SourceLocation',
    'NamedType',
    'TupleType',
    'FunctionType',
    'WrappedType',
    'Type',
    'unwrap_type',
    # Instructions
    'Op',
    'PASS_THROUGH_OPS',
    'Operand',
    'Instruction',
    # Terminators
    'Return',
    'Branch',
    'CondBranch',
    'SwitchCase',
    'SwitchEnum',
    'Unreachable',
    'UnknownTerminator',
    'Terminator',
    # Structure
    'Argument',
    'Block',
    'Function',
    'StructField',
    'Module',
    # Synthetic builtins
    'HAVOC_BUILTIN',
    'ARRAY_LITERAL_BUILTIN',
]
