"""
In-memory IR consumed by the analyzer.

The IR parser (an external collaborator) produces a typed module made of
functions, basic blocks, instructions and terminators in SSA form. This
module only defines the data model; it does not parse anything.

Registers are plain strings (e.g. "%3"). Every operand carries the type of
the register it reads so that the analyzer can allocate symbolic values
for registers it has not seen defined.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


# ============================================================================
# Source locations and types
# ============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """A (file, line) position in the analyzed program."""
    path: str
    line: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line}"


@dataclass(frozen=True)
class NamedType:
    """
    A nominal type, possibly generic (``Tensor<Float>`` is
    ``NamedType("Tensor", (NamedType("Float"),))``).
    """
    name: str
    args: Tuple["Type", ...] = ()

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}<{', '.join(str(a) for a in self.args)}>"


@dataclass(frozen=True)
class TupleType:
    elements: Tuple["Type", ...] = ()

    def __str__(self) -> str:
        return f"({', '.join(str(e) for e in self.elements)})"


@dataclass(frozen=True)
class FunctionType:
    arguments: Tuple["Type", ...] = ()
    result: Optional["Type"] = None

    def __str__(self) -> str:
        args = ", ".join(str(a) for a in self.arguments)
        return f"({args}) -> {self.result if self.result is not None else '()'}"


@dataclass(frozen=True)
class WrappedType:
    """
    A type behind an attribute or ownership marker (``@guaranteed``,
    ``$*``, ``@inout``). The analyzer looks through it.
    """
    attribute: str
    inner: "Type"

    def __str__(self) -> str:
        return f"{self.attribute} {self.inner}"


Type = Union[NamedType, TupleType, FunctionType, WrappedType]


def unwrap_type(ty: Optional[Type]) -> Optional[Type]:
    """Strip attribute/ownership wrappers from a type."""
    while isinstance(ty, WrappedType):
        ty = ty.inner
    return ty


# ============================================================================
# Instructions
# ============================================================================

class Op(Enum):
    """Operator tags of the instructions the analyzer understands."""
    INTEGER_LITERAL = "integer_literal"
    FUNCTION_REF = "function_ref"
    APPLY = "apply"
    BEGIN_APPLY = "begin_apply"
    END_APPLY = "end_apply"
    PARTIAL_APPLY = "partial_apply"
    BUILTIN = "builtin"
    STRUCT = "struct"
    STRUCT_EXTRACT = "struct_extract"
    TUPLE = "tuple"
    TUPLE_EXTRACT = "tuple_extract"
    DESTRUCTURE_TUPLE = "destructure_tuple"
    COPY_VALUE = "copy_value"
    BEGIN_BORROW = "begin_borrow"
    MARK_DEPENDENCE = "mark_dependence"
    CONVERT_FUNCTION = "convert_function"
    CONVERT_ESCAPE_TO_NOESCAPE = "convert_escape_to_noescape"
    THIN_TO_THICK_FUNCTION = "thin_to_thick_function"
    GLOBAL_ADDR = "global_addr"
    LOAD = "load"
    STORE = "store"
    POINTER_TO_ADDRESS = "pointer_to_address"
    INDEX_ADDR = "index_addr"
    OTHER = "other"


# Instructions whose single result is their first operand.
PASS_THROUGH_OPS = frozenset({
    Op.COPY_VALUE,
    Op.BEGIN_BORROW,
    Op.MARK_DEPENDENCE,
    Op.CONVERT_FUNCTION,
    Op.CONVERT_ESCAPE_TO_NOESCAPE,
    Op.THIN_TO_THICK_FUNCTION,
})


@dataclass(frozen=True)
class Operand:
    """A register read, together with the type of the register."""
    value: str
    type: Optional[Type] = None

    def __str__(self) -> str:
        return f"{self.value} : {self.type}" if self.type is not None else self.value


@dataclass
class Instruction:
    """
    One IR instruction.

    Attributes:
        op: Operator tag
        operands: Registers read, in order
        results: Registers defined, in order
        result_types: Types of the registers defined (may be shorter than results)
        attributes: Operator-specific payload, e.g. ``value`` for literals,
            ``name`` for function refs, builtins and globals, ``field`` and
            ``struct`` for struct_extract, ``index`` for tuple_extract,
            ``type`` for struct, ``opcode`` for OTHER
        location: Source location, when the IR carries one
    """
    op: Op
    operands: List[Operand] = field(default_factory=list)
    results: List[str] = field(default_factory=list)
    result_types: List[Optional[Type]] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)
    location: Optional[SourceLocation] = None

    def result_type(self, index: int = 0) -> Optional[Type]:
        if index < len(self.result_types):
            return self.result_types[index]
        return None

    def __str__(self) -> str:
        lhs = f"({', '.join(self.results)}) = " if self.results else ""
        name = self.attributes.get("name")
        head = f"{self.op.value} {name}" if name is not None else self.op.value
        return f"{lhs}{head} {', '.join(o.value for o in self.operands)}".rstrip()


# ============================================================================
# Terminators
# ============================================================================

@dataclass(frozen=True)
class Return:
    operand: Optional[Operand] = None


@dataclass(frozen=True)
class Branch:
    label: str
    operands: Tuple[Operand, ...] = ()


@dataclass(frozen=True)
class CondBranch:
    condition: Operand
    true_label: str
    false_label: str
    true_operands: Tuple[Operand, ...] = ()
    false_operands: Tuple[Operand, ...] = ()


@dataclass(frozen=True)
class SwitchCase:
    """
    One arm of a SwitchEnum. ``case`` is None for the default arm.

    The payload of the case (if any) is an implicit leading argument of the
    target block; ``operands`` bind the trailing arguments.
    """
    case: Optional[str]
    label: str
    operands: Tuple[Operand, ...] = ()


@dataclass(frozen=True)
class SwitchEnum:
    operand: Operand
    cases: Tuple[SwitchCase, ...] = ()


@dataclass(frozen=True)
class Unreachable:
    pass


@dataclass(frozen=True)
class UnknownTerminator:
    """A terminator the IR parser could not classify. Never analyzed."""
    text: str = ""


Terminator = Union[Return, Branch, CondBranch, SwitchEnum, Unreachable, UnknownTerminator]


# ============================================================================
# Blocks, functions, modules
# ============================================================================

@dataclass(frozen=True)
class Argument:
    name: str
    type: Optional[Type] = None


@dataclass
class Block:
    """
    A basic block: arguments, straight-line instructions and a terminator.
    """
    identifier: str
    arguments: List[Argument] = field(default_factory=list)
    instructions: List[Instruction] = field(default_factory=list)
    terminator: Terminator = field(default_factory=Unreachable)
    terminator_location: Optional[SourceLocation] = None


@dataclass
class Function:
    """
    An IR function. The first block is the entry block; its arguments are the
    function's formal arguments. Functions without blocks are declarations.
    """
    name: str
    blocks: List[Block] = field(default_factory=list)
    result_type: Optional[Type] = None

    @property
    def entry(self) -> Optional[Block]:
        return self.blocks[0] if self.blocks else None


@dataclass(frozen=True)
class StructField:
    name: str
    type: Optional[Type] = None


@dataclass
class Module:
    """
    A compiled module.

    Attributes:
        functions: Functions in the order the IR lists them
        structs: Stored-property layout of the user structs, by type name
    """
    functions: List[Function] = field(default_factory=list)
    structs: Dict[str, List[StructField]] = field(default_factory=dict)

    def function(self, name: str) -> Optional[Function]:
        for function in self.functions:
            if function.name == name:
                return function
        return None


# ============================================================================
# Synthetic builtins
# ============================================================================

# Produces an unconstrained value of its result type (inserted by unlooping).
HAVOC_BUILTIN = "shapecheck.havoc"

# Marks a recognized array literal: operands are the array, then its elements.
ARRAY_LITERAL_BUILTIN = "shapecheck.array_literal"
