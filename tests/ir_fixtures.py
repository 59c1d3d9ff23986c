"""
Builders for IR used across the tests.

Two levels are provided:
- cfg(): bare control-flow graphs (blocks with terminators only), for the
  CFG passes
- FunctionBuilder: functions written instruction by instruction, in the
  shape the compiler emits them (integer literals wrapped by the Int
  constructor, shape subscripts through begin_apply, array literals through
  the allocation idiom)
"""

from typing import Dict, List, Optional, Sequence, Union

from shapecheck.frontend.ir import (
    Argument,
    Block,
    Branch,
    CondBranch,
    Function,
    FunctionType,
    Instruction,
    Module,
    NamedType,
    Op,
    Operand,
    Return,
    SourceLocation,
    SwitchCase,
    SwitchEnum,
    TupleType,
    Unreachable,
)

INT = NamedType("Int")
BOOL = NamedType("Bool")
SHAPE = NamedType("TensorShape")
FLOAT = NamedType("Float")
TENSOR = NamedType("Tensor", (FLOAT,))
INT_LITERAL = NamedType("Builtin.IntLiteral")
WORD = NamedType("Builtin.Word")
INT_ARRAY = NamedType("Array", (INT,))
RAW_POINTER = NamedType("Builtin.RawPointer")
METATYPE = NamedType("Int.Type")

PATH = "test.swift"


def loc(line: int) -> SourceLocation:
    return SourceLocation(PATH, line)


# ============================================================================
# Bare CFGs
# ============================================================================

def cfg(edges: Dict[str, Sequence[str]], entry: Optional[str] = None) -> List[Block]:
    """
    Blocks with the given successors, in dict order (the first is the entry).

    No successors gives a return, one a branch, two a conditional branch and
    more a switch.
    """
    blocks = []
    for name, targets in edges.items():
        targets = list(targets)
        if not targets:
            terminator = Return()
        elif len(targets) == 1:
            terminator = Branch(targets[0])
        elif len(targets) == 2:
            terminator = CondBranch(Operand("%cond", BOOL), targets[0], targets[1])
        else:
            terminator = SwitchEnum(Operand("%tag"),
                                    tuple(SwitchCase(f"case{i}", t) for i, t in enumerate(targets)))
        blocks.append(Block(name, terminator=terminator))
    if entry is not None:
        blocks.sort(key=lambda b: b.identifier != entry)
    return blocks


def names(blocks: List[Block]) -> List[str]:
    return [block.identifier for block in blocks]


# ============================================================================
# Functions
# ============================================================================

class FunctionBuilder:
    """
    Incrementally written IR function.

    Registers are numbered automatically; every helper returns the Operands
    of the registers it defines.
    """

    def __init__(self, name: str, arguments: Sequence = (), result_type=None):
        self.name = name
        self.result_type = result_type
        self.blocks: List[Block] = []
        self._registers = 0
        self.arguments = self.block("bb0", arguments)

    def _fresh(self) -> str:
        register = f"%{self._registers}"
        self._registers += 1
        return register

    @property
    def current(self) -> Block:
        return self.blocks[-1]

    def block(self, identifier: str, argument_types: Sequence = ()) -> List[Operand]:
        arguments = [Argument(self._fresh(), ty) for ty in argument_types]
        self.blocks.append(Block(identifier, arguments=arguments))
        return [Operand(a.name, a.type) for a in arguments]

    def emit(self, op: Op, operands: Sequence[Operand] = (), result_types: Sequence = (),
             line: Optional[int] = None, **attributes) -> List[Operand]:
        results = [self._fresh() for _ in result_types]
        self.current.instructions.append(Instruction(
            op,
            operands=list(operands),
            results=results,
            result_types=list(result_types),
            attributes=attributes,
            location=loc(line) if line is not None else None))
        return [Operand(r, t) for r, t in zip(results, result_types)]

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def function_ref(self, name: str, ty=None) -> Operand:
        return self.emit(Op.FUNCTION_REF, result_types=[ty or FunctionType()], name=name)[0]

    def call(self, name: str, *args: Operand, result_type=None, line: Optional[int] = None,
             extra_results: Sequence = ()) -> Optional[Operand]:
        fn = self.function_ref(name)
        result_types = ([result_type] if result_type is not None else []) + list(extra_results)
        results = self.emit(Op.APPLY, [fn] + list(args), result_types, line=line)
        return results[0] if results else None

    def int_(self, value: int, line: Optional[int] = None) -> Operand:
        literal = self.emit(Op.INTEGER_LITERAL, result_types=[INT_LITERAL], value=value)[0]
        return self.call("Int.init(_builtinIntegerLiteral:)", literal, Operand("%Int.Type", METATYPE),
                         result_type=INT, line=line)

    def int_op(self, name: str, lhs: Operand, rhs: Operand, line: Optional[int] = None) -> Operand:
        result_type = BOOL if name in ("Int.==", "Int.>", "Int.>=", "Int.<", "Int.<=") else INT
        return self.call(name, lhs, rhs, Operand("%Int.Type", METATYPE),
                         result_type=result_type, line=line)

    def shape_of(self, tensor: Operand, line: Optional[int] = None) -> Operand:
        return self.call("Tensor.shape.getter", tensor, result_type=SHAPE, line=line)

    def rank_of(self, tensor: Operand, line: Optional[int] = None) -> Operand:
        return self.call("Tensor.rank.getter", tensor, result_type=INT, line=line)

    def dim(self, shape: Operand, offset: Union[int, Operand], line: Optional[int] = None) -> Operand:
        """``shape[offset]``, read through the subscript coroutine."""
        index = offset if isinstance(offset, Operand) else self.int_(offset)
        fn = self.function_ref("TensorShape.subscript.read")
        value, _token = self.emit(Op.BEGIN_APPLY, [fn, index, shape], [INT, NamedType("Builtin.Token")],
                                  line=line)
        self.emit(Op.END_APPLY, [_token])
        return value

    def shapes_equal(self, lhs: Operand, rhs: Operand, line: Optional[int] = None) -> Operand:
        return self.call("TensorShape.==", lhs, rhs, Operand("%TensorShape.Type"),
                         result_type=BOOL, line=line)

    def array_literal(self, *elements: Operand, line: Optional[int] = None) -> Operand:
        """An ``[Int]`` literal, spelled out as the allocation idiom."""
        allocate = self.function_ref("_allocateUninitializedArray")
        count = self.emit(Op.INTEGER_LITERAL, result_types=[WORD], value=len(elements))[0]
        pair_type = TupleType((INT_ARRAY, RAW_POINTER))
        pair = self.emit(Op.APPLY, [allocate, count], [pair_type], line=line)[0]
        array, base = self.emit(Op.DESTRUCTURE_TUPLE, [pair], [INT_ARRAY, RAW_POINTER])
        address = self.emit(Op.POINTER_TO_ADDRESS, [base], [INT])[0]
        self.emit(Op.STORE, [elements[0], address])
        for index, element in enumerate(elements[1:], start=1):
            offset = self.emit(Op.INTEGER_LITERAL, result_types=[WORD], value=index)[0]
            element_address = self.emit(Op.INDEX_ADDR, [address, offset], [INT])[0]
            self.emit(Op.STORE, [element, element_address])
        return array

    def shape_literal(self, *dims: Operand, line: Optional[int] = None) -> Operand:
        array = self.array_literal(*dims, line=line)
        return self.call("TensorShape.init(arrayLiteral:)", array, Operand("%TensorShape.Type"),
                         result_type=SHAPE, line=line)

    def assert_(self, condition: Operand, line: Optional[int] = None) -> None:
        self.call("assert", condition, line=line)

    def assert_closure(self, closure: str, *captured: Operand, line: Optional[int] = None) -> None:
        """``assert(closure(captured...))`` with the condition in its own function."""
        fn = self.function_ref(closure)
        bound = self.emit(Op.PARTIAL_APPLY, [fn] + list(captured), [FunctionType()])[0]
        self.call("assert", bound, line=line)

    def hole(self, line: int) -> Operand:
        address = self.emit(Op.GLOBAL_ADDR, result_types=[INT], name="__")[0]
        return self.emit(Op.LOAD, [address], [INT], line=line)[0]

    # ------------------------------------------------------------------
    # Terminators
    # ------------------------------------------------------------------

    def _terminate(self, terminator, line: Optional[int] = None) -> None:
        self.current.terminator = terminator
        self.current.terminator_location = loc(line) if line is not None else None

    def ret(self, value: Optional[Operand] = None, line: Optional[int] = None) -> None:
        self._terminate(Return(value), line)

    def br(self, label: str, *operands: Operand) -> None:
        self._terminate(Branch(label, tuple(operands)))

    def cond_br(self, condition: Operand, true_label: str, false_label: str) -> None:
        self._terminate(CondBranch(condition, true_label, false_label))

    def switch(self, operand: Operand, *labels: str) -> None:
        self._terminate(SwitchEnum(operand, tuple(SwitchCase(f"case{i}", l)
                                                  for i, l in enumerate(labels))))

    def unreachable(self) -> None:
        self._terminate(Unreachable())

    def build(self) -> Function:
        return Function(self.name, self.blocks, self.result_type)


def module(*functions: Function, structs=None) -> Module:
    return Module(list(functions), structs or {})
