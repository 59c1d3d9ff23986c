"""
Symbolic interpreter turning IR functions into FunctionSummaries.

Every register is mapped to an abstract value. Integer, shape and boolean
registers map to symbolic expressions; tensors map to the variable of their
shape; function registers map to the function they name, so that applying
them can be recognized as a builtin or recorded as a call.

Blocks are interpreted once, in topological order, after loops have been
eliminated. Each block runs under a path condition and every constraint
emitted inside it is assumed under that condition. A block with a single
incoming edge takes the condition of that edge. A join block is named by a
fresh boolean variable defined as the disjunction of its incoming edges, so
conditions stay small however many branches precede the block.
"""

import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from ..cfg.unlooping import preprocess_cfg
from ..config import AnalysisConfig
from ..constraints.constraint import (
    CallConstraint,
    Constraint,
    ExprConstraint,
    Origin,
    equate,
    local_stack,
)
from ..constraints.expressions import (
    FALSE,
    TRUE,
    BoolEq,
    BoolExpr,
    BoolVar,
    Broadcast,
    DimVar,
    Element,
    Expr,
    Hole,
    IntEq,
    IntExpr,
    IntGe,
    IntGt,
    IntLiteral,
    Length,
    ListEq,
    ListExpr,
    ListLiteral,
    Not,
    ShapeVar,
    TupleExpr,
    conjoin,
    disjoin,
)
from ..diagnostics import Diagnostics
from ..errors import AnalysisInvariantError, MalformedConstraintError, UnsupportedConstructError
from ..frontend.ir import (
    ARRAY_LITERAL_BUILTIN,
    HAVOC_BUILTIN,
    PASS_THROUGH_OPS,
    Block,
    Branch,
    CondBranch,
    Function,
    Instruction,
    NamedType,
    Op,
    Operand,
    Return,
    SourceLocation,
    StructField,
    SwitchEnum,
    TupleType,
    Type,
    UnknownTerminator,
    Unreachable,
    unwrap_type,
)
from .array_literals import normalize_array_literals
from .builtins import (
    BOOL_TYPE,
    BUILTIN_OPERATORS,
    HOLE_GLOBAL,
    INT_BINARY_FUNCTIONS,
    INT_TYPE,
    OVERFLOW_OPERATORS,
    SCALAR_WRAPPER_FIELD,
    SHAPE_TYPE,
    TENSOR_TYPE,
    BuiltinFunction,
    lookup_builtin_function,
    split_operator_name,
)
from .summaries import FunctionSummary

logger = logging.getLogger(__name__)

TypeEnvironment = Dict[str, List[StructField]]


# ============================================================================
# Abstract values
# ============================================================================

@dataclass(frozen=True)
class TensorValue:
    shape: ShapeVar


@dataclass(frozen=True)
class TupleValue:
    elements: Tuple[Optional["AbstractValue"], ...]

    def __post_init__(self):
        object.__setattr__(self, "elements", tuple(self.elements))


@dataclass(frozen=True)
class FunctionValue:
    name: str


@dataclass(frozen=True)
class BuiltinValue:
    kind: BuiltinFunction


@dataclass(frozen=True)
class PartialApplication:
    """A closure: ``function`` (a register) with trailing arguments bound."""
    function: str
    args: Tuple[str, ...]
    arg_types: Tuple[Optional[Type], ...]


@dataclass(frozen=True)
class HolePointer:
    """Address of the hole global; loading from it yields a Hole."""


AbstractValue = Union[IntExpr, ListExpr, BoolExpr, TensorValue, TupleValue,
                      FunctionValue, BuiltinValue, PartialApplication, HolePointer]


def expr_of(value: Optional[AbstractValue]) -> Optional[Expr]:
    """The expression a value stands for in constraints, if any."""
    if isinstance(value, (IntExpr, ListExpr, BoolExpr)):
        return value
    if isinstance(value, TensorValue):
        return value.shape
    if isinstance(value, TupleValue):
        return TupleExpr(tuple(expr_of(e) for e in value.elements))
    return None


# ============================================================================
# Interpreter state
# ============================================================================

@dataclass
class InterpreterState:
    """
    Everything the interpretation of one function accumulates.

    Attributes:
        valuation: Abstract value of each register seen so far
        constraints: Emitted constraints, in order
        block_arguments: Expressions of the arguments of each block
        incoming: Conditions of the edges entering each block
        incoming_values: Values bound to the arguments of each block, per edge
            (None for an argument the edge leaves implicit)
        ret_expr: Expression of the function result
    """
    valuation: Dict[str, AbstractValue] = field(default_factory=dict)
    constraints: List[Constraint] = field(default_factory=list)
    block_arguments: Dict[str, List[Optional[Expr]]] = field(default_factory=dict)
    incoming: Dict[str, List[BoolExpr]] = field(default_factory=dict)
    incoming_values: Dict[str, List[List[Optional[AbstractValue]]]] = field(default_factory=dict)
    ret_expr: Optional[Expr] = None
    names: Iterator[int] = field(default_factory=itertools.count)

    def fresh_name(self) -> int:
        return next(self.names)

    def get_or_insert_with(self, register: str,
                           factory: Callable[[], Optional[AbstractValue]]) -> Optional[AbstractValue]:
        """Value of ``register``, allocating (and remembering) one if it has none."""
        if register not in self.valuation:
            value = factory()
            if value is None:
                return None
            self.valuation[register] = value
        return self.valuation[register]


class _Interpreter:

    def __init__(self, type_environment: TypeEnvironment, config: AnalysisConfig,
                 diagnostics: Diagnostics):
        self.type_environment = type_environment
        self.config = config
        self.diagnostics = diagnostics
        self.state = InterpreterState()
        # None while the current join block has not been named yet
        self._path: Optional[BoolExpr] = TRUE
        self._joined: List[BoolExpr] = []

    # ------------------------------------------------------------------
    # Path conditions
    # ------------------------------------------------------------------

    @property
    def path(self) -> BoolExpr:
        """Condition under which the current block executes."""
        if self._path is None:
            joined = disjoin(self._joined)
            if joined == TRUE:
                self._path = TRUE
            else:
                reached = BoolVar(self.state.fresh_name())
                self.emit(BoolEq(reached, joined), Origin.IMPLIED, None, assuming=TRUE)
                self._path = reached
        return self._path

    def enter(self, block: Block, is_entry: bool) -> None:
        incoming = self.state.incoming.get(block.identifier, [])
        if is_entry:
            self._path = TRUE
        elif len(incoming) > 1:
            # Named on first use; a join block that emits nothing needs no variable
            self._path = None
            self._joined = incoming
        else:
            self._path = incoming[0] if incoming else FALSE
        self.carry_arguments(block)

    def carry_arguments(self, block: Block) -> None:
        """
        Give a block argument the value bound to it by every incoming edge.

        Constants, functions and hole pointers have no expression that the
        edge equalities could relate, so they would be lost otherwise.
        """
        bindings = self.state.incoming_values.get(block.identifier, [])
        if not bindings:
            return
        for position, argument in enumerate(block.arguments):
            value = bindings[0][position]
            if value is not None and all(b[position] == value for b in bindings[1:]):
                self.state.valuation[argument.name] = value

    # ------------------------------------------------------------------
    # Fresh values
    # ------------------------------------------------------------------

    def fresh_value(self, ty: Optional[Type]) -> Optional[AbstractValue]:
        ty = unwrap_type(ty)
        if isinstance(ty, TupleType):
            return TupleValue(tuple(self.fresh_value(t) for t in ty.elements))
        if not isinstance(ty, NamedType):
            return None
        if ty.name == INT_TYPE:
            return DimVar(self.state.fresh_name())
        if ty.name == BOOL_TYPE:
            return BoolVar(self.state.fresh_name())
        if ty.name == SHAPE_TYPE:
            return ShapeVar(self.state.fresh_name())
        if ty.name == TENSOR_TYPE and ty.args:
            return self.fresh_tensor()
        fields = self.type_environment.get(ty.name)
        if fields is not None:
            return TupleValue(tuple(self.fresh_value(f.type) for f in fields))
        return None

    def fresh_tensor(self) -> TensorValue:
        return TensorValue(ShapeVar(self.state.fresh_name()))

    def read(self, operand: Operand) -> Optional[AbstractValue]:
        return self.state.get_or_insert_with(operand.value, lambda: self.fresh_value(operand.type))

    def lookup(self, operand: Operand) -> Optional[AbstractValue]:
        return self.state.valuation.get(operand.value)

    # ------------------------------------------------------------------
    # Constraint emission
    # ------------------------------------------------------------------

    def emit(self, expr: BoolExpr, origin: Origin, location: Optional[SourceLocation],
             assuming: Optional[BoolExpr] = None) -> None:
        self.state.constraints.append(ExprConstraint(
            expr, self.path if assuming is None else assuming, origin, local_stack(location)))

    def emit_equalities(self, lhs: Expr, rhs: Expr, location: Optional[SourceLocation],
                        assuming: Optional[BoolExpr] = None) -> None:
        try:
            equalities = equate(lhs, rhs)
        except MalformedConstraintError as e:
            self.diagnostics.warn(f"Discarded a malformed constraint: {e}", location)
            return
        for equality in equalities:
            self.emit(equality, Origin.IMPLIED, location, assuming)

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    def run(self, function: Function, blocks: List[Block]) -> InterpreterState:
        state = self.state
        state.ret_expr = expr_of(self.fresh_value(function.result_type))
        for block in blocks:
            values = [self.fresh_value(a.type) for a in block.arguments]
            state.block_arguments[block.identifier] = [expr_of(v) for v in values]
            for argument, value in zip(block.arguments, values):
                if value is not None:
                    state.valuation[argument.name] = value

        entry = blocks[0].identifier
        for block in blocks:
            self.enter(block, block.identifier == entry)
            instructions = normalize_array_literals(block.instructions)
            self.interpret_instructions(instructions)
            self.interpret_terminator(block)
        return state

    # ------------------------------------------------------------------
    # Instructions
    # ------------------------------------------------------------------

    def interpret_instructions(self, instructions: List[Instruction]) -> None:
        position = 0
        while position < len(instructions):
            instruction = instructions[position]
            position += 1
            if instruction.op is Op.BEGIN_APPLY:
                # Accessor coroutines: only a begin_apply immediately closed by
                # its end_apply is understood. Any other following instruction
                # is still interpreted on its own.
                if position == len(instructions) or instructions[position].op is not Op.END_APPLY:
                    continue
                position += 1
                updates = self.interpret_apply(instruction)
            else:
                updates = self.interpret_instruction(instruction)

            if updates is None:
                continue
            if len(updates) != len(instruction.results):
                raise AnalysisInvariantError(
                    f"Expected {len(instruction.results)} values from '{instruction}', "
                    f"got {len(updates)}")
            for register, value in zip(instruction.results, updates):
                if value is None:
                    self.state.valuation.pop(register, None)
                else:
                    self.state.valuation[register] = value

    def interpret_instruction(self, instruction: Instruction) -> Optional[List[Optional[AbstractValue]]]:
        op = instruction.op
        operands = instruction.operands
        attributes = instruction.attributes

        if op in PASS_THROUGH_OPS:
            # The result must share the operand's value so that constraints on
            # either of them reach both.
            return [self.read(operands[0])]

        if op is Op.INTEGER_LITERAL:
            value = attributes.get("value")
            return [IntLiteral(value)] if isinstance(value, int) else None

        if op is Op.FUNCTION_REF:
            name = attributes["name"]
            kind = lookup_builtin_function(name, self.config.builtin_aliases)
            return [BuiltinValue(kind) if kind is not None else FunctionValue(name)]

        if op is Op.PARTIAL_APPLY:
            bound = operands[1:]
            return [PartialApplication(operands[0].value,
                                       tuple(o.value for o in bound),
                                       tuple(o.type for o in bound))]

        if op is Op.APPLY:
            return self.interpret_apply(instruction)

        if op is Op.BUILTIN:
            return self.interpret_builtin_operator(instruction)

        if op is Op.STRUCT:
            struct_type = unwrap_type(attributes.get("type", instruction.result_type(0)))
            if isinstance(struct_type, NamedType):
                struct_type = struct_type.name
            if struct_type in (INT_TYPE, BOOL_TYPE) and len(operands) == 1:
                return [self.lookup(operands[0])]
            return [TupleValue(tuple(self.lookup(o) for o in operands))]

        if op is Op.STRUCT_EXTRACT:
            return self.interpret_struct_extract(instruction)

        if op is Op.TUPLE:
            return [TupleValue(tuple(self.lookup(o) for o in operands))]

        if op is Op.TUPLE_EXTRACT:
            value = self.lookup(operands[0])
            index = attributes.get("index")
            if not isinstance(value, TupleValue) or not isinstance(index, int):
                return None
            if not 0 <= index < len(value.elements):
                return None
            return [value.elements[index]]

        if op is Op.DESTRUCTURE_TUPLE:
            value = self.lookup(operands[0])
            if not isinstance(value, TupleValue):
                return None
            return list(value.elements)

        if op is Op.GLOBAL_ADDR:
            if attributes.get("name") == HOLE_GLOBAL:
                return [HolePointer()]
            return None

        if op is Op.LOAD:
            if isinstance(self.lookup(operands[0]), HolePointer):
                return [Hole(instruction.location)]
            return None

        return None

    def interpret_struct_extract(self, instruction: Instruction) -> Optional[List[Optional[AbstractValue]]]:
        struct_name = instruction.attributes.get("struct")
        field_name = instruction.attributes.get("field")
        operand = instruction.operands[0]
        if field_name == SCALAR_WRAPPER_FIELD and struct_name in (INT_TYPE, BOOL_TYPE):
            return [self.lookup(operand)]
        fields = self.type_environment.get(struct_name)
        value = self.lookup(operand)
        if fields is None or not isinstance(value, TupleValue):
            return None
        for offset, struct_field in enumerate(fields):
            if struct_field.name == field_name:
                return [value.elements[offset]] if offset < len(value.elements) else None
        return None

    def interpret_builtin_operator(self, instruction: Instruction) -> Optional[List[Optional[AbstractValue]]]:
        name = instruction.attributes.get("name", "")
        operands = instruction.operands

        if name == HAVOC_BUILTIN:
            return [self.fresh_value(instruction.result_type(i)) for i in range(len(instruction.results))]

        if name == ARRAY_LITERAL_BUILTIN:
            self.interpret_array_literal(instruction)
            return None

        operator = split_operator_name(name)
        if operator in BUILTIN_OPERATORS or operator in OVERFLOW_OPERATORS:
            if len(operands) < 2:
                return None
            lhs, rhs = self.lookup(operands[0]), self.lookup(operands[1])
            if not isinstance(lhs, IntExpr) or not isinstance(rhs, IntExpr):
                return None
            if operator in OVERFLOW_OPERATORS:
                return [TupleValue((OVERFLOW_OPERATORS[operator](lhs, rhs), None))]
            return [BUILTIN_OPERATORS[operator](lhs, rhs)]
        return None

    def interpret_array_literal(self, instruction: Instruction) -> None:
        array, *elements = instruction.operands
        dims = []
        try:
            for element in elements:
                value = self.lookup(element)
                if isinstance(value, IntLiteral) and value.value < 0:
                    raise MalformedConstraintError(
                        f"Negative dimension {value.value} in a shape literal")
                dims.append(value if isinstance(value, IntExpr) else None)
        except MalformedConstraintError as e:
            self.diagnostics.warn(f"Discarded a malformed constraint: {e}", instruction.location)
            return
        self.state.valuation[array.value] = ListLiteral(tuple(dims))

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def resolve_function(self, register: str):
        """
        Unwind partial applications of the function held by ``register``.

        Returns:
            (callee value, bound argument operands), or None if the register
            holds no known function
        """
        if register not in self.state.valuation:
            return None
        bound: List[Operand] = []
        value = self.state.valuation[register]
        while isinstance(value, PartialApplication):
            bound.extend(Operand(r, t) for r, t in zip(value.args, value.arg_types))
            value = self.state.valuation.get(value.function)
        if value is None:
            return None
        if not isinstance(value, (FunctionValue, BuiltinValue)):
            raise AnalysisInvariantError(f"Expected a function value in {register}, got {value}")
        return value, bound

    def interpret_apply(self, instruction: Instruction) -> Optional[List[Optional[AbstractValue]]]:
        resolved = self.resolve_function(instruction.operands[0].value)
        if resolved is None:
            return None
        callee, bound = resolved
        args = list(instruction.operands[1:]) + bound

        if isinstance(callee, BuiltinValue):
            return self.interpret_builtin_function(callee.kind, args, instruction)

        if len(instruction.results) > 1:
            raise AnalysisInvariantError(
                f"Call to {callee.name} with {len(instruction.results)} results")
        arg_exprs = tuple(expr_of(self.read(a)) for a in args)
        result = None
        if instruction.results:
            result = expr_of(self.state.get_or_insert_with(
                instruction.results[0], lambda: self.fresh_value(instruction.result_type(0))))
        self.state.constraints.append(CallConstraint(callee.name, arg_exprs, result,
                                                     self.path, local_stack(instruction.location)))
        return None

    def interpret_builtin_function(self, kind: BuiltinFunction, args: List[Operand],
                                   instruction: Instruction) -> Optional[List[Optional[AbstractValue]]]:
        location = instruction.location

        def expect_args(low: int, high: int) -> None:
            if not low <= len(args) <= high:
                raise AnalysisInvariantError(
                    f"Builtin {kind.value} expected {low}-{high} arguments, got {len(args)}")

        if kind in INT_BINARY_FUNCTIONS:
            # Static operators receive the metatype last
            expect_args(2, 3)
            lhs, rhs = self.lookup(args[0]), self.lookup(args[1])
            if not isinstance(lhs, IntExpr) or not isinstance(rhs, IntExpr):
                return None
            return [INT_BINARY_FUNCTIONS[kind](lhs, rhs)]

        if kind in (BuiltinFunction.INT_LITERAL_CONSTRUCTOR, BuiltinFunction.SHAPE_CONSTRUCTOR):
            expect_args(1, 2)
            return [self.lookup(args[0])]

        if kind in (BuiltinFunction.SHAPE_GETTER, BuiltinFunction.RANK_GETTER):
            expect_args(1, 1)
            tensor = self.state.get_or_insert_with(args[0].value, self.fresh_tensor)
            if not isinstance(tensor, TensorValue):
                return None
            if kind is BuiltinFunction.SHAPE_GETTER:
                return [tensor.shape]
            return [Length(tensor.shape)]

        if kind is BuiltinFunction.SHAPE_SUBSCRIPT:
            expect_args(2, 2)
            index, shape = self.lookup(args[0]), self.lookup(args[1])
            # Only constant offsets are understood
            if not isinstance(index, IntLiteral) or not isinstance(shape, ListExpr):
                return None
            offset = index.value
            if offset >= 0:
                self.emit(IntGt(Length(shape), IntLiteral(offset)), Origin.IMPLIED, location)
            else:
                self.emit(IntGe(Length(shape), IntLiteral(-offset)), Origin.IMPLIED, location)
            values: List[Optional[AbstractValue]] = [Element(offset, shape)]
            if len(instruction.results) == 2:
                # Read accessor called as a coroutine: the second result is its token
                values.append(None)
            return values

        if kind is BuiltinFunction.SHAPE_EQUAL:
            expect_args(2, 3)
            lhs, rhs = self.lookup(args[0]), self.lookup(args[1])
            if not isinstance(lhs, ListExpr) or not isinstance(rhs, ListExpr):
                return None
            return [ListEq(lhs, rhs)]

        if kind is BuiltinFunction.BROADCAST:
            expect_args(2, 2)
            lhs, rhs = self.lookup(args[0]), self.lookup(args[1])
            if not isinstance(lhs, ListExpr) or not isinstance(rhs, ListExpr):
                return None
            return [Broadcast(lhs, rhs)]

        if kind is BuiltinFunction.ASSERT:
            if not args:
                raise AnalysisInvariantError("Builtin assert expected a condition")
            self.interpret_assert(args[0], location)
            return None

        raise AnalysisInvariantError(f"Unhandled builtin {kind}")

    def interpret_assert(self, condition: Operand, location: Optional[SourceLocation]) -> None:
        value = self.lookup(condition)
        if isinstance(value, BoolExpr):
            self.emit(value, Origin.ASSERTED, location)
            return
        resolved = None
        if isinstance(value, (FunctionValue, PartialApplication)):
            resolved = self.resolve_function(condition.value)
        if resolved is not None:
            callee, bound = resolved
            if isinstance(callee, FunctionValue):
                result = BoolVar(self.state.fresh_name())
                arg_exprs = tuple(expr_of(self.read(a)) for a in bound)
                self.state.constraints.append(CallConstraint(callee.name, arg_exprs, result,
                                                             self.path, local_stack(location)))
                self.emit(result, Origin.ASSERTED, location)
                return
        self.diagnostics.warn("Failed to find the asserted condition", location)

    # ------------------------------------------------------------------
    # Terminators
    # ------------------------------------------------------------------

    def jump(self, label: str, operands, condition: BoolExpr,
             location: Optional[SourceLocation]) -> None:
        """Record an edge into ``label`` and bind its trailing arguments."""
        self.state.incoming.setdefault(label, []).append(condition)
        arguments = self.state.block_arguments.get(label)
        if arguments is None:
            raise AnalysisInvariantError(f"Jump to unknown block {label}")
        if len(operands) > len(arguments):
            raise AnalysisInvariantError(
                f"Block {label} takes {len(arguments)} arguments, got {len(operands)}")
        # Leading arguments without operands are implicit payloads
        implicit = len(arguments) - len(operands)
        values: List[Optional[AbstractValue]] = [None] * implicit
        for formal, operand in zip(arguments[implicit:], operands):
            value = self.lookup(operand)
            values.append(value)
            actual = expr_of(value)
            if formal is not None and actual is not None:
                self.emit_equalities(formal, actual, location, assuming=condition)
        self.state.incoming_values.setdefault(label, []).append(values)

    def interpret_terminator(self, block: Block) -> None:
        terminator = block.terminator
        location = block.terminator_location

        if isinstance(terminator, Return):
            if terminator.operand is None or self.state.ret_expr is None:
                return
            value = expr_of(self.lookup(terminator.operand))
            if value is not None:
                self.emit_equalities(self.state.ret_expr, value, location)

        elif isinstance(terminator, Branch):
            self.jump(terminator.label, terminator.operands, self.path, location)

        elif isinstance(terminator, CondBranch):
            condition = self.lookup(terminator.condition)
            if not isinstance(condition, BoolExpr):
                condition = BoolVar(self.state.fresh_name())
            self.jump(terminator.true_label, terminator.true_operands,
                      conjoin(self.path, condition), location)
            self.jump(terminator.false_label, terminator.false_operands,
                      conjoin(self.path, Not(condition)), location)

        elif isinstance(terminator, SwitchEnum):
            discriminator = DimVar(self.state.fresh_name())
            cases = terminator.cases
            # The default arm, or else the last case, is taken when no other case is
            fallback = next((i for i, case in enumerate(cases) if case.case is None), len(cases) - 1)
            conditions: Dict[int, BoolExpr] = {
                position: IntEq(discriminator, IntLiteral(position))
                for position in range(len(cases)) if position != fallback}
            for position, case in enumerate(cases):
                if position == fallback:
                    condition = Not(disjoin(list(conditions.values()))) if conditions else TRUE
                else:
                    condition = conditions[position]
                self.jump(case.label, case.operands, conjoin(self.path, condition), location)

        elif isinstance(terminator, Unreachable):
            return

        elif isinstance(terminator, UnknownTerminator):
            self.diagnostics.warn(f"Unsupported terminator: {terminator.text}", location)
            raise UnsupportedConstructError(f"Unsupported terminator: {terminator.text}")

        else:
            raise AnalysisInvariantError(f"Unexpected terminator {terminator!r}")


def abstract(function: Function,
             type_environment: Optional[TypeEnvironment] = None,
             config: Optional[AnalysisConfig] = None,
             diagnostics: Optional[Diagnostics] = None) -> Optional[FunctionSummary]:
    """
    Summarize a function as constraints over its arguments and result.

    Args:
        function: Function to interpret
        type_environment: Stored-property layout of the user structs
        config: Analysis configuration
        diagnostics: Collector of the warnings issued while interpreting

    Returns:
        The summary, or None for declarations and for functions that cannot
        be analyzed (a warning explains why)
    """
    config = config or AnalysisConfig()
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    if not function.blocks:
        return None

    blocks = preprocess_cfg(function.blocks, diagnostics)
    if blocks is None:
        logger.info(f"[FRONTEND] Skipping {function.name}: unsupported control flow")
        return None

    interpreter = _Interpreter(type_environment or {}, config, diagnostics)
    try:
        state = interpreter.run(function, blocks)
    except UnsupportedConstructError as e:
        logger.info(f"[FRONTEND] Skipping {function.name}: {e}")
        return None

    summary = FunctionSummary(arg_exprs=state.block_arguments[blocks[0].identifier],
                              ret_expr=state.ret_expr,
                              constraints=state.constraints)
    logger.debug(f"[FRONTEND] {function.name}: {summary.signature}, "
                 f"{len(summary.constraints)} constraints")
    return summary
