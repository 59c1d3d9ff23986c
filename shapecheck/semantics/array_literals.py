"""
Recognition of compiled array literals.

Array literals compile into a heap allocation followed by one store per
element:

    %f = function_ref _allocateUninitializedArray
    %n = integer_literal 3
    %t = apply %f(%n)
    (%array, %base) = destructure_tuple %t
    %addr0 = pointer_to_address %base
    store %x to %addr0
    %one = integer_literal 1
    %addr1 = index_addr %addr0, %one
    store %y to %addr1
    ...

Rather than modelling the heap in the interpreter, the idiom is annotated
with a synthetic ``builtin`` instruction, placed right after the last
store, whose operands are the array followed by its elements.
"""

import logging
from typing import Dict, List, Optional

from ..frontend.ir import (
    ARRAY_LITERAL_BUILTIN,
    Instruction,
    Op,
    Operand,
    TupleType,
    unwrap_type,
)
from .builtins import ALLOCATE_UNINITIALIZED_ARRAY

logger = logging.getLogger(__name__)


class _Uses:
    """Instructions reading each register, in program order."""

    def __init__(self, instructions: List[Instruction]):
        self._uses: Dict[str, List[Instruction]] = {}
        for instruction in instructions:
            for register in dict.fromkeys(o.value for o in instruction.operands):
                self._uses.setdefault(register, []).append(instruction)

    def __getitem__(self, register: str) -> List[Instruction]:
        return self._uses.get(register, [])

    def only(self, register: str) -> Optional[Instruction]:
        uses = self[register]
        return uses[0] if len(uses) == 1 else None


def _only_result(instruction: Instruction) -> Optional[str]:
    return instruction.results[0] if len(instruction.results) == 1 else None


def _gather_literals(instructions: List[Instruction]) -> Dict[str, object]:
    """Integer literals and references to the allocation function, by register."""
    literals: Dict[str, object] = {}
    for instruction in instructions:
        result = _only_result(instruction)
        if result is None:
            continue
        if instruction.op is Op.INTEGER_LITERAL:
            literals[result] = instruction.attributes.get("value")
        elif (instruction.op is Op.FUNCTION_REF
              and instruction.attributes.get("name") == ALLOCATE_UNINITIALIZED_ARRAY):
            literals[result] = ALLOCATE_UNINITIALIZED_ARRAY
    return literals


def _match_allocation(apply: Instruction, uses: _Uses, literals: Dict[str, object]):
    """
    Match the idiom starting at an allocating ``apply``.

    Returns:
        (id of the last store, marker instruction), or None if the
        instructions do not follow the idiom
    """
    if len(apply.operands) != 2 or literals.get(apply.operands[0].value) != ALLOCATE_UNINITIALIZED_ARRAY:
        return None
    size = literals.get(apply.operands[1].value)
    tuple_result = _only_result(apply)
    if not isinstance(size, int) or size < 1 or tuple_result is None:
        return None

    destructure = uses.only(tuple_result)
    if destructure is None or destructure.op is not Op.DESTRUCTURE_TUPLE or len(destructure.results) != 2:
        return None
    array, base_pointer = destructure.results

    pointer_to_address = uses.only(base_pointer)
    if pointer_to_address is None or pointer_to_address.op is not Op.POINTER_TO_ADDRESS:
        return None
    base_address = _only_result(pointer_to_address)
    if base_address is None:
        return None

    # Elements are filled in order: a store to the base address, then one
    # index_addr per further element.
    address_uses = uses[base_address]
    if len(address_uses) != size:
        return None
    first = address_uses[0]
    if first.op is not Op.STORE or first.operands[-1].value != base_address:
        return None
    elements = [first.operands[0]]
    last_store = first
    for index, index_addr in enumerate(address_uses[1:], start=1):
        if index_addr.op is not Op.INDEX_ADDR or len(index_addr.operands) != 2:
            return None
        if literals.get(index_addr.operands[1].value) != index:
            return None
        address = _only_result(index_addr)
        store = uses.only(address) if address is not None else None
        if store is None or store.op is not Op.STORE:
            return None
        elements.append(store.operands[0])
        last_store = store

    array_type = None
    tuple_type = unwrap_type(destructure.operands[0].type) if destructure.operands else None
    if isinstance(tuple_type, TupleType) and len(tuple_type.elements) == 2:
        array_type = tuple_type.elements[0]

    marker = Instruction(Op.BUILTIN,
                         operands=[Operand(array, array_type)] + elements,
                         attributes={"name": ARRAY_LITERAL_BUILTIN},
                         location=last_store.location)
    return id(last_store), marker


def normalize_array_literals(instructions: List[Instruction]) -> List[Instruction]:
    """
    Insert an array-literal marker after every recognized literal.

    Instructions that do not follow the idiom are returned unchanged.
    """
    literals = _gather_literals(instructions)
    if ALLOCATE_UNINITIALIZED_ARRAY not in literals.values():
        return instructions
    uses = _Uses(instructions)

    markers: Dict[int, Instruction] = {}
    for instruction in instructions:
        if instruction.op is Op.APPLY:
            match = _match_allocation(instruction, uses, literals)
            if match is not None:
                markers[match[0]] = match[1]

    if not markers:
        return instructions
    logger.debug(f"[FRONTEND] Recognized {len(markers)} array literal(s)")
    result = []
    for instruction in instructions:
        result.append(instruction)
        if id(instruction) in markers:
            result.append(markers[id(instruction)])
    return result
