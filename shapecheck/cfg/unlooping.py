"""
Loop elimination ("unlooping") and the passes that make its output valid SSA.

Every natural loop is replaced by an acyclic three-phase approximation:

    header -> body -> bridge -> body' -> final -> exit
       \\                 \\                \\
        exit          unreachable       unreachable

1. The original header and body model one concrete iteration. Their back
   edges now target the bridge.
2. The bridge is a copy of the header whose arguments are havoc'd, i.e. the
   loop-carried state after an unknown number of iterations. Its exits lead
   to an unreachable block; its loop edges enter a copy of the body.
3. The copied body jumps back to the final header, a copy of the header
   whose loop edges lead to an unreachable block. Its exits are kept.

Cloning breaks dominance (an exit block now has several definitions of the
same register flowing in), so the rewritten graph is repaired by threading
every non-local register through block arguments and renaming the registers
defined in the cloned blocks.

Blocks are kept in a BlockArena and addressed by index; rewriting a block
replaces its arena slot.
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..frontend.ir import (
    HAVOC_BUILTIN,
    Argument,
    Block,
    CondBranch,
    Instruction,
    Op,
    Operand,
    Return,
    SwitchEnum,
    Terminator,
    Type,
    UnknownTerminator,
    Unreachable,
)
from ..diagnostics import Diagnostics
from .control_flow import Edge, edges, is_reducible, map_edges, predecessors, topo_sort
from .loop_analysis import Loop, find_loops

logger = logging.getLogger(__name__)


class BlockArena:
    """Blocks addressed by a stable integer index."""

    def __init__(self, blocks: List[Block]):
        self._blocks: List[Block] = list(blocks)
        self._index: Dict[str, int] = {block.identifier: i for i, block in enumerate(blocks)}

    def __len__(self) -> int:
        return len(self._blocks)

    def __getitem__(self, index: int) -> Block:
        return self._blocks[index]

    def index(self, identifier: str) -> int:
        return self._index[identifier]

    def get(self, identifier: str) -> Block:
        return self._blocks[self._index[identifier]]

    def replace(self, index: int, block: Block) -> None:
        del self._index[self._blocks[index].identifier]
        self._blocks[index] = block
        self._index[block.identifier] = index

    def add(self, block: Block) -> int:
        self._blocks.append(block)
        self._index[block.identifier] = len(self._blocks) - 1
        return len(self._blocks) - 1

    def fresh_name(self, base: str, taken: Set[str] = frozenset()) -> str:
        name, counter = base, 1
        while name in self._index or name in taken:
            counter += 1
            name = f"{base}{counter}"
        return name

    @property
    def blocks(self) -> List[Block]:
        return list(self._blocks)


def _retarget(block: Block, route: Callable[[str, Tuple[Operand, ...]], Edge]) -> Block:
    return replace(block,
                   instructions=list(block.instructions),
                   terminator=map_edges(block.terminator, route))


# ============================================================================
# Unlooping
# ============================================================================

def _unloop_one(arena: BlockArena, loop: Loop) -> List[str]:
    """Rewrite one loop in place. Returns the identifiers of the new blocks."""
    header_name = loop.header
    header = arena.get(header_name)
    body = [arena[i].identifier for i in range(len(arena)) if arena[i].identifier in loop.body]

    clones: Dict[str, str] = {}
    for name in body:
        clones[name] = arena.fresh_name(f"{name}.clone", set(clones.values()))
    taken = set(clones.values())
    bridge_name = arena.fresh_name(f"{header_name}.bridge", taken)
    final_name = arena.fresh_name(f"{header_name}.final", taken | {bridge_name})
    unreachable_name = arena.fresh_name(f"{header_name}.unreachable",
                                        taken | {bridge_name, final_name})

    def into_bridge(label, operands):
        # The bridge havocs the header arguments, so back edges pass nothing
        if label == header_name:
            return bridge_name, ()
        return label, operands

    def from_bridge(label, operands):
        if label == header_name:
            return final_name, operands
        if label in clones:
            return clones[label], operands
        return unreachable_name, ()

    def within_clones(label, operands):
        if label == header_name:
            return final_name, operands
        if label in clones:
            return clones[label], operands
        return label, operands

    def from_final(label, operands):
        if label == header_name or label in clones:
            return unreachable_name, ()
        return label, operands

    # Cloned body
    for name in body:
        original = arena.get(name)
        arena.add(replace(_retarget(original, within_clones), identifier=clones[name]))

    # Bridge header
    havoc = [Instruction(Op.BUILTIN,
                         results=[argument.name],
                         result_types=[argument.type],
                         attributes={"name": HAVOC_BUILTIN})
             for argument in header.arguments]
    arena.add(replace(header,
                      identifier=bridge_name,
                      arguments=[],
                      instructions=havoc + list(header.instructions),
                      terminator=map_edges(header.terminator, from_bridge)))

    # Final header
    arena.add(replace(_retarget(header, from_final), identifier=final_name))
    arena.add(Block(unreachable_name, terminator=Unreachable()))

    # Original back edges go to the bridge
    for name in [header_name] + body:
        index = arena.index(name)
        arena.replace(index, _retarget(arena[index], into_bridge))

    created = list(clones.values()) + [bridge_name, final_name, unreachable_name]
    logger.debug(f"[UNLOOP] Loop at {header_name} ({len(body)} body blocks) "
                 f"-> {len(created)} new blocks")
    return created


def unloop(blocks: List[Block]) -> List[Block]:
    """
    Replace every loop of a reducible CFG with its acyclic three-phase
    approximation. Inner loops are rewritten first; the blocks they create
    join the bodies of the loops enclosing them.

    A loop-free CFG is returned unchanged (the same list).
    """
    loops = find_loops(blocks)
    if not loops:
        return blocks

    arena = BlockArena(blocks)
    for position, loop in enumerate(loops):
        created = _unloop_one(arena, loop)
        for outer in loops[position + 1:]:
            if loop.header in outer.body:
                outer.body.update(created)
    return arena.blocks


# ============================================================================
# SSA repair
# ============================================================================

def terminator_reads(terminator: Terminator) -> List[Operand]:
    reads: List[Operand] = []
    if isinstance(terminator, Return) and terminator.operand is not None:
        reads.append(terminator.operand)
    elif isinstance(terminator, CondBranch):
        reads.append(terminator.condition)
    elif isinstance(terminator, SwitchEnum):
        reads.append(terminator.operand)
    for _, operands in edges(terminator) or []:
        reads.extend(operands)
    return reads


def _free_registers(block: Block) -> Dict[str, Optional[Type]]:
    """Registers read by ``block`` but not defined in it, with their types."""
    defined = {argument.name for argument in block.arguments}
    free: Dict[str, Optional[Type]] = {}
    for instruction in block.instructions:
        for operand in instruction.operands:
            if operand.value not in defined:
                free.setdefault(operand.value, operand.type)
        defined.update(instruction.results)
    for operand in terminator_reads(block.terminator):
        if operand.value not in defined:
            free.setdefault(operand.value, operand.type)
    return free


def repair_ssa(blocks: List[Block]) -> List[Block]:
    """
    Pass every register a block reads but does not define as an explicit
    block argument.

    Blocks are visited in reverse topological order, so the new arguments of
    a block become reads of its predecessors before they are visited.
    """
    order = topo_sort(blocks)
    arena = BlockArena(order)
    preds = predecessors(order)
    entry = order[0].identifier

    for block in reversed(order):
        name = block.identifier
        if name == entry:
            continue
        current = arena.get(name)
        free = _free_registers(current)
        if not free:
            continue
        extra = tuple(Operand(register, ty) for register, ty in free.items())
        arena.replace(arena.index(name), replace(
            current,
            arguments=list(current.arguments) + [Argument(o.value, o.type) for o in extra]))

        def pass_extra(label, operands, target=name, extra=extra):
            if label == target:
                return label, tuple(operands) + extra
            return label, operands

        for pred in preds.get(name, []):
            index = arena.index(pred)
            arena.replace(index, _retarget(arena[index], pass_extra))

    return arena.blocks


# ============================================================================
# Renaming
# ============================================================================

def _rename_terminator(terminator: Terminator, rename: Callable[[Operand], Operand]) -> Terminator:
    terminator = map_edges(terminator, lambda label, ops: (label, tuple(rename(o) for o in ops)))
    if isinstance(terminator, Return) and terminator.operand is not None:
        return Return(rename(terminator.operand))
    if isinstance(terminator, CondBranch):
        return replace(terminator, condition=rename(terminator.condition))
    if isinstance(terminator, SwitchEnum):
        return replace(terminator, operand=rename(terminator.operand))
    return terminator


def rename_block_registers(block: Block) -> Block:
    """Give every register defined in ``block`` a name unique to the block."""
    mapping: Dict[str, str] = {}
    for argument in block.arguments:
        mapping[argument.name] = f"{argument.name}@{block.identifier}"
    for instruction in block.instructions:
        for result in instruction.results:
            mapping[result] = f"{result}@{block.identifier}"

    def rename(operand: Operand) -> Operand:
        return replace(operand, value=mapping.get(operand.value, operand.value))

    instructions = [replace(instruction,
                            operands=[rename(o) for o in instruction.operands],
                            results=[mapping[r] for r in instruction.results])
                    for instruction in block.instructions]
    return replace(block,
                   arguments=[replace(a, name=mapping[a.name]) for a in block.arguments],
                   instructions=instructions,
                   terminator=_rename_terminator(block.terminator, rename))


def rename_registers(blocks: List[Block]) -> List[Block]:
    """
    Rename the registers of every non-entry block after unlooping and SSA
    repair, so that clones of a block, and blocks receiving a register as a
    new argument, no longer define the same names.
    """
    return blocks[:1] + [rename_block_registers(b) for b in blocks[1:]]


# ============================================================================
# Pipeline
# ============================================================================

def preprocess_cfg(blocks: List[Block], diagnostics: Diagnostics) -> Optional[List[Block]]:
    """
    Turn a function's blocks into an acyclic, topologically ordered list that
    can be interpreted as straight-line code with path conditions.

    Returns:
        The ordered blocks, or None if the CFG cannot be analyzed (a warning
        is recorded in ``diagnostics``)
    """
    if len(blocks) <= 1:
        return blocks

    reducible = is_reducible(blocks)
    if reducible is None:
        unknown = next(b for b in blocks if isinstance(b.terminator, UnknownTerminator))
        diagnostics.warn(f"Unsupported terminator: {unknown.terminator.text}",
                         unknown.terminator_location)
        return None
    if not reducible:
        diagnostics.warn("Control flow inside this function was too complex to be analyzed",
                         blocks[0].terminator_location)
        return None

    unlooped = unloop(blocks)
    if unlooped is not blocks:
        unlooped = rename_registers(repair_ssa(unlooped))
        logger.debug(f"[UNLOOP] {len(blocks)} blocks -> {len(unlooped)} blocks")
    return topo_sort(unlooped)
