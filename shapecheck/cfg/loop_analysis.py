"""
Natural loop discovery.

A depth-first traversal from the entry block classifies every edge that
targets a block still on the traversal stack as a back edge. The loop of a
back edge ``source -> header`` is made of the blocks that reach ``source``
without passing through ``header``.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from ..frontend.ir import Block
from .control_flow import predecessors, reachable, successors


@dataclass
class Loop:
    """
    A natural loop.

    Attributes:
        header: Identifier of the block targeted by the back edges
        body: Identifiers of the other blocks of the loop (never the header)
    """
    header: str
    body: Set[str] = field(default_factory=set)

    @property
    def blocks(self) -> Set[str]:
        return self.body | {self.header}


def back_edges(blocks: List[Block]) -> List[Tuple[str, str]]:
    """(source, header) pairs found by a DFS from the entry block."""
    if not blocks:
        return []
    by_name = {block.identifier: block for block in blocks}
    entry = blocks[0].identifier
    found = []
    active = {entry}
    visited = {entry}
    stack = [(entry, iter(successors(by_name[entry]) or []))]
    while stack:
        name, pending = stack[-1]
        target = next(pending, None)
        if target is None:
            stack.pop()
            active.discard(name)
            continue
        if target in active:
            found.append((name, target))
        elif target not in visited and target in by_name:
            visited.add(target)
            active.add(target)
            stack.append((target, iter(successors(by_name[target]) or [])))
    return found


def find_loops(blocks: List[Block]) -> List[Loop]:
    """
    Find the natural loops of a CFG.

    Loops sharing a header are merged. The result is sorted by body size,
    then header identifier, so inner loops come before the loops containing
    them.
    """
    live = reachable(blocks)
    preds = predecessors([b for b in blocks if b.identifier in live])
    loops: Dict[str, Loop] = {}
    for source, header in back_edges(blocks):
        loop = loops.setdefault(header, Loop(header))
        worklist = [source]
        while worklist:
            name = worklist.pop()
            if name == header or name in loop.body:
                continue
            loop.body.add(name)
            worklist.extend(preds.get(name, []))
    return sorted(loops.values(), key=lambda loop: (len(loop.body), loop.header))
