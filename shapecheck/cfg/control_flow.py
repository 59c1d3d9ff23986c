"""
Control-flow graph queries over IR blocks.

Blocks reference each other by identifier through their terminators. The
first block of a list is the entry block.

Provides:
- successor / predecessor queries and edge rewriting
- the reducibility check (repeated contraction of single-predecessor blocks)
- topological sorting of acyclic graphs (Kahn's algorithm)
"""

import logging
from collections import deque
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..errors import AnalysisInvariantError
from ..frontend.ir import (
    Block,
    Branch,
    CondBranch,
    Operand,
    Return,
    SwitchEnum,
    Terminator,
    UnknownTerminator,
    Unreachable,
)

logger = logging.getLogger(__name__)

Edge = Tuple[str, Tuple[Operand, ...]]


# ============================================================================
# Edges
# ============================================================================

def edges(terminator: Terminator) -> Optional[List[Edge]]:
    """
    Outgoing edges of a terminator as (target, operands) pairs.

    Returns None for terminators whose successors are unknown.
    """
    if isinstance(terminator, (Return, Unreachable)):
        return []
    if isinstance(terminator, Branch):
        return [(terminator.label, terminator.operands)]
    if isinstance(terminator, CondBranch):
        return [(terminator.true_label, terminator.true_operands),
                (terminator.false_label, terminator.false_operands)]
    if isinstance(terminator, SwitchEnum):
        return [(case.label, case.operands) for case in terminator.cases]
    return None


def successors(block: Block) -> Optional[List[str]]:
    """Successor identifiers in terminator order, None if unknown."""
    out = edges(block.terminator)
    if out is None:
        return None
    return [label for label, _ in out]


def map_edges(terminator: Terminator,
              fn: Callable[[str, Tuple[Operand, ...]], Edge]) -> Terminator:
    """Rebuild a terminator with every edge replaced by ``fn(target, operands)``."""
    if isinstance(terminator, Branch):
        label, operands = fn(terminator.label, terminator.operands)
        return Branch(label, tuple(operands))
    if isinstance(terminator, CondBranch):
        true_label, true_operands = fn(terminator.true_label, terminator.true_operands)
        false_label, false_operands = fn(terminator.false_label, terminator.false_operands)
        return replace(terminator,
                       true_label=true_label, true_operands=tuple(true_operands),
                       false_label=false_label, false_operands=tuple(false_operands))
    if isinstance(terminator, SwitchEnum):
        cases = []
        for case in terminator.cases:
            label, operands = fn(case.label, case.operands)
            cases.append(replace(case, label=label, operands=tuple(operands)))
        return replace(terminator, cases=tuple(cases))
    return terminator


def predecessors(blocks: List[Block]) -> Dict[str, List[str]]:
    """Predecessor identifiers of every block (one entry per distinct edge source)."""
    preds: Dict[str, List[str]] = {block.identifier: [] for block in blocks}
    for block in blocks:
        for label in successors(block) or []:
            if block.identifier not in preds.setdefault(label, []):
                preds[label].append(block.identifier)
    return preds


def reachable(blocks: List[Block]) -> Set[str]:
    """Identifiers of the blocks reachable from the entry block."""
    if not blocks:
        return set()
    by_name = {block.identifier: block for block in blocks}
    seen = {blocks[0].identifier}
    worklist = [blocks[0].identifier]
    while worklist:
        block = by_name.get(worklist.pop())
        if block is None:
            continue
        for label in successors(block) or []:
            if label not in seen:
                seen.add(label)
                worklist.append(label)
    return seen


# ============================================================================
# Reducibility
# ============================================================================

def is_reducible(blocks: List[Block]) -> Optional[bool]:
    """
    Check whether the CFG is reducible.

    Algorithm:
    1. Ignore self edges
    2. Merge every non-entry block with exactly one predecessor into that
       predecessor, until nothing changes
    3. The graph is reducible iff a single block remains

    Returns:
        None if some terminator has unknown successors, else the verdict
    """
    live = reachable(blocks)
    succ: Dict[str, Set[str]] = {}
    for block in blocks:
        if block.identifier not in live:
            continue
        targets = successors(block)
        if targets is None:
            return None
        succ[block.identifier] = set(targets) - {block.identifier}
    preds: Dict[str, Set[str]] = {name: set() for name in succ}
    for name, targets in succ.items():
        for target in targets:
            preds.setdefault(target, set()).add(name)

    entry = blocks[0].identifier
    changed = True
    while changed:
        changed = False
        for name in list(succ):
            if name == entry or len(preds[name]) != 1:
                continue
            (parent,) = preds[name]
            for target in succ[name]:
                preds[target].discard(name)
                if target != parent:
                    preds[target].add(parent)
                    succ[parent].add(target)
            succ[parent].discard(name)
            del succ[name]
            del preds[name]
            changed = True

    logger.debug(f"[CFG] Contraction left {len(succ)} of {len(live)} blocks")
    return len(succ) == 1


# ============================================================================
# Topological sort
# ============================================================================

def topo_sort(blocks: List[Block]) -> List[Block]:
    """
    Order the blocks reachable from the entry so that every block comes after
    all of its predecessors. The entry block is always first.

    Raises:
        AnalysisInvariantError: if the reachable graph has a cycle
    """
    if not blocks:
        return []
    by_name = {block.identifier: block for block in blocks}
    live = reachable(blocks)
    in_degree = {name: 0 for name in live if name in by_name}
    for name in in_degree:
        for label in successors(by_name[name]) or []:
            if label in in_degree:
                in_degree[label] += 1

    entry = blocks[0].identifier
    if in_degree[entry] != 0:
        raise AnalysisInvariantError(f"Entry block {entry} has predecessors")

    order: List[Block] = []
    queue = deque([entry])
    while queue:
        name = queue.popleft()
        order.append(by_name[name])
        for label in successors(by_name[name]) or []:
            if label not in in_degree:
                continue
            in_degree[label] -= 1
            if in_degree[label] == 0:
                queue.append(label)

    if len(order) != len(in_degree):
        raise AnalysisInvariantError("Cannot topologically sort a cyclic CFG")
    return order
