"""
Control-flow preprocessing: reducibility, loops, unlooping, SSA repair,
topological ordering.
"""

from .control_flow import (
    edges,
    successors,
    predecessors,
    reachable,
    map_edges,
    is_reducible,
    topo_sort,
)
from .loop_analysis import (
    Loop,
    back_edges,
    find_loops,
)
from .unlooping import (
    BlockArena,
    unloop,
    repair_ssa,
    rename_registers,
    preprocess_cfg,
)

__all__ = [
    # Graph queries
    'edges',
    'successors',
    'predecessors',
    'reachable',
    'map_edges',
    'is_reducible',
    'topo_sort',
    # Loops
    'Loop',
    'back_edges',
    'find_loops',
    # Unlooping
    'BlockArena',
    'unloop',
    'repair_ssa',
    'rename_registers',
    'preprocess_cfg',
]
