"""
Union-Find over hashable items (union by size, path halving).
"""

from typing import Dict, Generic, Hashable, List, TypeVar

from ..errors import AnalysisInvariantError

T = TypeVar("T", bound=Hashable)


class UnionFind(Generic[T]):
    """
    Disjoint sets of items.

    Items must be added before they are merged; adding an item twice is an
    analyzer defect and raises AnalysisInvariantError.
    """

    def __init__(self):
        self._parent: Dict[T, T] = {}
        self._size: Dict[T, int] = {}

    def __contains__(self, item: T) -> bool:
        return item in self._parent

    def __len__(self) -> int:
        return len(self._parent)

    def add(self, item: T) -> None:
        if item in self._parent:
            raise AnalysisInvariantError(f"{item} inserted into union-find twice")
        self._parent[item] = item
        self._size[item] = 1

    def find(self, item: T) -> T:
        x = item
        while self._parent[x] != x:
            self._parent[x] = self._parent[self._parent[x]]
            x = self._parent[x]
        return x

    def union(self, a: T, b: T) -> bool:
        """Merge the sets of ``a`` and ``b``. Returns False if already merged."""
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self._size[ra] < self._size[rb]:
            ra, rb = rb, ra
        self._parent[rb] = ra
        self._size[ra] += self._size[rb]
        return True

    def equivalent(self, a: T, b: T) -> bool:
        return self.find(a) == self.find(b)

    def classes(self) -> List[List[T]]:
        """Equivalence classes, each in insertion order, ordered by first member."""
        grouped: Dict[T, List[T]] = {}
        for item in self._parent:
            grouped.setdefault(self.find(item), []).append(item)
        return list(grouped.values())
