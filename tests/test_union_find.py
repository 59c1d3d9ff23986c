"""
Tests for the union-find used by equality resolution.
"""

import pytest

from shapecheck.constraints.expressions import DimVar, ShapeVar
from shapecheck.constraints.union_find import UnionFind
from shapecheck.errors import AnalysisInvariantError


class TestUnionFind:
    """Merging and querying equivalence classes."""

    def test_singletons(self):
        """Fresh items are their own representatives."""
        uf = UnionFind()
        for item in "abc":
            uf.add(item)
        assert len(uf) == 3
        assert all(uf.find(item) == item for item in "abc")
        assert uf.classes() == [["a"], ["b"], ["c"]]

    def test_union_is_transitive(self):
        """a~b and b~c put a and c in one class."""
        uf = UnionFind()
        for item in "abcd":
            uf.add(item)
        assert uf.union("a", "b")
        assert uf.union("b", "c")
        assert uf.equivalent("a", "c")
        assert not uf.equivalent("a", "d")
        assert uf.classes() == [["a", "b", "c"], ["d"]]

    def test_union_reports_no_change(self):
        """Merging two members of the same class returns False."""
        uf = UnionFind()
        uf.add(1)
        uf.add(2)
        assert uf.union(1, 2)
        assert not uf.union(2, 1)

    def test_double_add_is_an_invariant_error(self):
        """Adding an item twice is rejected."""
        uf = UnionFind()
        uf.add(ShapeVar(0))
        with pytest.raises(AnalysisInvariantError):
            uf.add(ShapeVar(0))

    def test_membership(self):
        uf = UnionFind()
        uf.add(DimVar(3))
        assert DimVar(3) in uf
        assert DimVar(4) not in uf
        # Same number, different sort
        assert ShapeVar(3) not in uf

    def test_long_chain(self):
        """Path halving keeps every member reachable from the root."""
        uf = UnionFind()
        for i in range(100):
            uf.add(i)
        for i in range(99):
            uf.union(i, i + 1)
        root = uf.find(0)
        assert all(uf.find(i) == root for i in range(100))
        assert len(uf.classes()) == 1
