"""
Unit tests for dependency sorting.
"""

import pytest

from conftest import make_container
from deckhand.utils.sorter import CyclicDependencyError, sort_by_dependencies


def names(containers):
    return [c.name for c in containers]


class TestSortByDependencies:
    """Test topological sorting of containers by their links."""

    def test_independent_containers_keep_order(self):
        """Test that containers without links keep their enumeration order."""
        containers = [make_container(n) for n in ["c", "a", "b"]]
        assert names(sort_by_dependencies(containers)) == ["c", "a", "b"]

    def test_dependency_comes_first(self):
        """Test that a linked container is placed before its dependent."""
        containers = [make_container("web", links=["db"]), make_container("db")]
        assert names(sort_by_dependencies(containers)) == ["db", "web"]

    def test_diamond(self):
        """Test a container linked by two dependents which share a dependent."""
        containers = [
            make_container("app", links=["api", "worker"]),
            make_container("api", links=["db"]),
            make_container("worker", links=["db"]),
            make_container("db"),
        ]
        result = names(sort_by_dependencies(containers))

        assert result == ["db", "api", "worker", "app"]

    def test_out_of_scope_links_are_ignored(self):
        """Test that links to unknown containers are dropped silently."""
        containers = [make_container("web", links=["external"]), make_container("db")]
        assert names(sort_by_dependencies(containers)) == ["web", "db"]

    def test_every_container_is_returned_once(self):
        """Test that shared dependencies are not duplicated."""
        containers = [
            make_container("a", links=["shared"]),
            make_container("b", links=["shared"]),
            make_container("shared"),
        ]
        result = names(sort_by_dependencies(containers))

        assert sorted(result) == ["a", "b", "shared"]
        assert result.index("shared") < result.index("a")
        assert result.index("shared") < result.index("b")

    def test_cycle_raises(self):
        """Test that a cycle of two containers is detected."""
        containers = [make_container("x", links=["y"]), make_container("y", links=["x"])]

        with pytest.raises(CyclicDependencyError) as exc_info:
            sort_by_dependencies(containers)

        assert exc_info.value.names == ["x", "y", "x"]
        assert "Circular reference to container 'x'" in str(exc_info.value)

    def test_self_link_is_a_cycle(self):
        """Test that a container linking to itself is a cycle."""
        with pytest.raises(CyclicDependencyError):
            sort_by_dependencies([make_container("loop", links=["loop"])])

    def test_cycle_error_is_value_error(self):
        """Test that callers catching ValueError also catch cycles."""
        containers = [
            make_container("a", links=["b"]),
            make_container("b", links=["c"]),
            make_container("c", links=["a"]),
        ]
        with pytest.raises(ValueError):
            sort_by_dependencies(containers)

    def test_empty(self):
        assert sort_by_dependencies([]) == []
