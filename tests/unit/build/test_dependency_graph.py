"""Tests for target dependency ordering."""

import pytest

from cbuild.build.dependency_graph import DependencyGraph
from cbuild.config.target_config import TargetConfig, TargetKind
from cbuild.errors import ConfigurationError


def target(name, deps=(), kind=TargetKind.STATIC):
    return TargetConfig(name=name, kind=kind, src=None, deps=list(deps))


class TestDependencyGraph:
    """Test graph construction and build order."""

    def test_dependencies_come_first(self):
        """Test every target follows all of its dependencies."""
        graph = DependencyGraph([
            target("app", ["libnet", "libfoo"], TargetKind.EXE),
            target("libnet", ["libfoo"]),
            target("libfoo"),
        ])

        assert graph.build_order() == ["libfoo", "libnet", "app"]

    def test_ties_follow_declaration_order(self):
        """Test independent targets keep their declaration order."""
        graph = DependencyGraph([
            target("libc1"),
            target("liba"),
            target("libb"),
        ])

        assert graph.build_order() == ["libc1", "liba", "libb"]

    def test_order_is_stable(self):
        """Test repeated calls give the same order."""
        targets = [
            target("app", ["libb", "liba"], TargetKind.EXE),
            target("libb", ["libbase"]),
            target("liba", ["libbase"]),
            target("libbase"),
        ]
        first = DependencyGraph(targets).build_order()
        for _ in range(5):
            assert DependencyGraph(targets).build_order() == first
        assert first == ["libbase", "libb", "liba", "app"]

    def test_two_node_cycle_names_both(self):
        """Test A -> B -> A is rejected and both targets are named."""
        graph = DependencyGraph([
            target("liba", ["libb"]),
            target("libb", ["liba"]),
        ])

        with pytest.raises(ConfigurationError, match="Circular dependency") as exc_info:
            graph.build_order()

        assert "liba" in str(exc_info.value)
        assert "libb" in str(exc_info.value)

    def test_cycle_does_not_hide_acyclic_part(self):
        """Test targets outside the cycle are not reported."""
        graph = DependencyGraph([
            target("libok"),
            target("liba", ["libb", "libok"]),
            target("libb", ["liba"]),
        ])

        with pytest.raises(ConfigurationError) as exc_info:
            graph.build_order()

        assert "libok" not in str(exc_info.value)

    def test_self_dependency_is_cycle(self):
        """Test a target depending on itself is a cycle."""
        graph = DependencyGraph([target("liba", ["liba"])])

        with pytest.raises(ConfigurationError, match="liba"):
            graph.build_order()

    def test_unknown_dependency(self):
        """Test a dependency that names no target is rejected."""
        with pytest.raises(ConfigurationError, match="libmissing"):
            DependencyGraph([target("app", ["libmissing"], TargetKind.EXE)])

    def test_duplicate_names(self):
        """Test two targets with the same name are rejected."""
        with pytest.raises(ConfigurationError, match="Duplicate"):
            DependencyGraph([target("libfoo"), target("libfoo")])

    def test_repeated_dependency(self):
        """Test a dependency listed twice counts once."""
        graph = DependencyGraph([
            target("libfoo"),
            target("app", ["libfoo", "libfoo"], TargetKind.EXE),
        ])

        assert graph.build_order() == ["libfoo", "app"]
        assert [d.name for d in graph.dependencies_of("app")] == ["libfoo"]

    def test_dependencies_and_dependents(self):
        """Test direct edges are exposed in declaration order."""
        graph = DependencyGraph([
            target("libfoo"),
            target("libbar"),
            target("app", ["libbar", "libfoo"], TargetKind.EXE),
        ])

        assert [d.name for d in graph.dependencies_of("app")] == ["libbar", "libfoo"]
        assert [d.name for d in graph.dependents_of("libfoo")] == ["app"]
        assert "app" in graph
        assert len(graph) == 3

    def test_implicit_edge_orders_without_declaring(self):
        """Test an added edge delays the dependent behind the whole chain it names."""
        graph = DependencyGraph([
            target("libpa", ["libpb"]),
            target("libpb"),
            target("app", kind=TargetKind.EXE),
        ])
        graph.add_edge("libpa", "app")
        graph.add_edge("libpb", "app")

        assert graph.build_order() == ["libpb", "libpa", "app"]
        assert graph.dependencies_of("app") == []
        assert [d.name for d in graph.dependents_of("libpb")] == ["libpa", "app"]

    def test_implicit_edge_matching_declared_dep(self):
        """Test an edge that is already declared is not counted twice."""
        graph = DependencyGraph([
            target("libfoo"),
            target("app", ["libfoo"], TargetKind.EXE),
        ])
        graph.add_edge("libfoo", "app")

        assert graph.build_order() == ["libfoo", "app"]
        assert [d.name for d in graph.dependents_of("libfoo")] == ["app"]

    def test_implicit_edge_unknown_target(self):
        graph = DependencyGraph([target("app", kind=TargetKind.EXE)])

        with pytest.raises(ConfigurationError, match="libghost"):
            graph.add_edge("libghost", "app")
