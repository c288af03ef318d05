"""Dependency Graph / Build Order.

Targets form a DAG through their declared deps. The build order is computed
with Kahn's algorithm; any node left unplaced sits on (or behind) a cycle,
which is reported as a configuration error naming those targets.

Design:
    - Nodes are addressed by target name (flat arena, no object references)
    - Ties are broken by declaration order, so the order is stable across runs
    - Only objects with `name` and `deps` attributes are required
"""

from collections import deque
from typing import Any, Deque, Dict, List, Sequence

from ..errors import ConfigurationError


class DependencyGraph:
    """DAG over targets keyed by name.

    Example usage:
        graph = DependencyGraph(config.targets)
        for name in graph.build_order():
            builder.build(graph.get(name))
    """

    def __init__(self, targets: Sequence[Any]):
        """
        Build the graph.

        Args:
            targets: Target descriptors (anything with .name and .deps)

        Raises:
            ConfigurationError: On duplicate names or unknown dependencies
        """
        self._targets: Dict[str, Any] = {}
        self._position: Dict[str, int] = {}
        for index, target in enumerate(targets):
            if target.name in self._targets:
                raise ConfigurationError(f"Duplicate target names found: {target.name}")
            self._targets[target.name] = target
            self._position[target.name] = index

        # Edges point from a dependency to its dependents
        self._dependents: Dict[str, List[str]] = {name: [] for name in self._targets}
        self._requires: Dict[str, List[str]] = {name: [] for name in self._targets}
        for target in targets:
            for dep in target.deps:
                if dep not in self._targets:
                    raise ConfigurationError(
                        f"Target '{target.name}' depends on unknown target '{dep}'"
                    )
                self._add(dep, target.name)

    def _add(self, dependency: str, dependent: str) -> None:
        if dependency in self._requires[dependent]:
            return
        self._requires[dependent].append(dependency)
        self._dependents[dependency].append(dependent)

    def add_edge(self, dependency: str, dependent: str) -> None:
        """Order `dependent` after `dependency` without declaring a dep.

        Used for links that are implied rather than declared, such as
        project targets linking every package library.
        """
        for name in (dependency, dependent):
            if name not in self._targets:
                raise ConfigurationError(f"Unknown target '{name}'")
        self._add(dependency, dependent)

    def __contains__(self, name: str) -> bool:
        return name in self._targets

    def __len__(self) -> int:
        return len(self._targets)

    def get(self, name: str) -> Any:
        return self._targets[name]

    def dependencies_of(self, name: str) -> List[Any]:
        """Direct dependencies of a target, in declaration order."""
        return [self._targets[dep] for dep in dict.fromkeys(self._targets[name].deps)]

    def dependents_of(self, name: str) -> List[Any]:
        return [self._targets[d] for d in self._dependents[name]]

    def build_order(self) -> List[str]:
        """Topological order of all target names.

        Returns:
            Names ordered so every target follows all of its dependencies

        Raises:
            ConfigurationError: If the dependencies contain a cycle
        """
        in_degree = {name: len(requires) for name, requires in self._requires.items()}

        ready: Deque[str] = deque(
            name for name in self._targets if in_degree[name] == 0
        )
        order: List[str] = []

        while ready:
            name = ready.popleft()
            order.append(name)
            released = []
            for dependent in self._dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    released.append(dependent)
            released.sort(key=self._position.__getitem__)
            ready.extend(released)

        if len(order) < len(self._targets):
            placed = set(order)
            unplaced = [name for name in self._targets if name not in placed]
            raise ConfigurationError(
                "Circular dependency detected between targets: " + ", ".join(unplaced)
            )

        return order
