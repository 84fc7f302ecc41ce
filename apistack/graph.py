"""
Declaration graph for the stack.

Each node is a declaration: a callable that receives the results of the
nodes it depends on and returns whatever it declared. `evaluate` calls the
nodes in topological order, so a declaration only ever sees inputs that
have already been declared.
"""

from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from apistack.errors import GraphError
from apistack.logging_config import get_logger

logger = get_logger(__name__)

Declaration = Callable[[dict[str, Any]], Any]


@dataclass
class DeclarationNode:
    """A node in the declaration graph."""

    name: str
    declare: Declaration
    dependencies: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)


class DeclarationGraph:
    """
    Directed acyclic graph of resource declarations.

    Provides:
    1. Dependency tracking
    2. Topological sorting
    3. Cycle detection
    4. Evaluation in dependency order
    """

    def __init__(self):
        self.nodes: dict[str, DeclarationNode] = {}
        self._adjacency_list: dict[str, list[str]] = defaultdict(list)

    def add(self, name: str, declare: Declaration, depends_on: list[str] | None = None) -> None:
        """
        Add a declaration.

        Args:
            name: Unique node name
            declare: Callable receiving {dependency name: result}
            depends_on: Names of nodes that must be declared first

        Raises:
            GraphError: If the name is taken or a dependency is unknown
        """
        if name in self.nodes:
            raise GraphError(f"Declaration '{name}' already exists")

        for dependency in depends_on or []:
            if dependency not in self.nodes:
                raise GraphError(f"Declaration '{name}' depends on unknown '{dependency}'")

        self.nodes[name] = DeclarationNode(name=name, declare=declare)
        for dependency in depends_on or []:
            self.add_edge(dependency, name)

    def add_edge(self, from_node: str, to_node: str) -> None:
        """
        Add a directed edge from one node to another.

        Args:
            from_node: The node that 'to_node' depends on
            to_node: The dependent node
        """
        if from_node not in self.nodes or to_node not in self.nodes:
            raise GraphError("Both nodes must exist in the graph before adding an edge")

        self._adjacency_list[from_node].append(to_node)
        self.nodes[to_node].dependencies.append(from_node)
        self.nodes[from_node].dependents.append(to_node)

    def dependencies(self, name: str) -> list[str]:
        return self.nodes[name].dependencies if name in self.nodes else []

    def dependents(self, name: str) -> list[str]:
        return self.nodes[name].dependents if name in self.nodes else []

    def topological_sort(self) -> list[str]:
        """
        Return the nodes in an order where every node follows its dependencies.

        Ties keep insertion order, so the same graph always sorts the same way.

        Raises:
            GraphError: If the graph contains cycles
        """
        in_degree = {node: 0 for node in self.nodes}
        for node in self.nodes:
            for dependent in self._adjacency_list[node]:
                in_degree[dependent] += 1

        queue = deque([node for node, degree in in_degree.items() if degree == 0])
        result = []

        while queue:
            node = queue.popleft()
            result.append(node)

            for dependent in self._adjacency_list[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(self.nodes):
            raise GraphError("Declaration graph contains cycles")

        return result

    def detect_cycles(self) -> list[str] | None:
        """
        Detect a cycle in the graph.

        Returns:
            The cycle path if one exists, None otherwise
        """
        visited = set()
        rec_stack = set()
        path = []

        def dfs(node: str) -> list[str] | None:
            visited.add(node)
            rec_stack.add(node)
            path.append(node)

            for neighbor in self._adjacency_list[node]:
                if neighbor not in visited:
                    cycle = dfs(neighbor)
                    if cycle:
                        return cycle
                elif neighbor in rec_stack:
                    cycle_start = path.index(neighbor)
                    return path[cycle_start:] + [neighbor]

            path.pop()
            rec_stack.remove(node)
            return None

        for node in self.nodes:
            if node not in visited:
                cycle = dfs(node)
                if cycle:
                    return cycle

        return None

    def levels(self) -> list[list[str]]:
        """
        Group nodes into levels with no dependencies inside a level.

        The engine is free to create everything in one level concurrently.
        """
        levels: list[list[str]] = []
        depth: dict[str, int] = {}

        for node in self.topological_sort():
            level = max((depth[d] + 1 for d in self.dependencies(node)), default=0)
            depth[node] = level
            while len(levels) <= level:
                levels.append([])
            levels[level].append(node)

        return levels

    def evaluate(self) -> dict[str, Any]:
        """
        Call every declaration once, in dependency order.

        Returns:
            Dictionary mapping node names to declaration results
        """
        results: dict[str, Any] = {}
        for name in self.topological_sort():
            node = self.nodes[name]
            logger.debug("Declaring %s", name)
            results[name] = node.declare({d: results[d] for d in node.dependencies})
        return results

    def __repr__(self) -> str:
        edges = sum(len(deps) for deps in self._adjacency_list.values())
        return f"DeclarationGraph(nodes={len(self.nodes)}, edges={edges})"
