"""
Graph Definition for the Workflow Engine.

A WorkflowGraph is the immutable description of a pipeline: an ordered set of
nodes, each bound to an agent by name and declaring the nodes it depends on.
The dependency lists are authoritative for scheduling; edges are kept only as
an informative adjacency view.
"""

from typing import Any, Dict, List, Optional, Tuple
from collections import deque
from dataclasses import dataclass, field

from researchflow.engine.errors import CyclicGraph, InvalidGraph


@dataclass(frozen=True)
class RetryPolicy:
    """How many times an agent call may be attempted, and the pause between attempts."""
    max_attempts: int = 1
    delay_seconds: float = 0.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "delay_seconds": self.delay_seconds,
        }


@dataclass(frozen=True)
class WorkflowNode:
    """
    A node in the workflow graph.

    Attributes:
        id: Unique identifier within the graph
        name: Human-readable label
        agent: Name of the agent that performs this step
        dependencies: Ids of the nodes that must complete first
        description: Human-readable description
        timeout_seconds: Upper bound for one agent call (None = engine default)
        retry_policy: Retry behaviour for the agent call (None = single attempt)
    """

    id: str
    name: str
    agent: str
    dependencies: Tuple[str, ...] = ()
    description: str = ""
    timeout_seconds: Optional[float] = None
    retry_policy: Optional[RetryPolicy] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("Node id cannot be empty")
        if not self.agent:
            raise ValueError(f"Node '{self.id}' must name an agent")
        # Accept any iterable, keep declaration order, drop duplicates
        deps = tuple(dict.fromkeys(self.dependencies))
        object.__setattr__(self, "dependencies", deps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "agent": self.agent,
            "description": self.description,
            "dependencies": list(self.dependencies),
            "timeout_seconds": self.timeout_seconds,
            "retry_policy": self.retry_policy.to_dict() if self.retry_policy else None,
        }


@dataclass(frozen=True)
class WorkflowEdge:
    """An informative edge between two nodes."""
    source: str
    target: str
    condition: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.source,
            "to": self.target,
            "condition": self.condition,
        }


@dataclass(frozen=True)
class WorkflowGraph:
    """
    An immutable workflow graph.

    If no edges are given they are derived from the node dependencies, one
    edge per ``dependency -> node`` pair.

    Usage:
        graph = WorkflowGraph(
            id="pipeline",
            name="Pipeline",
            entry_node="fetch",
            nodes=(
                WorkflowNode(id="fetch", name="Fetch", agent="fetcher"),
                WorkflowNode(id="parse", name="Parse", agent="parser",
                             dependencies=("fetch",)),
            ),
        )
    """

    id: str
    name: str
    entry_node: str
    nodes: Tuple[WorkflowNode, ...]
    edges: Tuple[WorkflowEdge, ...] = ()
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))
        if self.edges:
            object.__setattr__(self, "edges", tuple(self.edges))
        else:
            derived = tuple(
                WorkflowEdge(source=dep, target=node.id)
                for node in self.nodes
                for dep in node.dependencies
            )
            object.__setattr__(self, "edges", derived)

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def validate(self) -> List[str]:
        """
        Validate the graph structure (everything except acyclicity).

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.nodes:
            errors.append("Graph must have at least one node")
            return errors

        seen = set()
        for node in self.nodes:
            if node.id in seen:
                errors.append(f"Duplicate node id '{node.id}'")
            seen.add(node.id)

        entry = self.get_node(self.entry_node)
        if entry is None:
            errors.append(f"Entry node '{self.entry_node}' not found in nodes")
        elif entry.dependencies:
            errors.append(
                f"Entry node '{self.entry_node}' must not have dependencies, "
                f"got {list(entry.dependencies)}"
            )

        for node in self.nodes:
            for dep in node.dependencies:
                if dep == node.id:
                    errors.append(f"Node '{node.id}' depends on itself")
                elif dep not in seen:
                    errors.append(
                        f"Node '{node.id}' depends on unknown node '{dep}'"
                    )

        for edge in self.edges:
            if edge.source not in seen or edge.target not in seen:
                errors.append(
                    f"Edge {edge.source} -> {edge.target} references an unknown node"
                )

        return errors

    def topological_order(self) -> List[str]:
        """
        Order node ids so that every node follows its dependencies.

        Kahn's algorithm; ties are broken by declaration order.

        Raises:
            CyclicGraph: If the dependency relation has a cycle
        """
        position = {node.id: index for index, node in enumerate(self.nodes)}
        in_degree = {node.id: 0 for node in self.nodes}
        dependants: Dict[str, List[str]] = {node.id: [] for node in self.nodes}

        for node in self.nodes:
            for dep in node.dependencies:
                if dep in dependants:
                    dependants[dep].append(node.id)
                    in_degree[node.id] += 1

        queue = deque(node.id for node in self.nodes if in_degree[node.id] == 0)
        order = []

        while queue:
            node_id = queue.popleft()
            order.append(node_id)
            released = []
            for child in dependants[node_id]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    released.append(child)
            queue.extend(sorted(released, key=position.__getitem__))

        if len(order) != len(self.nodes):
            raise CyclicGraph(n for n, degree in in_degree.items() if degree > 0)

        return order

    def ensure_valid(self) -> None:
        """
        Raise if the graph cannot be scheduled.

        Raises:
            InvalidGraph: On structural errors
            CyclicGraph: If dependencies form a cycle
        """
        errors = self.validate()
        if errors:
            raise InvalidGraph(f"Graph '{self.id}' validation failed: {errors}")
        self.topological_order()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the graph to a dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "entry_node": self.entry_node,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "metadata": self.metadata,
        }

    def to_mermaid(self) -> str:
        """Generate a Mermaid diagram of the graph."""
        lines = ["graph TD"]

        for node in self.nodes:
            label = node.name or node.id.replace("_", " ").title()
            if node.id == self.entry_node:
                lines.append(f'    {node.id}["{label} (entry)"]')
            else:
                lines.append(f'    {node.id}["{label}"]')

        for edge in self.edges:
            if edge.condition:
                lines.append(f"    {edge.source} -->|{edge.condition}| {edge.target}")
            else:
                lines.append(f"    {edge.source} --> {edge.target}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"WorkflowGraph(id='{self.id}', nodes={self.node_ids}, "
            f"entry='{self.entry_node}')"
        )
