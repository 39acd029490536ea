"""
In-Memory Storage for the Workflow Engine.

Holds the registered graphs and the workflow runs. Runs are ephemeral: they
live as long as the engine that owns the store.
"""

from typing import Dict, List, Optional
import asyncio
import logging
import threading

from researchflow.engine.errors import InvalidGraph
from researchflow.engine.graph import WorkflowGraph
from researchflow.engine.state import WorkflowState


logger = logging.getLogger(__name__)


class GraphRegistry:
    """
    Thread-safe registry of workflow graphs.

    Graphs are validated on registration, so everything stored here is known
    to be schedulable (ids resolve, dependencies are acyclic). Registration
    is synchronous so graphs can be registered before an event loop exists.
    """

    def __init__(self):
        self._graphs: Dict[str, WorkflowGraph] = {}
        self._lock = threading.Lock()

    def register(self, graph: WorkflowGraph) -> WorkflowGraph:
        """
        Validate and store a graph.

        Raises:
            InvalidGraph: If the graph is malformed or the id is taken
            CyclicGraph: If the graph's dependencies contain a cycle
        """
        graph.ensure_valid()
        with self._lock:
            if graph.id in self._graphs:
                raise InvalidGraph(f"Graph '{graph.id}' is already registered")
            self._graphs[graph.id] = graph
        logger.info(f"Registered graph: {graph.id} ({graph.name})")
        return graph

    def get(self, graph_id: str) -> Optional[WorkflowGraph]:
        with self._lock:
            return self._graphs.get(graph_id)

    def list_all(self) -> List[WorkflowGraph]:
        with self._lock:
            return list(self._graphs.values())

    def __len__(self) -> int:
        return len(self._graphs)


class RunStore:
    """
    In-memory storage for workflow runs.

    The stored WorkflowState objects are the live ones mutated by the engine;
    the engine is responsible for handing out snapshots.
    """

    def __init__(self):
        self._runs: Dict[str, WorkflowState] = {}
        self._lock = asyncio.Lock()

    async def create(self, state: WorkflowState) -> WorkflowState:
        """Store a new run."""
        async with self._lock:
            if state.id in self._runs:
                raise ValueError(f"Run '{state.id}' already exists")
            self._runs[state.id] = state
            return state

    def get(self, workflow_id: str) -> Optional[WorkflowState]:
        """Get the live state of a run by ID."""
        return self._runs.get(workflow_id)

    def list_all(self) -> List[WorkflowState]:
        return list(self._runs.values())

    def list_by_graph(self, graph_id: str) -> List[WorkflowState]:
        return [r for r in self._runs.values() if r.graph_id == graph_id]

    async def delete(self, workflow_id: str) -> bool:
        async with self._lock:
            if workflow_id in self._runs:
                del self._runs[workflow_id]
                return True
            return False

    def __contains__(self, workflow_id: str) -> bool:
        return workflow_id in self._runs

    def __len__(self) -> int:
        return len(self._runs)
