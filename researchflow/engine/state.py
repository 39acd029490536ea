"""
Runtime State for the Workflow Engine.

One WorkflowState exists per run and one NodeState per node of that run.
Both are owned by the engine; callers only ever see copied snapshots.
Serialized field names are camelCase (``currentNode``, ``globalState``...)
so the JSON seen by polling clients keeps the research canvas field names.
"""

from typing import Any, Dict, List, Optional
from copy import Error as CopyError, deepcopy
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from researchflow.engine.graph import WorkflowGraph


def copy_value(value: Any) -> Any:
    """
    Deep copy a result value.

    Containers are copied element by element when the whole value cannot be
    deep-copied; leaves that refuse copying (locks, sockets, clients) are
    shared by reference.
    """
    try:
        return deepcopy(value)
    except (TypeError, CopyError):
        if isinstance(value, dict):
            return {key: copy_value(item) for key, item in value.items()}
        if isinstance(value, list):
            return [copy_value(item) for item in value]
        if isinstance(value, tuple):
            return tuple(copy_value(item) for item in value)
        return value


class WorkflowStatus(str, Enum):
    """Status of a workflow run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    PAUSED = "paused"


class NodeStatus(str, Enum):
    """Status of a single node within a run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    WAITING_FOR_INPUT = "waiting_for_input"  # reserved for interventions


class _CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class InterventionOption(_CamelModel):
    label: str
    value: str


class InterventionPoint(_CamelModel):
    """A request for human input at a node. Carried, not yet produced."""
    node_id: str
    message: str
    options: List[InterventionOption] = Field(default_factory=list)
    required: bool = False
    timestamp: datetime = Field(default_factory=datetime.now)


class NodeState(_CamelModel):
    """
    Mutable runtime record of one node's execution within one run.

    ``dependencies`` is copied from the graph so the scheduler never has to
    consult the graph while computing the ready set.
    """

    id: str
    name: str
    agent: str
    status: NodeStatus = NodeStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    input: Optional[Dict[str, Any]] = None
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    attempts: int = 0
    dependencies: List[str] = Field(default_factory=list)

    def mark_running(self) -> None:
        self.status = NodeStatus.RUNNING
        self.start_time = datetime.now()
        self.progress = 0

    def mark_completed(self, output: Dict[str, Any]) -> None:
        self.status = NodeStatus.COMPLETED
        self.end_time = datetime.now()
        self.progress = 100
        self.output = output

    def mark_failed(self, error: str, kind: Optional[str] = None) -> None:
        self.status = NodeStatus.ERROR
        self.end_time = datetime.now()
        self.error = error
        self.error_kind = kind


class WorkflowState(_CamelModel):
    """
    Mutable runtime record of one workflow run.

    Attributes:
        id: Run identifier (UUID)
        graph_id: Graph this run executes
        status: Overall run status
        current_node: Node most recently dispatched
        completed_nodes: Node ids in completion order (append-only)
        node_states: Node id -> NodeState, one per graph node
        global_state: Union of every completed node's result (later keys win)
        error: Run-level failure message, if the run ended in error
    """

    id: str
    graph_id: str
    status: WorkflowStatus = WorkflowStatus.PENDING
    current_node: Optional[str] = None
    completed_nodes: List[str] = Field(default_factory=list)
    node_states: Dict[str, NodeState] = Field(default_factory=dict)
    global_state: Dict[str, Any] = Field(default_factory=dict)
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    intervention_points: List[InterventionPoint] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def create(
        cls,
        workflow_id: str,
        graph: WorkflowGraph,
        initial_input: Dict[str, Any],
    ) -> "WorkflowState":
        """Build a running state with every node pending; the entry node carries the input."""
        node_states = {
            node.id: NodeState(
                id=node.id,
                name=node.name,
                agent=node.agent,
                dependencies=list(node.dependencies),
                input=copy_value(initial_input) if node.id == graph.entry_node else None,
            )
            for node in graph.nodes
        }
        return cls(
            id=workflow_id,
            graph_id=graph.id,
            status=WorkflowStatus.RUNNING,
            current_node=graph.entry_node,
            node_states=node_states,
            global_state=copy_value(initial_input),
            start_time=datetime.now(),
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (WorkflowStatus.COMPLETED, WorkflowStatus.ERROR)

    def ready_nodes(self) -> List[str]:
        """Pending nodes whose dependencies have all completed, in declaration order."""
        ready = []
        for node_id, node_state in self.node_states.items():
            if node_state.status != NodeStatus.PENDING:
                continue
            if all(
                dep in self.node_states
                and self.node_states[dep].status == NodeStatus.COMPLETED
                for dep in node_state.dependencies
            ):
                ready.append(node_id)
        return ready

    def all_completed(self) -> bool:
        return all(
            n.status == NodeStatus.COMPLETED for n in self.node_states.values()
        )

    def merge_result(self, node_id: str, result: Dict[str, Any]) -> None:
        """Publish a node's result into the global state and record its completion."""
        self.global_state.update(result)
        self.completed_nodes.append(node_id)

    def finish(self, status: WorkflowStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.end_time = datetime.now()
        if error is not None:
            self.error = error

    def snapshot(self) -> "WorkflowState":
        """
        Copy for handing to callers and subscribers.

        Result bags may hold values that cannot be deep-copied, so node
        inputs and outputs and the global state go through copy_value.
        """
        node_states = {
            node_id: node_state.model_copy(update={
                "input": copy_value(node_state.input),
                "output": copy_value(node_state.output),
                "dependencies": list(node_state.dependencies),
            })
            for node_id, node_state in self.node_states.items()
        }
        return self.model_copy(update={
            "completed_nodes": list(self.completed_nodes),
            "node_states": node_states,
            "global_state": copy_value(self.global_state),
            "intervention_points": [p.model_copy(deep=True) for p in self.intervention_points],
        })

    def reset_node(self, node_id: str) -> None:
        """Return a dispatched node to pending, discarding its attempt."""
        node_state = self.node_states[node_id]
        node_state.status = NodeStatus.PENDING
        node_state.start_time = None
        node_state.end_time = None
        node_state.progress = 0

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dictionary with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
