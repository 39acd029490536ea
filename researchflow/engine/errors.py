"""
Error kinds raised by the workflow engine.

Node-level errors (agent lookup, agent failure, timeout) are absorbed into the
node's state by the scheduler; their ``kind`` is what ends up in
``NodeState.error_kind``. The remaining errors surface to the caller.
"""

from typing import Iterable


class WorkflowEngineError(Exception):
    """Base class for all engine errors."""

    kind = "WorkflowEngineError"


class GraphNotFound(WorkflowEngineError):
    """Raised when a workflow is started for an unregistered graph id."""

    kind = "GraphNotFound"

    def __init__(self, graph_id: str):
        self.graph_id = graph_id
        super().__init__(f"Workflow graph '{graph_id}' not found")


class WorkflowNotFound(WorkflowEngineError):
    """Raised when a workflow id is unknown to the engine."""

    kind = "WorkflowNotFound"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow '{workflow_id}' not found")


class InvalidGraph(WorkflowEngineError):
    """Raised when a graph definition fails validation."""

    kind = "InvalidGraph"


class CyclicGraph(InvalidGraph):
    """Raised when the dependency relation of a graph contains a cycle."""

    kind = "CyclicGraph"

    def __init__(self, nodes: Iterable[str]):
        self.nodes = sorted(nodes)
        super().__init__(
            f"Graph dependencies contain a cycle involving nodes: {self.nodes}"
        )


class AgentNotFound(WorkflowEngineError):
    kind = "AgentNotFound"

    def __init__(self, agent: str):
        self.agent = agent
        super().__init__(f"Agent '{agent}' not found in registry")


class AgentExecutionFailure(WorkflowEngineError):
    kind = "AgentExecutionFailure"

    def __init__(self, agent: str, message: str):
        self.agent = agent
        self.message = message
        super().__init__(f"Error in agent '{agent}': {message}")


class NodeTimeout(WorkflowEngineError):
    kind = "Timeout"

    def __init__(self, node_id: str, seconds: float):
        self.node_id = node_id
        self.seconds = seconds
        super().__init__(f"Node '{node_id}' timed out after {seconds}s")


class SchedulerFault(WorkflowEngineError):
    """Unexpected failure inside the drive loop itself."""

    kind = "SchedulerFault"
