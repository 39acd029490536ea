"""
Engine package - Graph model, run state, agent registry and errors.

The scheduler itself lives in ``researchflow.engine.executor`` (it depends on
the storage package, which in turn depends on the modules exported here).
"""

from researchflow.engine.errors import (
    WorkflowEngineError,
    GraphNotFound,
    WorkflowNotFound,
    InvalidGraph,
    CyclicGraph,
    AgentNotFound,
    AgentExecutionFailure,
    NodeTimeout,
    SchedulerFault,
)
from researchflow.engine.graph import WorkflowGraph, WorkflowNode, WorkflowEdge, RetryPolicy
from researchflow.engine.state import WorkflowState, WorkflowStatus, NodeState, NodeStatus
from researchflow.engine.agents import AgentContext, AgentRegistry, agent_registry

__all__ = [
    "WorkflowEngineError",
    "GraphNotFound",
    "WorkflowNotFound",
    "InvalidGraph",
    "CyclicGraph",
    "AgentNotFound",
    "AgentExecutionFailure",
    "NodeTimeout",
    "SchedulerFault",
    "WorkflowGraph",
    "WorkflowNode",
    "WorkflowEdge",
    "RetryPolicy",
    "WorkflowState",
    "WorkflowStatus",
    "NodeState",
    "NodeStatus",
    "AgentContext",
    "AgentRegistry",
    "agent_registry",
]
