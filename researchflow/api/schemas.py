"""
Pydantic Schemas for API Request/Response Models.

Workflow payloads are serialized with camelCase keys (``workflowId``,
``nodeStates``...), matching what polling clients of the research canvas
expect.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from researchflow.engine.state import WorkflowState, WorkflowStatus
from researchflow.workflows.research_canvas import RESEARCH_CANVAS_ID


class _CamelSchema(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ============================================================
# Workflow Schemas
# ============================================================

class WorkflowStartRequest(_CamelSchema):
    """Request to start a workflow run."""
    graph_id: str = Field(RESEARCH_CANVAS_ID, description="ID of the graph to run")
    input: Dict[str, Any] = Field(
        default_factory=dict,
        description="Initial payload; handed to the entry node and seeded into the global state"
    )
    wait: bool = Field(
        False,
        description="If true, block until the run completes, errors or pauses"
    )

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "graphId": "research_canvas",
                "input": {
                    "query": "impact of remote work on urban housing",
                    "currentTopic": "remote work"
                },
                "wait": False
            }
        }


class WorkflowStartResponse(_CamelSchema):
    """Response after starting a workflow."""
    success: bool = True
    workflow_id: str
    graph_id: str
    status: WorkflowStatus
    message: str = "Workflow started successfully"
    workflow: Optional[WorkflowState] = Field(
        None, description="Full state, only present when the request waited"
    )


class WorkflowControlResponse(_CamelSchema):
    """Response to a pause/resume request."""
    success: bool
    workflow_id: str
    status: WorkflowStatus
    message: str


class WorkflowListResponse(BaseModel):
    """Response listing workflow runs."""
    workflows: List[WorkflowState]
    total: int


# ============================================================
# Graph Schemas
# ============================================================

class RetryPolicyDefinition(_CamelSchema):
    max_attempts: int = Field(1, ge=1, description="Total attempts including the first")
    delay_seconds: float = Field(0.0, ge=0, description="Pause between attempts")


class NodeDefinition(_CamelSchema):
    """Definition of a node in the graph."""
    id: str = Field(..., description="Unique node id")
    name: Optional[str] = Field(None, description="Human-readable label (defaults to id)")
    agent: str = Field(..., description="Name of the agent (must be registered)")
    description: str = ""
    dependencies: List[str] = Field(default_factory=list, description="Ids of nodes that must complete first")
    timeout_seconds: Optional[float] = Field(None, gt=0)
    retry_policy: Optional[RetryPolicyDefinition] = None


class GraphCreateRequest(_CamelSchema):
    """Request to register a new workflow graph."""
    id: str = Field(..., description="Unique graph id")
    name: str = Field(..., description="Name of the workflow")
    description: str = ""
    entry_node: str = Field(..., description="Node that receives the caller's input")
    nodes: List[NodeDefinition] = Field(..., description="Nodes in declaration order")

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "quick_research",
                "name": "Quick Research",
                "entryNode": "analyze",
                "nodes": [
                    {"id": "analyze", "agent": "query_analyzer"},
                    {"id": "search", "agent": "web_searcher", "dependencies": ["analyze"],
                     "timeoutSeconds": 30, "retryPolicy": {"maxAttempts": 2, "delaySeconds": 1}},
                ],
            }
        }


class GraphInfoResponse(_CamelSchema):
    """Response with graph information."""
    id: str
    name: str
    description: Optional[str]
    entry_node: str
    node_count: int
    nodes: List[Dict[str, Any]]
    edges: List[Dict[str, Any]]
    mermaid_diagram: Optional[str] = Field(None, description="Mermaid diagram of the graph")


class GraphListResponse(BaseModel):
    """Response listing all graphs."""
    graphs: List[GraphInfoResponse]
    total: int


# ============================================================
# Agent Schemas
# ============================================================

class AgentInfo(_CamelSchema):
    """Information about a registered agent."""
    name: str
    description: str
    is_async: bool


class AgentListResponse(BaseModel):
    """Response listing all registered agents."""
    agents: List[AgentInfo]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
