"""
Graph API Routes.

Endpoints for registering and describing workflow graphs.
"""

from fastapi import APIRouter, Depends, HTTPException, status
import logging

from researchflow.api.dependencies import get_engine
from researchflow.api.schemas import (
    ErrorResponse,
    GraphCreateRequest,
    GraphInfoResponse,
    GraphListResponse,
)
from researchflow.engine.executor import WorkflowEngine
from researchflow.engine.graph import RetryPolicy, WorkflowGraph, WorkflowNode


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/graphs", tags=["Graphs"])


def _graph_info(graph: WorkflowGraph, with_diagram: bool = True) -> GraphInfoResponse:
    definition = graph.to_dict()
    return GraphInfoResponse(
        id=graph.id,
        name=graph.name,
        description=graph.description,
        entry_node=graph.entry_node,
        node_count=len(graph.nodes),
        nodes=definition["nodes"],
        edges=definition["edges"],
        mermaid_diagram=graph.to_mermaid() if with_diagram else None,
    )


@router.post(
    "/",
    response_model=GraphInfoResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or cyclic graph definition"},
        404: {"model": ErrorResponse, "description": "Agent not found"},
    }
)
async def create_graph(
    request: GraphCreateRequest,
    engine: WorkflowEngine = Depends(get_engine),
) -> GraphInfoResponse:
    """
    Register a new workflow graph.

    Every node must name a registered agent; dependencies must reference
    nodes of the same graph and must not form a cycle.
    """
    for node_def in request.nodes:
        if not engine.agents.has(node_def.agent):
            raise HTTPException(
                status_code=404,
                detail=f"Agent '{node_def.agent}' not found. "
                       f"Available agents: {[a['name'] for a in engine.agents.list_agents()]}"
            )

    try:
        graph = WorkflowGraph(
            id=request.id,
            name=request.name,
            description=request.description,
            entry_node=request.entry_node,
            nodes=tuple(
                WorkflowNode(
                    id=n.id,
                    name=n.name or n.id,
                    agent=n.agent,
                    description=n.description,
                    dependencies=tuple(n.dependencies),
                    timeout_seconds=n.timeout_seconds,
                    retry_policy=(
                        RetryPolicy(**n.retry_policy.model_dump()) if n.retry_policy else None
                    ),
                )
                for n in request.nodes
            ),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    # InvalidGraph / CyclicGraph are turned into 400s by the app's handler
    engine.register_graph(graph)
    logger.info(f"Created graph: {graph.id} ({graph.name})")

    return _graph_info(graph)


@router.get(
    "/",
    response_model=GraphListResponse,
)
async def list_graphs(engine: WorkflowEngine = Depends(get_engine)) -> GraphListResponse:
    """List all registered graphs."""
    graphs = [_graph_info(g, with_diagram=False) for g in engine.list_graphs()]
    return GraphListResponse(graphs=graphs, total=len(graphs))


@router.get(
    "/{graph_id}",
    response_model=GraphInfoResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_graph(
    graph_id: str,
    engine: WorkflowEngine = Depends(get_engine),
) -> GraphInfoResponse:
    """Get a graph definition together with its Mermaid diagram."""
    graph = engine.get_graph(graph_id)
    if graph is None:
        raise HTTPException(status_code=404, detail=f"Graph '{graph_id}' not found")
    return _graph_info(graph)
