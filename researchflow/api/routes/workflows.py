"""
Workflow API Routes.

Endpoints for starting workflow runs, polling their state, pausing or
resuming them, and deleting them.
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
import logging

from researchflow.api.dependencies import get_engine, require_workflow
from researchflow.api.schemas import (
    ErrorResponse,
    WorkflowControlResponse,
    WorkflowListResponse,
    WorkflowStartRequest,
    WorkflowStartResponse,
)
from researchflow.engine.errors import GraphNotFound
from researchflow.engine.executor import WorkflowEngine
from researchflow.engine.state import WorkflowState


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


@router.post(
    "/start",
    response_model=WorkflowStartResponse,
    responses={404: {"model": ErrorResponse, "description": "Graph not found"}},
)
async def start_workflow(
    request: WorkflowStartRequest,
    engine: WorkflowEngine = Depends(get_engine),
) -> WorkflowStartResponse:
    """
    Start a workflow run.

    Returns immediately with the run id unless `wait` is set; poll
    GET /workflows/{workflow_id} or subscribe over the WebSocket to follow it.
    """
    try:
        workflow_id = await engine.start_workflow(request.graph_id, request.input)
    except GraphNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    workflow = None
    if request.wait:
        workflow = await engine.wait_for_workflow(workflow_id)
        current = workflow
    else:
        current = engine.get_workflow(workflow_id)

    return WorkflowStartResponse(
        workflow_id=workflow_id,
        graph_id=request.graph_id,
        status=current.status,
        workflow=workflow,
    )


@router.get(
    "/",
    response_model=WorkflowListResponse,
)
async def list_workflows(
    graph_id: Optional[str] = None,
    engine: WorkflowEngine = Depends(get_engine),
) -> WorkflowListResponse:
    """List workflow runs held by the engine, optionally only those of one graph."""
    workflows = engine.list_workflows(graph_id)
    return WorkflowListResponse(workflows=workflows, total=len(workflows))


@router.get(
    "/{workflow_id}",
    response_model=WorkflowState,
    responses={404: {"model": ErrorResponse}},
)
async def get_workflow(
    workflow_id: str,
    engine: WorkflowEngine = Depends(get_engine),
) -> WorkflowState:
    """Get the current state of a workflow run."""
    return require_workflow(engine, workflow_id)


@router.post(
    "/{workflow_id}/pause",
    response_model=WorkflowControlResponse,
    responses={404: {"model": ErrorResponse}},
)
async def pause_workflow(
    workflow_id: str,
    engine: WorkflowEngine = Depends(get_engine),
) -> WorkflowControlResponse:
    """
    Pause a running workflow.

    Pausing a run that is not running is accepted and changes nothing.
    """
    require_workflow(engine, workflow_id)
    changed = await engine.pause_workflow(workflow_id)
    workflow = engine.get_workflow(workflow_id)

    return WorkflowControlResponse(
        success=True,
        workflow_id=workflow_id,
        status=workflow.status,
        message="Workflow paused" if changed else f"Workflow is {workflow.status.value}; nothing to pause",
    )


@router.post(
    "/{workflow_id}/resume",
    response_model=WorkflowControlResponse,
    responses={404: {"model": ErrorResponse}},
)
async def resume_workflow(
    workflow_id: str,
    engine: WorkflowEngine = Depends(get_engine),
) -> WorkflowControlResponse:
    """
    Resume a paused workflow.

    Resuming a run that is not paused is accepted and changes nothing.
    """
    require_workflow(engine, workflow_id)
    changed = await engine.resume_workflow(workflow_id)
    workflow = engine.get_workflow(workflow_id)

    return WorkflowControlResponse(
        success=True,
        workflow_id=workflow_id,
        status=workflow.status,
        message="Workflow resumed" if changed else f"Workflow is {workflow.status.value}; nothing to resume",
    )


@router.delete(
    "/{workflow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_workflow(
    workflow_id: str,
    engine: WorkflowEngine = Depends(get_engine),
) -> None:
    """Delete a workflow run, cancelling it if it is still running."""
    deleted = await engine.delete_workflow(workflow_id)
    if not deleted:
        raise HTTPException(
            status_code=404,
            detail=f"Workflow '{workflow_id}' not found"
        )
