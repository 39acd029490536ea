"""
Shared FastAPI dependencies.
"""

from fastapi import HTTPException, Request

from researchflow.engine.executor import WorkflowEngine
from researchflow.engine.state import WorkflowState


def get_engine(request: Request) -> WorkflowEngine:
    """The engine owned by the running application."""
    return request.app.state.engine


def require_workflow(engine: WorkflowEngine, workflow_id: str) -> WorkflowState:
    """Snapshot of a run, or a 404."""
    workflow = engine.get_workflow(workflow_id)
    if workflow is None:
        raise HTTPException(status_code=404, detail=f"Workflow '{workflow_id}' not found")
    return workflow
