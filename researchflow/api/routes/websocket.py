"""
WebSocket Routes for Real-time Workflow Updates.

Bridges engine subscriptions to WebSocket clients: every state change of a
run is forwarded as a ``state_update`` message.
"""

from typing import Any, Dict
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import logging

from researchflow.engine.state import WorkflowState


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

KEEPALIVE_SECONDS = 30.0


def _message(kind: str, workflow: WorkflowState) -> Dict[str, Any]:
    return {"type": kind, "workflow": workflow.to_dict()}


@router.websocket("/ws/workflows/{workflow_id}")
async def websocket_subscribe(websocket: WebSocket, workflow_id: str):
    """
    Subscribe to updates for a workflow run.

    Message format (server -> client):
    ```json
    {"type": "current_state", "workflow": {...}}
    {"type": "state_update", "workflow": {...}}
    {"type": "keepalive"}
    {"type": "settled", "status": "completed"}
    ```
    The connection is closed by the server once the run reaches a terminal
    status (completed or error).
    """
    engine = websocket.app.state.engine
    current = engine.get_workflow(workflow_id)
    if current is None:
        await websocket.close(code=4004, reason=f"Workflow '{workflow_id}' not found")
        return

    await websocket.accept()
    logger.info(f"WebSocket connected for workflow: {workflow_id}")

    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = engine.subscribe(workflow_id, queue.put_nowait)

    try:
        await websocket.send_json(_message("current_state", current))
        latest = current

        while not latest.is_terminal:
            try:
                latest = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
            except asyncio.TimeoutError:
                await websocket.send_json({"type": "keepalive"})
                continue
            await websocket.send_json(_message("state_update", latest))

        await websocket.send_json({"type": "settled", "status": latest.status.value})
        await websocket.close()

    except WebSocketDisconnect:
        logger.info(f"Subscriber disconnected from workflow {workflow_id}")
    finally:
        unsubscribe()
        logger.info(f"WebSocket closed for workflow: {workflow_id}")
