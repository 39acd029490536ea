"""
Agents API Routes.

Endpoints for listing the agents the engine can dispatch nodes to.
"""

from fastapi import APIRouter, Depends, HTTPException

from researchflow.api.dependencies import get_engine
from researchflow.api.schemas import AgentInfo, AgentListResponse, ErrorResponse
from researchflow.engine.executor import WorkflowEngine


router = APIRouter(prefix="/agents", tags=["Agents"])


@router.get(
    "/",
    response_model=AgentListResponse,
)
async def list_agents(engine: WorkflowEngine = Depends(get_engine)) -> AgentListResponse:
    """List all registered agents."""
    agents = [AgentInfo(**a) for a in engine.agents.list_agents()]
    return AgentListResponse(agents=agents, total=len(agents))


@router.get(
    "/{agent_name}",
    response_model=AgentInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_agent(
    agent_name: str,
    engine: WorkflowEngine = Depends(get_engine),
) -> AgentInfo:
    """Get information about a specific agent."""
    agent = engine.agents.get(agent_name)
    if not agent:
        raise HTTPException(
            status_code=404,
            detail=f"Agent '{agent_name}' not found"
        )
    return AgentInfo(**agent.to_dict())
