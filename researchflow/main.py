"""
ResearchFlow - FastAPI Application Entry Point.

A dependency-graph workflow engine running multi-agent research pipelines.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from researchflow.config import settings
from researchflow.api.routes import agents, graphs, websocket, workflows
from researchflow.engine.errors import InvalidGraph
from researchflow.engine.executor import WorkflowEngine

# Import research agents to register them
import researchflow.agents  # noqa: F401


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Graphs: {[g.id for g in app.state.engine.list_graphs()]}")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await app.state.engine.shutdown()


def create_app(engine: Optional[WorkflowEngine] = None) -> FastAPI:
    """
    Build the FastAPI application around a workflow engine.

    Args:
        engine: Engine to serve (a default one with the research_canvas
            graph and the built-in agents if not provided)
    """
    application = FastAPI(
        title=settings.APP_NAME,
        description="""
## Workflow Engine API

Runs multi-agent research pipelines as dependency graphs.

### Features
- **Graphs**: Nodes bound to agents, with declared dependencies
- **Runs**: Started in the background, polled or streamed
- **Control**: Pause and resume at node boundaries
- **Real-time Updates**: WebSocket stream of every state change

### Quick Start
1. Start a run: `POST /workflows/start`
2. Poll it: `GET /workflows/{workflow_id}`
3. Or stream it: `WS /ws/workflows/{workflow_id}`

### Built-in Graph
The six-stage research pipeline is registered with ID: `research_canvas`
        """,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.engine = engine if engine is not None else WorkflowEngine()

    # Add CORS middleware
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    application.include_router(workflows.router)
    application.include_router(graphs.router)
    application.include_router(agents.router)
    application.include_router(websocket.router)

    # ============================================================
    # Root Endpoints
    # ============================================================

    @application.get("/", tags=["Root"])
    async def root():
        """API root - returns basic info and links."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "description": "A dependency-graph workflow engine for agent pipelines",
            "docs": "/docs",
            "redoc": "/redoc",
            "endpoints": {
                "workflows": "/workflows",
                "graphs": "/graphs",
                "agents": "/agents",
                "websocket_subscribe": "/ws/workflows/{workflow_id}",
            },
            "default_graph": "research_canvas",
        }

    @application.get("/health", tags=["Root"])
    async def health():
        """Health check endpoint."""
        engine = application.state.engine
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "graphs_count": len(engine.graphs),
            "runs_count": len(engine.runs),
        }

    # ============================================================
    # Error Handlers
    # ============================================================

    @application.exception_handler(InvalidGraph)
    async def invalid_graph_handler(request, exc):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid Graph", "detail": str(exc), "status_code": 400},
        )

    @application.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """Global exception handler for unhandled errors."""
        logger.exception(f"Unhandled error: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
                "status_code": 500,
            },
        )

    return application


app = create_app()
