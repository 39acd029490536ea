"""
API package - FastAPI routes and schemas.
"""

from researchflow.api.routes import agents, graphs, websocket, workflows

__all__ = ["agents", "graphs", "websocket", "workflows"]
