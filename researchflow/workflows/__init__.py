"""
Workflows package - Built-in workflow graphs.
"""

from researchflow.workflows.research_canvas import (
    RESEARCH_CANVAS_ID,
    create_research_canvas_graph,
)

__all__ = [
    "RESEARCH_CANVAS_ID",
    "create_research_canvas_graph",
]
