"""
Agents package - Built-in research agents.

Importing this package registers the agents in the default agent registry.
"""

from researchflow.agents.research import (
    query_analyzer,
    web_searcher,
    source_validator,
    content_analyzer,
    article_writer,
    quality_reviewer,
)

__all__ = [
    "query_analyzer",
    "web_searcher",
    "source_validator",
    "content_analyzer",
    "article_writer",
    "quality_reviewer",
]
