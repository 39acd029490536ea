"""
Research Canvas Workflow.

The built-in six-stage research pipeline:
1. Analyze the research query
2. Search for sources
3. Validate and rank the sources
4. Analyze their content
5. Write the article
6. Review its quality

Each stage depends only on the one before it; every stage publishes its
results into the global state for the stages downstream.
"""

from typing import Optional

from researchflow.engine.graph import RetryPolicy, WorkflowGraph, WorkflowNode


RESEARCH_CANVAS_ID = "research_canvas"


# (id, name, description, timeout_seconds)
_STAGES = [
    ("query_analyzer", "Query Analysis", "Understand and decompose the research query", 30),
    ("web_searcher", "Web Search", "Search for relevant sources and information", 60),
    ("source_validator", "Source Validation", "Validate and rank found sources", 45),
    ("content_analyzer", "Content Analysis", "Extract insights and key information", 90),
    ("article_writer", "Article Generation", "Generate comprehensive article", 120),
    ("quality_reviewer", "Quality Review", "Review and suggest improvements", 60),
]


def create_research_canvas_graph(
    graph_id: str = RESEARCH_CANVAS_ID,
    retry_policy: Optional[RetryPolicy] = None,
) -> WorkflowGraph:
    """
    Create the Research Canvas workflow graph.

    Workflow flow:
    ```
    query_analyzer → web_searcher → source_validator
        → content_analyzer → article_writer → quality_reviewer
    ```

    Args:
        graph_id: Id to register the graph under
        retry_policy: Retry policy applied to every stage (default: none)

    Returns:
        Configured WorkflowGraph instance
    """
    nodes = []
    previous = None
    for node_id, name, description, timeout in _STAGES:
        nodes.append(WorkflowNode(
            id=node_id,
            name=name,
            agent=node_id,
            description=description,
            dependencies=(previous,) if previous else (),
            timeout_seconds=timeout,
            retry_policy=retry_policy,
        ))
        previous = node_id

    return WorkflowGraph(
        id=graph_id,
        name="Research Canvas Workflow",
        description="Multi-agent research and article generation",
        entry_node="query_analyzer",
        nodes=tuple(nodes),
    )
