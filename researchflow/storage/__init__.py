"""
Storage package - In-memory registries for graphs and workflow runs.
"""

from researchflow.storage.memory import GraphRegistry, RunStore

__all__ = [
    "GraphRegistry",
    "RunStore",
]
