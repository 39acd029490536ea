"""
ResearchFlow - An async dependency-graph workflow engine.

Runs pipelines of agent-backed nodes in dependency order, accumulating a
shared result state, with pause/resume and live progress subscriptions.
"""

__version__ = "1.0.0"
