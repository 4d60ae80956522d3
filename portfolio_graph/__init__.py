"""
LangGraph workflow that turns a dictated conversation into a portfolio entry.
"""

from portfolio_graph.portfolio_graph import (
    create_portfolio_workflow,
    build_portfolio_graph,
    create_initial_state,
)
from portfolio_graph.state import WorkflowState
from portfolio_graph.engine import PortfolioGraphEngine, GraphStatus, RunOutcome
from portfolio_graph.service import PortfolioGraphService, AnalysisAction
from portfolio_graph.checkpointer import open_checkpointer

__all__ = [
    "create_portfolio_workflow",
    "build_portfolio_graph",
    "create_initial_state",
    "WorkflowState",
    "PortfolioGraphEngine",
    "GraphStatus",
    "RunOutcome",
    "PortfolioGraphService",
    "AnalysisAction",
    "open_checkpointer",
]
