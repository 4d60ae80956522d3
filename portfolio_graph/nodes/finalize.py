"""
Quality loop and save nodes.

These are wired into the graph so the topology is final, but they do not
score or persist anything yet.
"""

from portfolio_graph.nodes.shared import log_node_banner
from portfolio_graph.state import WorkflowState
from utils.common.logger import get_logger

logger = get_logger(__name__)


async def quality_check_node(state: WorkflowState) -> dict:
    """Record a passing quality result."""
    log_node_banner("quality_check", state["conversation_id"])
    return {"quality_result": {"passed": True, "score": None, "failures": []}}


async def repair_node(state: WorkflowState) -> dict:
    log_node_banner("repair", state["conversation_id"])
    repair_round = state.get("repair_round", 0) + 1
    logger.info(f"Repair round {repair_round}")
    return {"repair_round": repair_round}


async def save_node(state: WorkflowState) -> dict:
    log_node_banner("save", state["conversation_id"])
    logger.info(
        f"Artefact {state.get('artefact_id')} ready: entry type {state.get('entry_type')}, "
        f"{len(state.get('capabilities') or [])} capabilities, "
        f"{len(state.get('pdp_actions') or [])} PDP actions"
    )
    return {}
