"""
Conditional edge logic for the portfolio LangGraph workflow.
"""

from portfolio_graph.state import CLASSIFICATION_SOURCE_USER, WorkflowState
from utils.common.logger import get_logger
from utils.common.config import get_workflow_settings

logger = get_logger(__name__)


def route_after_gather(state: WorkflowState) -> str:
    """
    Route after gathering the transcript.

    Returns:
        "halt" if gathering failed, "check_completeness" once the user has
        confirmed the entry type, "classify" otherwise
    """
    logger.info("=" * 80)
    logger.info("EDGE: route_after_gather - Determining routing")

    if state.get("error"):
        logger.info(f"Gather failed ({state['error']}) - halting run")
        logger.info("=" * 80)
        return "halt"

    if state.get("classification_source") == CLASSIFICATION_SOURCE_USER:
        logger.info("Entry type already confirmed - skipping classification")
        logger.info("=" * 80)
        return "check_completeness"

    logger.info("Routing to classification")
    logger.info("=" * 80)
    return "classify"


def route_after_completeness(state: WorkflowState) -> str:
    """
    Decide whether to ask follow-up questions.

    The follow-up round is the only loop bound consulted, so the loop always
    terminates after max_followup_rounds passes.

    Returns:
        "draft_followup" or "tag_capabilities"
    """
    settings = get_workflow_settings()
    max_rounds = settings.get("max_followup_rounds", 2)
    has_enough_info = state.get("has_enough_info", True)
    follow_up_round = state.get("follow_up_round", 0)

    logger.info("=" * 80)
    logger.info("EDGE: route_after_completeness - Checking if follow-up needed")
    logger.info(f"Has enough info: {has_enough_info}, follow-up round: {follow_up_round}/{max_rounds}")

    if not has_enough_info and follow_up_round < max_rounds:
        logger.info(f"Missing sections {state.get('missing_sections')} - asking follow-up")
        logger.info("=" * 80)
        return "draft_followup"

    logger.info("Proceeding to capability tagging")
    logger.info("=" * 80)
    return "tag_capabilities"


def route_after_quality(state: WorkflowState) -> str:
    """
    Returns:
        "save" if the draft passed or the repair budget is spent, "repair" otherwise
    """
    settings = get_workflow_settings()
    max_repairs = settings.get("max_repair_rounds", 1)
    quality_result = state.get("quality_result") or {}
    repair_round = state.get("repair_round", 0)

    if quality_result.get("passed") or repair_round >= max_repairs:
        logger.debug(f"Quality passed={quality_result.get('passed')}, repair round {repair_round} - saving")
        return "save"

    logger.debug(f"Quality failures {quality_result.get('failures')} - repairing")
    return "repair"
