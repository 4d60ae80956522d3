"""
Main LangGraph workflow for turning a conversation into a portfolio entry.
"""

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.graph import StateGraph, END

from portfolio_graph.state import WorkflowState
from portfolio_graph.nodes import (
    GraphDeps,
    create_gather_context_node,
    create_classify_node,
    present_classification_node,
    create_check_completeness_node,
    create_draft_followup_node,
    ask_followup_node,
    create_tag_capabilities_node,
    present_capabilities_node,
    create_reflect_node,
    create_generate_pdp_node,
    quality_check_node,
    repair_node,
    save_node
)
from portfolio_graph.edges import (
    route_after_gather,
    route_after_completeness,
    route_after_quality
)
from utils.common.logger import get_logger

logger = get_logger(__name__)

# Nodes that pause the thread for user input
INTERRUPT_NODES = ("present_classification", "ask_followup", "present_capabilities")


def create_portfolio_workflow(deps: GraphDeps) -> StateGraph:
    """
    Create and configure the LangGraph workflow for portfolio entries.

    Args:
        deps: Repository and model service injected into the nodes

    Returns:
        Configured StateGraph instance
    """
    logger.info("Creating portfolio workflow graph")

    workflow = StateGraph(WorkflowState)

    # Add nodes
    workflow.add_node("gather_context", create_gather_context_node(deps))
    workflow.add_node("classify", create_classify_node(deps))
    workflow.add_node("present_classification", present_classification_node)
    workflow.add_node("check_completeness", create_check_completeness_node(deps))
    workflow.add_node("draft_followup", create_draft_followup_node(deps))
    workflow.add_node("ask_followup", ask_followup_node)
    workflow.add_node("tag_capabilities", create_tag_capabilities_node(deps))
    workflow.add_node("present_capabilities", present_capabilities_node)
    workflow.add_node("reflect", create_reflect_node(deps))
    workflow.add_node("generate_pdp", create_generate_pdp_node(deps))
    workflow.add_node("quality_check", quality_check_node)
    workflow.add_node("repair", repair_node)
    workflow.add_node("save", save_node)

    # Set entry point
    workflow.set_entry_point("gather_context")

    # A soft failure while gathering ends the run; the thread can be retried later
    workflow.add_conditional_edges(
        "gather_context",
        route_after_gather,
        {
            "halt": END,
            "classify": "classify",
            "check_completeness": "check_completeness"
        }
    )

    workflow.add_edge("classify", "present_classification")
    workflow.add_edge("present_classification", "check_completeness")

    workflow.add_conditional_edges(
        "check_completeness",
        route_after_completeness,
        {
            "draft_followup": "draft_followup",
            "tag_capabilities": "tag_capabilities"
        }
    )

    workflow.add_edge("draft_followup", "ask_followup")

    # Follow-up answers arrive as new messages, so re-gather the transcript
    workflow.add_edge("ask_followup", "gather_context")

    workflow.add_edge("tag_capabilities", "present_capabilities")
    workflow.add_edge("present_capabilities", "reflect")
    workflow.add_edge("reflect", "generate_pdp")
    workflow.add_edge("generate_pdp", "quality_check")

    workflow.add_conditional_edges(
        "quality_check",
        route_after_quality,
        {
            "save": "save",
            "repair": "repair"
        }
    )
    workflow.add_edge("repair", "quality_check")
    workflow.add_edge("save", END)

    logger.info("Workflow graph created successfully")
    return workflow


def build_portfolio_graph(deps: GraphDeps, checkpointer: BaseCheckpointSaver):
    """Compile the workflow against a checkpoint store."""
    return create_portfolio_workflow(deps).compile(checkpointer=checkpointer)


def create_initial_state(
    conversation_id: str,
    artefact_id: str,
    user_id: str,
    specialty: str
) -> WorkflowState:
    """
    Create the initial workflow state for a new thread.

    Args:
        conversation_id: Conversation (and thread) id
        artefact_id: Artefact the entry will be saved to
        user_id: Owner of the conversation
        specialty: Specialty code, e.g. "GP"

    Returns:
        Initial WorkflowState
    """
    return {
        "conversation_id": conversation_id,
        "artefact_id": artefact_id,
        "user_id": user_id,
        "specialty": specialty,
        "initialized": True,
        "full_transcript": "",
        "message_count": 0,
        "entry_type": None,
        "classification_confidence": 0.0,
        "classification_reasoning": None,
        "classification_signals": [],
        "alternatives": [],
        "classification_source": None,
        "section_coverage": {},
        "missing_sections": [],
        "has_enough_info": False,
        "follow_up_round": 0,
        "followup_questions": [],
        "capabilities": [],
        "reflection": None,
        "pdp_actions": [],
        "quality_result": None,
        "repair_round": 0,
        "error": None
    }
