"""
Completeness loop nodes: check_completeness, draft_followup and ask_followup.
"""

from typing import Any, Dict, List

from langgraph.types import interrupt

from portfolio_graph.models import CompletenessResponse, FollowupQuestionsResponse
from portfolio_graph.nodes.shared import GraphDeps, build_messages, invoke_node_llm, log_node_banner
from portfolio_graph.state import FollowupQuestion, WorkflowState
from utils.common.config import get_workflow_settings
from utils.portfolio.llm_client import StructuredOutputError
from utils.portfolio.specialty_registry import (
    TemplateSection,
    get_specialty_config,
    get_template_for_entry_type,
)
from utils.portfolio.value_utils import is_blank
from utils.common.logger import get_logger

logger = get_logger(__name__)


def empty_coverage() -> Dict[str, Any]:
    """Coverage result when there is nothing to assess."""
    return {"section_coverage": {}, "missing_sections": [], "has_enough_info": True}


def format_section_block(sections: List[TemplateSection]) -> str:
    lines = []
    for section in sections:
        lines.append(f"- {section.id} ({section.label}): {section.description}")
    return "\n".join(lines)


def merge_section_verdicts(response: CompletenessResponse, asked_ids: List[str]) -> Dict[str, bool]:
    """
    Coverage for every asked section.

    IDs that were not asked about are ignored, an absent section counts as not
    covered, and a repeated section is covered only if every mention says so.
    """
    verdicts: Dict[str, bool] = {}
    asked = set(asked_ids)
    for item in response.sections:
        if item.section_id not in asked:
            logger.debug(f"Ignoring assessment for unknown section: {item.section_id}")
            continue
        verdicts[item.section_id] = verdicts.get(item.section_id, True) and item.covered
    return {section_id: verdicts.get(section_id, False) for section_id in asked_ids}


def create_check_completeness_node(deps: GraphDeps):
    """Build the check_completeness node."""

    async def check_completeness_node(state: WorkflowState) -> dict:
        log_node_banner("check_completeness", state["conversation_id"])

        entry_type = state.get("entry_type")
        if not entry_type:
            logger.warning("No entry type in state, skipping completeness check")
            return empty_coverage()

        config = get_specialty_config(state["specialty"])
        template = get_template_for_entry_type(config, entry_type)
        assessable = template.assessable_sections()

        if not assessable:
            logger.info(f"Template {template.id} has no assessable sections")
            return empty_coverage()

        entry_def = config.get_entry_type(entry_type)
        messages = build_messages(
            "completeness_prompt.yaml",
            entry_type_label=entry_def.label if entry_def else entry_type,
            template_name=template.name,
            section_block=format_section_block(assessable),
            transcript=state.get("full_transcript", ""),
        )
        asked_ids = [section.id for section in assessable]

        try:
            response = await invoke_node_llm(deps, "check_completeness", messages, CompletenessResponse)
            coverage = merge_section_verdicts(response.data, asked_ids)
        except StructuredOutputError as e:
            logger.warning(f"Unusable completeness answer, treating every section as missing: {e}")
            coverage = {section_id: False for section_id in asked_ids}

        missing = [section_id for section_id in asked_ids if not coverage[section_id]]

        logger.info(
            f"Coverage for {entry_type}: {len(asked_ids) - len(missing)}/{len(asked_ids)} sections, "
            f"missing: {missing}"
        )
        return {
            "section_coverage": coverage,
            "missing_sections": missing,
            "has_enough_info": not missing,
        }

    return check_completeness_node


def select_followup_sections(
    sections: List[TemplateSection],
    missing_ids: List[str],
    limit: int,
) -> List[TemplateSection]:
    """Missing sections with a question, highest weight first, template order breaking ties."""
    missing = set(missing_ids)
    candidates = [
        (position, section) for position, section in enumerate(sections)
        if section.id in missing and section.extraction_question
    ]
    candidates.sort(key=lambda pair: (-pair[1].weight, pair[0]))
    return [section for _, section in candidates[:limit]]


def create_draft_followup_node(deps: GraphDeps):
    """
    Build the draft_followup node.

    Picks the questions for the next follow-up round and stores them in state,
    so the ask_followup pause can be replayed without another model call. The
    round counter advances on every pass, whether or not anything is asked, so
    the completeness loop always terminates.
    """

    async def draft_followup_node(state: WorkflowState) -> dict:
        log_node_banner("draft_followup", state["conversation_id"])

        next_round = state.get("follow_up_round", 0) + 1
        entry_type = state.get("entry_type")
        if not entry_type:
            logger.warning("No entry type in state, skipping follow-up questions")
            return {"follow_up_round": next_round, "followup_questions": []}

        settings = get_workflow_settings()
        config = get_specialty_config(state["specialty"])
        template = get_template_for_entry_type(config, entry_type)

        selected = select_followup_sections(
            template.sections,
            list(state.get("missing_sections") or []),
            settings.get("max_followup_questions", 3),
        )
        if not selected:
            logger.info("No missing section has a follow-up question")
            return {"follow_up_round": next_round, "followup_questions": []}

        defaults = {section.id: section.extraction_question for section in selected}
        rephrased: Dict[str, str] = {}
        entry_def = config.get_entry_type(entry_type)
        question_block = "\n".join(f"- {section_id}: {question}" for section_id, question in defaults.items())

        try:
            messages = build_messages(
                "followup_prompt.yaml",
                entry_type_label=entry_def.label if entry_def else entry_type,
                question_block=question_block,
                transcript=state.get("full_transcript", ""),
            )
            response = await invoke_node_llm(deps, "draft_followup", messages, FollowupQuestionsResponse)
            for item in response.data.questions:
                if item.section_id in defaults and item.section_id not in rephrased and not is_blank(item.question):
                    rephrased[item.section_id] = item.question.strip()
        except Exception as e:
            logger.warning(f"Question rephrasing failed, using default questions: {e}")

        questions: List[FollowupQuestion] = [
            {"section_id": section.id, "question": rephrased.get(section.id, defaults[section.id])}
            for section in selected
        ]
        logger.info(f"Drafted {len(questions)} follow-up questions for round {next_round}")
        return {"follow_up_round": next_round, "followup_questions": questions}

    return draft_followup_node


async def ask_followup_node(state: WorkflowState) -> dict:
    """
    Pause with the drafted follow-up questions.

    The payload is rebuilt from state only. With no drafted questions the node
    passes straight through.
    """
    log_node_banner("ask_followup", state["conversation_id"])

    questions = [dict(question) for question in state.get("followup_questions") or []]
    if not questions:
        logger.info("Nothing to ask, continuing without pausing")
        return {}

    logger.info(f"Asking {len(questions)} follow-up questions (round {state.get('follow_up_round', 0)})")
    interrupt({
        "type": "followup",
        "questions": questions,
        "missing_sections": list(state.get("missing_sections") or []),
        "entry_type": state.get("entry_type"),
        "follow_up_round": state.get("follow_up_round", 0),
    })

    # Resuming only signals that the user has answered; the answers arrive as messages
    return {}
