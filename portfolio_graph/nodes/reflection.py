"""
Writing nodes: reflect and generate_pdp.
"""

import math
from typing import List

from portfolio_graph.models import PdpResponse, ReflectionResponse
from portfolio_graph.nodes.shared import GraphDeps, build_messages, invoke_node_llm, log_node_banner
from portfolio_graph.state import CapabilityTag, PdpAction, WorkflowState
from utils.common.config import get_workflow_settings
from utils.portfolio.specialty_registry import (
    ArtefactTemplate,
    get_specialty_config,
    get_template_for_entry_type,
    get_word_count_range,
)
from utils.portfolio.value_utils import is_blank
from utils.common.logger import get_logger

logger = get_logger(__name__)


def reflection_token_budget(max_words: int) -> int:
    """Completion tokens needed for ``max_words`` words of structured markdown."""
    reflection_settings = get_workflow_settings().get("reflection", {})
    words_per_token = reflection_settings.get("words_per_token", 0.75)
    overhead = reflection_settings.get("structure_overhead", 1.4)
    return math.ceil(max_words / words_per_token * overhead)


def format_template_sections(template: ArtefactTemplate) -> str:
    lines = []
    for section in template.sections:
        optional = "" if section.required else " (optional)"
        lines.append(f"## {section.label}{optional}\n{section.prompt_hint}")
    return "\n\n".join(lines)


def format_confirmed_capabilities(capabilities: List[CapabilityTag]) -> str:
    if not capabilities:
        return "None confirmed."
    return "\n".join(f"- {cap['code']} {cap['name']}" for cap in capabilities)


def create_reflect_node(deps: GraphDeps):
    """Build the reflect node."""

    async def reflect_node(state: WorkflowState) -> dict:
        log_node_banner("reflect", state["conversation_id"])

        entry_type = state.get("entry_type")
        if not entry_type:
            logger.warning("No entry type in state, skipping reflection")
            return {"reflection": None}

        config = get_specialty_config(state["specialty"])
        template = get_template_for_entry_type(config, entry_type)
        min_words, max_words = get_word_count_range(template)
        entry_def = config.get_entry_type(entry_type)

        messages = build_messages(
            "reflection_prompt.yaml",
            entry_type_label=entry_def.label if entry_def else entry_type,
            template_name=template.name,
            min_words=min_words,
            max_words=max_words,
            section_block=format_template_sections(template),
            capability_block=format_confirmed_capabilities(state.get("capabilities") or []),
            transcript=state.get("full_transcript", ""),
        )
        response = await invoke_node_llm(
            deps, "reflect", messages, ReflectionResponse,
            max_tokens=reflection_token_budget(max_words),
        )

        reflection = response.data.reflection.strip()
        logger.info(f"Generated reflection: {len(reflection.split())} words (target {min_words}-{max_words})")
        return {"reflection": reflection}

    return reflect_node


def create_generate_pdp_node(deps: GraphDeps):
    """Build the generate_pdp node."""

    async def generate_pdp_node(state: WorkflowState) -> dict:
        log_node_banner("generate_pdp", state["conversation_id"])

        reflection = state.get("reflection")
        if not reflection:
            logger.warning("No reflection in state, skipping PDP actions")
            return {"pdp_actions": []}

        max_actions = get_workflow_settings().get("max_pdp_actions", 2)
        entry_type = state.get("entry_type")
        config = get_specialty_config(state["specialty"])
        entry_def = config.get_entry_type(entry_type) if entry_type else None

        messages = build_messages(
            "pdp_prompt.yaml",
            entry_type_label=entry_def.label if entry_def else (entry_type or "portfolio"),
            max_actions=max_actions,
            reflection=reflection,
        )
        response = await invoke_node_llm(deps, "generate_pdp", messages, PdpResponse)

        actions: List[PdpAction] = [
            {"action": item.action.strip(), "timeframe": item.timeframe.strip()}
            for item in response.data.actions
            if not is_blank(item.action) and not is_blank(item.timeframe)
        ][:max_actions]

        logger.info(f"Generated {len(actions)} PDP actions")
        return {"pdp_actions": actions}

    return generate_pdp_node
