"""
Entry-type classification nodes: classify and present_classification.
"""

from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional, Sequence

from langgraph.types import interrupt

from portfolio_graph.errors import UnrecognizedEntryTypeError
from portfolio_graph.models import ClassifyResponse
from portfolio_graph.nodes.shared import GraphDeps, build_messages, invoke_node_llm, log_node_banner
from portfolio_graph.state import (
    CLASSIFICATION_SOURCE_LLM,
    CLASSIFICATION_SOURCE_USER,
    WorkflowState,
)
from utils.common.config import get_workflow_settings
from utils.portfolio.specialty_registry import SpecialtyConfig, get_specialty_config
from utils.portfolio.value_utils import word_count
from utils.common.logger import get_logger

logger = get_logger(__name__)


def adjust_confidence(
    raw: float,
    words: int,
    signal_count: int,
    alternative_confidences: Sequence[float],
    thresholds: Optional[Dict[str, float]] = None,
) -> float:
    """
    Deflate the model's self-reported confidence.

    Rules only ever lower the score:
      - transcript shorter than short_transcript_words caps at short_transcript_cap
      - fewer than min_signals matched signals caps at weak_signal_cap
      - best alternative within ambiguity_gap subtracts ambiguity_penalty (floor 0)

    Scores above 1 are capped at 1. The result is rounded to 2 decimals and is
    never above ``raw``.
    """
    if thresholds is None:
        thresholds = get_workflow_settings().get("confidence", {})

    raw = min(float(raw), 1.0)
    adjusted = raw

    if words < thresholds.get("short_transcript_words", 50):
        adjusted = min(adjusted, thresholds.get("short_transcript_cap", 0.85))

    if signal_count < thresholds.get("min_signals", 2):
        adjusted = min(adjusted, thresholds.get("weak_signal_cap", 0.9))

    if alternative_confidences:
        top_alternative = max(alternative_confidences)
        if round(adjusted - top_alternative, 9) < thresholds.get("ambiguity_gap", 0.15):
            adjusted = max(adjusted - thresholds.get("ambiguity_penalty", 0.1), 0.0)

    result = round(adjusted, 2)
    if result > raw:
        # Rounding half-up must not lift the score above what the model reported
        result = float(Decimal(str(raw)).quantize(Decimal("0.01"), rounding=ROUND_FLOOR))
    return result


def format_entry_type_block(config: SpecialtyConfig) -> str:
    blocks = []
    for entry_type in config.entry_types:
        blocks.append(
            f"### {entry_type.code}: {entry_type.label}\n"
            f"{entry_type.description}\n"
            f"Signals: {', '.join(entry_type.classification_signals)}"
        )
    return "\n\n".join(blocks)


def create_classify_node(deps: GraphDeps):
    """Build the classify node."""

    async def classify_node(state: WorkflowState) -> dict:
        log_node_banner("classify", state["conversation_id"])

        config = get_specialty_config(state["specialty"])
        transcript = state.get("full_transcript", "")

        messages = build_messages(
            "classification_prompt.yaml",
            specialty_name=config.name,
            entry_type_block=format_entry_type_block(config),
            transcript=transcript,
        )
        response = await invoke_node_llm(deps, "classify", messages, ClassifyResponse)
        classification = response.data

        if classification.entry_type not in config.entry_type_codes():
            logger.error(f"Model returned unknown entry type: {classification.entry_type}")
            raise UnrecognizedEntryTypeError(classification.entry_type, config.specialty)

        words = word_count(transcript)
        adjusted = adjust_confidence(
            classification.confidence,
            words,
            len(classification.signals_found),
            [alt.confidence for alt in classification.alternatives],
        )

        logger.info(
            f"Classification: {classification.entry_type} "
            f"(raw: {classification.confidence}, adjusted: {adjusted}, "
            f"signals: {len(classification.signals_found)}, words: {words})"
        )

        return {
            "entry_type": classification.entry_type,
            "classification_confidence": adjusted,
            "classification_reasoning": classification.reasoning,
            "classification_signals": list(classification.signals_found),
            "alternatives": [
                {
                    "entry_type": alt.entry_type,
                    "confidence": alt.confidence,
                    "reasoning": alt.reasoning,
                }
                for alt in classification.alternatives
            ],
            "classification_source": CLASSIFICATION_SOURCE_LLM,
        }

    return classify_node


def build_classification_options(state: WorkflowState, config: SpecialtyConfig) -> List[Dict[str, Any]]:
    """Primary suggestion followed by alternatives, deduplicated by code."""
    options: List[Dict[str, Any]] = []
    seen = set()

    def add_option(code: Optional[str], confidence: float, reasoning: Optional[str]) -> None:
        if not code or code in seen:
            return
        seen.add(code)
        entry_def = config.get_entry_type(code)
        options.append({
            "code": code,
            "label": entry_def.label if entry_def else code,
            "confidence": confidence,
            "reasoning": reasoning or "",
        })

    add_option(
        state.get("entry_type"),
        state.get("classification_confidence", 0.0),
        state.get("classification_reasoning"),
    )
    for alt in state.get("alternatives") or []:
        add_option(alt.get("entry_type"), alt.get("confidence", 0.0), alt.get("reasoning"))

    return options


def _selected_entry_type(resume_value: Any) -> Optional[str]:
    if isinstance(resume_value, str):
        return resume_value
    if isinstance(resume_value, dict):
        value = resume_value.get("entry_type")
        return value if isinstance(value, str) else None
    return None


async def present_classification_node(state: WorkflowState) -> dict:
    """
    Pause with the classification options and apply the user's choice.

    Options are rebuilt from stored state only, so the node is safe to re-run
    when the thread resumes.
    """
    log_node_banner("present_classification", state["conversation_id"])

    config = get_specialty_config(state["specialty"])
    options = build_classification_options(state, config)

    resume_value = interrupt({
        "type": "classification",
        "options": options,
        "suggested_entry_type": state.get("entry_type"),
        "reasoning": state.get("classification_reasoning"),
    })

    selected = _selected_entry_type(resume_value)
    if selected and config.is_valid_entry_type(selected):
        logger.info(f"User confirmed entry type: {selected}")
        return {
            "entry_type": selected,
            "classification_confidence": 1.0,
            "classification_source": CLASSIFICATION_SOURCE_USER,
        }

    logger.warning(
        f"Invalid resume value (entry_type: {selected}), keeping model suggestion: {state.get('entry_type')}"
    )
    return {"classification_source": CLASSIFICATION_SOURCE_USER}
