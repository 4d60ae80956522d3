"""
Capability nodes: tag_capabilities and present_capabilities.
"""

from typing import Any, Dict, List, Optional

from langgraph.types import interrupt

from portfolio_graph.models import CapabilityTaggingResponse
from portfolio_graph.nodes.shared import GraphDeps, build_messages, invoke_node_llm, log_node_banner
from portfolio_graph.state import CapabilityTag, WorkflowState
from utils.common.config import get_workflow_settings
from utils.portfolio.llm_client import StructuredOutputError
from utils.portfolio.specialty_registry import SpecialtyConfig, get_specialty_config
from utils.portfolio.value_utils import is_blank
from utils.common.logger import get_logger

logger = get_logger(__name__)


def format_capability_block(config: SpecialtyConfig) -> str:
    lines = []
    current_domain = None
    for capability in config.capabilities:
        if capability.domain_code != current_domain:
            current_domain = capability.domain_code
            if lines:
                lines.append("")
            lines.append(f"### {capability.domain_code}: {capability.domain_name}")
        lines.append(f"- {capability.code} {capability.name}: {capability.description}")
    return "\n".join(lines)


def validate_capability_tags(
    response: CapabilityTaggingResponse,
    config: SpecialtyConfig,
    limit: int,
) -> List[CapabilityTag]:
    """
    Keep only well-formed tags.

    Unknown codes are dropped, then duplicates (first wins), then tags without
    evidence. The survivors are re-sorted by confidence, truncated, and given
    the registry's canonical name.
    """
    seen = set()
    tags: List[CapabilityTag] = []
    for item in response.capabilities:
        capability = config.get_capability(item.code)
        if capability is None:
            logger.debug(f"Dropping unknown capability code: {item.code}")
            continue
        if item.code in seen:
            logger.debug(f"Dropping duplicate capability code: {item.code}")
            continue
        seen.add(item.code)

        evidence = [quote.strip() for quote in item.evidence if not is_blank(quote)]
        if not evidence:
            logger.debug(f"Dropping capability without evidence: {item.code}")
            continue

        tags.append({
            "code": capability.code,
            "name": capability.name,
            "evidence": evidence,
            "confidence": item.confidence,
        })

    tags.sort(key=lambda tag: tag["confidence"], reverse=True)
    return tags[:limit]


def create_tag_capabilities_node(deps: GraphDeps):
    """Build the tag_capabilities node."""

    async def tag_capabilities_node(state: WorkflowState) -> dict:
        log_node_banner("tag_capabilities", state["conversation_id"])

        settings = get_workflow_settings()
        limit = settings.get("max_capabilities", 5)
        config = get_specialty_config(state["specialty"])

        entry_type = state.get("entry_type")
        entry_def = config.get_entry_type(entry_type) if entry_type else None

        messages = build_messages(
            "capability_tagging_prompt.yaml",
            specialty_name=config.name,
            entry_type_label=entry_def.label if entry_def else (entry_type or "unclassified"),
            capability_block=format_capability_block(config),
            max_capabilities=limit,
            transcript=state.get("full_transcript", ""),
        )
        try:
            response = await invoke_node_llm(deps, "tag_capabilities", messages, CapabilityTaggingResponse)
        except StructuredOutputError as e:
            logger.warning(f"Unusable capability answer, dropping all tags: {e}")
            return {"capabilities": []}

        capabilities = validate_capability_tags(response.data, config, limit)
        logger.info(
            f"Tagged {len(capabilities)} capabilities "
            f"(model returned {len(response.data.capabilities)}): {[c['code'] for c in capabilities]}"
        )
        return {"capabilities": capabilities}

    return tag_capabilities_node


def _selected_codes(resume_value: Any) -> Optional[List[str]]:
    if isinstance(resume_value, dict):
        resume_value = resume_value.get("selected_codes")
    if isinstance(resume_value, (list, tuple)):
        return [code for code in resume_value if isinstance(code, str)]
    return None


async def present_capabilities_node(state: WorkflowState) -> dict:
    """
    Pause with the tagged capabilities and apply the user's selection.

    Only codes that were presented are kept; an empty selection keeps the full list.
    """
    log_node_banner("present_capabilities", state["conversation_id"])

    capabilities = list(state.get("capabilities") or [])
    options: List[Dict[str, Any]] = [
        {
            "code": cap["code"],
            "name": cap["name"],
            "confidence": cap["confidence"],
            "evidence": list(cap["evidence"]),
        }
        for cap in capabilities
    ]

    resume_value = interrupt({
        "type": "capabilities",
        "options": options,
        "entry_type": state.get("entry_type"),
    })

    presented = {option["code"] for option in options}
    selected = {code for code in (_selected_codes(resume_value) or []) if code in presented}

    if selected:
        confirmed = [cap for cap in capabilities if cap["code"] in selected]
        logger.info(f"User confirmed {len(confirmed)} capabilities: {[c['code'] for c in confirmed]}")
        return {"capabilities": confirmed}

    logger.warning("No valid capability selections, keeping all suggestions")
    return {}
