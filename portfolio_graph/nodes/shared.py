"""
Shared resources and utilities for workflow nodes.
"""

from dataclasses import dataclass
from typing import Any, List, Protocol, Type, TypeVar

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel

from portfolio_graph.message_repository import MessageRepository
from utils.common.config import get_node_llm_options
from utils.portfolio.llm_client import StructuredResponse
from utils.portfolio.prompt_loader import load_prompt_templates
from utils.common.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class StructuredLLM(Protocol):
    async def invoke_structured(
        self,
        messages: List[BaseMessage],
        schema: Type[T],
        *,
        temperature: float = None,
        max_tokens: int = None,
    ) -> StructuredResponse[T]: ...


@dataclass(frozen=True)
class GraphDeps:
    """Collaborators injected into node factories."""
    repository: MessageRepository
    llm: StructuredLLM


def build_messages(filename: str, **variables: Any) -> List[BaseMessage]:
    """Format a prompt file into a system + human message pair."""
    system_template, human_template = load_prompt_templates(filename)
    return [
        SystemMessage(content=system_template.format(**variables)),
        HumanMessage(content=human_template.format(**variables)),
    ]


async def invoke_node_llm(
    deps: GraphDeps,
    node_name: str,
    messages: List[BaseMessage],
    schema: Type[T],
    **overrides: Any,
) -> StructuredResponse[T]:
    """Call the model with the node's configured temperature and token budget."""
    options = get_node_llm_options(node_name)
    options.update(overrides)
    response = await deps.llm.invoke_structured(
        messages,
        schema,
        temperature=options.get("temperature"),
        max_tokens=options.get("max_tokens"),
    )
    logger.debug(f"{node_name}: model={response.model} tokens={response.tokens_used}")
    return response


def log_node_banner(node_name: str, conversation_id: str) -> None:
    logger.info("=" * 80)
    logger.info(f"NODE: {node_name} - conversation {conversation_id}")
