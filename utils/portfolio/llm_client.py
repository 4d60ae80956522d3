"""
Utility for creating LLM clients and invoking them with structured output.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from utils.common.config import get_llm_settings
from utils.common.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T", bound=BaseModel)


class StructuredOutputError(ValueError):
    """The model answered, but not in the shape of the requested schema."""

    def __init__(self, schema_name: str, detail: Any):
        self.schema_name = schema_name
        self.detail = detail
        super().__init__(f"Model output did not match {schema_name}: {detail}")


def create_llm_client(
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None
) -> ChatOpenAI:
    """
    Create and return a configured ChatOpenAI client.

    Args:
        model: Model name (defaults to LLM_MODEL from config/env)
        temperature: Temperature setting (defaults to LLM_TEMPERATURE from config/env)
        max_tokens: Completion token budget (defaults to LLM_MAX_TOKENS from config/env)

    Returns:
        Configured ChatOpenAI instance

    Raises:
        ValueError: If OpenAI API key is not set
    """
    llm_settings = get_llm_settings()

    if not llm_settings.api_key:
        logger.error("LLM_API_KEY not set in environment variables")
        raise ValueError("LLM_API_KEY not set in environment variables")

    resolved_model = model or llm_settings.model
    resolved_temperature = (
        temperature if temperature is not None else llm_settings.temperature
    )
    resolved_max_tokens = (
        max_tokens if max_tokens is not None else llm_settings.max_tokens
    )

    return ChatOpenAI(
        model=resolved_model,
        temperature=resolved_temperature,
        max_tokens=resolved_max_tokens,
        api_key=llm_settings.api_key
    )


@dataclass
class StructuredResponse(Generic[T]):
    """Validated model output plus call metadata."""
    data: T
    model: str
    tokens_used: Optional[int] = None


class LLMService:
    """
    Structured-output gateway used by the graph nodes.

    Callers own prompt composition; this class owns model configuration.
    One ChatOpenAI client is kept per (temperature, max_tokens) pair.
    """

    def __init__(self, model: Optional[str] = None):
        self.model = model or get_llm_settings().model
        self._clients: Dict[Tuple[Optional[float], Optional[int]], ChatOpenAI] = {}

    def _get_client(self, temperature: Optional[float], max_tokens: Optional[int]) -> ChatOpenAI:
        key = (temperature, max_tokens)
        if key not in self._clients:
            self._clients[key] = create_llm_client(
                model=self.model,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        return self._clients[key]

    async def invoke_structured(
        self,
        messages: List[BaseMessage],
        schema: Type[T],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> StructuredResponse[T]:
        """
        Invoke the model and return a validated instance of ``schema``.

        Raises:
            StructuredOutputError: If the model output cannot be parsed into the schema
        """
        logger.debug(
            f"invoke_structured [{self.model}] schema={schema.__name__} "
            f"temperature={temperature} max_tokens={max_tokens}"
        )
        structured_llm = self._get_client(temperature, max_tokens).with_structured_output(
            schema, include_raw=True
        )
        result: Dict[str, Any] = await structured_llm.ainvoke(messages)

        if result.get("parsing_error") is not None or result.get("parsed") is None:
            logger.error(f"Structured output parsing failed for {schema.__name__}: {result.get('parsing_error')}")
            raise StructuredOutputError(schema.__name__, result.get("parsing_error"))

        tokens_used = None
        raw = result.get("raw")
        usage = getattr(raw, "usage_metadata", None)
        if usage:
            tokens_used = usage.get("total_tokens")

        return StructuredResponse(data=result["parsed"], model=self.model, tokens_used=tokens_used)
