"""
Scripted stand-in for LLMService.

Responses are queued per output schema and consumed in order. A default per
schema answers any call once its queue is empty; a queued exception is raised
instead of returned.
"""

import asyncio
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Type

from pydantic import BaseModel

from utils.portfolio.llm_client import StructuredResponse


@dataclass
class LLMCall:
    schema: Type[BaseModel]
    messages: List[Any]
    temperature: Optional[float]
    max_tokens: Optional[int]

    @property
    def prompt_text(self) -> str:
        return "\n".join(str(m.content) for m in self.messages)


class ScriptedLLM:
    def __init__(self):
        self._queues: Dict[Type[BaseModel], Deque[Any]] = defaultdict(deque)
        self._defaults: Dict[Type[BaseModel], Any] = {}
        self.calls: List[LLMCall] = []

    def queue(self, schema: Type[BaseModel], *responses: Any) -> "ScriptedLLM":
        self._queues[schema].extend(responses)
        return self

    def set_default(self, schema: Type[BaseModel], response: Any) -> "ScriptedLLM":
        self._defaults[schema] = response
        return self

    def call_count(self, *schemas: Type[BaseModel]) -> int:
        if not schemas:
            return len(self.calls)
        return sum(1 for call in self.calls if call.schema in schemas)

    def calls_for(self, schema: Type[BaseModel]) -> List[LLMCall]:
        return [call for call in self.calls if call.schema is schema]

    async def invoke_structured(self, messages, schema, *, temperature=None, max_tokens=None):
        self.calls.append(LLMCall(schema, list(messages), temperature, max_tokens))

        queue = self._queues[schema]
        if queue:
            response = queue.popleft()
        elif schema in self._defaults:
            response = self._defaults[schema]
        else:
            raise AssertionError(f"No scripted response for {schema.__name__}")

        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            response = schema.model_validate(response)
        return StructuredResponse(data=response, model="scripted-model", tokens_used=None)


class GatedLLM(ScriptedLLM):
    """Blocks every call until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def invoke_structured(self, messages, schema, *, temperature=None, max_tokens=None):
        self.entered.set()
        await self.release.wait()
        return await super().invoke_structured(
            messages, schema, temperature=temperature, max_tokens=max_tokens
        )
