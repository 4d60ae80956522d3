"""
Portfolio utilities: specialty registry, model client and prompt loading.
"""

from utils.portfolio.specialty_registry import (
    ConfigurationError,
    get_specialty_config,
    get_template_for_entry_type,
)
from utils.portfolio.prompt_loader import load_prompt, load_prompt_templates
from utils.portfolio.llm_client import (
    create_llm_client,
    LLMService,
    StructuredOutputError,
    StructuredResponse,
)
from utils.portfolio.value_utils import is_blank, word_count

__all__ = [
    'ConfigurationError',
    'get_specialty_config',
    'get_template_for_entry_type',
    'load_prompt',
    'load_prompt_templates',
    'create_llm_client',
    'LLMService',
    'StructuredOutputError',
    'StructuredResponse',
    'is_blank',
    'word_count',
]
