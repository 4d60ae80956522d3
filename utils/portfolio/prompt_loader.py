"""
Utility for loading prompt templates from YAML files.

Each file holds a ``prompt`` (system message) and a ``human`` template, both
formatted with ``str.format``, plus optional ``metadata``.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

# Parsed prompt files keyed by filename
_prompt_file_cache: Dict[str, Dict[str, Any]] = {}


def get_prompts_dir() -> Path:
    """Get the prompts directory path."""
    return Path(__file__).parent.parent.parent / "prompts"


def _read_prompt_file(filename: str) -> Dict[str, Any]:
    if filename in _prompt_file_cache:
        return _prompt_file_cache[filename]

    if not filename.endswith(('.yaml', '.yml')):
        raise ValueError(f"Prompt file must be a YAML file (.yaml or .yml): {filename}")

    prompt_path = get_prompts_dir() / filename
    if not prompt_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_path}")

    with open(prompt_path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML format in {filename}: expected dictionary")

    _prompt_file_cache[filename] = data
    return data


def load_prompt(filename: str, key: str = 'prompt') -> str:
    """
    Load one template from a prompt file.

    Args:
        filename: Name of the prompt YAML file (e.g., "classification_prompt.yaml")
        key: 'prompt' for the system template, 'human' for the user template

    Raises:
        ValueError: If the file is not YAML or the key is missing
        FileNotFoundError: If the file does not exist
    """
    data = _read_prompt_file(filename)
    if key not in data:
        raise ValueError(f"Missing '{key}' key in {filename}")
    return data[key]


def load_prompt_templates(filename: str) -> Tuple[str, str]:
    """Load the (system, human) template pair of a prompt file."""
    return load_prompt(filename, 'prompt'), load_prompt(filename, 'human')


def load_prompt_metadata(filename: str) -> Optional[Dict[str, Any]]:
    """Metadata block of a prompt file, or None if the file or block is missing."""
    try:
        data = _read_prompt_file(filename)
    except (ValueError, FileNotFoundError):
        return None
    return data.get('metadata')
