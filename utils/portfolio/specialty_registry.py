"""
Specialty registry: entry types, artefact templates and capability taxonomy.

Specialty data lives in data/specialties/<code>.json and is validated with
pydantic on first use. Lookups are read-only; a missing specialty, entry-type
mapping or template is a programming error and raises ConfigurationError.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

from utils.common.logger import get_logger

logger = get_logger(__name__)


class ConfigurationError(Exception):
    """Raised when the registry has no configuration for a specialty, entry type or template."""

    def __init__(self, message: str, specialty: Optional[str] = None, code: Optional[str] = None):
        self.specialty = specialty
        self.code = code
        super().__init__(message)


class WordCountRange(BaseModel):
    """Target length of a finished artefact."""

    min: int = Field(..., ge=0)
    max: int = Field(..., gt=0)

    @model_validator(mode='after')
    def validate_bounds(self):
        if self.min > self.max:
            raise ValueError(f"word count min {self.min} exceeds max {self.max}")
        return self


class TemplateSection(BaseModel):
    """Single section of an artefact template."""

    id: str
    label: str
    required: bool
    description: str
    prompt_hint: str
    extraction_question: Optional[str] = None
    weight: float = Field(..., ge=0, le=1)

    @property
    def is_assessable(self) -> bool:
        """Required sections with an extraction question are checked for coverage."""
        return self.required and bool(self.extraction_question)


class ArtefactTemplate(BaseModel):
    """Ordered list of sections making up one kind of artefact."""

    id: str
    name: str
    word_count_range: WordCountRange
    sections: List[TemplateSection]

    @field_validator('sections')
    @classmethod
    def validate_unique_sections(cls, sections: List[TemplateSection]) -> List[TemplateSection]:
        seen = set()
        for section in sections:
            if section.id in seen:
                raise ValueError(f"duplicate section id: {section.id}")
            seen.add(section.id)
        return sections

    def get_section(self, section_id: str) -> Optional[TemplateSection]:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def assessable_sections(self) -> List[TemplateSection]:
        return [s for s in self.sections if s.is_assessable]


class EntryTypeDefinition(BaseModel):
    """Classifiable kind of portfolio entry."""

    code: str
    label: str
    description: str
    template_id: str
    classification_signals: List[str] = Field(default_factory=list)
    frequency: str = "occasional"


class CapabilityDefinition(BaseModel):
    """One capability of the specialty's curriculum."""

    code: str
    name: str
    description: str
    domain_code: str
    domain_name: str


class SpecialtyConfig(BaseModel):
    """Everything the graph needs to know about one specialty."""

    specialty: str
    legacy_code: Optional[str] = None
    name: str
    entry_types: List[EntryTypeDefinition]
    capabilities: List[CapabilityDefinition]
    templates: Dict[str, ArtefactTemplate]
    entry_type_to_template: Dict[str, str]

    def entry_type_codes(self) -> List[str]:
        return [entry_type.code for entry_type in self.entry_types]

    def get_entry_type(self, code: str) -> Optional[EntryTypeDefinition]:
        for entry_type in self.entry_types:
            if entry_type.code == code:
                return entry_type
        return None

    def is_valid_entry_type(self, code: Optional[str]) -> bool:
        return bool(code) and code in self.entry_type_to_template

    def get_capability(self, code: str) -> Optional[CapabilityDefinition]:
        for capability in self.capabilities:
            if capability.code == code:
                return capability
        return None


def get_specialties_dir() -> Path:
    """Get the specialty data directory path."""
    return Path(__file__).parent.parent.parent / "data" / "specialties"


# Cache of validated specialty configs keyed by canonical code and legacy code
_specialty_cache: Optional[Dict[str, SpecialtyConfig]] = None


def _load_specialties() -> Dict[str, SpecialtyConfig]:
    global _specialty_cache
    if _specialty_cache is not None:
        return _specialty_cache

    configs: Dict[str, SpecialtyConfig] = {}
    for path in sorted(get_specialties_dir().glob("*.json")):
        with open(path, 'r', encoding='utf-8') as f:
            config = SpecialtyConfig.model_validate(json.load(f))
        configs[config.specialty.upper()] = config
        if config.legacy_code:
            configs[config.legacy_code] = config
        logger.debug(
            f"Loaded specialty {config.specialty}: {len(config.entry_types)} entry types, "
            f"{len(config.templates)} templates, {len(config.capabilities)} capabilities"
        )

    _specialty_cache = configs
    return configs


def get_specialty_config(specialty: str) -> SpecialtyConfig:
    """
    Get the registry configuration for a specialty.

    Args:
        specialty: Specialty code (e.g., "GP") or its legacy numeric code (e.g., "1")

    Returns:
        SpecialtyConfig

    Raises:
        ConfigurationError: If no configuration exists for the specialty
    """
    key = str(specialty).strip()
    configs = _load_specialties()
    config = configs.get(key.upper()) or configs.get(key)
    if config is None:
        raise ConfigurationError(
            f"No configuration found for specialty: {specialty}",
            specialty=str(specialty),
        )
    return config


def get_template_for_entry_type(config: SpecialtyConfig, entry_type_code: str) -> ArtefactTemplate:
    """
    Resolve the artefact template for an entry type.

    Raises:
        ConfigurationError: If the entry type has no mapping or the mapped template is missing
    """
    template_id = config.entry_type_to_template.get(entry_type_code)
    if not template_id:
        raise ConfigurationError(
            f'No template mapping for entry type "{entry_type_code}" in specialty "{config.name}"',
            specialty=config.specialty,
            code=entry_type_code,
        )
    template = config.templates.get(template_id)
    if template is None:
        raise ConfigurationError(
            f'Template "{template_id}" not found in specialty "{config.name}"',
            specialty=config.specialty,
            code=template_id,
        )
    return template


def get_word_count_range(template: ArtefactTemplate) -> Tuple[int, int]:
    return template.word_count_range.min, template.word_count_range.max
