"""
Pydantic models for structured output parsing.

The model guarantees the shape; the nodes still validate the meaning
(known codes, evidence present, limits).
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


def _clamp_confidence(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


class ClassificationAlternativeModel(BaseModel):
    """Another plausible entry type."""

    entry_type: str = Field(..., description="Entry type code from the list above")
    confidence: float = Field(..., description="Confidence score 0-1")
    reasoning: str = Field("", description="Why this alternative is plausible")

    @field_validator('confidence')
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return _clamp_confidence(value)


class ClassifyResponse(BaseModel):
    """Structured response for entry-type classification."""

    entry_type: str = Field(..., description="The best-matching entry type code")
    confidence: float = Field(..., description="Confidence score 0-1")
    reasoning: str = Field(..., description="1-2 sentence explanation of why this type was chosen")
    signals_found: List[str] = Field(
        default_factory=list,
        description="Classification signals from the entry type definition that appear in the transcript"
    )
    alternatives: List[ClassificationAlternativeModel] = Field(
        default_factory=list,
        description="Other plausible entry types, ordered by confidence"
    )

    @field_validator('confidence')
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return _clamp_confidence(value)


class SectionAssessment(BaseModel):
    section_id: str = Field(..., description="Section id exactly as listed")
    covered: bool = Field(..., description="True if the transcript contains enough information for this section")
    evidence: Optional[str] = Field(None, description="Short quote or paraphrase supporting the verdict")


class CompletenessResponse(BaseModel):
    """Structured response for section coverage assessment."""

    sections: List[SectionAssessment] = Field(
        default_factory=list,
        description="One assessment per listed section"
    )


class FollowupQuestion(BaseModel):
    section_id: str = Field(..., description="Section id the question is about")
    question: str = Field(..., description="Conversational rephrasing of the question")


class FollowupQuestionsResponse(BaseModel):
    """Structured response for follow-up question rephrasing."""

    questions: List[FollowupQuestion] = Field(default_factory=list)


class CapabilityTagModel(BaseModel):
    code: str = Field(..., description="Capability code from the list above, e.g. C-06")
    name: str = Field("", description="Capability name")
    confidence: float = Field(..., description="Confidence score 0-1")
    evidence: List[str] = Field(
        default_factory=list,
        description="Short verbatim quotes from the transcript demonstrating the capability"
    )

    @field_validator('confidence')
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return _clamp_confidence(value)


class CapabilityTaggingResponse(BaseModel):
    """Structured response for capability tagging."""

    capabilities: List[CapabilityTagModel] = Field(default_factory=list)


class ReflectionResponse(BaseModel):
    """Structured response holding the generated reflection."""

    reflection: str = Field(..., description="The reflection in markdown, one heading per section")


class PdpActionModel(BaseModel):
    action: str = Field(..., description="Specific, measurable development action")
    timeframe: str = Field(..., description="When the action will be completed, e.g. 'within 3 months'")


class PdpResponse(BaseModel):
    """Structured response for personal development plan actions."""

    actions: List[PdpActionModel] = Field(default_factory=list)
