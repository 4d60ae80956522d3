"""
State schema definitions for the portfolio LangGraph workflow.
"""

from typing import TypedDict, List, Optional, Dict

# classification_source values
CLASSIFICATION_SOURCE_LLM = "llm"
CLASSIFICATION_SOURCE_USER = "user_confirmed"


class ClassificationAlternative(TypedDict):
    """Runner-up entry type suggested by the classifier."""
    entry_type: str
    confidence: float
    reasoning: str


class CapabilityTag(TypedDict):
    """Capability linked to the entry, with supporting quotes."""
    code: str
    name: str
    evidence: List[str]
    confidence: float


class PdpAction(TypedDict):
    """Personal development plan action."""
    action: str
    timeframe: str


class FollowupQuestion(TypedDict):
    """Question asked about one missing template section."""
    section_id: str
    question: str


class QualityResult(TypedDict):
    passed: bool
    score: Optional[float]
    failures: List[str]


class WorkflowState(TypedDict, total=False):
    """State schema for the portfolio workflow. Every field is last-write-wins."""
    # Identity, written once at start
    conversation_id: str
    artefact_id: str
    user_id: str
    specialty: str
    initialized: bool

    # Context
    full_transcript: str
    message_count: int

    # Classification
    entry_type: Optional[str]
    classification_confidence: float
    classification_reasoning: Optional[str]
    classification_signals: List[str]
    alternatives: List[ClassificationAlternative]
    classification_source: Optional[str]  # None, "llm" or "user_confirmed"

    # Completeness loop
    section_coverage: Dict[str, bool]
    missing_sections: List[str]
    has_enough_info: bool
    follow_up_round: int  # never decreases
    followup_questions: List[FollowupQuestion]

    # Output
    capabilities: List[CapabilityTag]
    reflection: Optional[str]
    pdp_actions: List[PdpAction]

    # Quality loop
    quality_result: Optional[QualityResult]
    repair_round: int

    # Soft-fail signal
    error: Optional[str]
