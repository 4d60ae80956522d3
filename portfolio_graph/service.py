"""
Orchestration service: conversation-level operations on top of the engine.

Guards requests, turns pauses into assistant messages, and records user
selections as audit messages.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from portfolio_graph.engine import (
    GraphStatus,
    PortfolioGraphEngine,
    RunOutcome,
    STATUS_COMPLETED,
    STATUS_NOT_STARTED,
    STATUS_PAUSED,
    STATUS_RUNNING,
)
from portfolio_graph.errors import BadRequestError, ConflictError
from portfolio_graph.message_repository import MessageRepository, MessageRole, ProcessingStatus
from utils.portfolio.specialty_registry import get_specialty_config
from utils.portfolio.value_utils import is_string_list
from utils.common.logger import get_logger

logger = get_logger(__name__)

# Message metadata types
CLASSIFICATION_OPTIONS = "classification_options"
FOLLOWUP_QUESTIONS = "followup_questions"
CAPABILITY_OPTIONS = "capability_options"
CLASSIFICATION_SELECTION = "classification_selection"
CAPABILITY_SELECTION = "capability_selection"


@dataclass
class AnalysisAction:
    """A start or resume request from the client."""
    type: str  # "start" or "resume"
    node: Optional[str] = None
    value: Optional[Dict[str, Any]] = None


def render_classification_message(payload: Dict[str, Any]) -> str:
    option_lines = "\n".join(
        f"{i}. **{option['label']}** ({round(option['confidence'] * 100)}% confidence)"
        for i, option in enumerate(payload.get("options", []), start=1)
    )
    return (
        f"Based on your input, I think this is most likely:\n\n{option_lines}\n\n"
        "Please select the entry type, or choose a different one."
    )


def render_followup_message(payload: Dict[str, Any]) -> str:
    question_lines = "\n".join(f"- {q['question']}" for q in payload.get("questions", []))
    round_label = "a couple more" if payload.get("follow_up_round") == 1 else "a few final"
    return (
        f"Thanks for sharing that. I just have {round_label} questions to make sure your "
        f"portfolio entry is as strong as possible:\n\n{question_lines}\n\n"
        "Take your time. You can answer all of these in one go or one at a time."
    )


def render_capabilities_message(payload: Dict[str, Any]) -> str:
    option_lines: List[str] = []
    for i, option in enumerate(payload.get("options", []), start=1):
        line = f"{i}. **{option['code']} {option['name']}** ({round(option['confidence'] * 100)}% confidence)"
        if option.get("evidence"):
            line += f"\n   _{option['evidence'][0]}_"
        option_lines.append(line)
    return (
        "I've identified the following capabilities in your entry:\n\n"
        + "\n".join(option_lines)
        + "\n\nPlease confirm which capabilities apply, or deselect any that don't fit."
    )


class PortfolioGraphService:
    """Conversation-facing wrapper around PortfolioGraphEngine."""

    def __init__(self, engine: PortfolioGraphEngine, repository: MessageRepository):
        self.engine = engine
        self.repository = repository

    async def start_graph(
        self,
        conversation_id: str,
        artefact_id: str,
        user_id: str,
        specialty: str
    ) -> RunOutcome:
        """Start a new thread and publish the first pause, if any."""
        outcome = await self.engine.start(conversation_id, artefact_id, user_id, specialty)
        self._handle_interrupt_side_effects(conversation_id, outcome)
        return outcome

    async def resume_graph(
        self,
        conversation_id: str,
        node: Optional[str] = None,
        resume_value: Any = None
    ) -> RunOutcome:
        """
        Resume a paused thread, or retry a stalled one.

        A stalled thread is retried instead (see PortfolioGraphEngine.retry);
        ``node`` and ``resume_value`` are ignored then.
        """
        status = await self.engine.get_status(conversation_id)
        if status.is_stalled:
            logger.info(f"Conversation {conversation_id} stalled ({status.error or status.node}), retrying")
            outcome = await self.engine.retry(conversation_id)
        else:
            outcome = await self.engine.resume(conversation_id, resume_value, node=node)
        self._handle_interrupt_side_effects(conversation_id, outcome)
        return outcome

    async def has_checkpoint(self, conversation_id: str) -> bool:
        return await self.engine.has_checkpoint(conversation_id)

    async def get_graph_state(self, conversation_id: str) -> GraphStatus:
        return await self.engine.get_status(conversation_id)

    async def handle_analysis(
        self,
        conversation_id: str,
        user_id: str,
        artefact_id: str,
        action: AnalysisAction,
        specialty: str = "GP"
    ) -> RunOutcome:
        """
        Unified start/resume entry point.

        Raises:
            ConflictError: Messages still processing, already started, or wrong pause state
            BadRequestError: Missing messages or malformed resume value
        """
        if self.repository.has_processing_messages(conversation_id):
            raise ConflictError(
                "Cannot start or resume analysis while messages are still being processed",
                code="messages_processing",
            )

        if action.type == "start":
            return await self._handle_start(conversation_id, user_id, artefact_id, specialty)

        if action.type == "resume":
            if not action.node:
                raise BadRequestError("node is required for resume actions", code="node_required")
            return await self._handle_resume(conversation_id, user_id, action.node, action.value)

        raise BadRequestError(f"Unknown analysis action: {action.type}", code="unknown_action")

    async def _handle_start(
        self,
        conversation_id: str,
        user_id: str,
        artefact_id: str,
        specialty: str
    ) -> RunOutcome:
        if await self.engine.has_checkpoint(conversation_id):
            raise ConflictError(
                'Analysis already started. Use { type: "resume" } to continue.',
                code="already_started",
            )

        if not self.repository.has_complete_messages(conversation_id):
            raise BadRequestError(
                "Cannot start analysis without any completed messages.",
                code="no_messages",
            )

        return await self.start_graph(conversation_id, artefact_id, user_id, specialty)

    async def _handle_resume(
        self,
        conversation_id: str,
        user_id: str,
        node: str,
        value: Optional[Dict[str, Any]]
    ) -> RunOutcome:
        status = await self.engine.get_status(conversation_id)
        if status.is_stalled:
            return await self.resume_graph(conversation_id)
        if status.status != STATUS_PAUSED:
            raise ConflictError("Analysis is not paused at any node", code="not_paused")
        if status.node != node:
            raise ConflictError(f'Analysis is paused at "{status.node}", not "{node}"', code="wrong_node")

        value = value or {}

        if node == "ask_followup":
            if self.repository.get_last_message_role(conversation_id) != MessageRole.USER:
                raise BadRequestError(
                    "Please send at least one message before continuing.",
                    code="answer_required",
                )
            return await self.resume_graph(conversation_id, node=node, resume_value=True)

        if node == "present_classification":
            entry_type = value.get("entry_type")
            if not entry_type or not isinstance(entry_type, str):
                raise BadRequestError(
                    "value.entry_type is required and must be a string",
                    code="entry_type_required",
                )
            state = await self.engine.get_latest_state(conversation_id)
            config = get_specialty_config(state.get("specialty", "GP"))
            valid_codes = config.entry_type_codes()
            if entry_type not in valid_codes:
                raise BadRequestError(
                    f'Invalid entry type "{entry_type}". Valid values: {", ".join(valid_codes)}',
                    code="invalid_entry_type",
                )

            self._create_audit_message(
                conversation_id, user_id,
                {"type": CLASSIFICATION_SELECTION, "entry_type": entry_type},
                f"Selected: {entry_type}",
            )
            return await self.resume_graph(conversation_id, node=node, resume_value={"entry_type": entry_type})

        if node == "present_capabilities":
            selected_codes = value.get("selected_codes")
            if not is_string_list(selected_codes) or not selected_codes:
                raise BadRequestError(
                    "value.selected_codes is required and must be a non-empty string array",
                    code="selected_codes_required",
                )

            self._create_audit_message(
                conversation_id, user_id,
                {"type": CAPABILITY_SELECTION, "selected_codes": selected_codes},
                f"Capabilities confirmed: {', '.join(selected_codes)}",
            )
            return await self.resume_graph(
                conversation_id, node=node, resume_value={"selected_codes": selected_codes}
            )

        raise BadRequestError(f"Unknown node: {node}", code="unknown_node")

    async def assert_can_send_message(self, conversation_id: str) -> None:
        """
        Reject new user messages when the thread cannot take them.

        Allowed while not started (composing) or paused at ask_followup (answering).
        """
        status = await self.engine.get_status(conversation_id)

        if status.status == STATUS_NOT_STARTED:
            return
        if status.status == STATUS_RUNNING:
            raise ConflictError("Analysis is in progress. Please wait for it to complete.", code="in_progress")
        if status.status == STATUS_COMPLETED:
            raise ConflictError("Analysis is complete. No further messages can be sent.", code="completed")

        if status.node == "ask_followup":
            return
        if status.node == "present_classification":
            raise ConflictError("Please select an entry type to continue.", code="awaiting_classification")
        if status.node == "present_capabilities":
            raise ConflictError("Please confirm capabilities to continue.", code="awaiting_capabilities")

    def _handle_interrupt_side_effects(self, conversation_id: str, outcome: RunOutcome) -> None:
        """Write the assistant message for the pause the run ended on."""
        if outcome.kind != "suspended" or not outcome.payload:
            return

        payload = outcome.payload
        user_id = outcome.state.get("user_id", "")
        interrupt_type = payload.get("type")

        if interrupt_type == "classification":
            content = render_classification_message(payload)
            metadata = {
                "type": CLASSIFICATION_OPTIONS,
                "interaction_type": "single_select",
                "options": payload.get("options", []),
                "suggested_entry_type": payload.get("suggested_entry_type"),
                "reasoning": payload.get("reasoning"),
            }
        elif interrupt_type == "followup":
            content = render_followup_message(payload)
            metadata = {
                "type": FOLLOWUP_QUESTIONS,
                "interaction_type": "free_text",
                "questions": payload.get("questions", []),
                "missing_sections": payload.get("missing_sections", []),
                "follow_up_round": payload.get("follow_up_round"),
                "entry_type": payload.get("entry_type"),
            }
        elif interrupt_type == "capabilities":
            content = render_capabilities_message(payload)
            metadata = {
                "type": CAPABILITY_OPTIONS,
                "interaction_type": "multi_select",
                "options": payload.get("options", []),
                "entry_type": payload.get("entry_type"),
            }
        else:
            logger.warning(f"Unhandled interrupt type: {interrupt_type}")
            return

        self.repository.create_message(
            conversation_id,
            user_id,
            MessageRole.ASSISTANT,
            content,
            processing_status=ProcessingStatus.COMPLETE,
            metadata=metadata,
        )
        logger.info(f"Sent {metadata['type']} message for conversation {conversation_id}")

    def _create_audit_message(
        self,
        conversation_id: str,
        user_id: str,
        metadata: Dict[str, Any],
        content: str
    ) -> None:
        # System role keeps audit records out of the gathered transcript
        self.repository.create_message(
            conversation_id,
            user_id,
            MessageRole.SYSTEM,
            content,
            processing_status=ProcessingStatus.COMPLETE,
            metadata=dict(metadata, interaction_type="display_only"),
        )
