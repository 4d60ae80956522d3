"""
Transcript gathering node.
"""

from portfolio_graph.errors import RepositoryError
from portfolio_graph.message_repository import MessageRole, ProcessingStatus
from portfolio_graph.nodes.shared import GraphDeps, log_node_banner
from portfolio_graph.state import WorkflowState
from utils.common.config import get_workflow_settings
from utils.common.logger import get_logger

logger = get_logger(__name__)


def create_gather_context_node(deps: GraphDeps):
    """
    Build the gather_context node.

    Re-runs on every graph entry, including after each follow-up answer, so the
    transcript always reflects the latest completed user messages.
    """

    async def gather_context_node(state: WorkflowState) -> dict:
        conversation_id = state["conversation_id"]
        log_node_banner("gather_context", conversation_id)

        settings = get_workflow_settings()
        limit = settings.get("message_history_limit", 200)
        separator = settings.get("transcript_separator", "\n\n---\n\n")

        try:
            messages = deps.repository.list_messages(conversation_id, limit=limit)
        except RepositoryError as e:
            logger.error(f"Failed to fetch messages: {e}")
            return {"error": f"gather_context: {e}"}

        # Newest first from the repository; assistant, system and unfinished messages are skipped
        user_messages = [
            m for m in messages
            if m.role == MessageRole.USER
            and m.processing_status == ProcessingStatus.COMPLETE
            and m.content
        ]
        user_messages.reverse()

        full_transcript = separator.join(m.content.strip() for m in user_messages)

        logger.info(
            f"Gathered {len(user_messages)} messages, transcript length: {len(full_transcript)} chars"
        )
        return {
            "full_transcript": full_transcript,
            "message_count": len(user_messages),
            "error": None,
        }

    return gather_context_node
