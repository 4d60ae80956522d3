"""
Conversation message store.

The graph only reads the transcript through this interface; the orchestration
service also writes assistant and audit messages through it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    and_,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from portfolio_graph.errors import RepositoryError
from utils.common.logger import get_logger

logger = get_logger(__name__)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ProcessingStatus(IntEnum):
    PENDING = 100
    TRANSCRIBING = 200
    CLEANING = 300
    DEIDENTIFYING = 400
    COMPLETE = 500
    FAILED = 600


IN_PROGRESS_STATUSES = (
    ProcessingStatus.PENDING,
    ProcessingStatus.TRANSCRIBING,
    ProcessingStatus.CLEANING,
    ProcessingStatus.DEIDENTIFYING,
)


@dataclass
class Message:
    """Single message in a conversation."""
    id: int
    conversation_id: str
    user_id: str
    role: MessageRole
    processing_status: ProcessingStatus
    content: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


class MessageRepository(Protocol):
    """Read/write interface the graph and service depend on."""

    def list_messages(self, conversation_id: str, limit: int = 200) -> List[Message]: ...

    def find_by_id(self, message_id: int) -> Optional[Message]: ...

    def create_message(
        self,
        conversation_id: str,
        user_id: str,
        role: MessageRole,
        content: Optional[str],
        processing_status: ProcessingStatus = ProcessingStatus.COMPLETE,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message: ...

    def has_processing_messages(self, conversation_id: str) -> bool: ...

    def has_complete_messages(self, conversation_id: str) -> bool: ...

    def get_last_message_role(self, conversation_id: str) -> Optional[MessageRole]: ...


metadata_obj = MetaData()

messages_table = Table(
    "messages",
    metadata_obj,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("conversation_id", String(64), nullable=False, index=True),
    Column("user_id", String(64), nullable=False),
    Column("role", String(16), nullable=False),
    Column("processing_status", Integer, nullable=False),
    Column("content", Text, nullable=True),
    Column("message_metadata", JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def _row_to_message(row) -> Message:
    mapping = row._mapping
    return Message(
        id=mapping["id"],
        conversation_id=mapping["conversation_id"],
        user_id=mapping["user_id"],
        role=MessageRole(mapping["role"]),
        processing_status=ProcessingStatus(mapping["processing_status"]),
        content=mapping["content"],
        metadata=mapping["message_metadata"] or {},
        created_at=mapping["created_at"],
    )


class SQLMessageRepository:
    """MessageRepository backed by SQLAlchemy Core."""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self.engine = engine
        if create_tables:
            try:
                metadata_obj.create_all(engine)
            except SQLAlchemyError as e:
                raise RepositoryError("create_tables", str(e)) from e

    def list_messages(self, conversation_id: str, limit: int = 200) -> List[Message]:
        """Messages for a conversation, newest first."""
        query = (
            select(messages_table)
            .where(messages_table.c.conversation_id == conversation_id)
            .order_by(messages_table.c.id.desc())
            .limit(limit)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).fetchall()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list messages for {conversation_id}: {e}")
            raise RepositoryError("list_messages", str(e)) from e
        return [_row_to_message(row) for row in rows]

    def find_by_id(self, message_id: int) -> Optional[Message]:
        query = select(messages_table).where(messages_table.c.id == message_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as e:
            raise RepositoryError("find_by_id", str(e)) from e
        return _row_to_message(row) if row is not None else None

    def create_message(
        self,
        conversation_id: str,
        user_id: str,
        role: MessageRole,
        content: Optional[str],
        processing_status: ProcessingStatus = ProcessingStatus.COMPLETE,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        values = {
            "conversation_id": conversation_id,
            "user_id": user_id,
            "role": MessageRole(role).value,
            "processing_status": int(processing_status),
            "content": content,
            "message_metadata": metadata or {},
            "created_at": datetime.now(timezone.utc),
        }
        try:
            with self.engine.begin() as conn:
                result = conn.execute(messages_table.insert().values(**values))
                message_id = result.inserted_primary_key[0]
        except SQLAlchemyError as e:
            logger.error(f"Failed to create message for {conversation_id}: {e}")
            raise RepositoryError("create_message", str(e)) from e

        logger.debug(f"Created {values['role']} message {message_id} in conversation {conversation_id}")
        return Message(
            id=message_id,
            conversation_id=conversation_id,
            user_id=user_id,
            role=MessageRole(role),
            processing_status=ProcessingStatus(processing_status),
            content=content,
            metadata=values["message_metadata"],
            created_at=values["created_at"],
        )

    def _count(self, operation: str, *conditions) -> int:
        query = select(func.count()).select_from(messages_table).where(and_(*conditions))
        try:
            with self.engine.connect() as conn:
                return conn.execute(query).scalar_one()
        except SQLAlchemyError as e:
            raise RepositoryError(operation, str(e)) from e

    def has_processing_messages(self, conversation_id: str) -> bool:
        """True while any user message is still being transcribed or cleaned."""
        return self._count(
            "has_processing_messages",
            messages_table.c.conversation_id == conversation_id,
            messages_table.c.role == MessageRole.USER.value,
            messages_table.c.processing_status.in_([int(s) for s in IN_PROGRESS_STATUSES]),
        ) > 0

    def has_complete_messages(self, conversation_id: str) -> bool:
        return self._count(
            "has_complete_messages",
            messages_table.c.conversation_id == conversation_id,
            messages_table.c.role == MessageRole.USER.value,
            messages_table.c.processing_status == int(ProcessingStatus.COMPLETE),
            messages_table.c.content.is_not(None),
        ) > 0

    def get_last_message_role(self, conversation_id: str) -> Optional[MessageRole]:
        query = (
            select(messages_table.c.role)
            .where(messages_table.c.conversation_id == conversation_id)
            .order_by(messages_table.c.id.desc())
            .limit(1)
        )
        try:
            with self.engine.connect() as conn:
                role = conn.execute(query).scalar()
        except SQLAlchemyError as e:
            raise RepositoryError("get_last_message_role", str(e)) from e
        return MessageRole(role) if role else None
