"""
Checkpoint store factory.

Threads are keyed by conversation id. The in-memory saver is the default; the
SQLite saver keeps paused threads across process restarts.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.checkpoint.memory import InMemorySaver
from langgraph.checkpoint.sqlite.aio import AsyncSqliteSaver

from portfolio_graph.errors import ConfigurationError
from utils.common.config import CheckpointSettings, get_checkpoint_settings
from utils.common.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def open_checkpointer(
    settings: Optional[CheckpointSettings] = None
) -> AsyncIterator[BaseCheckpointSaver]:
    """
    Open the configured checkpoint store for the lifetime of the block.

    Raises:
        ConfigurationError: If CHECKPOINT_BACKEND is not "memory" or "sqlite"
    """
    settings = settings or get_checkpoint_settings()
    backend = settings.backend.lower()

    if backend == "memory":
        logger.info("Using in-memory checkpoint store")
        yield InMemorySaver()
    elif backend == "sqlite":
        logger.info(f"Using SQLite checkpoint store at {settings.path}")
        async with AsyncSqliteSaver.from_conn_string(settings.path) as saver:
            yield saver
    else:
        raise ConfigurationError(f"Unsupported checkpoint backend: {settings.backend}")
