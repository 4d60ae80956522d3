"""
Workflow engine: runs the compiled portfolio graph against a checkpoint store.

Each conversation is one thread. A thread moves from not_started to running,
then to paused at one of the interrupt nodes or to completed. Only one call
may drive a thread at a time.

A running thread that nobody is driving has stalled: either gather_context
recorded a soft failure, or a node raised and left its work pending. retry()
recovers both.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.types import Command

from portfolio_graph.errors import ConflictError
from portfolio_graph.nodes import GraphDeps
from portfolio_graph.portfolio_graph import (
    INTERRUPT_NODES,
    build_portfolio_graph,
    create_initial_state,
)
from utils.portfolio.specialty_registry import get_specialty_config
from utils.common.logger import get_logger

logger = get_logger(__name__)

# GraphStatus.status values
STATUS_NOT_STARTED = "not_started"
STATUS_RUNNING = "running"
STATUS_PAUSED = "paused"
STATUS_COMPLETED = "completed"


@dataclass
class GraphStatus:
    """
    High-level status of a thread.

    ``node`` is the pause node when paused, or the node a stalled run stopped
    before when running.
    """
    status: str
    node: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_stalled(self) -> bool:
        return self.status == STATUS_RUNNING and (self.error is not None or self.node is not None)


@dataclass
class RunOutcome:
    """
    Result of one start/resume/retry call.

    kind is "suspended" (paused at ``node`` with ``payload``), "completed",
    or "stalled" (halted on a soft failure recorded in ``error``, or stopped
    before ``node``).
    """
    kind: str
    node: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    state: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


class PortfolioGraphEngine:
    """Start, resume and inspect portfolio graph threads."""

    def __init__(self, deps: GraphDeps, checkpointer: BaseCheckpointSaver):
        self.graph = build_portfolio_graph(deps, checkpointer)
        self._locks: Dict[str, asyncio.Lock] = {}
        logger.info("Portfolio graph compiled and ready")

    @staticmethod
    def _config(thread_id: str) -> Dict[str, Any]:
        return {"configurable": {"thread_id": thread_id}}

    @asynccontextmanager
    async def _thread_lock(self, thread_id: str):
        lock = self._locks.setdefault(thread_id, asyncio.Lock())
        if lock.locked():
            raise ConflictError(
                "Analysis is in progress. Please wait for it to complete.",
                code="thread_busy",
            )
        try:
            async with lock:
                yield
        finally:
            if not lock.locked() and self._locks.get(thread_id) is lock:
                del self._locks[thread_id]

    def _is_busy(self, thread_id: str) -> bool:
        lock = self._locks.get(thread_id)
        return lock is not None and lock.locked()

    async def has_checkpoint(self, thread_id: str) -> bool:
        """True once start() has written the thread's initial state."""
        snapshot = await self.graph.aget_state(self._config(thread_id))
        return bool(snapshot.values.get("initialized"))

    async def get_latest_state(self, thread_id: str) -> Dict[str, Any]:
        snapshot = await self.graph.aget_state(self._config(thread_id))
        return dict(snapshot.values)

    async def get_status(self, thread_id: str) -> GraphStatus:
        """
        Determine the status of a thread.

        - not_started: no initial state has been written
        - paused: waiting at an interrupt node for user input
        - running: a call is driving the thread, or the run stalled (see GraphStatus.is_stalled)
        - completed: nothing left to run
        """
        status = await self._read_status(thread_id)
        if status.status == STATUS_RUNNING and self._is_busy(thread_id):
            return GraphStatus(STATUS_RUNNING)
        return status

    async def _read_status(self, thread_id: str) -> GraphStatus:
        snapshot = await self.graph.aget_state(self._config(thread_id))
        values = snapshot.values or {}

        if not values.get("initialized"):
            return GraphStatus(STATUS_NOT_STARTED)

        if not snapshot.next:
            if values.get("error"):
                return GraphStatus(STATUS_RUNNING, error=values["error"])
            return GraphStatus(STATUS_COMPLETED)

        next_node = snapshot.next[0]
        if next_node in INTERRUPT_NODES and any(task.interrupts for task in snapshot.tasks):
            return GraphStatus(STATUS_PAUSED, node=next_node)

        # A node raised before finishing; its checkpoint still points at it
        return GraphStatus(STATUS_RUNNING, node=next_node)

    async def _outcome(self, thread_id: str) -> RunOutcome:
        snapshot = await self.graph.aget_state(self._config(thread_id))
        values = dict(snapshot.values)

        if snapshot.next:
            interrupts = [item for task in snapshot.tasks for item in task.interrupts]
            if interrupts:
                node = snapshot.next[0]
                logger.info(f"Graph paused at \"{node}\" for conversation {thread_id}")
                return RunOutcome("suspended", node=node, payload=interrupts[0].value, state=values)

        if values.get("error"):
            logger.warning(f"Graph stalled for conversation {thread_id}: {values['error']}")
            return RunOutcome("stalled", state=values, error=values["error"])

        if snapshot.next:
            logger.warning(f"Graph stopped with pending nodes {snapshot.next} for conversation {thread_id}")
            return RunOutcome("stalled", node=snapshot.next[0], state=values)

        logger.info(f"Graph completed for conversation {thread_id}")
        return RunOutcome("completed", state=values)

    async def start(
        self,
        conversation_id: str,
        artefact_id: str,
        user_id: str,
        specialty: str
    ) -> RunOutcome:
        """
        Start a new thread for a conversation.

        Raises:
            ConflictError: If the thread already exists or is busy
            ConfigurationError: If the specialty is unknown
        """
        async with self._thread_lock(conversation_id):
            if await self.has_checkpoint(conversation_id):
                raise ConflictError(
                    'Analysis already started. Use { type: "resume" } to continue.',
                    code="already_started",
                )

            get_specialty_config(specialty)

            logger.info(f"Starting portfolio graph for conversation {conversation_id}")
            await self.graph.ainvoke(
                create_initial_state(conversation_id, artefact_id, user_id, specialty),
                self._config(conversation_id),
            )
            return await self._outcome(conversation_id)

    async def resume(
        self,
        thread_id: str,
        resume_value: Any = None,
        node: Optional[str] = None
    ) -> RunOutcome:
        """
        Resume a paused thread, re-running the paused node with ``resume_value``.

        Args:
            thread_id: Conversation id
            resume_value: Value returned by interrupt() inside the paused node
            node: Optional node the caller expects the thread to be paused at

        Raises:
            ConflictError: If the thread is not paused, or paused at a different node
        """
        async with self._thread_lock(thread_id):
            status = await self._read_status(thread_id)

            if status.status == STATUS_NOT_STARTED:
                raise ConflictError("Analysis has not been started", code="not_started")
            if status.status == STATUS_COMPLETED:
                raise ConflictError("Analysis is complete. No further input is accepted.", code="completed")
            if status.status != STATUS_PAUSED:
                raise ConflictError("Analysis is not paused at any node", code="not_paused")
            if node and node != status.node:
                raise ConflictError(
                    f'Analysis is paused at "{status.node}", not "{node}"',
                    code="wrong_node",
                )

            logger.info(f"Resuming portfolio graph for conversation {thread_id} at node \"{status.node}\"")
            await self.graph.ainvoke(Command(resume=resume_value), self._config(thread_id))
            return await self._outcome(thread_id)

    async def retry(self, thread_id: str) -> RunOutcome:
        """
        Re-run a stalled thread.

        A soft failure is replayed from the checkpoint just before gather_context.
        A node that raised is run again from the checkpoint that still has it
        pending.

        Raises:
            ConflictError: If the thread has not stalled
        """
        async with self._thread_lock(thread_id):
            status = await self._read_status(thread_id)
            if not status.is_stalled:
                raise ConflictError("Analysis has not stalled", code="not_stalled")

            if status.error is None:
                logger.info(f"Retrying conversation {thread_id} from pending node \"{status.node}\"")
                await self.graph.ainvoke(None, self._config(thread_id))
                return await self._outcome(thread_id)

            async for snapshot in self.graph.aget_state_history(self._config(thread_id)):
                if snapshot.next == ("gather_context",):
                    logger.info(f"Retrying conversation {thread_id} from checkpoint before gather_context")
                    await self.graph.ainvoke(None, snapshot.config)
                    return await self._outcome(thread_id)

            raise ConflictError("No checkpoint to retry from", code="no_retry_point")
