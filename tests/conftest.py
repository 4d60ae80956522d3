import pytest
from langgraph.checkpoint.memory import InMemorySaver

from portfolio_graph.engine import PortfolioGraphEngine
from portfolio_graph.message_repository import MessageRole, ProcessingStatus, SQLMessageRepository
from portfolio_graph.nodes import GraphDeps
from portfolio_graph.service import PortfolioGraphService
from utils.common.config import DatabaseSettings
from utils.common.db import get_engine
from tests.factories import CONVERSATION_ID, USER_ID
from tests.llm_mock import ScriptedLLM


@pytest.fixture
def db_engine():
    engine = get_engine(DatabaseSettings(db_type="sqlite", name=":memory:"))
    yield engine
    engine.dispose()


@pytest.fixture
def repository(db_engine):
    return SQLMessageRepository(db_engine)


@pytest.fixture
def llm():
    return ScriptedLLM()


@pytest.fixture
def deps(repository, llm):
    return GraphDeps(repository=repository, llm=llm)


@pytest.fixture
def engine(deps):
    return PortfolioGraphEngine(deps, InMemorySaver())


@pytest.fixture
def service(engine, repository):
    return PortfolioGraphService(engine, repository)


@pytest.fixture
def add_message(repository):
    def _add(
        content,
        role=MessageRole.USER,
        status=ProcessingStatus.COMPLETE,
        conversation_id=CONVERSATION_ID,
    ):
        return repository.create_message(
            conversation_id, USER_ID, role, content, processing_status=status
        )
    return _add


@pytest.fixture
def base_state():
    """Minimal state for calling node functions directly."""
    return {
        "conversation_id": CONVERSATION_ID,
        "artefact_id": "artefact-1",
        "user_id": USER_ID,
        "specialty": "GP",
        "initialized": True,
        "full_transcript": "",
        "follow_up_round": 0,
    }
