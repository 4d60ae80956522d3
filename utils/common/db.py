"""
Database engine helpers for the conversation message store.
Supports multiple database types via SQLAlchemy (SQLite, PostgreSQL, MySQL, etc.).
"""

from typing import Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from utils.common.config import DatabaseSettings, get_db_settings
from utils.common.logger import get_logger

logger = get_logger(__name__)


def build_connection_string(db_settings: DatabaseSettings) -> str:
    """
    Build SQLAlchemy connection string based on database type.

    Args:
        db_settings: DatabaseSettings instance

    Returns:
        SQLAlchemy connection string
    """
    db_type = db_settings.db_type.lower()

    if db_type == "sqlite":
        # SQLite uses file path, not host/port. An empty name means in-memory.
        if not db_settings.name or db_settings.name == ":memory:":
            return "sqlite://"
        return f"sqlite:///{db_settings.name}"
    elif db_type == "postgresql":
        driver = db_settings.driver or "psycopg2"
        return (
            f"postgresql+{driver}://{db_settings.user}:{db_settings.password}"
            f"@{db_settings.host}:{db_settings.port}/{db_settings.name}"
        )
    elif db_type == "mysql":
        driver = db_settings.driver or "pymysql"
        return (
            f"mysql+{driver}://{db_settings.user}:{db_settings.password}"
            f"@{db_settings.host}:{db_settings.port}/{db_settings.name}"
        )
    else:
        # Generic SQLAlchemy connection string
        if db_settings.driver:
            db_type = f"{db_type}+{db_settings.driver}"
        return (
            f"{db_type}://{db_settings.user}:{db_settings.password}"
            f"@{db_settings.host}:{db_settings.port}/{db_settings.name}"
        )


def get_engine(db_settings: Optional[DatabaseSettings] = None) -> Engine:
    """
    Create the SQLAlchemy engine for the message store.

    In-memory SQLite shares a single connection so that every repository call
    sees the same database.

    Args:
        db_settings: Optional settings override (defaults to environment)

    Returns:
        SQLAlchemy Engine
    """
    db_settings = db_settings or get_db_settings()
    connection_string = build_connection_string(db_settings)

    logger.info(f"Connecting to {db_settings.db_type} message store")

    if connection_string == "sqlite://":
        return create_engine(
            connection_string,
            echo=db_settings.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(connection_string, echo=db_settings.echo)


def test_connection(engine: Engine) -> Tuple[bool, str]:
    """
    Test database connection to verify the message store is reachable.

    Returns:
        Tuple of (success: bool, message: str)
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True, "Connection successful"
    except Exception as e:
        logger.error(f"Database connection test failed: {e}", exc_info=True)
        return False, f"Connection failed: {e}"
