"""
Common utilities used across the entire project.
"""

from utils.common.config import (
    get_checkpoint_settings,
    get_db_settings,
    get_llm_settings,
    get_logging_settings,
    get_node_llm_options,
    get_workflow_settings,
    load_workflow_config,
)
from utils.common.db import build_connection_string, get_engine
from utils.common.logger import setup_logger, get_logger

__all__ = [
    'get_checkpoint_settings',
    'get_db_settings',
    'get_llm_settings',
    'get_logging_settings',
    'get_node_llm_options',
    'get_workflow_settings',
    'load_workflow_config',
    'build_connection_string',
    'get_engine',
    'setup_logger',
    'get_logger',
]
