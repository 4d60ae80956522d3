"""
Utilities package for the portfolio graph.

This package is organized into:
- utils.common: Common utilities used across the entire project (config, db, logging)
- utils.portfolio: Portfolio specific utilities (specialty registry, LLM client, prompts, etc.)

All imports must use explicit paths:
- from utils.common import ...
- from utils.portfolio import ...
"""
