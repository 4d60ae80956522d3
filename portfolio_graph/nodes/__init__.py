"""
Workflow nodes module.

This module exports all node functions and node factories for the portfolio
graph. Nodes are organized into logical submodules:
- context: Transcript gathering
- classification: Entry-type classification and confirmation
- completeness: Section coverage, follow-up drafting and the follow-up pause
- capabilities: Capability tagging and confirmation
- reflection: Reflection and PDP generation
- finalize: Quality loop and save
"""

from portfolio_graph.nodes.shared import GraphDeps
from portfolio_graph.nodes.context import create_gather_context_node
from portfolio_graph.nodes.classification import (
    create_classify_node,
    present_classification_node
)
from portfolio_graph.nodes.completeness import (
    create_check_completeness_node,
    create_draft_followup_node,
    ask_followup_node
)
from portfolio_graph.nodes.capabilities import (
    create_tag_capabilities_node,
    present_capabilities_node
)
from portfolio_graph.nodes.reflection import (
    create_reflect_node,
    create_generate_pdp_node
)
from portfolio_graph.nodes.finalize import (
    quality_check_node,
    repair_node,
    save_node
)

__all__ = [
    "GraphDeps",
    "create_gather_context_node",
    "create_classify_node",
    "present_classification_node",
    "create_check_completeness_node",
    "create_draft_followup_node",
    "ask_followup_node",
    "create_tag_capabilities_node",
    "present_capabilities_node",
    "create_reflect_node",
    "create_generate_pdp_node",
    "quality_check_node",
    "repair_node",
    "save_node",
]
