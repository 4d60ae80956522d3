from portfolio_graph.models import CapabilityTaggingResponse
from portfolio_graph.nodes import create_tag_capabilities_node
from portfolio_graph.nodes.capabilities import format_capability_block, validate_capability_tags
from utils.portfolio.llm_client import StructuredOutputError
from utils.portfolio.specialty_registry import get_specialty_config
from tests.factories import CASE_TRANSCRIPT, capability, capability_response


def _validate(*tags, limit=5):
    return validate_capability_tags(capability_response(*tags), get_specialty_config("GP"), limit)


def test_unknown_codes_are_dropped():
    tags = _validate(capability("C-99"), capability("C-06"))
    assert [t["code"] for t in tags] == ["C-06"]


def test_first_duplicate_wins_even_without_evidence():
    tags = _validate(
        capability("C-06", 0.9, evidence=[]),
        capability("C-06", 0.8, evidence=["quote"]),
        capability("C-07", 0.7),
    )
    assert [t["code"] for t in tags] == ["C-07"]


def test_blank_evidence_is_dropped():
    tags = _validate(capability("C-06", evidence=["  ", ""]), capability("C-07", evidence=[" real quote "]))
    assert [t["code"] for t in tags] == ["C-07"]
    assert tags[0]["evidence"] == ["real quote"]


def test_tags_sorted_by_confidence_and_truncated():
    tags = _validate(
        capability("C-01", 0.3),
        capability("C-02", 0.9),
        capability("C-03", 0.5),
        capability("C-04", 0.7),
        limit=3,
    )
    assert [t["code"] for t in tags] == ["C-02", "C-04", "C-03"]


def test_canonical_name_replaces_model_name():
    tags = _validate(capability("C-06", name="Diagnosis stuff"))
    assert tags[0]["name"] == "Decision-making and diagnosis"


async def test_tag_capabilities_node(deps, llm, base_state):
    llm.queue(CapabilityTaggingResponse, capability_response(
        capability("C-07", 0.7),
        capability("C-06", 0.9),
        capability("X-1", 0.99),
    ))
    node = create_tag_capabilities_node(deps)

    result = await node(dict(base_state, entry_type="CLINICAL_CASE_REVIEW", full_transcript=CASE_TRANSCRIPT))

    assert [c["code"] for c in result["capabilities"]] == ["C-06", "C-07"]
    call = llm.calls_for(CapabilityTaggingResponse)[0]
    assert (call.temperature, call.max_tokens) == (0.2, 1200)
    assert "C-13" in call.prompt_text


def test_capability_block_groups_by_domain():
    block = format_capability_block(get_specialty_config("GP"))
    assert block.startswith("### D-01:")
    assert block.count("### D-01:") == 1
    assert "- C-06 Decision-making and diagnosis:" in block


async def test_mixed_model_answer_is_cleaned_to_five_canonical_tags(deps, llm, base_state):
    llm.queue(CapabilityTaggingResponse, capability_response(
        capability("C-03", 0.55, name="comms"),
        capability("C-06", 0.92, name="diagnosis"),
        capability("C-09", 0.61, name="teamwork"),
        capability("C-06", 0.99, name="diagnosis again"),
        capability("C-07", 0.84, name="management"),
        capability("C-42", 0.97, name="invented"),
        capability("C-12", 0.70, name="safeguarding"),
    ))
    node = create_tag_capabilities_node(deps)

    result = await node(dict(base_state, entry_type="CLINICAL_CASE_REVIEW", full_transcript=CASE_TRANSCRIPT))

    assert [(c["code"], c["name"], c["confidence"]) for c in result["capabilities"]] == [
        ("C-06", "Decision-making and diagnosis", 0.92),
        ("C-07", "Clinical management", 0.84),
        ("C-12", "Holistic practice, health promotion and safeguarding", 0.70),
        ("C-09", "Team working", 0.61),
        ("C-03", "Communicating and consulting", 0.55),
    ]


async def test_unparseable_tagging_answer_drops_every_tag(deps, llm, base_state):
    llm.queue(CapabilityTaggingResponse, StructuredOutputError("CapabilityTaggingResponse", "truncated"))
    node = create_tag_capabilities_node(deps)

    result = await node(dict(base_state, entry_type="CLINICAL_CASE_REVIEW", full_transcript=CASE_TRANSCRIPT))

    assert result == {"capabilities": []}
