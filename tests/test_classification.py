import pytest

from portfolio_graph.errors import UnrecognizedEntryTypeError
from portfolio_graph.models import ClassifyResponse
from portfolio_graph.nodes import create_classify_node
from portfolio_graph.nodes.classification import (
    adjust_confidence,
    build_classification_options,
    format_entry_type_block,
)
from utils.portfolio.specialty_registry import get_specialty_config
from tests.factories import CASE_TRANSCRIPT, classify_response


# ---------------------------------------------------------------------------
# adjust_confidence
# ---------------------------------------------------------------------------

def test_confident_long_transcript_is_unchanged():
    assert adjust_confidence(0.95, 120, 3, []) == 0.95


def test_short_transcript_is_capped():
    assert adjust_confidence(0.95, 20, 3, []) == 0.85


def test_weak_signals_are_capped():
    assert adjust_confidence(0.95, 120, 1, []) == 0.9


def test_short_and_weak_takes_the_lower_cap():
    assert adjust_confidence(0.95, 20, 0, []) == 0.85


def test_close_alternative_applies_penalty():
    assert adjust_confidence(0.8, 120, 3, [0.7]) == 0.7


def test_best_alternative_is_used_for_ambiguity():
    assert adjust_confidence(0.9, 120, 3, [0.2, 0.85]) == 0.8


def test_distant_alternative_is_ignored():
    assert adjust_confidence(0.9, 120, 3, [0.5]) == 0.9


def test_penalty_floors_at_zero():
    assert adjust_confidence(0.05, 120, 3, [0.0]) == 0.0


def test_raw_above_one_is_capped():
    assert adjust_confidence(1.7, 120, 3, []) == 1.0


def test_negative_raw_is_never_raised():
    assert adjust_confidence(-0.2, 120, 3, []) == -0.2
    assert adjust_confidence(-0.2, 120, 3, [-0.25]) <= -0.2
    assert adjust_confidence(-0.004, 10, 0, []) <= -0.004


def test_rounding_never_exceeds_raw():
    assert adjust_confidence(0.876, 120, 3, []) == 0.87


def test_result_is_bounded_and_never_above_raw():
    for step in range(101):
        raw = step / 100 + 0.004
        for words, signals, alternatives in [(10, 0, []), (120, 3, [raw - 0.05]), (120, 1, [0.3])]:
            result = adjust_confidence(raw, words, signals, alternatives)
            assert 0.0 <= result <= min(raw, 1.0)


def test_explicit_thresholds_override_settings():
    thresholds = {"short_transcript_words": 10, "short_transcript_cap": 0.5, "min_signals": 0}
    assert adjust_confidence(0.95, 5, 0, [], thresholds=thresholds) == 0.5


# ---------------------------------------------------------------------------
# classify node
# ---------------------------------------------------------------------------

async def test_classify_node_records_adjusted_suggestion(deps, llm, base_state):
    llm.queue(ClassifyResponse, classify_response(
        confidence=0.9,
        alternatives=[{"entry_type": "OUT_OF_HOURS", "confidence": 0.8, "reasoning": "Could be OOH"}],
    ))
    node = create_classify_node(deps)

    result = await node(dict(base_state, full_transcript=CASE_TRANSCRIPT))

    assert result["entry_type"] == "CLINICAL_CASE_REVIEW"
    assert result["classification_confidence"] == 0.8
    assert result["classification_source"] == "llm"
    assert result["classification_signals"] == ["examination", "differential", "referred"]
    assert result["alternatives"] == [
        {"entry_type": "OUT_OF_HOURS", "confidence": 0.8, "reasoning": "Could be OOH"}
    ]


async def test_classify_node_uses_node_llm_options(deps, llm, base_state):
    llm.queue(ClassifyResponse, classify_response())
    node = create_classify_node(deps)

    await node(dict(base_state, full_transcript=CASE_TRANSCRIPT))

    call = llm.calls_for(ClassifyResponse)[0]
    assert call.temperature == 0.1
    assert call.max_tokens == 800
    assert "SIGNIFICANT_EVENT" in call.prompt_text
    assert "bibasal crackles" in call.prompt_text


async def test_classify_node_rejects_unknown_entry_type(deps, llm, base_state):
    llm.queue(ClassifyResponse, classify_response(entry_type="MADE_UP"))
    node = create_classify_node(deps)

    with pytest.raises(UnrecognizedEntryTypeError) as exc_info:
        await node(dict(base_state, full_transcript=CASE_TRANSCRIPT))
    assert exc_info.value.entry_type == "MADE_UP"


def test_model_confidence_is_clamped_on_parse():
    response = classify_response(confidence=1.4)
    assert response.confidence == 1.0


# ---------------------------------------------------------------------------
# options
# ---------------------------------------------------------------------------

def test_classification_options_are_deduplicated():
    config = get_specialty_config("GP")
    state = {
        "entry_type": "CLINICAL_CASE_REVIEW",
        "classification_confidence": 0.8,
        "classification_reasoning": "single patient",
        "alternatives": [
            {"entry_type": "CLINICAL_CASE_REVIEW", "confidence": 0.6, "reasoning": "dup"},
            {"entry_type": "OUT_OF_HOURS", "confidence": 0.4, "reasoning": None},
            {"entry_type": "OUT_OF_HOURS", "confidence": 0.3, "reasoning": "dup"},
        ],
    }

    options = build_classification_options(state, config)

    assert [o["code"] for o in options] == ["CLINICAL_CASE_REVIEW", "OUT_OF_HOURS"]
    assert options[0]["label"] == "Clinical Case Review"
    assert options[0]["confidence"] == 0.8
    assert options[1]["reasoning"] == ""


def test_entry_type_block_lists_every_entry_type():
    config = get_specialty_config("GP")
    block = format_entry_type_block(config)
    for code in config.entry_type_codes():
        assert f"### {code}:" in block
