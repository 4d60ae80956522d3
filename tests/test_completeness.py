from portfolio_graph.models import CompletenessResponse, FollowupQuestionsResponse
from portfolio_graph.nodes import ask_followup_node, create_check_completeness_node, create_draft_followup_node
from portfolio_graph.nodes import completeness
from portfolio_graph.nodes.completeness import merge_section_verdicts, select_followup_sections
from utils.portfolio.specialty_registry import ArtefactTemplate, get_specialty_config
from utils.portfolio.llm_client import StructuredOutputError
from tests.factories import CASE_TRANSCRIPT, CCR_ASSESSABLE, all_covered, completeness_response


def _ccr_sections():
    return get_specialty_config("GP").templates["CCR_TEMPLATE"].sections


# ---------------------------------------------------------------------------
# merge_section_verdicts
# ---------------------------------------------------------------------------

def test_absent_sections_count_as_missing():
    response = completeness_response({"presentation": True})
    coverage = merge_section_verdicts(response, ["presentation", "outcome"])
    assert coverage == {"presentation": True, "outcome": False}


def test_unknown_section_ids_are_ignored():
    response = completeness_response({"presentation": True, "made_up": True})
    coverage = merge_section_verdicts(response, ["presentation"])
    assert coverage == {"presentation": True}


def test_repeated_section_needs_every_mention_covered():
    response = CompletenessResponse(sections=[
        {"section_id": "outcome", "covered": True, "evidence": "a"},
        {"section_id": "outcome", "covered": False, "evidence": None},
    ])
    assert merge_section_verdicts(response, ["outcome"]) == {"outcome": False}


# ---------------------------------------------------------------------------
# check_completeness node
# ---------------------------------------------------------------------------

async def test_check_completeness_reports_missing_in_template_order(deps, llm, base_state):
    llm.queue(CompletenessResponse, completeness_response({
        "reflection": False,
        "presentation": True,
        "clinical_reasoning": True,
        "management": False,
    }))
    node = create_check_completeness_node(deps)

    result = await node(dict(base_state, entry_type="CLINICAL_CASE_REVIEW", full_transcript=CASE_TRANSCRIPT))

    assert result["missing_sections"] == ["management", "outcome", "reflection"]
    assert result["has_enough_info"] is False
    assert set(result["section_coverage"]) == set(CCR_ASSESSABLE)

    call = llm.calls_for(CompletenessResponse)[0]
    assert (call.temperature, call.max_tokens) == (0.1, 1000)
    assert "ethical_legal" not in call.prompt_text
    assert "clinical_findings" not in call.prompt_text


async def test_check_completeness_all_covered(deps, llm, base_state):
    llm.queue(CompletenessResponse, all_covered())
    node = create_check_completeness_node(deps)

    result = await node(dict(base_state, entry_type="OUT_OF_HOURS"))

    assert result["missing_sections"] == []
    assert result["has_enough_info"] is True


async def test_check_completeness_without_entry_type_skips_llm(deps, llm, base_state):
    node = create_check_completeness_node(deps)

    result = await node(base_state)

    assert result == {"section_coverage": {}, "missing_sections": [], "has_enough_info": True}
    assert llm.call_count() == 0


async def test_template_without_assessable_sections_skips_llm(deps, llm, base_state, monkeypatch):
    template = ArtefactTemplate.model_validate({
        "id": "FREEFORM_TEMPLATE",
        "name": "Freeform",
        "word_count_range": {"min": 50, "max": 100},
        "sections": [{
            "id": "notes", "label": "Notes", "required": False, "description": "Anything",
            "prompt_hint": "Write notes", "extraction_question": "Anything else?", "weight": 1.0,
        }],
    })
    monkeypatch.setattr(completeness, "get_template_for_entry_type", lambda config, code: template)
    node = create_check_completeness_node(deps)

    result = await node(dict(base_state, entry_type="CLINICAL_CASE_REVIEW"))

    assert result["has_enough_info"] is True
    assert llm.call_count() == 0


# ---------------------------------------------------------------------------
# follow-up selection
# ---------------------------------------------------------------------------

def test_followup_sections_ranked_by_weight_then_template_order():
    selected = select_followup_sections(_ccr_sections(), CCR_ASSESSABLE, 3)
    assert [s.id for s in selected] == ["reflection", "clinical_reasoning", "presentation"]


def test_followup_sections_skip_sections_without_question():
    selected = select_followup_sections(_ccr_sections(), ["ethical_legal", "outcome"], 3)
    assert [s.id for s in selected] == ["outcome"]


def test_followup_sections_respect_limit():
    assert len(select_followup_sections(_ccr_sections(), CCR_ASSESSABLE, 2)) == 2


async def test_draft_followup_without_entry_type_advances_round(deps, llm, base_state):
    node = create_draft_followup_node(deps)

    result = await node(dict(base_state, follow_up_round=1))

    assert result == {"follow_up_round": 2, "followup_questions": []}
    assert llm.call_count() == 0


async def test_draft_followup_with_nothing_askable_skips_llm(deps, llm, base_state):
    node = create_draft_followup_node(deps)
    state = dict(base_state, entry_type="CLINICAL_CASE_REVIEW", missing_sections=["ethical_legal"])

    result = await node(state)

    assert result == {"follow_up_round": 1, "followup_questions": []}
    assert llm.call_count(FollowupQuestionsResponse) == 0


async def test_draft_followup_sends_transcript_for_rephrasing(deps, llm, base_state):
    llm.queue(FollowupQuestionsResponse, FollowupQuestionsResponse(questions=[
        {"section_id": "outcome", "question": "You mentioned the echo. How is he doing now?"},
    ]))
    node = create_draft_followup_node(deps)
    state = dict(
        base_state,
        entry_type="CLINICAL_CASE_REVIEW",
        missing_sections=["outcome"],
        full_transcript=CASE_TRANSCRIPT,
    )

    result = await node(state)

    assert result["followup_questions"] == [
        {"section_id": "outcome", "question": "You mentioned the echo. How is he doing now?"},
    ]
    call = llm.calls_for(FollowupQuestionsResponse)[0]
    assert CASE_TRANSCRIPT in call.prompt_text
    assert (call.temperature, call.max_tokens) == (0.3, 600)


async def test_ask_followup_without_questions_does_not_pause(base_state):
    result = await ask_followup_node(dict(base_state, followup_questions=[]))

    assert result == {}


async def test_unparseable_completeness_answer_marks_every_section_missing(deps, llm, base_state):
    llm.queue(CompletenessResponse, StructuredOutputError("CompletenessResponse", "not json"))
    node = create_check_completeness_node(deps)

    result = await node(dict(base_state, entry_type="CLINICAL_CASE_REVIEW", full_transcript=CASE_TRANSCRIPT))

    assert result["missing_sections"] == CCR_ASSESSABLE
    assert result["has_enough_info"] is False
    assert set(result["section_coverage"].values()) == {False}


async def test_empty_coverage_results_are_independent(deps, base_state):
    node = create_check_completeness_node(deps)

    first = await node(base_state)
    first["missing_sections"].append("presentation")
    first["section_coverage"]["presentation"] = False
    second = await node(base_state)

    assert second == {"section_coverage": {}, "missing_sections": [], "has_enough_info": True}
