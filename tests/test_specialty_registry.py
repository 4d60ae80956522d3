import pytest

from portfolio_graph.errors import ConfigurationError
from utils.portfolio.specialty_registry import (
    SpecialtyConfig,
    get_specialty_config,
    get_template_for_entry_type,
    get_word_count_range,
)
from tests.factories import CCR_ASSESSABLE


def test_gp_registry_loads():
    config = get_specialty_config("GP")

    assert config.name == "General Practice"
    assert len(config.entry_types) == 10
    assert len(config.templates) == 8
    assert len(config.capabilities) == 13
    assert "CLINICAL_CASE_REVIEW" in config.entry_type_codes()


def test_specialty_lookup_accepts_legacy_and_lowercase_codes():
    assert get_specialty_config("1") is get_specialty_config("GP")
    assert get_specialty_config("gp") is get_specialty_config("GP")


def test_unknown_specialty_raises():
    with pytest.raises(ConfigurationError) as exc_info:
        get_specialty_config("CARDIOLOGY")
    assert exc_info.value.specialty == "CARDIOLOGY"


def test_every_entry_type_resolves_to_a_template():
    config = get_specialty_config("GP")
    for code in config.entry_type_codes():
        template = get_template_for_entry_type(config, code)
        assert template.id == config.get_entry_type(code).template_id


def test_entry_types_can_share_a_template():
    config = get_specialty_config("GP")
    assert get_template_for_entry_type(config, "OUT_OF_HOURS").id == "CCR_TEMPLATE"
    assert get_template_for_entry_type(config, "ACADEMIC_ACTIVITY").id == "LEA_TEMPLATE"


def test_template_section_weights_sum_to_one():
    config = get_specialty_config("GP")
    for template in config.templates.values():
        assert sum(section.weight for section in template.sections) == pytest.approx(1.0), template.id


def test_assessable_sections_are_required_with_a_question():
    config = get_specialty_config("GP")
    template = get_template_for_entry_type(config, "CLINICAL_CASE_REVIEW")

    assert [s.id for s in template.assessable_sections()] == CCR_ASSESSABLE
    assert template.get_section("ethical_legal").extraction_question is None
    assert not template.get_section("clinical_findings").is_assessable


def test_word_count_range():
    config = get_specialty_config("GP")
    assert get_word_count_range(config.templates["CCR_TEMPLATE"]) == (150, 300)
    assert get_word_count_range(config.templates["QIP_TEMPLATE"]) == (500, 800)


def _broken_config(**overrides) -> SpecialtyConfig:
    data = get_specialty_config("GP").model_dump()
    data.update(overrides)
    return SpecialtyConfig.model_validate(data)


def test_missing_template_mapping_raises():
    config = _broken_config(entry_type_to_template={})
    with pytest.raises(ConfigurationError, match="No template mapping"):
        get_template_for_entry_type(config, "CLINICAL_CASE_REVIEW")


def test_mapping_to_missing_template_raises():
    config = _broken_config(entry_type_to_template={"CLINICAL_CASE_REVIEW": "NOPE_TEMPLATE"})
    with pytest.raises(ConfigurationError, match="NOPE_TEMPLATE"):
        get_template_for_entry_type(config, "CLINICAL_CASE_REVIEW")


def test_duplicate_section_ids_are_rejected():
    data = get_specialty_config("GP").model_dump()
    sections = data["templates"]["CCR_TEMPLATE"]["sections"]
    sections.append(dict(sections[0]))
    with pytest.raises(ValueError, match="duplicate section id"):
        SpecialtyConfig.model_validate(data)
