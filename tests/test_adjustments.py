"""
Tests for refinement adjustments.
"""

import pytest

from page_plunder.models import (
    ElementType,
    LayoutElement,
    LayoutPlan,
    LayoutSection,
    SectionType,
)
from page_plunder.orchestration import adjustments
from page_plunder.orchestration.adjustments import (
    StructureMutationError,
    apply_adjustments,
    scale_font_size,
    structure_signature,
    suggest_adjustments,
)


@pytest.fixture
def plan():
    return LayoutPlan(sections=[
        LayoutSection(
            id="hero",
            type=SectionType.HERO,
            order=0,
            styles={"padding": "3rem 1rem"},
            children=[LayoutElement(id="h1-0", type=ElementType.HEADING, tag="h1", content="Hi")],
        ),
        LayoutSection(id="deals", type=SectionType.OFFER_LIST, order=1),
        LayoutSection(id="card", type=SectionType.OFFER_CARD, order=2),
    ])


def test_suggest_iteration_one():
    assert suggest_adjustments(10, 2, 1) == ["spacing:increase", "font:larger"]
    assert suggest_adjustments(2, 10, 1) == ["card-width:narrower", "line-height:increase"]
    assert suggest_adjustments(10, 10, 1) == [
        "spacing:increase",
        "font:larger",
        "card-width:narrower",
        "line-height:increase",
    ]


def test_suggest_iteration_two_and_beyond():
    assert suggest_adjustments(10, 10, 2) == [
        "spacing:decrease",
        "alignment:center",
        "font:smaller",
        "card-width:wider",
    ]
    assert suggest_adjustments(10, 10, 3) == ["line-height:decrease", "spacing:decrease"]
    assert suggest_adjustments(10, 10, 7) == suggest_adjustments(10, 10, 3)


def test_suggest_nothing_within_budget():
    assert suggest_adjustments(6.0, 8.0, 1) == []
    assert suggest_adjustments(6.5, 8.0, 1, desktop_threshold=7.0) == []


def test_scale_font_size():
    assert scale_font_size("2rem", 1.05) == "2.1rem"
    assert scale_font_size("16px", 1.05) == "16.8px"
    assert scale_font_size("1.25em", 0.95) == "1.19em"
    assert scale_font_size("large", 1.05) == "large"
    assert scale_font_size("calc(1rem + 2px)", 1.05) == "calc(1rem + 2px)"


def test_spacing_scales_section_padding(plan):
    increased = apply_adjustments(plan, ["spacing:increase"])
    decreased = apply_adjustments(plan, ["spacing:decrease"])

    assert increased.sections[0].styles["padding"] == "3.3rem 1rem"
    assert increased.sections[1].styles["padding"] == "2.2rem 1rem"  # default 2rem
    assert decreased.sections[0].styles["padding"] == "2.7rem 1rem"


def test_font_scales_every_level(plan):
    adjusted = apply_adjustments(plan, ["font:larger"])

    assert adjusted.typography.h2.font_size == "2.1rem"
    assert adjusted.typography.body.font_size == "1.05rem"
    assert apply_adjustments(plan, ["font:smaller"]).typography.h2.font_size == "1.9rem"


def test_line_height_scales_body(plan):
    adjusted = apply_adjustments(plan, ["line-height:increase"])

    assert adjusted.global_styles.line_height == "1.76"
    assert adjusted.typography.body.line_height == "1.76"
    assert adjusted.typography.h1.line_height == "1.2"


def test_card_width_targets_offer_sections(plan):
    narrower = apply_adjustments(plan, ["card-width:narrower"])
    wider = apply_adjustments(plan, ["card-width:wider"])

    assert narrower.sections[1].layout.max_width == "700px"
    assert narrower.sections[2].layout.max_width == "700px"
    assert narrower.sections[0].layout.max_width is None
    assert wider.sections[1].layout.max_width == "900px"


def test_alignment_center(plan):
    adjusted = apply_adjustments(plan, ["alignment:center"])
    assert all(section.layout.align == "center" for section in adjusted.sections)


def test_adjustments_work_on_a_copy(plan):
    before = plan.model_copy(deep=True)

    adjusted = apply_adjustments(plan, ["spacing:increase", "font:larger", "alignment:center"])

    assert plan == before
    assert adjusted != plan
    assert structure_signature(adjusted) == structure_signature(plan)


def test_unknown_tokens_are_ignored(plan):
    adjusted = apply_adjustments(plan, ["colour:brighter", "spacing:sideways", "spacing"])
    assert adjusted == plan


def test_structural_mutation_is_rejected(plan, monkeypatch):
    def retype_sections(target, direction):
        for section in target.sections:
            section.type = SectionType.GENERIC

    monkeypatch.setitem(adjustments.TRANSFORMS, "spacing", retype_sections)

    with pytest.raises(StructureMutationError):
        apply_adjustments(plan, ["spacing:increase"])


def test_content_mutation_is_rejected(plan, monkeypatch):
    def rewrite_heading(target, direction):
        target.sections[0].children[0].content = "Changed"

    monkeypatch.setitem(adjustments.TRANSFORMS, "font", rewrite_heading)

    with pytest.raises(StructureMutationError):
        apply_adjustments(plan, ["font:larger"])
