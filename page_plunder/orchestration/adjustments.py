"""
Deterministic layout adjustments applied between refinement iterations.

Which tokens are applied is a fixed lookup on (failed device, iteration);
each token is a pure transform of style values on a copy of the plan. The
section/element tree itself is never touched, and every application is
checked against a structural signature of the plan.
"""

import re
from typing import Callable, Dict, List, Optional, Tuple

from page_plunder.models import LayoutPlan, LayoutElement, SectionType
from page_plunder.utils.run_logger import get_logger

# iteration -> (desktop tokens, mobile tokens); iterations past the table use the last row
ADJUSTMENT_TABLE: Dict[int, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    1: (("spacing:increase", "font:larger"), ("card-width:narrower", "line-height:increase")),
    2: (("spacing:decrease", "alignment:center"), ("font:smaller", "card-width:wider")),
    3: (("line-height:decrease",), ("spacing:decrease",)),
}

SPACING_FACTORS = {"increase": 1.1, "decrease": 0.9}
FONT_FACTORS = {"larger": 1.05, "smaller": 0.95}
LINE_HEIGHT_FACTORS = {"increase": 1.1, "decrease": 0.9}
CARD_WIDTHS = {"wider": "900px", "narrower": "700px"}

DEFAULT_PADDING_REM = 2.0
NUMBER_PATTERN = re.compile(r"[\d.]+")
FONT_SIZE_PATTERN = re.compile(r"^([\d.]+)(rem|px|em)$")

OFFER_SECTION_TYPES = (SectionType.OFFER_LIST, SectionType.OFFER_CARD)


class StructureMutationError(AssertionError):
    """An adjustment changed the section/element tree instead of style values."""


def suggest_adjustments(
    desktop_mismatch: float,
    mobile_mismatch: float,
    iteration: int,
    desktop_threshold: float = 6.0,
    mobile_threshold: float = 8.0,
) -> List[str]:
    """
    Adjustment tokens for a failing iteration.

    Args:
        desktop_mismatch: Desktop mismatch percentage.
        mobile_mismatch: Mobile mismatch percentage.
        iteration: 1-based iteration that produced the scores.
        desktop_threshold: Desktop budget.
        mobile_threshold: Mobile budget.

    Returns:
        Tokens, desktop ones first; empty when both budgets are met.
    """
    desktop_tokens, mobile_tokens = ADJUSTMENT_TABLE[min(max(iteration, 1), max(ADJUSTMENT_TABLE))]

    tokens: List[str] = []
    if desktop_mismatch > desktop_threshold:
        tokens.extend(desktop_tokens)
    if mobile_mismatch > mobile_threshold:
        tokens.extend(mobile_tokens)
    return tokens


def _round(value: float) -> str:
    return f"{round(value, 2):g}"


def scale_font_size(font_size: str, factor: float) -> str:
    """
    Scale a ``rem``/``px``/``em`` font size, keeping its unit.

    Values in any other form are returned unchanged.
    """
    match = FONT_SIZE_PATTERN.match(font_size.strip())
    if not match:
        return font_size
    return f"{_round(float(match.group(1)) * factor)}{match.group(2)}"


def scale_line_height(line_height: str, factor: float) -> str:
    try:
        return _round(float(line_height) * factor)
    except ValueError:
        return line_height


def adjust_spacing(plan: LayoutPlan, direction: str):
    factor = SPACING_FACTORS[direction]
    for section in plan.sections:
        match = NUMBER_PATTERN.search(section.styles.get("padding", ""))
        current = float(match.group()) if match else DEFAULT_PADDING_REM
        section.styles["padding"] = f"{_round(current * factor)}rem 1rem"


def adjust_font(plan: LayoutPlan, direction: str):
    factor = FONT_FACTORS[direction]
    for level in plan.typography.levels().values():
        level.font_size = scale_font_size(level.font_size, factor)


def adjust_line_height(plan: LayoutPlan, direction: str):
    factor = LINE_HEIGHT_FACTORS[direction]
    plan.global_styles.line_height = scale_line_height(plan.global_styles.line_height, factor)
    plan.typography.body.line_height = scale_line_height(plan.typography.body.line_height, factor)


def adjust_card_width(plan: LayoutPlan, direction: str):
    width = CARD_WIDTHS[direction]
    for section in plan.sections:
        if section.type in OFFER_SECTION_TYPES:
            section.layout.max_width = width


def adjust_alignment(plan: LayoutPlan, direction: str):
    for section in plan.sections:
        section.layout.align = direction


TRANSFORMS: Dict[str, Callable[[LayoutPlan, str], None]] = {
    "spacing": adjust_spacing,
    "font": adjust_font,
    "line-height": adjust_line_height,
    "card-width": adjust_card_width,
    "alignment": adjust_alignment,
}

VALID_DIRECTIONS: Dict[str, Tuple[str, ...]] = {
    "spacing": tuple(SPACING_FACTORS),
    "font": tuple(FONT_FACTORS),
    "line-height": tuple(LINE_HEIGHT_FACTORS),
    "card-width": tuple(CARD_WIDTHS),
    "alignment": ("center",),
}


def _element_signature(element: LayoutElement) -> tuple:
    return (
        element.id,
        element.type,
        element.tag,
        element.content,
        element.src,
        element.alt,
        element.href,
        tuple(_element_signature(child) for child in element.children or []),
    )


def structure_signature(plan: LayoutPlan) -> tuple:
    """Everything adjustments must leave alone: ids, types, tags, content, nesting."""
    return tuple(
        (
            section.id,
            section.type,
            section.order,
            tuple(_element_signature(child) for child in section.children),
        )
        for section in plan.sections
    )


def apply_adjustments(
    plan: LayoutPlan,
    tokens: List[str],
    job_id: Optional[str] = None,
) -> LayoutPlan:
    """
    Apply adjustment tokens to a deep copy of ``plan``.

    Args:
        plan: Current layout plan (left untouched).
        tokens: ``<kind>:<direction>`` tokens, applied in order.
        job_id: Job to log skipped tokens under.

    Returns:
        Adjusted copy of the plan.

    Raises:
        StructureMutationError: If a transform altered the plan's structure.
    """
    logger = get_logger()
    adjusted = plan.model_copy(deep=True)
    signature = structure_signature(adjusted)

    for token in tokens:
        kind, _, direction = token.partition(":")
        transform = TRANSFORMS.get(kind)
        if transform is None or direction not in VALID_DIRECTIONS[kind]:
            logger.log_info(job_id, f"Ignoring unknown adjustment '{token}'")
            continue

        transform(adjusted, direction)
        if structure_signature(adjusted) != signature:
            raise StructureMutationError(f"Adjustment '{token}' changed the layout structure")

    logger.log_trace(job_id, "adjustments_applied", {"tokens": tokens, "plan": adjusted.to_json()})
    return adjusted
