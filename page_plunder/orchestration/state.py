"""
State management for the refinement graph.

Defines RefinementState as a TypedDict carrying the layout plan, the current
document, its scores and the best candidate seen so far.
"""

import operator
from typing import Annotated, List, Optional, TypedDict

from page_plunder.models import (
    BestCandidate,
    DiffResult,
    IterationResult,
    LayoutPlan,
    PageContent,
    ScreenshotPair,
)

ANALYZING = "analyzing"
GENERATING = "generating"
SCORING = "scoring"
ADJUSTING = "adjusting"
CONVERGED = "converged"
EXHAUSTED = "exhausted"

TERMINAL_STATES = (CONVERGED, EXHAUSTED)


class RefinementState(TypedDict, total=False):
    """
    State of one refinement run.

    All fields are optional (total=False) so nodes return partial updates;
    ``history`` is append-only across nodes.
    """

    # Inputs
    job_id: str
    page_content: PageContent
    reference: ScreenshotPair
    title: Optional[str]
    description: Optional[str]

    # Working values
    plan: LayoutPlan
    html: Optional[str]
    iteration: int  # 1-based
    status: str  # one of the state names above
    diff: Optional[DiffResult]
    pending_adjustments: List[str]

    # Results
    history: Annotated[List[IterationResult], operator.add]
    best: Optional[BestCandidate]
