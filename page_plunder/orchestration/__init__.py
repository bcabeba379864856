"""
LangGraph refinement loop: analyze once, then generate, score and adjust
until the mismatch budget is met or the iteration cap is reached.
"""

from page_plunder.orchestration.adjustments import (
    StructureMutationError,
    apply_adjustments,
    suggest_adjustments,
)
from page_plunder.orchestration.graph import (
    create_refinement_graph,
    run_refinement,
)
from page_plunder.orchestration.nodes import RefinementNodes, select_best
from page_plunder.orchestration.state import RefinementState
from page_plunder.orchestration.utils import (
    get_state_summary,
    validate_state,
)

__all__ = [
    "StructureMutationError",
    "apply_adjustments",
    "suggest_adjustments",
    "create_refinement_graph",
    "run_refinement",
    "RefinementNodes",
    "select_best",
    "RefinementState",
    "get_state_summary",
    "validate_state",
]
