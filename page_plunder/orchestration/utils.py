"""
Utility functions for the refinement graph.
"""

from typing import Optional, Tuple

from page_plunder.orchestration.state import RefinementState


def get_state_summary(state: RefinementState) -> str:
    """
    Get a human-readable summary of the current state.

    Args:
        state: Current RefinementState

    Returns:
        Formatted string summary
    """
    summary = []
    summary.append(f"Job: {state.get('job_id', 'N/A')}")
    summary.append(f"Status: {state.get('status', 'N/A')}")
    summary.append(f"Iteration: {state.get('iteration', 0)}")
    summary.append(f"HTML exists: {state.get('html') is not None}")

    plan = state.get("plan")
    if plan is not None:
        summary.append(f"Sections: {len(plan.sections)}")

    diff = state.get("diff")
    if diff is not None:
        summary.append(
            f"Last score: desktop {diff.desktop_mismatch:.2f}% | mobile {diff.mobile_mismatch:.2f}%"
        )

    best = state.get("best")
    if best is not None:
        summary.append(f"Best: iteration {best.iteration} ({best.total_mismatch:.2f}% summed)")

    if state.get("history"):
        summary.append(f"History: {len(state['history'])} iterations")

    return "\n".join(summary)


def validate_state(state: RefinementState) -> Tuple[bool, Optional[str]]:
    """
    Validate that state has the inputs a refinement run needs.

    Args:
        state: State to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not state.get("job_id"):
        return False, "job_id is required"
    if state.get("page_content") is None:
        return False, "page_content is required"
    if state.get("reference") is None:
        return False, "reference screenshots are required"

    return True, None
