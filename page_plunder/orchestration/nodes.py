"""
Node functions for the refinement graph.

Each node takes the current state, does one step of the loop and returns a
partial state update. Collaborators (analyzer, generator, scorer, artifact
store) are bound once per run by ``RefinementNodes``.
"""

from pathlib import Path
from typing import Any, Callable, Dict, Literal, Optional, Protocol, Union

from langgraph.graph import END

from page_plunder.analysis.layout_analyzer import LayoutAnalyzer
from page_plunder.codegen.html_generator import HTMLGenerator
from page_plunder.io.artifacts import ArtifactManager
from page_plunder.models import (
    BestCandidate,
    DiffResult,
    IterationResult,
    RefinementConfig,
    ScreenshotPair,
)
from page_plunder.orchestration.adjustments import apply_adjustments, suggest_adjustments
from page_plunder.orchestration.state import (
    ADJUSTING,
    ANALYZING,
    CONVERGED,
    EXHAUSTED,
    GENERATING,
    SCORING,
    TERMINAL_STATES,
    RefinementState,
)
from page_plunder.utils.run_logger import get_logger

TransitionListener = Callable[[str], None]
IterationListener = Callable[[IterationResult], None]


class Scorer(Protocol):
    def score(
        self,
        reference: ScreenshotPair,
        html_content: str,
        output_dir: Union[str, Path],
    ) -> DiffResult:
        ...


def select_best(best: Optional[BestCandidate], candidate: BestCandidate) -> BestCandidate:
    """
    Fold step for best-candidate tracking.

    A candidate replaces the current best only with a strictly lower summed
    mismatch, so ties keep the earlier iteration.
    """
    if best is None or candidate.total_mismatch < best.total_mismatch:
        return candidate
    return best


def route_after_score(state: RefinementState) -> Literal["adjust", END]:
    """Stop on a terminal state, otherwise adjust and regenerate."""
    if state.get("status") in TERMINAL_STATES:
        return END
    return "adjust"


class RefinementNodes:
    """Binds the loop's collaborators to the graph's node functions."""

    def __init__(
        self,
        scorer: Scorer,
        artifacts: ArtifactManager,
        config: Optional[RefinementConfig] = None,
        analyzer: Optional[LayoutAnalyzer] = None,
        generator: Optional[HTMLGenerator] = None,
        listener: Optional[TransitionListener] = None,
        on_iteration: Optional[IterationListener] = None,
    ):
        """
        Initialize the node set.

        Args:
            scorer: Anything with ``score(reference, html, output_dir)``.
            artifacts: Where plans and per-iteration documents are written.
            config: Budgets and iteration cap.
            analyzer: Content analyzer (default instance if omitted).
            generator: Markup generator (default instance if omitted).
            listener: Called with every state name entered.
            on_iteration: Called with each scored iteration as soon as it is known.
        """
        self.scorer = scorer
        self.artifacts = artifacts
        self.config = config or RefinementConfig()
        self.analyzer = analyzer or LayoutAnalyzer()
        self.generator = generator or HTMLGenerator()
        self.listener = listener
        self.on_iteration = on_iteration
        self.logger = get_logger()

    def _enter(self, state: RefinementState, name: str, iteration: Optional[int] = None):
        self.logger.log_transition(state.get("job_id"), name, iteration)
        if self.listener is not None:
            self.listener(name)

    def analyze_node(self, state: RefinementState) -> Dict[str, Any]:
        """Build the layout plan once and persist it for inspection."""
        self._enter(state, ANALYZING)
        job_id = state["job_id"]

        plan = self.analyzer.analyze(state["page_content"])
        self.artifacts.save_layout_plan(job_id, plan)
        self.logger.log_info(job_id, f"Layout plan with {len(plan.sections)} sections")

        return {
            "plan": plan,
            "iteration": 1,
            "status": ANALYZING,
            "best": None,
            "pending_adjustments": [],
        }

    def generate_node(self, state: RefinementState) -> Dict[str, Any]:
        iteration = state["iteration"]
        self._enter(state, GENERATING, iteration)

        html_content = self.generator.generate(
            state["plan"],
            title=state.get("title"),
            description=state.get("description"),
        )
        self.artifacts.save_iteration_html(state["job_id"], iteration, html_content)

        return {"html": html_content, "status": GENERATING}

    def score_node(self, state: RefinementState) -> Dict[str, Any]:
        """
        Score the current document, fold it into the best candidate and decide
        the next state.

        Args:
            state: State after generation.

        Returns:
            Update with ``diff``, ``best``, one history entry and the next
            ``status`` (converged, exhausted or scoring for "keep going").
        """
        job_id = state["job_id"]
        iteration = state["iteration"]
        self._enter(state, SCORING, iteration)

        output_dir = self.artifacts.iteration_directory(job_id, iteration)
        diff = self.scorer.score(state["reference"], state["html"], output_dir)

        best = select_best(
            state.get("best"),
            BestCandidate(
                iteration=iteration,
                html=state["html"],
                desktop_mismatch=diff.desktop_mismatch,
                mobile_mismatch=diff.mobile_mismatch,
            ),
        )

        adjustments = []
        if diff.passes_threshold:
            status = CONVERGED
        elif iteration >= self.config.max_iterations:
            status = EXHAUSTED
        else:
            status = SCORING
            adjustments = suggest_adjustments(
                diff.desktop_mismatch,
                diff.mobile_mismatch,
                iteration,
                self.config.desktop_threshold,
                self.config.mobile_threshold,
            )

        self.logger.log_iteration(
            job_id,
            iteration,
            diff.desktop_mismatch,
            diff.mobile_mismatch,
            diff.passes_threshold,
            adjustments,
        )
        entry = IterationResult(
            iteration=iteration,
            desktop_mismatch=diff.desktop_mismatch,
            mobile_mismatch=diff.mobile_mismatch,
            passes_threshold=diff.passes_threshold,
            adjustments=adjustments,
        )
        if self.on_iteration is not None:
            self.on_iteration(entry)
        if status in TERMINAL_STATES:
            self._enter(state, status, iteration)

        return {
            "diff": diff,
            "best": best,
            "status": status,
            "pending_adjustments": adjustments,
            "history": [entry],
        }

    def adjust_node(self, state: RefinementState) -> Dict[str, Any]:
        """Apply the pending tokens to a copy of the plan and advance the iteration."""
        iteration = state["iteration"]
        self._enter(state, ADJUSTING, iteration)

        plan = apply_adjustments(
            state["plan"],
            state.get("pending_adjustments", []),
            job_id=state.get("job_id"),
        )
        return {
            "plan": plan,
            "iteration": iteration + 1,
            "status": ADJUSTING,
            "pending_adjustments": [],
        }
