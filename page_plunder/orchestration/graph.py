"""
LangGraph construction for the refinement loop.

analyze -> generate -> score -> (adjust -> generate -> score)* -> END
"""

from typing import Optional

from langgraph.graph import END, StateGraph

from page_plunder.analysis.layout_analyzer import LayoutAnalyzer
from page_plunder.codegen.html_generator import HTMLGenerator
from page_plunder.io.artifacts import ArtifactManager
from page_plunder.models import (
    PageContent,
    RefinementConfig,
    RefinementResult,
    RefinementStatus,
    ScreenshotPair,
)
from page_plunder.orchestration.nodes import (
    IterationListener,
    RefinementNodes,
    Scorer,
    TransitionListener,
    route_after_score,
)
from page_plunder.orchestration.state import RefinementState
from page_plunder.orchestration.utils import validate_state


def create_refinement_graph(nodes: RefinementNodes, checkpointer=None):
    """
    Create and compile the refinement LangGraph.

    Args:
        nodes: Node set with its collaborators bound.
        checkpointer: Optional checkpointer for state persistence.

    Returns:
        Compiled LangGraph application
    """
    graph = StateGraph(RefinementState)

    graph.add_node("analyze", nodes.analyze_node)
    graph.add_node("generate", nodes.generate_node)
    graph.add_node("score", nodes.score_node)
    graph.add_node("adjust", nodes.adjust_node)

    graph.set_entry_point("analyze")

    graph.add_edge("analyze", "generate")
    graph.add_edge("generate", "score")
    graph.add_conditional_edges(
        "score",
        route_after_score,
        {
            "adjust": "adjust",
            END: END,
        }
    )
    # Adjusted plan always gets regenerated
    graph.add_edge("adjust", "generate")

    if checkpointer:
        return graph.compile(checkpointer=checkpointer)
    return graph.compile()


def recursion_limit(max_iterations: int) -> int:
    """Graph steps needed for ``max_iterations`` rounds, with headroom."""
    return 4 * max_iterations + 5


def run_refinement(
    job_id: str,
    page_content: PageContent,
    reference: ScreenshotPair,
    scorer: Scorer,
    artifacts: ArtifactManager,
    config: Optional[RefinementConfig] = None,
    title: Optional[str] = None,
    description: Optional[str] = None,
    analyzer: Optional[LayoutAnalyzer] = None,
    generator: Optional[HTMLGenerator] = None,
    listener: Optional[TransitionListener] = None,
    on_iteration: Optional[IterationListener] = None,
) -> RefinementResult:
    """
    Run the analyze/generate/score/adjust loop for one page.

    Args:
        job_id: Job the artifacts and logs belong to.
        page_content: Raw content extracted from the source page.
        reference: Original desktop/mobile screenshots.
        scorer: Scores a document against ``reference``.
        artifacts: Artifact store for plans and per-iteration files.
        config: Budgets and iteration cap.
        title: Original page title.
        description: Original meta description.
        analyzer: Content analyzer override.
        generator: Markup generator override.
        listener: Called with every state name entered.
        on_iteration: Called with each scored iteration.

    Returns:
        RefinementResult carrying the best-scoring document.

    Raises:
        ValueError: If a required input is missing.
    """
    config = config or RefinementConfig()
    nodes = RefinementNodes(
        scorer=scorer,
        artifacts=artifacts,
        config=config,
        analyzer=analyzer,
        generator=generator,
        listener=listener,
        on_iteration=on_iteration,
    )
    app = create_refinement_graph(nodes)

    initial_state: RefinementState = {
        "job_id": job_id,
        "page_content": page_content,
        "reference": reference,
        "title": title or page_content.title or None,
        "description": description or page_content.meta_description or None,
        "history": [],
    }
    is_valid, error = validate_state(initial_state)
    if not is_valid:
        raise ValueError(error)

    final_state = app.invoke(
        initial_state,
        config={"recursion_limit": recursion_limit(config.max_iterations)},
    )

    best = final_state["best"]
    return RefinementResult(
        status=RefinementStatus(final_state["status"]),
        best_html=best.html,
        best_iteration=best.iteration,
        desktop_mismatch=best.desktop_mismatch,
        mobile_mismatch=best.mobile_mismatch,
        history=final_state.get("history", []),
        final_plan=final_state.get("plan"),
    )
