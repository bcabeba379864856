"""
Tests for the refinement loop.
"""

import json

import pytest

from page_plunder.io.artifacts import ArtifactManager
from page_plunder.models import (
    BestCandidate,
    DiffResult,
    RefinementConfig,
    RefinementStatus,
    ScreenshotPair,
)
from page_plunder.orchestration import get_state_summary, run_refinement, select_best
from page_plunder.orchestration.graph import recursion_limit


class ScriptedScorer:
    """Returns pre-set (desktop, mobile) scores in order."""

    def __init__(self, scores, config=None):
        self.scores = list(scores)
        self.config = config or RefinementConfig()
        self.documents = []

    def score(self, reference, html_content, output_dir):
        self.documents.append(html_content)
        desktop, mobile = self.scores[len(self.documents) - 1]
        return DiffResult(
            desktop_mismatch=desktop,
            mobile_mismatch=mobile,
            passes_threshold=(
                desktop <= self.config.desktop_threshold
                and mobile <= self.config.mobile_threshold
            ),
        )


@pytest.fixture
def reference(tmp_path):
    return ScreenshotPair(desktop=tmp_path / "d.png", mobile=tmp_path / "m.png")


@pytest.fixture
def artifacts(tmp_path):
    return ArtifactManager(tmp_path / "outputs")


def run(scorer, sample_page_content, reference, artifacts, **kwargs):
    return run_refinement(
        job_id="job-1",
        page_content=sample_page_content,
        reference=reference,
        scorer=scorer,
        artifacts=artifacts,
        **kwargs,
    )


def candidate(iteration, desktop, mobile):
    return BestCandidate(iteration=iteration, html=f"<p>{iteration}</p>", desktop_mismatch=desktop, mobile_mismatch=mobile)


def test_select_best_keeps_minimum_and_earlier_ties():
    sums = [(30, 30), (10, 20), (20, 10), (5, 50)]
    best = None
    running_minimum = float("inf")
    for iteration, (desktop, mobile) in enumerate(sums, start=1):
        best = select_best(best, candidate(iteration, desktop, mobile))
        running_minimum = min(running_minimum, desktop + mobile)
        assert best.total_mismatch == running_minimum

    # 10+20 and 20+10 tie: the earlier iteration stays
    assert best.iteration == 2


def test_converges_on_first_passing_iteration(sample_page_content, reference, artifacts):
    states = []
    scorer = ScriptedScorer([(1.5, 2.5)])

    result = run(scorer, sample_page_content, reference, artifacts, listener=states.append)

    assert result.status == RefinementStatus.CONVERGED
    assert result.best_iteration == 1
    assert result.desktop_mismatch == 1.5
    assert result.best_html == scorer.documents[0]
    assert len(result.history) == 1
    assert result.history[0].adjustments == []
    assert states == ["analyzing", "generating", "scoring", "converged"]


def test_exhausts_after_max_iterations(sample_page_content, reference, artifacts):
    states = []
    scorer = ScriptedScorer([(20, 20), (15, 30), (12, 12)])

    result = run(scorer, sample_page_content, reference, artifacts, listener=states.append)

    assert result.status == RefinementStatus.EXHAUSTED
    assert len(scorer.documents) == 3
    assert [h.iteration for h in result.history] == [1, 2, 3]
    assert result.best_iteration == 3
    assert result.best_html == scorer.documents[2]
    assert states == [
        "analyzing",
        "generating", "scoring", "adjusting",
        "generating", "scoring", "adjusting",
        "generating", "scoring", "exhausted",
    ]


def test_best_candidate_survives_worse_iterations(sample_page_content, reference, artifacts):
    scorer = ScriptedScorer([(10, 10), (30, 30), (12, 8)])

    result = run(scorer, sample_page_content, reference, artifacts)

    # 20 vs 60 vs 20: the tie keeps iteration 1
    assert result.best_iteration == 1
    assert result.best_html == scorer.documents[0]
    assert result.desktop_mismatch == 10
    assert result.mobile_mismatch == 10


def test_history_records_adjustments(sample_page_content, reference, artifacts):
    scorer = ScriptedScorer([(10, 2), (2, 10), (2, 10)])

    result = run(scorer, sample_page_content, reference, artifacts)

    assert result.history[0].adjustments == ["spacing:increase", "font:larger"]
    assert result.history[1].adjustments == ["font:smaller", "card-width:wider"]
    assert result.history[2].adjustments == []


def test_each_scored_iteration_is_reported_immediately(sample_page_content, reference, artifacts):
    scorer = ScriptedScorer([(10, 2), (1, 1)])
    reported = []

    def on_iteration(entry):
        reported.append((entry.iteration, len(scorer.documents)))

    result = run(scorer, sample_page_content, reference, artifacts, on_iteration=on_iteration)

    assert reported == [(1, 1), (2, 2)]
    assert [entry.iteration for entry in result.history] == [1, 2]


def test_adjustments_reach_the_next_document(sample_page_content, reference, artifacts):
    scorer = ScriptedScorer([(10, 2), (1, 1)])

    result = run(scorer, sample_page_content, reference, artifacts)

    assert result.status == RefinementStatus.CONVERGED
    assert result.best_iteration == 2
    assert "--h2-font-size: 2rem;" in scorer.documents[0]
    assert "--h2-font-size: 2.1rem;" in scorer.documents[1]
    assert "padding: 2.2rem 1rem" in scorer.documents[1]
    assert result.final_plan.typography.h2.font_size == "2.1rem"


def test_iteration_cap_from_config(sample_page_content, reference, artifacts):
    scorer = ScriptedScorer([(50, 50)] * 5)

    result = run(scorer, sample_page_content, reference, artifacts, config=RefinementConfig(max_iterations=5))

    assert result.status == RefinementStatus.EXHAUSTED
    assert len(scorer.documents) == 5
    assert recursion_limit(5) >= 3 * 5


def test_worst_case_scores_still_terminate(sample_page_content, reference, artifacts):
    class FailingScorer:
        calls = 0

        def score(self, reference, html_content, output_dir):
            FailingScorer.calls += 1
            return DiffResult.worst_case("renderer down")

    result = run(FailingScorer(), sample_page_content, reference, artifacts)

    assert result.status == RefinementStatus.EXHAUSTED
    assert FailingScorer.calls == 3
    assert result.best_iteration == 1
    assert result.desktop_mismatch == 100.0


def test_artifacts_written_per_iteration(sample_page_content, reference, artifacts, tmp_path):
    scorer = ScriptedScorer([(10, 10), (1, 1)])

    run(scorer, sample_page_content, reference, artifacts)

    job_dir = tmp_path / "outputs" / "job-1"
    plan = json.loads((job_dir / "layout-plan.json").read_text(encoding="utf-8"))
    assert [s["type"] for s in plan["sections"]] == ["header", "hero", "offer-list", "footer"]
    assert (job_dir / "iteration-1" / "generated.html").read_text(encoding="utf-8") == scorer.documents[0]
    assert (job_dir / "iteration-2" / "generated.html").exists()
    assert not (job_dir / "iteration-3").exists()


def test_missing_job_id_is_rejected(sample_page_content, reference, artifacts):
    with pytest.raises(ValueError):
        run_refinement(
            job_id="",
            page_content=sample_page_content,
            reference=reference,
            scorer=ScriptedScorer([]),
            artifacts=artifacts,
        )


def test_state_summary():
    summary = get_state_summary({"job_id": "job-1", "status": "scoring", "iteration": 2, "history": []})

    assert "Job: job-1" in summary
    assert "Status: scoring" in summary
    assert "Iteration: 2" in summary
