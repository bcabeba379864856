"""
Tests for end-to-end plunder jobs with a fake renderer.
"""

import json

from conftest import FakeRenderer
from page_plunder.jobs.job_store import JobStore
from page_plunder.models import JobStatus, RefinementConfig, RefinementStatus
from page_plunder.pipeline.plunder import PlunderPipeline


def make_pipeline(tmp_path, renderer, job_store=None):
    return PlunderPipeline(
        config=RefinementConfig(output_dir=tmp_path / "outputs"),
        renderer=renderer,
        job_store=job_store or JobStore(),
    )


def test_matching_page_completes_in_one_iteration(tmp_path, sample_page_content):
    renderer = FakeRenderer(color="white", page_content=sample_page_content)
    pipeline = make_pipeline(tmp_path, renderer)

    job = pipeline.run("https://example.com")

    assert job.status == JobStatus.COMPLETED
    assert job.result.status == RefinementStatus.CONVERGED
    assert job.result.desktop_mismatch == 0.0
    assert renderer.markup_calls == 1

    job_dir = tmp_path / "outputs" / job.id
    assert job.html_path == job_dir / "plundered-page.html"
    assert job.html_path.read_text(encoding="utf-8") == job.result.best_html
    assert (job_dir / "original-desktop.png").exists()
    assert (job_dir / "layout-plan.json").exists()
    assert (job_dir / "iteration-1" / "diff-desktop.png").exists()
    history = json.loads((job_dir / "history.json").read_text(encoding="utf-8"))
    assert history[0]["iteration"] == 1


def test_mismatching_page_exhausts_iterations(tmp_path, sample_page_content):
    renderer = FakeRenderer(color="black", page_content=sample_page_content)
    pipeline = make_pipeline(tmp_path, renderer)

    job = pipeline.run("https://example.com")

    assert job.status == JobStatus.COMPLETED
    assert job.result.status == RefinementStatus.EXHAUSTED
    assert renderer.markup_calls == 3
    assert [i.iteration for i in job.iterations] == [1, 2, 3]
    assert job.result.best_iteration == 1


def test_render_failure_fails_job_without_iterations(tmp_path):
    renderer = FakeRenderer(fail_with="URL is disallowed by robots.txt")
    pipeline = make_pipeline(tmp_path, renderer)

    job = pipeline.run("https://example.com/private")

    assert job.status == JobStatus.FAILED
    assert "disallowed by robots.txt" in job.error
    assert job.completed_at is not None
    assert renderer.markup_calls == 0
    assert not (tmp_path / "outputs" / job.id / "layout-plan.json").exists()


def test_run_many_keeps_jobs_independent(tmp_path, sample_page_content):
    store = JobStore()
    pipeline = make_pipeline(tmp_path, FakeRenderer(page_content=sample_page_content), job_store=store)
    urls = ["https://a.example", "https://b.example", "https://c.example"]

    jobs = pipeline.run_many(urls, max_workers=3)

    assert [job.url for job in jobs] == urls
    assert all(job.status == JobStatus.COMPLETED for job in jobs)
    assert len({job.id for job in jobs}) == 3
    assert len(store.list_jobs()) == 3


class RecordingJobStore(JobStore):
    """Job store that snapshots the record every time an iteration lands."""

    def __init__(self):
        super().__init__()
        self.progress = []

    def add_iteration(self, job_id, iteration):
        record = super().add_iteration(job_id, iteration)
        self.progress.append((record.status, [i.iteration for i in record.iterations]))
        return record


def test_iterations_are_recorded_while_the_job_runs(tmp_path, sample_page_content):
    store = RecordingJobStore()
    pipeline = make_pipeline(tmp_path, FakeRenderer(color="black", page_content=sample_page_content), job_store=store)

    job = pipeline.run("https://example.com")

    assert store.progress == [
        (JobStatus.TESTING, [1]),
        (JobStatus.TESTING, [1, 2]),
        (JobStatus.TESTING, [1, 2, 3]),
    ]
    assert [i.iteration for i in job.iterations] == [1, 2, 3]
