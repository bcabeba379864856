"""
Tests for the job store.
"""

import threading
from pathlib import Path

import pytest

from page_plunder.jobs.job_store import JobStore
from page_plunder.models import (
    IterationResult,
    JobStatus,
    RefinementResult,
    RefinementStatus,
)


def make_result():
    return RefinementResult(
        status=RefinementStatus.CONVERGED,
        best_html="<html></html>",
        best_iteration=1,
        desktop_mismatch=1.0,
        mobile_mismatch=2.0,
        history=[IterationResult(iteration=1, desktop_mismatch=1.0, mobile_mismatch=2.0, passes_threshold=True)],
    )


def test_create_and_get():
    store = JobStore()

    job = store.create_job("https://example.com")

    assert job.id.startswith("job_")
    assert job.status == JobStatus.PENDING
    assert store.get_job(job.id).url == "https://example.com"
    assert store.get_job("missing") is None


def test_returned_records_are_snapshots():
    store = JobStore()
    job = store.create_job("https://example.com")

    job.status = JobStatus.FAILED

    assert store.get_job(job.id).status == JobStatus.PENDING


def test_status_transitions_and_completion():
    store = JobStore()
    job = store.create_job("https://example.com")

    store.update_status(job.id, JobStatus.RENDERING)
    store.update_status(job.id, JobStatus.TESTING)
    store.add_iteration(job.id, IterationResult(iteration=1, desktop_mismatch=9, mobile_mismatch=9))
    done = store.complete_job(job.id, make_result(), Path("out.html"))

    assert done.status == JobStatus.COMPLETED
    assert done.completed_at is not None
    assert done.html_path == Path("out.html")
    assert done.result.best_iteration == 1
    assert [i.iteration for i in done.iterations] == [1]


def test_finished_jobs_reject_status_updates():
    store = JobStore()
    job = store.create_job("https://example.com")
    store.fail_job(job.id, "RenderError: unreachable")

    with pytest.raises(ValueError):
        store.update_status(job.id, JobStatus.RENDERING)
    assert store.get_job(job.id).error == "RenderError: unreachable"


def test_unknown_job_raises():
    with pytest.raises(KeyError):
        JobStore().update_status("nope", JobStatus.RENDERING)


def test_concurrent_creation_yields_unique_ids():
    store = JobStore()
    ids = []
    lock = threading.Lock()

    def worker():
        for _ in range(20):
            job = store.create_job("https://example.com")
            with lock:
                ids.append(job.id)

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(ids) == 100
    assert len(set(ids)) == 100
    assert len(store.list_jobs()) == 100
