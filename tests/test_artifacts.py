"""
Tests for the artifact manager.
"""

import json

import pytest

from page_plunder.io.artifacts import ArtifactManager
from page_plunder.models import IterationResult, LayoutPlan, LayoutSection, SectionType


def test_job_layout(tmp_path):
    manager = ArtifactManager(tmp_path)

    job_dir = manager.job_directory("job-1")
    iteration_dir = manager.iteration_directory("job-1", 2)

    assert job_dir == tmp_path / "job-1"
    assert (job_dir / "logs").is_dir()
    assert iteration_dir == job_dir / "iteration-2"


def test_layout_plan_round_trip(tmp_path):
    manager = ArtifactManager(tmp_path)
    plan = LayoutPlan(sections=[LayoutSection(id="hero", type=SectionType.HERO, order=0)])

    path = manager.save_layout_plan("job-1", plan)

    assert path.name == "layout-plan.json"
    assert "colorScheme" in json.loads(path.read_text(encoding="utf-8"))
    assert manager.load_layout_plan("job-1") == plan


def test_html_files(tmp_path):
    manager = ArtifactManager(tmp_path)

    iteration_path = manager.save_iteration_html("job-1", 1, "<p>one</p>")
    final_path = manager.save_final_html("job-1", "<p>best</p>")

    assert iteration_path == tmp_path / "job-1" / "iteration-1" / "generated.html"
    assert final_path == tmp_path / "job-1" / "plundered-page.html"
    assert manager.load_final_html("job-1") == "<p>best</p>"


def test_history(tmp_path):
    manager = ArtifactManager(tmp_path)
    history = [
        IterationResult(iteration=1, desktop_mismatch=12.5, mobile_mismatch=3.0, adjustments=["spacing:increase"]),
        IterationResult(iteration=2, desktop_mismatch=4.0, mobile_mismatch=3.0, passes_threshold=True),
    ]

    path = manager.save_history("job-1", history)
    data = json.loads(path.read_text(encoding="utf-8"))

    assert data[0]["adjustments"] == ["spacing:increase"]
    assert data[1]["passes_threshold"] is True


def test_missing_files_raise(tmp_path):
    manager = ArtifactManager(tmp_path)

    with pytest.raises(FileNotFoundError):
        manager.load_layout_plan("nope")
    with pytest.raises(FileNotFoundError):
        manager.load_final_html("nope")
