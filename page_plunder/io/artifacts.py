"""
Reading and writing of job artifacts.

Layout under ``<output_dir>/<job_id>/``::

    original-desktop.png, original-mobile.png
    layout-plan.json
    iteration-<n>/generated.html
    iteration-<n>/generated-{desktop,mobile}.png
    iteration-<n>/diff-{desktop,mobile}.png
    plundered-page.html
    history.json
    logs/refinement.jsonl
"""

import json
from pathlib import Path
from typing import List, Union

from page_plunder.models import IterationResult, LayoutPlan

LAYOUT_PLAN_FILE = "layout-plan.json"
ITERATION_HTML_FILE = "generated.html"
FINAL_HTML_FILE = "plundered-page.html"
HISTORY_FILE = "history.json"


class ArtifactManager:
    """Manages reading and writing pipeline artifacts."""

    def __init__(self, output_dir: Union[str, Path] = "outputs"):
        """
        Initialize artifact manager.

        Args:
            output_dir: Root directory for pipeline outputs.
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def job_directory(self, job_id: str) -> Path:
        """
        Create (if needed) and return the directory of a job.

        Args:
            job_id: Job identifier.

        Returns:
            Path to job directory.
        """
        job_dir = self.output_dir / job_id
        job_dir.mkdir(parents=True, exist_ok=True)
        (job_dir / "logs").mkdir(exist_ok=True)
        return job_dir

    def iteration_directory(self, job_id: str, iteration: int) -> Path:
        iteration_dir = self.job_directory(job_id) / f"iteration-{iteration}"
        iteration_dir.mkdir(parents=True, exist_ok=True)
        return iteration_dir

    def save_layout_plan(self, job_id: str, plan: LayoutPlan) -> Path:
        plan_path = self.job_directory(job_id) / LAYOUT_PLAN_FILE
        plan_path.write_text(plan.to_json(), encoding="utf-8")
        return plan_path

    def load_layout_plan(self, job_id: str) -> LayoutPlan:
        """
        Load a previously saved layout plan.

        Raises:
            FileNotFoundError: If the job has no saved plan.
        """
        plan_path = self.output_dir / job_id / LAYOUT_PLAN_FILE
        if not plan_path.exists():
            raise FileNotFoundError(f"Layout plan not found: {plan_path}")
        return LayoutPlan.model_validate_json(plan_path.read_text(encoding="utf-8"))

    def save_iteration_html(self, job_id: str, iteration: int, html_content: str) -> Path:
        html_path = self.iteration_directory(job_id, iteration) / ITERATION_HTML_FILE
        html_path.write_text(html_content, encoding="utf-8")
        return html_path

    def save_final_html(self, job_id: str, html_content: str) -> Path:
        """
        Save the best-scoring document of a job.

        Args:
            job_id: Job identifier.
            html_content: Final HTML.

        Returns:
            Path to ``plundered-page.html``.
        """
        html_path = self.job_directory(job_id) / FINAL_HTML_FILE
        html_path.write_text(html_content, encoding="utf-8")
        return html_path

    def load_final_html(self, job_id: str) -> str:
        html_path = self.output_dir / job_id / FINAL_HTML_FILE
        if not html_path.exists():
            raise FileNotFoundError(f"Final HTML not found: {html_path}")
        return html_path.read_text(encoding="utf-8")

    def save_history(self, job_id: str, history: List[IterationResult]) -> Path:
        """Save per-iteration scores and adjustments as JSON."""
        history_path = self.job_directory(job_id) / HISTORY_FILE
        payload = [entry.model_dump(mode="json") for entry in history]
        history_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return history_path
