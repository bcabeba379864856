"""
End-to-end plunder jobs: render the source page, refine a generated copy
against it and save the best document.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

from page_plunder.io.artifacts import ArtifactManager
from page_plunder.jobs.job_store import JobStore
from page_plunder.models import JobRecord, JobStatus, RefinementConfig
from page_plunder.evaluation.visual_diff import PixelComparator, VisualDiffScorer
from page_plunder.orchestration.graph import run_refinement
from page_plunder.orchestration.state import ADJUSTING, ANALYZING, GENERATING, SCORING
from page_plunder.rendering.browser_renderer import BrowserRenderer, RenderError
from page_plunder.utils.run_logger import get_logger

# Refinement state -> job status reported while it runs
STATE_TO_JOB_STATUS = {
    ANALYZING: JobStatus.ANALYZING,
    GENERATING: JobStatus.GENERATING,
    SCORING: JobStatus.TESTING,
    ADJUSTING: JobStatus.REFINING,
}


class PlunderPipeline:
    """Runs plunder jobs, one strictly sequential refinement loop per job."""

    def __init__(
        self,
        config: Optional[RefinementConfig] = None,
        renderer: Optional[BrowserRenderer] = None,
        job_store: Optional[JobStore] = None,
        artifacts: Optional[ArtifactManager] = None,
        comparator: Optional[PixelComparator] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Loop constants (``RefinementConfig.from_env()`` if omitted).
            renderer: Page renderer; a Playwright renderer built from ``config`` by default.
            job_store: Store to record jobs in.
            artifacts: Artifact store rooted at ``config.output_dir`` by default.
            comparator: Pixel comparator override for the scorer.
        """
        self.config = config or RefinementConfig.from_env()
        self.renderer = renderer or BrowserRenderer(
            headless=self.config.headless,
            desktop_viewport=self.config.desktop_viewport,
            mobile_viewport=self.config.mobile_viewport,
            wait_time=self.config.render_wait_ms,
        )
        self.job_store = job_store or JobStore()
        self.artifacts = artifacts or ArtifactManager(self.config.output_dir)
        self.comparator = comparator
        self.logger = get_logger()

    def run(self, url: str) -> JobRecord:
        """
        Plunder one URL.

        Failures end the job as ``failed`` with the error message; nothing is
        retried.

        Args:
            url: Source page URL.

        Returns:
            Final JobRecord snapshot.
        """
        job = self.job_store.create_job(url)
        job_id = job.id
        self.logger.log_info(job_id, f"Plundering {url}")

        try:
            self.job_store.update_status(job_id, JobStatus.RENDERING)
            render = self.renderer.render_url(url, self.artifacts.job_directory(job_id))
            if not render.success or render.screenshots is None:
                raise RenderError(render.error or "Render returned no screenshots")

            scorer = VisualDiffScorer(
                self.renderer,
                config=self.config,
                comparator=self.comparator,
                job_id=job_id,
            )
            result = run_refinement(
                job_id=job_id,
                page_content=render.page_content,
                reference=render.screenshots,
                scorer=scorer,
                artifacts=self.artifacts,
                config=self.config,
                title=render.page_title,
                description=render.page_content.meta_description,
                listener=lambda state: self._track_state(job_id, state),
                on_iteration=lambda entry: self.job_store.add_iteration(job_id, entry),
            )

            html_path = self.artifacts.save_final_html(job_id, result.best_html)
            self.artifacts.save_history(job_id, result.history)
            self.logger.log_info(
                job_id,
                f"{result.status.value} after {len(result.history)} iterations; "
                f"best iteration {result.best_iteration} "
                f"(desktop {result.desktop_mismatch:.2f}%, mobile {result.mobile_mismatch:.2f}%)",
            )
            return self.job_store.complete_job(job_id, result, html_path)

        except Exception as e:
            self.logger.log_error(job_id, "pipeline", e)
            return self.job_store.fail_job(job_id, f"{type(e).__name__}: {e}")

    def run_many(self, urls: List[str], max_workers: int = 4) -> List[JobRecord]:
        """
        Plunder several URLs concurrently; jobs share nothing but the job store.

        Args:
            urls: Source page URLs.
            max_workers: Thread pool size.

        Returns:
            Final JobRecords in the order of ``urls``.
        """
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(self.run, urls))

    def _track_state(self, job_id: str, state: str):
        status = STATE_TO_JOB_STATUS.get(state)
        if status is not None:
            self.job_store.update_status(job_id, status)
