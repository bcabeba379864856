"""
Visual diff scoring of generated documents against reference screenshots.

The generated document is rendered at both viewports, each screenshot is
compared pixel-by-pixel with its reference and the mismatch is reported as a
percentage of the compared area. Differing sizes are reconciled by
nearest-neighbour resampling both images onto ``(max(w), max(h))``.
"""

from pathlib import Path
from typing import Callable, Optional, Protocol, Tuple, Union

import numpy as np
from PIL import Image
from pixelmatch import pixelmatch

from page_plunder.models import DeviceType, DiffResult, RefinementConfig, ScreenshotPair
from page_plunder.utils.run_logger import get_logger

# (img1, img2, width, height, output, threshold, include_aa) -> mismatched pixel count
PixelComparator = Callable[[bytes, bytes, int, int, bytearray, float, bool], int]

DIFF_ALPHA = 0.1


class MarkupRenderer(Protocol):
    def render_markup(
        self,
        html_content: str,
        output_dir: Union[str, Path],
        prefix: str = "generated",
    ) -> ScreenshotPair:
        ...


def pixelmatch_comparator(
    img1: bytes,
    img2: bytes,
    width: int,
    height: int,
    output: bytearray,
    threshold: float,
    include_aa: bool,
) -> int:
    """Default comparator backed by the ``pixelmatch`` package."""
    return pixelmatch(
        img1,
        img2,
        width,
        height,
        output,
        threshold=threshold,
        includeAA=include_aa,
        alpha=DIFF_ALPHA,
    )


def load_rgba(path: Union[str, Path]) -> np.ndarray:
    """Decode a PNG into an ``(h, w, 4)`` uint8 array."""
    with Image.open(path) as img:
        return np.array(img.convert("RGBA"), dtype=np.uint8)


def resample_nearest(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """
    Nearest-neighbour resample onto ``width`` x ``height``.

    Destination pixel ``(x, y)`` takes source pixel
    ``(floor(x * src_w / width), floor(y * src_h / height))``.

    Args:
        pixels: ``(h, w, 4)`` RGBA array.
        width: Target width.
        height: Target height.

    Returns:
        Resampled array (the input itself when sizes already match).
    """
    src_height, src_width = pixels.shape[:2]
    if (src_width, src_height) == (width, height):
        return pixels

    rows = (np.arange(height) * src_height) // height
    cols = (np.arange(width) * src_width) // width
    return pixels[rows][:, cols]


def align_images(reference: np.ndarray, candidate: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Bring both images to the larger width and the larger height."""
    width = max(reference.shape[1], candidate.shape[1])
    height = max(reference.shape[0], candidate.shape[0])
    return (
        resample_nearest(reference, width, height),
        resample_nearest(candidate, width, height),
    )


class VisualDiffScorer:
    """
    Scores generated markup against a pair of reference screenshots.

    Failures anywhere in rendering or comparison never propagate: the result is
    the worst case (100 % on both devices, not passing) and the error is logged.
    """

    def __init__(
        self,
        renderer: MarkupRenderer,
        config: Optional[RefinementConfig] = None,
        comparator: Optional[PixelComparator] = None,
        job_id: Optional[str] = None,
    ):
        """
        Initialize the scorer.

        Args:
            renderer: Anything with ``render_markup(html, output_dir, prefix)``.
            config: Budgets and comparator sensitivity.
            comparator: Pixel comparator, pixelmatch by default.
            job_id: Job the scores are logged under.
        """
        self.renderer = renderer
        self.config = config or RefinementConfig()
        self.comparator = comparator or pixelmatch_comparator
        self.job_id = job_id
        self.logger = get_logger()

    def compare_images(
        self,
        reference_path: Union[str, Path],
        candidate_path: Union[str, Path],
        diff_path: Optional[Union[str, Path]] = None,
    ) -> float:
        """
        Mismatch percentage between two screenshots.

        Args:
            reference_path: Reference PNG.
            candidate_path: Generated PNG.
            diff_path: Where to write the diff visualisation, if anywhere.

        Returns:
            Mismatched pixels as a percentage of the compared area, 2 decimals.
        """
        reference, candidate = align_images(load_rgba(reference_path), load_rgba(candidate_path))
        height, width = reference.shape[:2]

        output = bytearray(width * height * 4)
        mismatched = self.comparator(
            reference.tobytes(),
            candidate.tobytes(),
            width,
            height,
            output,
            self.config.pixel_threshold,
            self.config.include_aa,
        )

        if diff_path is not None:
            diff_path = Path(diff_path)
            diff_path.parent.mkdir(parents=True, exist_ok=True)
            Image.frombytes("RGBA", (width, height), bytes(output)).save(diff_path)

        return round(mismatched / (width * height) * 100, 2)

    def passes(self, desktop_mismatch: float, mobile_mismatch: float) -> bool:
        return (
            desktop_mismatch <= self.config.desktop_threshold
            and mobile_mismatch <= self.config.mobile_threshold
        )

    def score(
        self,
        reference: ScreenshotPair,
        html_content: str,
        output_dir: Union[str, Path],
    ) -> DiffResult:
        """
        Render ``html_content`` and score it against ``reference``.

        Args:
            reference: Original desktop/mobile screenshots.
            html_content: Generated document.
            output_dir: Iteration directory for generated screenshots and diffs.

        Returns:
            DiffResult; the worst case when anything fails.
        """
        output_dir = Path(output_dir)
        try:
            generated = self.renderer.render_markup(html_content, output_dir, "generated")

            mismatches = {}
            diff_images = {}
            for device in (DeviceType.DESKTOP, DeviceType.MOBILE):
                diff_path = output_dir / f"diff-{device.value}.png"
                mismatches[device] = self.compare_images(
                    reference.get(device), generated.get(device), diff_path
                )
                diff_images[device] = diff_path

            desktop = mismatches[DeviceType.DESKTOP]
            mobile = mismatches[DeviceType.MOBILE]
            return DiffResult(
                success=True,
                desktop_mismatch=desktop,
                mobile_mismatch=mobile,
                desktop_diff_image=diff_images[DeviceType.DESKTOP],
                mobile_diff_image=diff_images[DeviceType.MOBILE],
                passes_threshold=self.passes(desktop, mobile),
            )
        except Exception as e:
            self.logger.log_error(self.job_id, "visual_diff", e)
            return DiffResult.worst_case(f"{type(e).__name__}: {e}")
