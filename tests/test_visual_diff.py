"""
Tests for visual diff scoring.
"""

import numpy as np
from PIL import Image

from conftest import FakeRenderer, save_solid_png
from page_plunder.evaluation.visual_diff import (
    VisualDiffScorer,
    align_images,
    resample_nearest,
)
from page_plunder.models import RefinementConfig, ScreenshotPair


def split_image(path, size):
    """Red left half, white right half."""
    width, height = size
    image = Image.new("RGBA", size, color="white")
    image.paste((255, 0, 0, 255), (0, 0, width // 2, height))
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path)
    return path


def test_resample_nearest_index_rule():
    pixels = np.arange(3 * 2 * 4, dtype=np.uint8).reshape(2, 3, 4)

    resampled = resample_nearest(pixels, 6, 4)

    assert resampled.shape == (4, 6, 4)
    # dst x maps to floor(x * 3 / 6), dst y to floor(y * 2 / 4)
    assert (resampled[0, 0] == pixels[0, 0]).all()
    assert (resampled[0, 1] == pixels[0, 0]).all()
    assert (resampled[0, 2] == pixels[0, 1]).all()
    assert (resampled[3, 5] == pixels[1, 2]).all()


def test_resample_same_size_is_identity():
    pixels = np.zeros((5, 7, 4), dtype=np.uint8)
    assert resample_nearest(pixels, 7, 5) is pixels


def test_align_images_uses_max_dimensions():
    a = np.zeros((10, 30, 4), dtype=np.uint8)
    b = np.zeros((20, 15, 4), dtype=np.uint8)

    aligned_a, aligned_b = align_images(a, b)

    assert aligned_a.shape == (20, 30, 4)
    assert aligned_b.shape == (20, 30, 4)


def test_white_pages_score_zero_and_pass(tmp_path, white_reference):
    scorer = VisualDiffScorer(FakeRenderer(color="white", size=(100, 100)))

    result = scorer.score(white_reference, "<html></html>", tmp_path / "iteration-1")

    assert result.success
    assert result.desktop_mismatch == 0.0
    assert result.mobile_mismatch == 0.0
    assert result.passes_threshold
    assert result.desktop_diff_image.exists()
    assert result.mobile_diff_image.name == "diff-mobile.png"


def test_black_page_fails_budget(tmp_path, white_reference):
    scorer = VisualDiffScorer(FakeRenderer(color="black", size=(100, 100)))

    result = scorer.score(white_reference, "<html></html>", tmp_path / "iteration-1")

    assert result.success
    assert result.desktop_mismatch == 100.0
    assert not result.passes_threshold


def test_same_content_at_different_sizes_scores_zero(tmp_path):
    scorer = VisualDiffScorer(FakeRenderer())
    reference = split_image(tmp_path / "ref.png", (100, 100))
    candidate = split_image(tmp_path / "cand.png", (200, 200))

    assert scorer.compare_images(reference, candidate, tmp_path / "diff.png") == 0.0
    with Image.open(tmp_path / "diff.png") as diff:
        assert diff.size == (200, 200)


def test_injected_comparator_and_rounded_verdict(tmp_path):
    calls = []

    def comparator(img1, img2, width, height, output, threshold, include_aa):
        calls.append((width, height, threshold, include_aa))
        return 6004  # 6.004% of 1000x100

    size = (1000, 100)
    reference = ScreenshotPair(
        desktop=save_solid_png(tmp_path / "ref" / "d.png", size),
        mobile=save_solid_png(tmp_path / "ref" / "m.png", size),
    )
    scorer = VisualDiffScorer(FakeRenderer(size=size), config=RefinementConfig(), comparator=comparator)

    result = scorer.score(reference, "<html></html>", tmp_path / "iteration-1")

    assert result.desktop_mismatch == 6.0
    assert result.mobile_mismatch == 6.0
    assert result.passes_threshold  # verdict uses the rounded values
    assert calls == [(1000, 100, 0.1, False)] * 2


def test_render_failure_yields_worst_case(tmp_path, white_reference):
    class BrokenRenderer:
        def render_markup(self, html_content, output_dir, prefix="generated"):
            raise RuntimeError("browser crashed")

    result = VisualDiffScorer(BrokenRenderer()).score(white_reference, "<html></html>", tmp_path)

    assert result.success is False
    assert result.desktop_mismatch == 100.0
    assert result.mobile_mismatch == 100.0
    assert result.passes_threshold is False
    assert "browser crashed" in result.error


def test_missing_reference_yields_worst_case(tmp_path):
    reference = ScreenshotPair(desktop=tmp_path / "nope.png", mobile=tmp_path / "nope.png")

    result = VisualDiffScorer(FakeRenderer()).score(reference, "<html></html>", tmp_path)

    assert result.success is False
    assert result.total_mismatch == 200.0
