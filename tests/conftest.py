"""
Shared fixtures.
"""

import pytest
from PIL import Image

from page_plunder.models import RenderResult, PageContent, ScreenshotPair
from page_plunder.utils.run_logger import get_logger


@pytest.fixture(autouse=True)
def quiet_logger():
    """Keep the shared run logger off the console and the filesystem."""
    logger = get_logger()
    logger.configure(level="NONE", log_to_file=False)
    yield logger
    logger.configure(level="NONE", log_to_file=False)


def save_solid_png(path, size, color="white"):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", size, color=color).save(path)
    return path


class FakeRenderer:
    """Renderer double that paints solid images instead of launching a browser."""

    def __init__(self, color="white", size=(100, 100), page_content=None, fail_with=None):
        self.color = color
        self.size = size
        self.page_content = page_content or PageContent()
        self.fail_with = fail_with
        self.markup_calls = 0

    def render_url(self, url, output_dir):
        if self.fail_with:
            return RenderResult.failure(self.fail_with)
        screenshots = ScreenshotPair(
            desktop=save_solid_png(output_dir / "original-desktop.png", self.size),
            mobile=save_solid_png(output_dir / "original-mobile.png", self.size),
        )
        return RenderResult(
            success=True,
            screenshots=screenshots,
            page_title="Example",
            page_content=self.page_content,
        )

    def render_markup(self, html_content, output_dir, prefix="generated"):
        self.markup_calls += 1
        return ScreenshotPair(
            desktop=save_solid_png(output_dir / f"{prefix}-desktop.png", self.size, self.color),
            mobile=save_solid_png(output_dir / f"{prefix}-mobile.png", self.size, self.color),
        )


@pytest.fixture
def white_reference(tmp_path):
    """Solid white 100x100 desktop and mobile reference screenshots."""
    reference_dir = tmp_path / "reference"
    return ScreenshotPair(
        desktop=save_solid_png(reference_dir / "original-desktop.png", (100, 100)),
        mobile=save_solid_png(reference_dir / "original-mobile.png", (100, 100)),
    )


@pytest.fixture
def sample_page_content():
    """Page content with a header, a hero, an offer list and a footer."""
    body = (
        '<header class="site-header"><h2>Brand</h2>'
        '<a class="btn" href="/signup">Sign up now</a></header>'
        '<section class="hero-banner"><h1>Welcome to the plunder</h1>'
        "<p>Everything you need to rebuild a page.</p></section>"
        '<section id="deals" class="offers"><div class="card"><h3>Gold plan</h3>'
        "<p>Great value for money every month.</p>"
        '<img src="/gold.png" alt="Gold"></div></section>'
        '<footer class="footer"><p>Copyright 2024 Example Corporation. All rights reserved.</p></footer>'
    )
    return PageContent(
        title="Example",
        meta_description="An example page",
        body_html=body,
        fonts=["Inter"],
    )
