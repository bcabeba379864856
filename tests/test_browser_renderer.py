"""
Tests for the renderer that need no browser.
"""

import io
import urllib.error

from page_plunder.rendering import browser_renderer
from page_plunder.rendering.browser_renderer import BrowserRenderer, is_allowed_by_robots

ROBOTS_TXT = b"""
User-agent: *
Disallow: /private
"""


def fake_urlopen(body=None, error=None):
    def urlopen(request, timeout=None):
        if error is not None:
            raise error
        return io.BytesIO(body)
    return urlopen


def test_robots_disallow(monkeypatch):
    monkeypatch.setattr(browser_renderer.urllib.request, "urlopen", fake_urlopen(ROBOTS_TXT))

    assert not is_allowed_by_robots("https://example.com/private/page")
    assert is_allowed_by_robots("https://example.com/public")


def test_robots_unreachable_fails_open(monkeypatch):
    monkeypatch.setattr(
        browser_renderer.urllib.request,
        "urlopen",
        fake_urlopen(error=urllib.error.URLError("no route")),
    )

    assert is_allowed_by_robots("https://example.com/private/page")


def test_disallowed_url_is_a_render_failure(monkeypatch, tmp_path):
    monkeypatch.setattr(browser_renderer, "is_allowed_by_robots", lambda url: False)

    result = BrowserRenderer().render_url("https://example.com/private", tmp_path)

    assert result.success is False
    assert "robots.txt" in result.error
    assert result.screenshots is None


def test_default_viewports():
    renderer = BrowserRenderer()

    assert (renderer.desktop_viewport.width, renderer.desktop_viewport.height) == (1440, 900)
    assert (renderer.mobile_viewport.width, renderer.mobile_viewport.height) == (390, 844)


def test_extraction_script_captures_image_data_urls():
    script = browser_renderer.EXTRACT_CONTENT_SCRIPT

    assert "canvas.toDataURL('image/png')" in script
    assert "dataUrl" in script
