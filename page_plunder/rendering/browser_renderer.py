"""
Page rendering and screenshot capture using Playwright.

Loads a source URL (or generated markup) in headless Chromium, waits for
fonts and images, captures full-page desktop and mobile screenshots and, for
source pages, extracts the raw content the layout analyzer works from. Every
call runs in its own browser context so concurrent jobs never share
navigation or viewport state.
"""

import asyncio
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Dict, Optional, Union
from urllib.parse import urlparse

from playwright.async_api import Page, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from protego import Protego

from page_plunder.models import (
    PageContent,
    RenderResult,
    ScreenshotPair,
    ViewportConfig,
)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
ROBOTS_USER_AGENT = "PagePlunderBot"
ROBOTS_FETCH_TIMEOUT = 10

NAVIGATION_TIMEOUT_MS = 60000
NETWORK_IDLE_TIMEOUT_MS = 30000
IMAGE_TIMEOUT_MS = 5000
VIEWPORT_SETTLE_MS = 500


class RenderError(RuntimeError):
    """The source page could not be rendered (disallowed, unreachable, ...)."""


WAIT_FOR_IMAGES_SCRIPT = """
(timeout) => Promise.all(
  Array.from(document.images).map(img => {
    if (img.complete) return Promise.resolve();
    return new Promise(resolve => {
      img.onload = resolve;
      img.onerror = resolve;
      setTimeout(resolve, timeout);
    });
  })
)
"""

EXTRACT_CONTENT_SCRIPT = """
() => {
  const importantProps = [
    'display', 'flexDirection', 'justifyContent', 'alignItems', 'gap',
    'gridTemplateColumns', 'gridTemplateRows',
    'width', 'height', 'maxWidth', 'minHeight',
    'padding', 'paddingTop', 'paddingRight', 'paddingBottom', 'paddingLeft',
    'margin', 'marginTop', 'marginRight', 'marginBottom', 'marginLeft',
    'backgroundColor', 'color', 'backgroundImage',
    'fontSize', 'fontFamily', 'fontWeight', 'lineHeight', 'textAlign',
    'borderRadius', 'border', 'borderColor', 'borderWidth',
    'boxShadow', 'position', 'top', 'left', 'right', 'bottom'
  ];

  const stylesFor = (el) => {
    const computed = window.getComputedStyle(el);
    const styles = {};
    for (const prop of importantProps) {
      const value = computed.getPropertyValue(prop.replace(/([A-Z])/g, '-$1').toLowerCase());
      if (value && value !== 'none' && value !== 'normal' && value !== 'auto') {
        styles[prop] = value;
      }
    }
    return styles;
  };

  const metaDesc = document.querySelector('meta[name="description"]');

  const bodyClone = document.body.cloneNode(true);
  const removeSelectors = [
    'script', 'noscript', 'iframe[src*="google"]', 'iframe[src*="facebook"]',
    'iframe[src*="analytics"]', '[class*="tracking"]', '[id*="tracking"]',
    '[class*="gtm"]', '[id*="gtm"]', '[class*="cookie"]', '[id*="cookie"]'
  ];
  for (const selector of removeSelectors) {
    bodyClone.querySelectorAll(selector).forEach(el => el.remove());
  }

  const computedStyles = {};
  const keyElements = document.querySelectorAll(
    'header, nav, main, section, article, aside, footer, ' +
    'h1, h2, h3, h4, h5, h6, p, a, button, img, small, ' +
    '[class*="hero"], [class*="card"], [class*="offer"], [class*="cta"]'
  );
  keyElements.forEach((el, index) => {
    const rect = el.getBoundingClientRect();
    const className = typeof el.className === 'string' ? el.className.trim() : '';
    const selector = el.tagName.toLowerCase() +
      (el.id ? `#${el.id}` : '') +
      (className ? `.${className.split(/\\s+/).join('.')}` : '') +
      `[${index}]`;
    computedStyles[selector] = {
      styles: stylesFor(el),
      boundingBox: { x: rect.x, y: rect.y, width: rect.width, height: rect.height }
    };
  });

  const images = [];
  document.querySelectorAll('img').forEach(img => {
    if (img.src && img.naturalWidth > 0) {
      let dataUrl;
      try {
        const canvas = document.createElement('canvas');
        canvas.width = img.naturalWidth;
        canvas.height = img.naturalHeight;
        const ctx = canvas.getContext('2d');
        if (ctx) {
          ctx.drawImage(img, 0, 0);
          dataUrl = canvas.toDataURL('image/png');
        }
      } catch (e) {
        // tainted canvas (cross-origin image): keep the src
      }
      images.push({
        src: img.src, alt: img.alt || '',
        width: img.naturalWidth, height: img.naturalHeight,
        dataUrl
      });
    }
  });

  const fonts = [];
  document.fonts.forEach(font => {
    const family = font.family.replace(/^["']|["']$/g, '');
    if (!fonts.includes(family)) fonts.push(family);
  });

  const background = new Set();
  const text = new Set();
  const accent = new Set();
  document.querySelectorAll('*').forEach(el => {
    const computed = window.getComputedStyle(el);
    const bg = computed.backgroundColor;
    if (bg && bg !== 'rgba(0, 0, 0, 0)' && bg !== 'transparent') background.add(bg);
    if (computed.color) text.add(computed.color);
    if (el.tagName === 'BUTTON' || el.tagName === 'A' ||
        el.classList.contains('cta') || el.classList.contains('btn')) {
      if (bg && bg !== 'rgba(0, 0, 0, 0)' && bg !== 'transparent') accent.add(bg);
    }
  });

  return {
    title: document.title || '',
    metaDescription: metaDesc ? metaDesc.getAttribute('content') || '' : '',
    bodyHtml: bodyClone.innerHTML,
    computedStyles,
    images,
    fonts,
    colors: {
      background: Array.from(background).slice(0, 10),
      text: Array.from(text).slice(0, 10),
      accent: Array.from(accent).slice(0, 5)
    }
  };
}
"""


def is_allowed_by_robots(url: str, user_agent: str = ROBOTS_USER_AGENT) -> bool:
    """
    Check robots.txt for ``url``; fails open when robots.txt is unavailable.

    Args:
        url: Page URL.
        user_agent: Agent name matched against robots.txt groups.

    Returns:
        False only when robots.txt explicitly disallows the URL.
    """
    parsed = urlparse(url)
    robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"
    request = urllib.request.Request(robots_url, headers={"User-Agent": user_agent})

    try:
        with urllib.request.urlopen(request, timeout=ROBOTS_FETCH_TIMEOUT) as response:
            body = response.read().decode("utf-8", errors="replace")
    except (urllib.error.URLError, OSError, ValueError):
        return True

    return Protego.parse(body).can_fetch(url, user_agent)


class BrowserRenderer:
    """Renders pages and captures screenshots at the desktop and mobile viewports."""

    def __init__(
        self,
        headless: bool = True,
        browser_type: str = "chromium",
        desktop_viewport: Optional[ViewportConfig] = None,
        mobile_viewport: Optional[ViewportConfig] = None,
        wait_time: int = 1000,
        check_robots: bool = True,
    ):
        """
        Initialize the renderer.

        Args:
            headless: Whether to run browser in headless mode.
            browser_type: Browser to use (chromium, firefox, webkit).
            desktop_viewport: Desktop viewport (default 1440x900).
            mobile_viewport: Mobile viewport (default 390x844).
            wait_time: Extra settle time after load (ms).
            check_robots: Whether to honour robots.txt for source URLs.
        """
        self.headless = headless
        self.browser_type = browser_type
        self.desktop_viewport = desktop_viewport or ViewportConfig.desktop()
        self.mobile_viewport = mobile_viewport or ViewportConfig.mobile()
        self.wait_time = wait_time
        self.check_robots = check_robots

    async def _launch(self, playwright):
        if self.browser_type == "chromium":
            return await playwright.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-setuid-sandbox"],
            )
        elif self.browser_type == "firefox":
            return await playwright.firefox.launch(headless=self.headless)
        elif self.browser_type == "webkit":
            return await playwright.webkit.launch(headless=self.headless)
        else:
            raise ValueError(f"Unsupported browser: {self.browser_type}")

    def _viewport_size(self, viewport: ViewportConfig) -> Dict[str, int]:
        return {"width": viewport.width, "height": viewport.height}

    async def _wait_for_full_load(self, page: Page):
        """Wait for network idle, web fonts and images, then let layout settle."""
        try:
            await page.wait_for_load_state("networkidle", timeout=NETWORK_IDLE_TIMEOUT_MS)
        except PlaywrightTimeoutError:
            # Long-polling pages never go idle; fonts/images below still gate capture.
            pass

        await page.evaluate("() => document.fonts.ready.then(() => true)")
        await page.evaluate(WAIT_FOR_IMAGES_SCRIPT, IMAGE_TIMEOUT_MS)
        await page.wait_for_timeout(self.wait_time)

    async def _capture_both(self, page: Page, output_dir: Path, prefix: str) -> ScreenshotPair:
        """Full-page desktop screenshot, then resize to mobile and capture again."""
        desktop_path = output_dir / f"{prefix}-desktop.png"
        await page.screenshot(path=str(desktop_path), full_page=True)

        await page.set_viewport_size(self._viewport_size(self.mobile_viewport))
        await page.wait_for_timeout(VIEWPORT_SETTLE_MS)

        mobile_path = output_dir / f"{prefix}-mobile.png"
        await page.screenshot(path=str(mobile_path), full_page=True)

        return ScreenshotPair(desktop=desktop_path, mobile=mobile_path)

    async def render_url_async(self, url: str, output_dir: Union[str, Path]) -> RenderResult:
        """
        Render a source URL, capture screenshots and extract page content (async).

        Args:
            url: Page to load.
            output_dir: Where to save ``original-*.png``.

        Returns:
            RenderResult; ``success`` is False when the page is disallowed
            by robots.txt or fails to load.
        """
        output_dir = Path(output_dir)

        if self.check_robots:
            allowed = await asyncio.to_thread(is_allowed_by_robots, url)
            if not allowed:
                return RenderResult.failure("URL is disallowed by robots.txt")

        output_dir.mkdir(parents=True, exist_ok=True)

        async with async_playwright() as p:
            browser = await self._launch(p)
            context = await browser.new_context(
                viewport=self._viewport_size(self.desktop_viewport),
                user_agent=USER_AGENT,
                device_scale_factor=1,
            )
            try:
                page = await context.new_page()
                await page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
                await self._wait_for_full_load(page)

                page_title = await page.title()
                raw_content: Dict[str, Any] = await page.evaluate(EXTRACT_CONTENT_SCRIPT)
                screenshots = await self._capture_both(page, output_dir, "original")

                return RenderResult(
                    success=True,
                    screenshots=screenshots,
                    page_title=page_title,
                    page_content=PageContent.model_validate(raw_content),
                )
            except Exception as e:
                return RenderResult.failure(f"{type(e).__name__}: {e}")
            finally:
                await context.close()
                await browser.close()

    def render_url(self, url: str, output_dir: Union[str, Path]) -> RenderResult:
        """
        Render a source URL (sync wrapper).

        Args:
            url: Page to load.
            output_dir: Where to save screenshots.

        Returns:
            RenderResult.
        """
        return asyncio.run(self.render_url_async(url, output_dir))

    async def render_markup_async(
        self,
        html_content: str,
        output_dir: Union[str, Path],
        prefix: str = "generated",
    ) -> ScreenshotPair:
        """
        Render generated HTML and capture desktop/mobile screenshots (async).

        Args:
            html_content: Complete HTML document.
            output_dir: Where to save ``<prefix>-*.png``.
            prefix: Screenshot filename prefix.

        Returns:
            ScreenshotPair with both paths.
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        async with async_playwright() as p:
            browser = await self._launch(p)
            context = await browser.new_context(
                viewport=self._viewport_size(self.desktop_viewport),
                device_scale_factor=1,
            )
            try:
                page = await context.new_page()
                await page.set_content(html_content, wait_until="networkidle")
                await self._wait_for_full_load(page)
                return await self._capture_both(page, output_dir, prefix)
            finally:
                await context.close()
                await browser.close()

    def render_markup(
        self,
        html_content: str,
        output_dir: Union[str, Path],
        prefix: str = "generated",
    ) -> ScreenshotPair:
        """
        Render generated HTML (sync wrapper).

        Args:
            html_content: Complete HTML document.
            output_dir: Where to save screenshots.
            prefix: Screenshot filename prefix.

        Returns:
            ScreenshotPair with both paths.
        """
        return asyncio.run(self.render_markup_async(html_content, output_dir, prefix))
