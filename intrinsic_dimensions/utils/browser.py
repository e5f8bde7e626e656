"""Browser helpers — launch Chromium and serve markup to a page."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch Chromium for a capture visit."""
    return await playwright.chromium.launch(headless=headless)


async def create_capture_context(
    browser: Browser,
    viewport: dict,
    user_agent: Optional[str] = None,
) -> BrowserContext:
    """Create an isolated browser context; one per visit so caches are cold."""
    return await browser.new_context(
        viewport=viewport,
        user_agent=user_agent or DEFAULT_USER_AGENT,
        locale="en-US",
    )


async def serve_markup(page: Page, url: str, markup: str) -> None:
    """Answer the document request for ``url`` with ``markup``.

    Subresources (images, videos) still load from the network so their
    intrinsic sizes are real.
    """

    async def fulfill(route: Route) -> None:
        await route.fulfill(status=200, content_type="text/html; charset=utf-8", body=markup)

    await page.route(url, fulfill)
