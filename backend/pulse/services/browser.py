"""Browser service for JavaScript-rendered page content using Playwright."""

import asyncio
import concurrent.futures
import logging

from playwright.async_api import async_playwright

from pulse.config import Settings, get_settings

logger = logging.getLogger(__name__)


class BrowserService:
    """Playwright-based browser for rendering JavaScript-heavy practice sites."""

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.ws_endpoint = settings.playwright_ws_url
        self.user_agent = settings.user_agent

    async def render_page(self, url: str, timeout: int = 30000) -> tuple[str, int | None]:
        """Render a page with JavaScript.

        Returns:
            Tuple of (rendered HTML, HTTP status of the main document)
        """
        logger.info(f"Rendering JS page with Playwright: {url}")

        async with async_playwright() as p:
            browser = await p.chromium.connect_over_cdp(self.ws_endpoint)
            context = await browser.new_context(
                user_agent=self.user_agent,
                viewport={"width": 1280, "height": 720},
            )
            page = await context.new_page()

            try:
                # domcontentloaded avoids stalling on analytics connections
                response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout)
                await page.wait_for_timeout(1000)
                content = await page.content()
                logger.info(f"Rendered {url} ({len(content)} bytes)")
                return content, response.status if response else None
            finally:
                await page.close()
                await context.close()
                await browser.close()

    def render_page_sync(self, url: str, timeout: int = 30000) -> tuple[str, int | None]:
        """Synchronous wrapper for Celery tasks and the CLI."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.render_page(url, timeout))

        # Already inside an event loop: render on a worker thread
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            return executor.submit(asyncio.run, self.render_page(url, timeout)).result()
