import asyncio
import logging
from typing import Optional

from playwright.async_api import async_playwright, Page, Error as PlaywrightError

from pricecalendar.config import Settings, get_settings

logger = logging.getLogger(__name__)


class RenderedCapture:
    """
    Render a hotel page in headless Chromium and return the live DOM HTML.

    Facility and area blocks are lazy-loaded by scroll observers, so the page
    is scrolled in passes until its height settles and the known section
    anchors are brought into view before the DOM is serialised.

    Each call launches its own browser, so captures may run concurrently on
    one instance.
    """

    BROWSER_ARGS = [
        "--disable-blink-features=AutomationControlled",
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-extensions",
        "--disable-setuid-sandbox",
        "--disable-background-networking",
        "--disable-default-apps",
        "--disable-sync",
        "--mute-audio",
        "--hide-scrollbars",
    ]

    VIEWPORT = {"width": 1280, "height": 900}

    SETTLE_SECONDS = 1.5
    SCROLL_STEP_PX = 420
    SCROLL_STEP_DELAY = 0.09
    SCROLL_PASSES = 4
    PASS_DELAY = 0.7
    HEIGHT_STABLE_PX = 180
    MAX_ANCHORS = 30
    ANCHOR_DELAY = 0.12
    FINAL_SETTLE_SECONDS = 1.2

    SECTION_SELECTORS = [
        '[data-testid="property-most-popular-facilities-wrapper"]',
        '[data-testid="facility-group-container"]',
        '[data-testid="facilities-subtitle"]',
        '[data-testid="poi-block"]',
        '[data-testid*="surrounding"]',
    ]

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def capture(self, url: str) -> Optional[str]:
        """Return rendered HTML for ``url``, or None if the page could not be captured."""
        playwright = None
        browser = None
        try:
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(
                headless=True,
                args=self.BROWSER_ARGS,
            )
            context = await browser.new_context(
                viewport=self.VIEWPORT,
                user_agent=self.settings.user_agent,
                locale="en-US",
            )
            page = await context.new_page()
            await page.goto(
                url,
                wait_until="load",
                timeout=int(self.settings.rendered_capture_timeout_seconds * 1000),
            )
            await asyncio.sleep(self.SETTLE_SECONDS)
            await self._scroll_passes(page)
            await self._visit_sections(page)
            await asyncio.sleep(self.FINAL_SETTLE_SECONDS)

            html = await page.content()
            logger.info(f"Rendered capture of {url}: {len(html)} bytes")
            return html
        except PlaywrightError as e:
            logger.warning(f"Rendered capture of {url} failed: {e}")
            return None
        finally:
            await self._cleanup_browser(browser, playwright)

    async def _page_height(self, page: Page) -> int:
        return await page.evaluate(
            "() => Math.max(document.body ? document.body.scrollHeight : 0,"
            " document.documentElement ? document.documentElement.scrollHeight : 0)"
        )

    async def _scroll_passes(self, page: Page):
        prev_height = 0
        for _ in range(self.SCROLL_PASSES):
            max_y = await self._page_height(page) + self.SCROLL_STEP_PX
            for y in range(0, max_y + 1, self.SCROLL_STEP_PX):
                await page.evaluate("(y) => window.scrollTo(0, y)", y)
                await asyncio.sleep(self.SCROLL_STEP_DELAY)
            await asyncio.sleep(self.PASS_DELAY)

            new_height = await self._page_height(page)
            if abs(new_height - prev_height) < self.HEIGHT_STABLE_PX:
                break
            prev_height = new_height

    async def _visit_sections(self, page: Page):
        anchors = []
        for selector in self.SECTION_SELECTORS:
            anchors.extend(await page.query_selector_all(selector))

        for anchor in anchors[:self.MAX_ANCHORS]:
            await anchor.evaluate("(el) => el.scrollIntoView({block: 'center'})")
            await asyncio.sleep(self.ANCHOR_DELAY)

    async def _cleanup_browser(self, browser, playwright):
        """Clean up the browser and playwright driver of one capture."""
        if browser:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.debug(f"Browser close failed: {e}")

        if playwright:
            try:
                await playwright.stop()
            except PlaywrightError as e:
                logger.debug(f"Playwright stop failed: {e}")
