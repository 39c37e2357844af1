#!/usr/bin/env python3
"""
Page fetchers - turn a URL into raw and rendered HTML.

Two collaborators share the ``PageFetcher`` shape:
- PlaywrightPageFetcher: headless Chromium; dismisses cookie banners,
  scrolls until the page height settles and waits for a product grid
- RequestsPageFetcher: plain HTTP GET for static listings
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

import requests

from .config import config
from .exceptions import FetchError

logger = logging.getLogger(__name__)

COOKIE_BUTTON_NAMES: List[str] = ["Accept", "Accept all", "I agree", "Allow all", "Got it"]

COOKIE_SELECTORS: List[str] = [
    '#onetrust-accept-btn-handler',
    'button[aria-label*="accept" i]',
    '.cookie-accept', '.cookies-accept', '.cookie-approve',
    'button:has-text("Accept")',
    '[data-testid="close-modal"]',
    'button[aria-label="Close"]',
]

GRID_WAIT_SELECTOR = (
    "[data-product-id], .product-card, .product-grid, .productGrid, "
    "ul.products, .grid__item, [itemtype*='schema.org/Product']"
)

MAX_SCROLL_ROUNDS = 12


@dataclass
class RenderedPage:
    url: str
    html: str
    final_html: str


class PageFetcher:
    """Interface: ``await fetch(url)`` returns a RenderedPage or raises FetchError."""

    async def fetch(self, url: str) -> RenderedPage:
        raise NotImplementedError


async def accept_cookies(page) -> bool:
    """Best-effort click on the first visible consent button."""
    from playwright.async_api import Error as PlaywrightError

    for name in COOKIE_BUTTON_NAMES:
        try:
            btn = page.get_by_role("button", name=name)
            if await btn.count() > 0:
                await btn.first.click(timeout=1000)
                return True
        except PlaywrightError as e:
            logger.debug("Cookie button %r not clickable: %s", name, e)
    for sel in COOKIE_SELECTORS:
        try:
            loc = page.locator(sel)
            if await loc.count() > 0:
                await loc.first.click(timeout=1000)
                return True
        except PlaywrightError as e:
            logger.debug("Cookie selector %s not clickable: %s", sel, e)
    return False


async def scroll_until_stable(page, delay_ms: int = 600, max_rounds: int = MAX_SCROLL_ROUNDS) -> int:
    """Scroll to the bottom until document height stops growing; returns rounds used."""
    last = await page.evaluate("() => document.body ? document.body.scrollHeight : 0")
    for rounds in range(1, max_rounds + 1):
        await page.evaluate("window.scrollTo(0, document.body ? document.body.scrollHeight : 0);")
        await page.wait_for_timeout(delay_ms)
        height = await page.evaluate("() => document.body ? document.body.scrollHeight : 0")
        if height <= last:
            return rounds
        last = height
    return max_rounds


class PlaywrightPageFetcher(PageFetcher):
    def __init__(
        self,
        headless: Optional[bool] = None,
        timeout_ms: Optional[int] = None,
        settle_ms: Optional[int] = None,
        user_agent: Optional[str] = None,
    ):
        self.headless = config.headless if headless is None else headless
        self.timeout_ms = timeout_ms or config.navigation_timeout_ms
        self.settle_ms = config.settle_ms if settle_ms is None else settle_ms
        self.user_agent = user_agent or config.user_agent

    async def fetch(self, url: str) -> RenderedPage:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError
        from playwright.async_api import async_playwright

        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.launch(
                    headless=self.headless,
                    args=[
                        "--no-sandbox",
                        "--disable-dev-shm-usage",
                        "--disable-blink-features=AutomationControlled",
                    ],
                )
                try:
                    context = await browser.new_context(
                        user_agent=self.user_agent,
                        viewport={"width": 1366, "height": 900},
                        extra_http_headers={
                            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                        },
                    )
                    page = await context.new_page()
                    await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
                    html = await page.content()

                    await accept_cookies(page)
                    rounds = await scroll_until_stable(page)
                    logger.debug("Scrolled %s in %d round(s)", url, rounds)
                    try:
                        await page.wait_for_selector(GRID_WAIT_SELECTOR, timeout=3000)
                    except PlaywrightTimeoutError:
                        logger.debug("No product grid appeared on %s", url)
                    if self.settle_ms:
                        await page.wait_for_timeout(self.settle_ms)

                    final_html = await page.content()
                    return RenderedPage(url=page.url or url, html=html, final_html=final_html)
                finally:
                    await browser.close()
        except PlaywrightError as e:
            raise FetchError(f"Browser fetch failed for {url}: {e}") from e


class RequestsPageFetcher(PageFetcher):
    def __init__(self, timeout_s: Optional[float] = None, user_agent: Optional[str] = None, session=None):
        self.timeout_s = timeout_s or config.navigation_timeout_ms / 1000.0
        self.user_agent = user_agent or config.user_agent
        self.session = session or requests.Session()

    def _get(self, url: str) -> RenderedPage:
        try:
            resp = self.session.get(url, headers={"User-Agent": self.user_agent}, timeout=self.timeout_s)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise FetchError(f"HTTP fetch failed for {url}: {e}") from e
        html = resp.text
        return RenderedPage(url=resp.url or url, html=html, final_html=html)

    async def fetch(self, url: str) -> RenderedPage:
        return await asyncio.to_thread(self._get, url)
