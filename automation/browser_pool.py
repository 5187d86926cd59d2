# ============================================================================
# BROWSER POOL
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Infrastructure - Shared Playwright browser with scoped sessions
# PURPOSE: One headless Chromium per process, one isolated context per attempt
# CREATED: 19 OCT 2026
# ============================================================================
"""
Browser Pool

Owns the Playwright driver and a single shared Chromium instance, launched
lazily on the first session. Every portal attempt gets its own browser
context (cookies, storage and cache are not shared between attempts) and the
context is closed when the session block exits, whatever happened inside it.

Concurrent sessions per carrier are bounded by a semaphore sized from the
carrier's PortalConfig.max_concurrent_sessions.

Usage:
    pool = BrowserPool()
    async with pool.session(Carrier.FEDEX, max_concurrent=1) as page:
        await page.goto(url)
    await pool.close()
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from core.config import BrowserDefaults, get_defaults
from core.contracts import Carrier

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]

ANTI_DETECT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
"""


class BrowserPool:
    """Lazily launched shared browser handing out isolated contexts."""

    def __init__(self, defaults: Optional[BrowserDefaults] = None):
        self.defaults = defaults or get_defaults().browser
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_lock = asyncio.Lock()
        self._semaphores: Dict[Carrier, asyncio.Semaphore] = {}
        self._open_sessions = 0

    @property
    def is_started(self) -> bool:
        return self._browser is not None

    @property
    def open_sessions(self) -> int:
        return self._open_sessions

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def _ensure_browser(self) -> Browser:
        async with self._launch_lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            if self._browser is not None:
                logger.warning("Browser is no longer connected, relaunching")
                self._browser = None

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            self._browser = await self._playwright.chromium.launch(
                headless=self.defaults.headless,
                args=BROWSER_ARGS,
            )
            mode = "headless" if self.defaults.headless else "headed"
            logger.info(f"Playwright browser launched ({mode} mode)")
            return self._browser

    async def close(self) -> None:
        """Close the shared browser and stop the Playwright driver."""
        async with self._launch_lock:
            if self._browser is not None:
                try:
                    await self._browser.close()
                except Exception as e:
                    logger.warning(f"Error closing browser: {e}")
                self._browser = None

            if self._playwright is not None:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    logger.warning(f"Error stopping Playwright: {e}")
                self._playwright = None

        logger.info("Browser pool closed")

    # =========================================================================
    # SESSIONS
    # =========================================================================

    def _semaphore_for(self, carrier: Carrier, max_concurrent: int) -> asyncio.Semaphore:
        semaphore = self._semaphores.get(carrier)
        if semaphore is None:
            semaphore = asyncio.Semaphore(max(1, max_concurrent))
            self._semaphores[carrier] = semaphore
        return semaphore

    async def new_context(self, **overrides: Any) -> BrowserContext:
        """Open a fresh context with the configured fingerprint and timeouts."""
        browser = await self._ensure_browser()

        options: Dict[str, Any] = {
            "viewport": {
                "width": self.defaults.viewport_width,
                "height": self.defaults.viewport_height,
            },
            "user_agent": self.defaults.user_agent,
            "locale": self.defaults.locale,
            "timezone_id": self.defaults.timezone_id,
        }
        options.update(overrides)

        context = await browser.new_context(**options)
        context.set_default_navigation_timeout(self.defaults.navigation_timeout_ms)
        context.set_default_timeout(self.defaults.action_timeout_ms)
        await context.add_init_script(ANTI_DETECT_SCRIPT)
        return context

    @asynccontextmanager
    async def session(self, carrier: Carrier, max_concurrent: int = 1) -> AsyncIterator[Page]:
        """
        Check out an isolated page for one portal interaction.

        Waits while the carrier already has max_concurrent sessions open.
        The context is closed on exit, including on error and cancellation.
        """
        semaphore = self._semaphore_for(carrier, max_concurrent)
        async with semaphore:
            context = await self.new_context()
            self._open_sessions += 1
            logger.debug(f"Opened {carrier.value} browser session ({self._open_sessions} open)")
            try:
                page = await context.new_page()
                yield page
            finally:
                self._open_sessions -= 1
                try:
                    await context.close()
                except Exception as e:
                    logger.warning(f"Error closing {carrier.value} browser context: {e}")
                logger.debug(f"Closed {carrier.value} browser session ({self._open_sessions} open)")


__all__ = ["BrowserPool", "BROWSER_ARGS", "ANTI_DETECT_SCRIPT"]
