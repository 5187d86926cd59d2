# ============================================================================
# BROWSER POOL TESTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Tests - Shared browser lifecycle and scoped sessions
# PURPOSE: Verify lazy launch, context options, release on error, limits
# CREATED: 19 OCT 2026
# ============================================================================
"""
Browser Pool Tests

async_playwright() is monkeypatched with a fake driver, so no Chromium is
needed.

Run with:
    pytest tests/test_browser_pool.py -v
"""

import asyncio
import pytest

import automation.browser_pool as browser_pool_module
from automation.browser_pool import ANTI_DETECT_SCRIPT, BROWSER_ARGS, BrowserPool
from core.config import BrowserDefaults
from core.contracts import Carrier


# ============================================================================
# FAKE DRIVER
# ============================================================================

class FakeContext:

    def __init__(self, options):
        self.options = options
        self.closed = False
        self.init_scripts = []
        self.navigation_timeout = None
        self.default_timeout = None

    def set_default_navigation_timeout(self, timeout):
        self.navigation_timeout = timeout

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout

    async def add_init_script(self, script):
        self.init_scripts.append(script)

    async def new_page(self):
        return object()

    async def close(self):
        self.closed = True


class FakeBrowser:

    def __init__(self):
        self.connected = True
        self.contexts = []
        self.closed = False

    def is_connected(self):
        return self.connected

    async def new_context(self, **options):
        context = FakeContext(options)
        self.contexts.append(context)
        return context

    async def close(self):
        self.closed = True


class FakeChromium:

    def __init__(self):
        self.launches = []

    async def launch(self, headless=True, args=None):
        browser = FakeBrowser()
        self.launches.append({"headless": headless, "args": args, "browser": browser})
        return browser


class FakePlaywright:

    def __init__(self):
        self.chromium = FakeChromium()
        self.stopped = False

    async def stop(self):
        self.stopped = True


class FakeDriverStarter:

    def __init__(self, playwright):
        self.playwright = playwright

    async def start(self):
        return self.playwright


@pytest.fixture
def driver(monkeypatch):
    playwright = FakePlaywright()
    monkeypatch.setattr(browser_pool_module, "async_playwright", lambda: FakeDriverStarter(playwright))
    return playwright


# ============================================================================
# TESTS
# ============================================================================

class TestBrowserPool:

    def test_browser_launched_lazily_and_shared(self, driver):
        pool = BrowserPool(BrowserDefaults(headless=True))
        assert not pool.is_started

        async def run():
            async with pool.session(Carrier.FEDEX):
                pass
            async with pool.session(Carrier.UPS):
                pass

        asyncio.run(run())

        assert pool.is_started
        assert len(driver.chromium.launches) == 1
        launch = driver.chromium.launches[0]
        assert launch["headless"] is True
        assert launch["args"] == BROWSER_ARGS
        assert len(launch["browser"].contexts) == 2

    def test_context_configured_from_defaults(self, driver):
        defaults = BrowserDefaults(
            viewport_width=1280,
            viewport_height=720,
            locale="en-GB",
            timezone_id="Europe/London",
            navigation_timeout_ms=20000,
            action_timeout_ms=7000,
        )
        pool = BrowserPool(defaults)

        context = asyncio.run(pool.new_context())

        assert context.options["viewport"] == {"width": 1280, "height": 720}
        assert context.options["locale"] == "en-GB"
        assert context.options["timezone_id"] == "Europe/London"
        assert context.options["user_agent"] == defaults.user_agent
        assert context.navigation_timeout == 20000
        assert context.default_timeout == 7000
        assert context.init_scripts == [ANTI_DETECT_SCRIPT]

    def test_context_closed_when_session_raises(self, driver):
        pool = BrowserPool(BrowserDefaults())

        async def run():
            async with pool.session(Carrier.FEDEX):
                assert pool.open_sessions == 1
                raise RuntimeError("portal exploded")

        with pytest.raises(RuntimeError):
            asyncio.run(run())

        context = driver.chromium.launches[0]["browser"].contexts[0]
        assert context.closed is True
        assert pool.open_sessions == 0

    def test_sessions_per_carrier_are_bounded(self, driver):
        pool = BrowserPool(BrowserDefaults())
        peak = {"value": 0}

        async def use():
            async with pool.session(Carrier.FEDEX, max_concurrent=1):
                peak["value"] = max(peak["value"], pool.open_sessions)
                await asyncio.sleep(0.01)

        async def run():
            await asyncio.gather(use(), use(), use())

        asyncio.run(run())

        assert peak["value"] == 1
        assert pool.open_sessions == 0

    def test_disconnected_browser_relaunched(self, driver):
        pool = BrowserPool(BrowserDefaults())

        async def run():
            async with pool.session(Carrier.DHL):
                pass
            driver.chromium.launches[0]["browser"].connected = False
            async with pool.session(Carrier.DHL):
                pass

        asyncio.run(run())

        assert len(driver.chromium.launches) == 2

    def test_close_stops_driver(self, driver):
        pool = BrowserPool(BrowserDefaults())

        async def run():
            async with pool.session(Carrier.USPS):
                pass
            await pool.close()

        asyncio.run(run())

        assert driver.chromium.launches[0]["browser"].closed is True
        assert driver.stopped is True
        assert not pool.is_started

    def test_close_without_launch(self, driver):
        pool = BrowserPool(BrowserDefaults())
        asyncio.run(pool.close())
        assert driver.chromium.launches == []
