# ============================================================================
# BROWSER AUTOMATION COORDINATOR
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Drives one carrier portal submission end to end
# PURPOSE: Login, claim form, confirmation extraction, history recording
# CREATED: 19 OCT 2026
# ============================================================================
"""
Browser Automation Coordinator

One submit_to_portal() call is one attempt for one queue item:

    decrypt credentials -> load portal config -> open session
      -> navigate to login URL -> fill username / password -> submit
      -> verify login (strategy, bounded probe)
      -> navigate to claims URL -> fill claim form (strategy)
      -> extract confirmation (strategy) -> optional screenshot

The whole attempt runs under BrowserDefaults.submission_timeout_seconds.
Each step appends a SubmissionHistoryEntry. The browser session is always
released, whatever the outcome.

Expected failures come back as a SubmissionOutcome (login rejected) or a
SubmissionError subclass (captcha, second factor, form, confirmation,
config, timeout). The queue processor turns both into a queue item state.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from psycopg_pool import AsyncConnectionPool

from core.config import BrowserDefaults, get_defaults
from core.contracts import Carrier, HistoryAction
from core.errors import (
    Needs2FA,
    NeedsCaptcha,
    PortalConfigMissing,
    SubmissionError,
    VaultError,
)
from core.logging import log_checkpoint
from core.models import CredentialSecrets, PortalConfig, SubmissionQueueItem
from repositories import PortalConfigRepository
from services.history_service import HistoryService

from .browser_pool import BrowserPool
from .strategies import CHALLENGE_2FA, CHALLENGE_CAPTCHA, CarrierStrategy, get_strategy

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Login failed - invalid credentials or security challenge"


@dataclass
class SubmissionOutcome:
    """Result of one portal attempt that did not raise."""
    success: bool
    confirmation_number: Optional[str] = None
    claim_number: Optional[str] = None
    screenshot_path: Optional[str] = None
    error_message: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None

    @classmethod
    def failed(cls, message: str, details: Optional[Dict[str, Any]] = None) -> "SubmissionOutcome":
        return cls(success=False, error_message=message, error_details=details)


class BrowserCoordinator:
    """Runs portal submissions and credential checks through the browser pool."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        vault: Any,
        browser_pool: Optional[BrowserPool] = None,
        history: Optional[HistoryService] = None,
        defaults: Optional[BrowserDefaults] = None,
    ):
        self.pool = pool
        self.vault = vault
        self.defaults = defaults or get_defaults().browser
        self.browser_pool = browser_pool or BrowserPool(self.defaults)
        self.history = history or HistoryService(pool)
        self.portal_config_repo = PortalConfigRepository(pool)

    async def close(self) -> None:
        await self.browser_pool.close()

    async def _load_config(self, carrier: Carrier) -> PortalConfig:
        config = await self.portal_config_repo.get(carrier)
        if config is None or not config.is_enabled:
            raise PortalConfigMissing(carrier.value)
        return config

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    async def submit_to_portal(self, item: SubmissionQueueItem) -> SubmissionOutcome:
        """
        Run one submission attempt.

        Raises:
            SubmissionError: captcha / 2FA, form, confirmation, config, timeout
        """
        started = time.monotonic()

        try:
            secrets = await self.vault.get_credentials(item.credential_id)
        except VaultError as e:
            await self.history.failure(item, HistoryAction.ERROR, str(e))
            return SubmissionOutcome.failed(str(e), {"error_type": type(e).__name__})

        timeout = self.defaults.submission_timeout_seconds
        try:
            outcome = await asyncio.wait_for(self._attempt(item, secrets), timeout=timeout)

        except asyncio.TimeoutError as e:
            message = f"Submission timed out after {timeout}s"
            await self.history.failure(item, HistoryAction.ERROR, message)
            raise SubmissionError(message, {"timeout_seconds": timeout}) from e

        except SubmissionError as e:
            await self.history.failure(
                item, HistoryAction.ERROR, str(e), {"error_type": type(e).__name__, **e.details}
            )
            raise

        except PlaywrightError as e:
            await self.history.failure(item, HistoryAction.ERROR, str(e), {"error_type": type(e).__name__})
            raise SubmissionError(f"Browser error: {e}", {"error_type": type(e).__name__}) from e

        if outcome.success:
            duration_ms = int((time.monotonic() - started) * 1000)
            await self.history.success(
                item,
                HistoryAction.SUBMIT,
                f"Submission completed in {duration_ms}ms",
                {"confirmation_number": outcome.confirmation_number, "duration_ms": duration_ms},
            )
            log_checkpoint("submission_confirmed", {"duration_ms": duration_ms}, logger)

        return outcome

    async def _attempt(self, item: SubmissionQueueItem, secrets: CredentialSecrets) -> SubmissionOutcome:
        config = await self._load_config(item.carrier)
        strategy = get_strategy(item.carrier)

        async with self.browser_pool.session(item.carrier, config.max_concurrent_sessions) as page:
            await self.history.success(item, HistoryAction.NAVIGATE, f"Navigating to {config.login_url}")

            if not await self._login(page, config, strategy, secrets):
                challenge = await strategy.detect_challenge(page, config)
                if challenge == CHALLENGE_CAPTCHA:
                    raise NeedsCaptcha(
                        f"{item.carrier.value} portal presented a captcha",
                        {"captcha_type": config.captcha_type.value},
                    )
                if challenge == CHALLENGE_2FA:
                    raise Needs2FA(
                        f"{item.carrier.value} portal requested a second factor",
                        {"two_factor_method": secrets.two_factor_method.value},
                    )
                await self.history.failure(item, HistoryAction.LOGIN, LOGIN_FAILED_MESSAGE)
                return SubmissionOutcome.failed(LOGIN_FAILED_MESSAGE, {"url": page.url})

            await self.history.success(item, HistoryAction.LOGIN, "Login successful")

            if config.claims_url:
                await page.goto(config.claims_url)
                await page.wait_for_load_state("networkidle")
                await self.history.success(item, HistoryAction.NAVIGATE, f"Navigating to {config.claims_url}")

            await strategy.fill_claim_form(page, config, item.form_data)
            await self.history.success(item, HistoryAction.FILL_FORM, "Claim form submitted")

            confirmation = await strategy.extract_confirmation(page)
            await self.history.success(
                item, HistoryAction.EXTRACT, f"Confirmation number {confirmation}"
            )

            screenshot_path = await self._screenshot(page, item.submission_id)

        return SubmissionOutcome(
            success=True,
            confirmation_number=confirmation,
            claim_number=confirmation,
            screenshot_path=screenshot_path,
        )

    async def _login(
        self,
        page: Page,
        config: PortalConfig,
        strategy: CarrierStrategy,
        secrets: CredentialSecrets,
    ) -> bool:
        selectors = config.login_selectors
        await page.goto(config.login_url)
        await page.fill(selectors.username, secrets.username)
        await page.fill(selectors.password, secrets.password)
        await page.click(selectors.submit)
        await page.wait_for_load_state("networkidle")
        return await strategy.verify_login(page, timeout_ms=self.defaults.login_verify_timeout_ms)

    async def _screenshot(self, page: Page, submission_id: str) -> Optional[str]:
        if not self.defaults.screenshot_dir:
            return None

        path = Path(self.defaults.screenshot_dir) / f"{submission_id}.png"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
        except (OSError, PlaywrightError) as e:
            logger.warning(f"Confirmation screenshot failed for {submission_id}: {e}")
            return None
        return str(path)

    # =========================================================================
    # CREDENTIAL CHECK
    # =========================================================================

    async def check_login(self, secrets: CredentialSecrets) -> bool:
        """
        Log in once and report whether the carrier's login marker appeared.

        Raises:
            PortalConfigMissing, SubmissionError on timeout
        """
        config = await self._load_config(secrets.carrier)
        strategy = get_strategy(secrets.carrier)
        timeout = self.defaults.submission_timeout_seconds

        async def _probe() -> bool:
            async with self.browser_pool.session(secrets.carrier, config.max_concurrent_sessions) as page:
                return await self._login(page, config, strategy, secrets)

        try:
            return await asyncio.wait_for(_probe(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise SubmissionError(f"Login check timed out after {timeout}s") from e


__all__ = ["BrowserCoordinator", "SubmissionOutcome", "LOGIN_FAILED_MESSAGE"]
