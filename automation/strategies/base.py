# ============================================================================
# CARRIER STRATEGY BASE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Carrier-specific portal behaviour
# PURPOSE: Login verification, claim form filling, confirmation extraction
# CREATED: 19 OCT 2026
# ============================================================================
"""
Carrier Strategies

Locators that only differ by value live in PortalConfig. Anything that is
behaviour (how to tell a login worked, where the confirmation number is)
lives in a strategy class registered per carrier:

    @register_strategy(Carrier.FEDEX)
    class FedExStrategy(CarrierStrategy):
        LOGIN_MARKER = '[data-testid="dashboard"]'
        CONFIRMATION_SELECTOR = ".confirmation-number"

Carriers without a registered strategy use GenericStrategy.
"""

import logging
import re
from typing import Any, Dict, Optional, Type

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from core.contracts import Carrier
from core.errors import ConfirmationExtractionFailure, FormFillFailure
from core.models import PortalConfig

logger = logging.getLogger(__name__)

CONFIRMATION_PATTERN = re.compile(
    r"(?:Confirmation|Claim|Reference)\s*(?:Number|#|ID):\s*([A-Z0-9-]+)",
    re.IGNORECASE,
)

CHALLENGE_CAPTCHA = "captcha"
CHALLENGE_2FA = "2fa"

CAPTCHA_SELECTORS = (
    'iframe[src*="recaptcha"]',
    'iframe[src*="hcaptcha"]',
    ".g-recaptcha",
    ".h-captcha",
)

TWO_FACTOR_SELECTORS = (
    'input[autocomplete="one-time-code"]',
    'input[name*="otp" i]',
    'input[name*="verification" i]',
    "text=/verification code/i",
)


class CarrierStrategy:
    """Portal behaviour shared by every carrier."""

    carrier: Optional[Carrier] = None

    LOGIN_MARKER: str = "text=Logout"
    CONFIRMATION_SELECTOR: Optional[str] = None
    CONFIRMATION_ATTRIBUTE: Optional[str] = None

    # =========================================================================
    # LOGIN
    # =========================================================================

    async def verify_login(self, page: Page, timeout_ms: int = 5000) -> bool:
        """True when the post-login marker becomes visible within timeout_ms."""
        try:
            await page.locator(self.LOGIN_MARKER).first.wait_for(state="visible", timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as e:
            logger.debug(f"Login verification error: {e}")
            return False

    async def detect_challenge(self, page: Page, config: PortalConfig) -> Optional[str]:
        """
        Look for a captcha or second-factor prompt after a failed login.

        Returns:
            CHALLENGE_CAPTCHA, CHALLENGE_2FA or None
        """
        if await self._any_present(page, CAPTCHA_SELECTORS):
            return CHALLENGE_CAPTCHA
        if await self._any_present(page, TWO_FACTOR_SELECTORS):
            return CHALLENGE_2FA
        if config.has_captcha and await self._login_form_still_shown(page, config):
            logger.debug(f"{config.carrier.value} login form still shown on a captcha-protected portal")
            return CHALLENGE_CAPTCHA
        return None

    async def _any_present(self, page: Page, selectors: Any) -> bool:
        for selector in selectors:
            try:
                if await page.locator(selector).count() > 0:
                    return True
            except PlaywrightError:
                continue
        return False

    async def _login_form_still_shown(self, page: Page, config: PortalConfig) -> bool:
        try:
            return await page.locator(config.login_selectors.password).first.is_visible()
        except PlaywrightError:
            return False

    # =========================================================================
    # CLAIM FORM
    # =========================================================================

    async def fill_claim_form(self, page: Page, config: PortalConfig, form_data: Dict[str, Any]) -> None:
        """
        Fill the configured claim form fields and submit.

        Raises:
            FormFillFailure: a locator is missing or an interaction failed
        """
        selectors = config.claim_form_selectors
        amount = form_data.get("claim_amount")
        description = form_data.get("damage_description") or form_data.get("adjustment_reason") or ""

        try:
            if selectors.tracking_number:
                await page.fill(selectors.tracking_number, str(form_data.get("tracking_number") or ""))

            if selectors.claim_amount:
                await page.fill(selectors.claim_amount, str(amount if amount is not None else 0))

            if selectors.description:
                await page.fill(selectors.description, description)

            if selectors.submit:
                await page.click(selectors.submit)
                await page.wait_for_load_state("networkidle")

        except PlaywrightError as e:
            raise FormFillFailure(
                f"Failed to fill claim form: {e}",
                {"carrier": config.carrier.value},
            ) from e

    # =========================================================================
    # CONFIRMATION
    # =========================================================================

    async def extract_confirmation(self, page: Page) -> str:
        """
        Read the confirmation number from the page after submit.

        Tries the carrier's DOM locator first, then the generic
        "Confirmation/Claim/Reference Number: XXX" pattern in the body text.

        Raises:
            ConfirmationExtractionFailure
        """
        value = await self._from_dom(page)
        if not value:
            value = await self._from_text(page)
        if not value:
            raise ConfirmationExtractionFailure(
                "No confirmation number found after submit",
                {"url": page.url},
            )
        return value

    async def _from_dom(self, page: Page) -> Optional[str]:
        if not self.CONFIRMATION_SELECTOR:
            return None
        try:
            locator = page.locator(self.CONFIRMATION_SELECTOR).first
            if await locator.count() == 0:
                return None
            if self.CONFIRMATION_ATTRIBUTE:
                raw = await locator.get_attribute(self.CONFIRMATION_ATTRIBUTE)
            else:
                raw = await locator.text_content()
        except PlaywrightError as e:
            logger.debug(f"Confirmation locator {self.CONFIRMATION_SELECTOR} failed: {e}")
            return None
        return raw.strip() if raw and raw.strip() else None

    async def _from_text(self, page: Page) -> Optional[str]:
        try:
            text = await page.text_content("body") or ""
        except PlaywrightError:
            return None
        return match_confirmation(text)


class GenericStrategy(CarrierStrategy):
    """Fallback for carriers without a registered strategy."""
    pass


def match_confirmation(text: str) -> Optional[str]:
    match = CONFIRMATION_PATTERN.search(text or "")
    return match.group(1) if match else None


# ============================================================================
# REGISTRY
# ============================================================================

_STRATEGIES: Dict[Carrier, Type[CarrierStrategy]] = {}


def register_strategy(carrier: Carrier):
    """Class decorator registering a strategy for a carrier."""
    def decorator(cls: Type[CarrierStrategy]) -> Type[CarrierStrategy]:
        if carrier in _STRATEGIES:
            logger.warning(f"Overwriting strategy for {carrier.value}")
        cls.carrier = carrier
        _STRATEGIES[carrier] = cls
        return cls
    return decorator


def get_strategy(carrier: Carrier) -> CarrierStrategy:
    return _STRATEGIES.get(carrier, GenericStrategy)()


def registered_carriers() -> Dict[Carrier, Type[CarrierStrategy]]:
    return dict(_STRATEGIES)


__all__ = [
    "CarrierStrategy",
    "GenericStrategy",
    "register_strategy",
    "get_strategy",
    "registered_carriers",
    "match_confirmation",
    "CONFIRMATION_PATTERN",
    "CHALLENGE_CAPTCHA",
    "CHALLENGE_2FA",
]
