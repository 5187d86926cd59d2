# ============================================================================
# CLAUDE CONTEXT - CARRIER PORTAL CONFIGURATION
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core model - Per-carrier portal reference data
# PURPOSE: URLs, locators and limits used to drive a carrier claims portal
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PortalConfig, LoginSelectors, ClaimFormSelectors, DEFAULT_PORTAL_CONFIGS
# DEPENDENCIES: pydantic
# ============================================================================
"""
Portal Configuration

One row per carrier. Locators live here rather than in code so a portal
redesign can be absorbed by a config update. Carrier-specific behaviour that
cannot be expressed as a locator lives in automation.strategies.

DEFAULT_PORTAL_CONFIGS seeds FEDEX, UPS, USPS and DHL.
"""

from datetime import datetime
from typing import ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field

from core.contracts import CaptchaType, Carrier


class LoginSelectors(BaseModel):
    username: str = "#username"
    password: str = "#password"
    submit: str = 'button[type="submit"]'


class ClaimFormSelectors(BaseModel):
    tracking_number: Optional[str] = None
    claim_amount: Optional[str] = None
    description: Optional[str] = None
    submit: Optional[str] = None


class PortalConfig(BaseModel):
    """
    Carrier portal reference data.

    Maps to: claimflow.carrier_portal_configs table
    """

    __sql_table__: ClassVar[str] = "carrier_portal_configs"
    __sql_schema__: ClassVar[str] = "claimflow"
    __sql_primary_key__: ClassVar[List[str]] = ["carrier"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {}
    __sql_indexes__: ClassVar[List[tuple]] = []

    carrier: Carrier
    login_url: str
    claims_url: str
    tracking_url: Optional[str] = None

    login_selectors: LoginSelectors = Field(default_factory=LoginSelectors)
    claim_form_selectors: ClaimFormSelectors = Field(default_factory=ClaimFormSelectors)

    has_captcha: bool = False
    captcha_type: CaptchaType = Field(default=CaptchaType.NONE)

    max_concurrent_sessions: int = Field(default=1, ge=1)
    session_timeout_seconds: int = Field(default=300, ge=1)
    is_enabled: bool = True

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


DEFAULT_PORTAL_CONFIGS: List[PortalConfig] = [
    PortalConfig(
        carrier=Carrier.FEDEX,
        login_url="https://www.fedex.com/en-us/login.html",
        claims_url="https://www.fedex.com/fcl/web/jsp/claimsHome.jsp",
        tracking_url="https://www.fedex.com/fedextrack/",
        login_selectors=LoginSelectors(
            username="#userId",
            password="#password",
            submit='button[type="submit"]',
        ),
        claim_form_selectors=ClaimFormSelectors(
            tracking_number="#trackingNumber",
            claim_amount="#claimAmount",
            description="#description",
            submit="#submitClaim",
        ),
    ),
    PortalConfig(
        carrier=Carrier.UPS,
        login_url="https://www.ups.com/lasso/login",
        claims_url="https://www.ups.com/claims",
        tracking_url="https://www.ups.com/track",
        login_selectors=LoginSelectors(
            username="#userid",
            password="#pwd",
            submit="#submitBtn",
        ),
        claim_form_selectors=ClaimFormSelectors(
            tracking_number="#tracking",
            claim_amount="#amount",
            description="#desc",
            submit="#submit",
        ),
        has_captcha=True,
        captcha_type=CaptchaType.RECAPTCHA_V2,
    ),
    PortalConfig(
        carrier=Carrier.USPS,
        login_url="https://reg.usps.com/entreg/LoginAction_input",
        claims_url="https://www.usps.com/help/claims.htm",
        tracking_url="https://tools.usps.com/go/TrackConfirmAction",
        login_selectors=LoginSelectors(
            username="#username",
            password="#password",
            submit="#btn-submit",
        ),
        claim_form_selectors=ClaimFormSelectors(
            tracking_number="#trackingNum",
            claim_amount="#claimAmt",
            description="#claimDesc",
            submit="#submitBtn",
        ),
    ),
    PortalConfig(
        carrier=Carrier.DHL,
        login_url="https://www.dhl.com/us-en/home/login.html",
        claims_url="https://www.dhl.com/us-en/home/claims.html",
        tracking_url="https://www.dhl.com/us-en/home/tracking.html",
        login_selectors=LoginSelectors(
            username="#username",
            password="#password",
            submit="button.login-btn",
        ),
        claim_form_selectors=ClaimFormSelectors(
            tracking_number="#waybill",
            claim_amount="#amount",
            description="#reason",
            submit="#submit-claim",
        ),
    ),
]


def default_config_for(carrier: Carrier) -> Optional[PortalConfig]:
    for config in DEFAULT_PORTAL_CONFIGS:
        if config.carrier == carrier:
            return config.model_copy(deep=True)
    return None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "LoginSelectors",
    "ClaimFormSelectors",
    "PortalConfig",
    "DEFAULT_PORTAL_CONFIGS",
    "default_config_for",
]
