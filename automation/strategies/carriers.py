# ============================================================================
# CARRIER STRATEGIES
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Per-carrier login markers and confirmation locators
# PURPOSE: FEDEX, UPS, USPS and DHL portal behaviour
# CREATED: 19 OCT 2026
# ============================================================================
"""
Carrier Strategies

Each class only overrides what differs from CarrierStrategy. A new carrier
is a new PortalConfig row plus a class here.
"""

from core.contracts import Carrier

from .base import CarrierStrategy, register_strategy


@register_strategy(Carrier.FEDEX)
class FedExStrategy(CarrierStrategy):
    LOGIN_MARKER = '[data-testid="dashboard"]'
    CONFIRMATION_SELECTOR = ".confirmation-number"


@register_strategy(Carrier.UPS)
class UPSStrategy(CarrierStrategy):
    LOGIN_MARKER = "#accountMenu"
    CONFIRMATION_SELECTOR = "#claimNumber"


@register_strategy(Carrier.USPS)
class USPSStrategy(CarrierStrategy):
    LOGIN_MARKER = ".main-navigation"
    CONFIRMATION_SELECTOR = ".claim-id"


@register_strategy(Carrier.DHL)
class DHLStrategy(CarrierStrategy):
    """DHL renders the claim number as an attribute, not text."""
    LOGIN_MARKER = ".dhl-header"
    CONFIRMATION_SELECTOR = "[data-claim-number]"
    CONFIRMATION_ATTRIBUTE = "data-claim-number"


__all__ = ["FedExStrategy", "UPSStrategy", "USPSStrategy", "DHLStrategy"]
