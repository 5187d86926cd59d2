# ============================================================================
# AUTOMATION MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Carrier portal browser automation
# PURPOSE: Shared browser, carrier strategies, submission coordinator
# CREATED: 19 OCT 2026
# ============================================================================
"""
Automation Module

Usage:
    from automation import BrowserCoordinator, BrowserPool

    coordinator = BrowserCoordinator(pool, vault, browser_pool=BrowserPool())
    outcome = await coordinator.submit_to_portal(item)
"""

from .browser_pool import BrowserPool
from .coordinator import BrowserCoordinator, SubmissionOutcome, LOGIN_FAILED_MESSAGE
from .strategies import CarrierStrategy, GenericStrategy, get_strategy, register_strategy

__all__ = [
    "BrowserPool",
    "BrowserCoordinator",
    "SubmissionOutcome",
    "LOGIN_FAILED_MESSAGE",
    "CarrierStrategy",
    "GenericStrategy",
    "get_strategy",
    "register_strategy",
]
