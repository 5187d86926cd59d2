"""
Carrier strategy registry.

Importing this package registers every built-in carrier strategy.
"""

from .base import (
    CarrierStrategy,
    GenericStrategy,
    register_strategy,
    get_strategy,
    registered_carriers,
    match_confirmation,
    CHALLENGE_CAPTCHA,
    CHALLENGE_2FA,
)
from . import carriers  # noqa: F401 - registers built-in strategies
from .carriers import FedExStrategy, UPSStrategy, USPSStrategy, DHLStrategy

__all__ = [
    "CarrierStrategy",
    "GenericStrategy",
    "register_strategy",
    "get_strategy",
    "registered_carriers",
    "match_confirmation",
    "CHALLENGE_CAPTCHA",
    "CHALLENGE_2FA",
    "FedExStrategy",
    "UPSStrategy",
    "USPSStrategy",
    "DHLStrategy",
]
