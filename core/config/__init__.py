# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the claim workflow
orchestrator.
"""

from core.config.defaults import (
    ExecutorDefaults,
    QueueDefaults,
    BrowserDefaults,
    VaultDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "ExecutorDefaults",
    "QueueDefaults",
    "BrowserDefaults",
    "VaultDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
