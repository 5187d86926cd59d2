# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for executor, queue, browser and vault
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides sensible defaults for workflow execution and portal submissions.
These can be overridden via environment variables or node parameters.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ExecutorDefaults:
    """
    Defaults for the graph executor.

    WAIT nodes at or below inline_wait_max_ms are awaited in place; longer
    waits persist resume_at and are picked up by the scheduler.
    """
    inline_wait_max_ms: int = 5000
    default_wait_ms: int = 1000

    # CREATE_REMINDER default offset
    reminder_days: int = 7

    # Suspended executions resumed per scheduler tick
    resume_batch_size: int = 20

    @classmethod
    def from_env(cls) -> "ExecutorDefaults":
        """Create from environment variables."""
        return cls(
            inline_wait_max_ms=int(os.getenv("EXECUTOR_INLINE_WAIT_MAX_MS", 5000)),
            default_wait_ms=int(os.getenv("EXECUTOR_DEFAULT_WAIT_MS", 1000)),
            reminder_days=int(os.getenv("EXECUTOR_REMINDER_DAYS", 7)),
            resume_batch_size=int(os.getenv("EXECUTOR_RESUME_BATCH_SIZE", 20)),
        )


@dataclass(frozen=True)
class QueueDefaults:
    """
    Defaults for the submission queue.

    Backoff is fixed (no exponential growth).
    """
    max_attempts: int = 3
    retry_backoff_seconds: int = 300  # 5 min
    poll_interval_seconds: float = 30.0

    # Ready items fetched per tick before priority ordering
    candidate_batch_size: int = 10

    # Outcome writes tried before the status-only fallback
    outcome_write_attempts: int = 3
    outcome_write_retry_seconds: float = 1.0

    # IN_PROGRESS longer than this is an abandoned attempt (> submission timeout)
    stale_claim_seconds: int = 600

    enabled: bool = True

    @classmethod
    def from_env(cls) -> "QueueDefaults":
        """Create from environment variables."""
        return cls(
            max_attempts=int(os.getenv("QUEUE_MAX_ATTEMPTS", 3)),
            retry_backoff_seconds=int(os.getenv("QUEUE_RETRY_BACKOFF_SECONDS", 300)),
            poll_interval_seconds=float(os.getenv("QUEUE_POLL_INTERVAL_SECONDS", 30.0)),
            candidate_batch_size=int(os.getenv("QUEUE_CANDIDATE_BATCH_SIZE", 10)),
            outcome_write_attempts=int(os.getenv("QUEUE_OUTCOME_WRITE_ATTEMPTS", 3)),
            outcome_write_retry_seconds=float(os.getenv("QUEUE_OUTCOME_WRITE_RETRY_SECONDS", 1.0)),
            stale_claim_seconds=int(os.getenv("QUEUE_STALE_CLAIM_SECONDS", 600)),
            enabled=_env_bool("QUEUE_ENABLED", True),
        )


@dataclass(frozen=True)
class BrowserDefaults:
    """
    Defaults for Playwright browser sessions.

    Timeouts are in milliseconds except the end-to-end submission timeout.
    """
    headless: bool = True
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    viewport_width: int = 1920
    viewport_height: int = 1080
    locale: str = "en-US"
    timezone_id: str = "America/New_York"

    navigation_timeout_ms: int = 30000
    action_timeout_ms: int = 15000
    login_verify_timeout_ms: int = 5000

    # Whole attempt: login + form + confirmation
    submission_timeout_seconds: int = 180

    # Empty disables screenshots
    screenshot_dir: str = ""

    @classmethod
    def from_env(cls) -> "BrowserDefaults":
        """Create from environment variables."""
        return cls(
            headless=_env_bool("BROWSER_HEADLESS", True),
            navigation_timeout_ms=int(os.getenv("BROWSER_NAVIGATION_TIMEOUT_MS", 30000)),
            action_timeout_ms=int(os.getenv("BROWSER_ACTION_TIMEOUT_MS", 15000)),
            login_verify_timeout_ms=int(os.getenv("BROWSER_LOGIN_VERIFY_TIMEOUT_MS", 5000)),
            submission_timeout_seconds=int(os.getenv("BROWSER_SUBMISSION_TIMEOUT_SECONDS", 180)),
            screenshot_dir=os.getenv("BROWSER_SCREENSHOT_DIR", ""),
        )


@dataclass(frozen=True)
class VaultDefaults:
    """
    Defaults for the credential vault.

    encryption_key_hex is a 64-character hex string (32 bytes, AES-256).
    """
    encryption_key_hex: str = ""

    @classmethod
    def from_env(cls) -> "VaultDefaults":
        """Create from environment variables."""
        return cls(
            encryption_key_hex=os.getenv("PORTAL_ENCRYPTION_KEY", ""),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    executor: ExecutorDefaults = field(default_factory=ExecutorDefaults)
    queue: QueueDefaults = field(default_factory=QueueDefaults)
    browser: BrowserDefaults = field(default_factory=BrowserDefaults)
    vault: VaultDefaults = field(default_factory=VaultDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            executor=ExecutorDefaults.from_env(),
            queue=QueueDefaults.from_env(),
            browser=BrowserDefaults.from_env(),
            vault=VaultDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ExecutorDefaults",
    "QueueDefaults",
    "BrowserDefaults",
    "VaultDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
