# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Infrastructure - Locking and encryption
# PURPOSE: Advisory locks and credential field encryption
# CREATED: 19 OCT 2026
# ============================================================================
"""
Infrastructure module for the claim workflow orchestrator.

Provides:
- LockService: PostgreSQL advisory locks (scheduler, queue, executions)
- FieldCipher: AES-256-GCM tokens for credential columns

Usage:
    from infrastructure import LockService, FieldCipher
"""

from infrastructure.locking import LockService
from infrastructure.encryption import FieldCipher

__all__ = [
    'LockService',
    'FieldCipher',
]
