# ============================================================================
# CLAUDE CONTEXT - PORTAL CREDENTIAL MODEL
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core model - Encrypted carrier portal account
# PURPOSE: Persisted (ciphertext-only) credentials + in-memory decrypted view
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: PortalCredential, CredentialSecrets
# DEPENDENCIES: pydantic
# ============================================================================
"""
Portal Credential Models

PortalCredential is what gets stored: every sensitive field is an independent
AES-GCM token (see infrastructure.encryption). Plaintext never reaches the
database.

CredentialSecrets is the decrypted form handed to the browser coordinator for
the duration of one login. Its repr masks every secret so it can never leak
through a log line or a traceback.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field

from core.contracts import Carrier, TwoFactorMethod, ValidationStatus


# Columns that hold ciphertext
ENCRYPTED_FIELDS = (
    "encrypted_username",
    "encrypted_password",
    "encrypted_account_number",
    "encrypted_security_questions",
    "encrypted_two_factor_phone",
    "encrypted_two_factor_email",
)


class PortalCredential(BaseModel):
    """
    Encrypted carrier portal account.

    Maps to: claimflow.portal_credentials table
    """

    __sql_table__: ClassVar[str] = "portal_credentials"
    __sql_schema__: ClassVar[str] = "claimflow"
    __sql_primary_key__: ClassVar[List[str]] = ["credential_id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {}
    __sql_indexes__: ClassVar[List[tuple]] = [
        ("idx_portal_credentials_carrier", ["carrier"]),
    ]

    credential_id: str = Field(..., max_length=64)
    carrier: Carrier
    account_name: str = Field(..., max_length=128)

    encrypted_username: str
    encrypted_password: str
    encrypted_account_number: Optional[str] = None
    encrypted_security_questions: Optional[str] = None
    encrypted_two_factor_phone: Optional[str] = None
    encrypted_two_factor_email: Optional[str] = None

    two_factor_method: TwoFactorMethod = Field(default=TwoFactorMethod.NONE)
    is_shared: bool = False

    validation_status: ValidationStatus = Field(default=ValidationStatus.NEEDS_VERIFICATION)
    last_validated: Optional[datetime] = None

    created_by: Optional[str] = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def public_view(self) -> Dict[str, Any]:
        """Listing representation. Never includes an encrypted column."""
        return self.model_dump(mode="json", exclude=set(ENCRYPTED_FIELDS))


def _mask(value: Optional[str]) -> Optional[str]:
    return None if value is None else "***"


@dataclass(repr=False)
class CredentialSecrets:
    """Decrypted credentials. Keep the lifetime short; never persist."""
    credential_id: str
    carrier: Carrier
    username: str = field(repr=False)
    password: str = field(repr=False)
    account_number: Optional[str] = field(default=None, repr=False)
    security_questions: Optional[Any] = field(default=None, repr=False)
    two_factor_phone: Optional[str] = field(default=None, repr=False)
    two_factor_email: Optional[str] = field(default=None, repr=False)
    two_factor_method: TwoFactorMethod = TwoFactorMethod.NONE

    def __repr__(self) -> str:
        return (
            f"CredentialSecrets(credential_id={self.credential_id!r}, "
            f"carrier={self.carrier.value}, username={_mask(self.username)!r}, "
            f"password={_mask(self.password)!r})"
        )

    __str__ = __repr__


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["PortalCredential", "CredentialSecrets", "ENCRYPTED_FIELDS"]
