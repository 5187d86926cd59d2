# ============================================================================
# CREDENTIAL VAULT
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Encrypted carrier portal credentials
# PURPOSE: Store, decrypt, list, delete and live-test portal logins
# CREATED: 19 OCT 2026
# ============================================================================
"""
Credential Vault

Every sensitive field is encrypted on its own with AES-256-GCM
(infrastructure.encryption.FieldCipher) before it reaches the repository.
Plaintext only exists inside a CredentialSecrets returned by
get_credentials(), whose repr masks the values.

test_credentials() needs the browser coordinator; main.py wires it in
after both objects exist (vault.coordinator = coordinator).
"""

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from psycopg_pool import AsyncConnectionPool

from core.config import VaultDefaults, get_defaults
from core.contracts import Carrier, TwoFactorMethod, ValidationStatus
from core.errors import CredentialNotFound, SubmissionError, VaultDecryptionError, VaultError
from core.models import CredentialSecrets, PortalCredential
from infrastructure.encryption import FieldCipher
from repositories import CredentialRepository

logger = logging.getLogger(__name__)


def build_cipher(defaults: Optional[VaultDefaults] = None) -> FieldCipher:
    """
    Cipher from PORTAL_ENCRYPTION_KEY.

    Without a configured key a random one is generated for this process;
    anything stored with it is unreadable after a restart.
    """
    defaults = defaults or get_defaults().vault
    if defaults.encryption_key_hex:
        return FieldCipher.from_hex(defaults.encryption_key_hex)

    logger.warning(
        "PORTAL_ENCRYPTION_KEY is not set - using an ephemeral key, "
        "stored credentials will not survive a restart"
    )
    return FieldCipher.from_hex(FieldCipher.generate_key())


class CredentialVault:
    """Service for encrypted portal credentials."""

    def __init__(
        self,
        pool: AsyncConnectionPool,
        cipher: Optional[FieldCipher] = None,
        coordinator: Any = None,
    ):
        self.pool = pool
        self.credential_repo = CredentialRepository(pool)
        self.cipher = cipher or build_cipher()
        self.coordinator = coordinator

    # =========================================================================
    # STORE / READ
    # =========================================================================

    async def store_credentials(
        self,
        carrier: Carrier,
        account_name: str,
        username: str,
        password: str,
        account_number: Optional[str] = None,
        security_questions: Optional[Any] = None,
        two_factor_method: TwoFactorMethod = TwoFactorMethod.NONE,
        two_factor_phone: Optional[str] = None,
        two_factor_email: Optional[str] = None,
        is_shared: bool = False,
        created_by: Optional[str] = None,
    ) -> PortalCredential:
        """
        Encrypt and persist a credential set.

        Returns:
            The stored record (ciphertext only), status NEEDS_VERIFICATION
        """
        questions = json.dumps(security_questions) if security_questions is not None else None

        credential = PortalCredential(
            credential_id=str(uuid.uuid4()),
            carrier=carrier,
            account_name=account_name,
            encrypted_username=self.cipher.encrypt(username),
            encrypted_password=self.cipher.encrypt(password),
            encrypted_account_number=self.cipher.encrypt_optional(account_number),
            encrypted_security_questions=self.cipher.encrypt_optional(questions),
            encrypted_two_factor_phone=self.cipher.encrypt_optional(two_factor_phone),
            encrypted_two_factor_email=self.cipher.encrypt_optional(two_factor_email),
            two_factor_method=two_factor_method,
            is_shared=is_shared,
            validation_status=ValidationStatus.NEEDS_VERIFICATION,
            created_by=created_by,
        )
        return await self.credential_repo.create(credential)

    async def get_credentials(self, credential_id: str) -> CredentialSecrets:
        """
        Decrypt a credential set.

        Raises:
            CredentialNotFound, VaultDecryptionError
        """
        record = await self.credential_repo.get(credential_id)
        if record is None:
            raise CredentialNotFound(credential_id)

        questions = self.cipher.decrypt_optional(record.encrypted_security_questions)

        return CredentialSecrets(
            credential_id=record.credential_id,
            carrier=record.carrier,
            username=self.cipher.decrypt(record.encrypted_username),
            password=self.cipher.decrypt(record.encrypted_password),
            account_number=self.cipher.decrypt_optional(record.encrypted_account_number),
            security_questions=json.loads(questions) if questions is not None else None,
            two_factor_phone=self.cipher.decrypt_optional(record.encrypted_two_factor_phone),
            two_factor_email=self.cipher.decrypt_optional(record.encrypted_two_factor_email),
            two_factor_method=record.two_factor_method,
        )

    async def list_credentials(self, carrier: Optional[Carrier] = None) -> List[PortalCredential]:
        return await self.credential_repo.list_all(carrier)

    async def delete_credentials(self, credential_id: str) -> bool:
        return await self.credential_repo.delete(credential_id)

    # =========================================================================
    # LIVE TEST
    # =========================================================================

    async def test_credentials(self, credential_id: str) -> Dict[str, Any]:
        """
        Log in once with the stored credentials and record the outcome.

        Returns:
            {"success": bool, "message": str}
        """
        if self.coordinator is None:
            return {"success": False, "message": "Browser automation is not configured"}

        try:
            secrets = await self.get_credentials(credential_id)
        except CredentialNotFound as e:
            return {"success": False, "message": str(e)}
        except VaultDecryptionError as e:
            # Unreadable with the current key; no login can succeed until re-stored
            logger.error(f"Credential {credential_id} cannot be decrypted: {e}")
            await self.credential_repo.set_validation(credential_id, ValidationStatus.INVALID, datetime.utcnow())
            return {"success": False, "message": f"Stored credentials cannot be decrypted: {e}"}
        except VaultError as e:
            return {"success": False, "message": str(e)}

        try:
            login_ok = await self.coordinator.check_login(secrets)
        except SubmissionError as e:
            logger.warning(f"Credential test {credential_id} failed: {e}")
            return {"success": False, "message": str(e)}
        except Exception as e:
            logger.exception(f"Credential test {credential_id} errored: {e}")
            return {"success": False, "message": f"Test failed: {e}"}

        status = ValidationStatus.VALID if login_ok else ValidationStatus.INVALID
        await self.credential_repo.set_validation(credential_id, status, datetime.utcnow())
        logger.info(f"Credential {credential_id} validated: {status.value}")

        return {
            "success": login_ok,
            "message": (
                "Credentials validated successfully"
                if login_ok
                else "Login failed - credentials may be invalid"
            ),
        }


__all__ = ["CredentialVault", "build_cipher"]
