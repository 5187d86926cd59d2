# ============================================================================
# CREDENTIAL VAULT TESTS
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Tests - Field encryption and vault operations
# PURPOSE: Verify AES-GCM tokens, masking and the credential test flow
# CREATED: 19 OCT 2026
# ============================================================================
"""
Credential Vault Tests

Covers:
1. FieldCipher tokens (round trip, tamper detection, wrong key)
2. CredentialVault store/get with every optional field
3. Plaintext never reaches the repository or a repr
4. test_credentials() with a mocked coordinator

Run with:
    pytest tests/test_credential_vault.py -v
"""

import asyncio
import base64
import pytest
from unittest.mock import AsyncMock, MagicMock

from core.config import VaultDefaults
from core.contracts import Carrier, TwoFactorMethod, ValidationStatus
from core.errors import CredentialNotFound, PortalConfigMissing, VaultDecryptionError
from core.models.credential import ENCRYPTED_FIELDS
from infrastructure.encryption import KEY_BYTES, NONCE_BYTES, FieldCipher
from services.credential_vault import CredentialVault, build_cipher


# ============================================================================
# HELPERS
# ============================================================================

def _make_cipher():
    return FieldCipher.from_hex(FieldCipher.generate_key())


def _build_vault(coordinator=None):
    """Vault over an in-memory credential repo."""
    vault = CredentialVault(MagicMock(), cipher=_make_cipher(), coordinator=coordinator)
    rows = {}

    async def create(credential):
        rows[credential.credential_id] = credential
        return credential

    async def get(credential_id):
        return rows.get(credential_id)

    async def delete(credential_id):
        return rows.pop(credential_id, None) is not None

    vault.credential_repo = AsyncMock()
    vault.credential_repo.create = AsyncMock(side_effect=create)
    vault.credential_repo.get = AsyncMock(side_effect=get)
    vault.credential_repo.delete = AsyncMock(side_effect=delete)
    vault.rows = rows
    return vault


def _store(vault, **overrides):
    fields = dict(
        carrier=Carrier.FEDEX,
        account_name="Main FedEx account",
        username="shipper@example.com",
        password="p@ss:word:with:colons",
    )
    fields.update(overrides)
    return asyncio.run(vault.store_credentials(**fields))


# ============================================================================
# FIELD CIPHER
# ============================================================================

class TestFieldCipher:

    def test_round_trip(self):
        cipher = _make_cipher()
        assert cipher.decrypt(cipher.encrypt("hunter2")) == "hunter2"

    def test_plaintext_with_separators_and_unicode(self):
        cipher = _make_cipher()
        value = "a:b:c::d ü ✓"
        assert cipher.decrypt(cipher.encrypt(value)) == value

    def test_empty_string(self):
        cipher = _make_cipher()
        assert cipher.decrypt(cipher.encrypt("")) == ""

    def test_nonce_makes_tokens_unique(self):
        cipher = _make_cipher()
        assert cipher.encrypt("same") != cipher.encrypt("same")

    def test_token_layout(self):
        cipher = _make_cipher()
        raw = base64.b64decode(cipher.encrypt("abc"))
        # nonce + ciphertext + 16 byte tag
        assert len(raw) == NONCE_BYTES + 3 + 16

    def test_tampered_token_rejected(self):
        cipher = _make_cipher()
        raw = bytearray(base64.b64decode(cipher.encrypt("secret")))
        raw[-1] ^= 0x01
        with pytest.raises(VaultDecryptionError):
            cipher.decrypt(base64.b64encode(bytes(raw)).decode("ascii"))

    def test_wrong_key_rejected(self):
        token = _make_cipher().encrypt("secret")
        with pytest.raises(VaultDecryptionError):
            _make_cipher().decrypt(token)

    def test_garbage_rejected(self):
        cipher = _make_cipher()
        with pytest.raises(VaultDecryptionError):
            cipher.decrypt("not base64 at all!")
        with pytest.raises(VaultDecryptionError):
            cipher.decrypt(base64.b64encode(b"short").decode("ascii"))

    def test_key_validation(self):
        assert len(bytes.fromhex(FieldCipher.generate_key())) == KEY_BYTES
        with pytest.raises(ValueError):
            FieldCipher.from_hex("abcd")
        with pytest.raises(ValueError):
            FieldCipher.from_hex("zz" * KEY_BYTES)

    def test_optional_helpers(self):
        cipher = _make_cipher()
        assert cipher.encrypt_optional(None) is None
        assert cipher.decrypt_optional(None) is None


class TestBuildCipher:

    def test_configured_key_is_stable(self):
        key = FieldCipher.generate_key()
        token = build_cipher(VaultDefaults(encryption_key_hex=key)).encrypt("x")
        assert build_cipher(VaultDefaults(encryption_key_hex=key)).decrypt(token) == "x"

    def test_missing_key_uses_ephemeral_key(self):
        first = build_cipher(VaultDefaults(encryption_key_hex=""))
        second = build_cipher(VaultDefaults(encryption_key_hex=""))
        with pytest.raises(VaultDecryptionError):
            second.decrypt(first.encrypt("lost on restart"))


# ============================================================================
# STORE / GET
# ============================================================================

class TestStoreAndGet:

    def test_round_trip_all_fields(self):
        vault = _build_vault()
        record = _store(
            vault,
            account_number="ACCT-001",
            security_questions=[{"q": "First pet?", "a": "Rex"}],
            two_factor_method=TwoFactorMethod.SMS,
            two_factor_phone="+15550100",
            two_factor_email="ops@example.com",
        )

        secrets = asyncio.run(vault.get_credentials(record.credential_id))

        assert secrets.username == "shipper@example.com"
        assert secrets.password == "p@ss:word:with:colons"
        assert secrets.account_number == "ACCT-001"
        assert secrets.security_questions == [{"q": "First pet?", "a": "Rex"}]
        assert secrets.two_factor_method == TwoFactorMethod.SMS
        assert secrets.two_factor_phone == "+15550100"
        assert secrets.two_factor_email == "ops@example.com"
        assert secrets.carrier == Carrier.FEDEX

    def test_optional_fields_stay_null(self):
        vault = _build_vault()
        record = _store(vault)

        assert record.encrypted_account_number is None
        assert record.encrypted_security_questions is None

        secrets = asyncio.run(vault.get_credentials(record.credential_id))
        assert secrets.account_number is None
        assert secrets.security_questions is None

    def test_new_credentials_need_verification(self):
        vault = _build_vault()
        record = _store(vault)
        assert record.validation_status == ValidationStatus.NEEDS_VERIFICATION
        assert record.last_validated is None

    def test_repository_only_sees_ciphertext(self):
        vault = _build_vault()
        record = _store(vault, account_number="ACCT-001")

        stored = vault.rows[record.credential_id]
        assert stored.encrypted_username != "shipper@example.com"
        assert "colons" not in stored.encrypted_password
        assert stored.encrypted_account_number != "ACCT-001"

    def test_public_view_has_no_encrypted_columns(self):
        vault = _build_vault()
        view = _store(vault).public_view()

        assert not set(ENCRYPTED_FIELDS) & set(view)
        assert view["carrier"] == "FEDEX"
        assert view["account_name"] == "Main FedEx account"

    def test_secrets_repr_is_masked(self):
        vault = _build_vault()
        record = _store(vault)
        secrets = asyncio.run(vault.get_credentials(record.credential_id))

        text = repr(secrets) + str(secrets)
        assert "shipper@example.com" not in text
        assert "colons" not in text
        assert "***" in text

    def test_unknown_credential(self):
        vault = _build_vault()
        with pytest.raises(CredentialNotFound):
            asyncio.run(vault.get_credentials("missing"))

    def test_delete(self):
        vault = _build_vault()
        record = _store(vault)

        assert asyncio.run(vault.delete_credentials(record.credential_id)) is True
        assert asyncio.run(vault.delete_credentials(record.credential_id)) is False

    def test_list_filters_by_carrier(self):
        vault = _build_vault()
        vault.credential_repo.list_all = AsyncMock(return_value=[])

        asyncio.run(vault.list_credentials(Carrier.UPS))

        vault.credential_repo.list_all.assert_awaited_once_with(Carrier.UPS)


# ============================================================================
# LIVE TEST
# ============================================================================

class TestCredentialCheck:

    def test_successful_login_marks_valid(self):
        coordinator = AsyncMock()
        coordinator.check_login = AsyncMock(return_value=True)
        vault = _build_vault(coordinator)
        record = _store(vault)

        result = asyncio.run(vault.test_credentials(record.credential_id))

        assert result == {"success": True, "message": "Credentials validated successfully"}
        cred_id, status, validated_at = vault.credential_repo.set_validation.await_args.args
        assert cred_id == record.credential_id
        assert status == ValidationStatus.VALID
        assert validated_at is not None

        secrets = coordinator.check_login.await_args.args[0]
        assert secrets.password == "p@ss:word:with:colons"

    def test_rejected_login_marks_invalid(self):
        coordinator = AsyncMock()
        coordinator.check_login = AsyncMock(return_value=False)
        vault = _build_vault(coordinator)
        record = _store(vault)

        result = asyncio.run(vault.test_credentials(record.credential_id))

        assert result["success"] is False
        assert vault.credential_repo.set_validation.await_args.args[1] == ValidationStatus.INVALID

    def test_unknown_credential_reported(self):
        vault = _build_vault(AsyncMock())

        result = asyncio.run(vault.test_credentials("missing"))

        assert result == {"success": False, "message": "Credentials not found"}

    def test_undecryptable_credential_marked_invalid(self):
        coordinator = AsyncMock()
        vault = _build_vault(coordinator)
        record = _store(vault)
        vault.cipher = _make_cipher()

        result = asyncio.run(vault.test_credentials(record.credential_id))

        assert result["success"] is False
        assert result["message"].startswith("Stored credentials cannot be decrypted")
        assert "p@ss" not in result["message"]
        coordinator.check_login.assert_not_awaited()
        cred_id, status, _ = vault.credential_repo.set_validation.await_args.args
        assert cred_id == record.credential_id
        assert status == ValidationStatus.INVALID

    def test_missing_portal_config_does_not_change_status(self):
        coordinator = AsyncMock()
        coordinator.check_login = AsyncMock(side_effect=PortalConfigMissing("FEDEX"))
        vault = _build_vault(coordinator)
        record = _store(vault)

        result = asyncio.run(vault.test_credentials(record.credential_id))

        assert result["success"] is False
        assert "FEDEX" in result["message"]
        vault.credential_repo.set_validation.assert_not_awaited()

    def test_browser_crash_reported(self):
        coordinator = AsyncMock()
        coordinator.check_login = AsyncMock(side_effect=RuntimeError("chromium exited"))
        vault = _build_vault(coordinator)
        record = _store(vault)

        result = asyncio.run(vault.test_credentials(record.credential_id))

        assert result == {"success": False, "message": "Test failed: chromium exited"}

    def test_without_coordinator(self):
        vault = _build_vault()
        record = _store(vault)

        result = asyncio.run(vault.test_credentials(record.credential_id))

        assert result["success"] is False
        assert "not configured" in result["message"]
