# ============================================================================
# CREDENTIAL REPOSITORY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Encrypted portal credential storage
# PURPOSE: Database access for portal_credentials table
# CREATED: 19 OCT 2026
# ============================================================================
"""
Credential Repository

Stores PortalCredential rows exactly as given: every secret column is
already an encrypted token. Encryption and decryption live in
services.credential_vault.
"""

import logging
from datetime import datetime
from typing import List, Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.contracts import Carrier, ValidationStatus
from core.models import PortalCredential
from .database import TABLE_CREDENTIALS

logger = logging.getLogger(__name__)


class CredentialRepository:
    """Repository for PortalCredential entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(self, credential: PortalCredential) -> PortalCredential:
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    credential_id, carrier, account_name,
                    encrypted_username, encrypted_password,
                    encrypted_account_number, encrypted_security_questions,
                    encrypted_two_factor_phone, encrypted_two_factor_email,
                    two_factor_method, is_shared, validation_status,
                    last_validated, created_by, created_at, updated_at
                ) VALUES (
                    %(credential_id)s, %(carrier)s, %(account_name)s,
                    %(encrypted_username)s, %(encrypted_password)s,
                    %(encrypted_account_number)s, %(encrypted_security_questions)s,
                    %(encrypted_two_factor_phone)s, %(encrypted_two_factor_email)s,
                    %(two_factor_method)s, %(is_shared)s, %(validation_status)s,
                    %(last_validated)s, %(created_by)s, %(created_at)s, %(updated_at)s
                )
                """).format(TABLE_CREDENTIALS),
                {
                    "credential_id": credential.credential_id,
                    "carrier": credential.carrier.value,
                    "account_name": credential.account_name,
                    "encrypted_username": credential.encrypted_username,
                    "encrypted_password": credential.encrypted_password,
                    "encrypted_account_number": credential.encrypted_account_number,
                    "encrypted_security_questions": credential.encrypted_security_questions,
                    "encrypted_two_factor_phone": credential.encrypted_two_factor_phone,
                    "encrypted_two_factor_email": credential.encrypted_two_factor_email,
                    "two_factor_method": credential.two_factor_method.value,
                    "is_shared": credential.is_shared,
                    "validation_status": credential.validation_status.value,
                    "last_validated": credential.last_validated,
                    "created_by": credential.created_by,
                    "created_at": credential.created_at,
                    "updated_at": credential.updated_at,
                },
            )
            logger.info(
                f"Stored credential {credential.credential_id} "
                f"({credential.carrier.value}/{credential.account_name})"
            )
            return credential

    async def get(self, credential_id: str) -> Optional[PortalCredential]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE credential_id = %s").format(TABLE_CREDENTIALS),
                (credential_id,),
            )
            row = await result.fetchone()
            if row is None:
                return None
            return PortalCredential.model_validate(row)

    async def list_all(self, carrier: Optional[Carrier] = None) -> List[PortalCredential]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            if carrier:
                result = await conn.execute(
                    sql.SQL("""
                    SELECT * FROM {}
                    WHERE carrier = %s
                    ORDER BY account_name ASC
                    """).format(TABLE_CREDENTIALS),
                    (carrier.value,),
                )
            else:
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} ORDER BY carrier, account_name").format(TABLE_CREDENTIALS),
                )
            rows = await result.fetchall()
            return [PortalCredential.model_validate(row) for row in rows]

    async def set_validation(
        self,
        credential_id: str,
        status: ValidationStatus,
        validated_at: Optional[datetime] = None,
    ) -> bool:
        validated_at = validated_at or datetime.utcnow()
        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                UPDATE {}
                SET validation_status = %s, last_validated = %s, updated_at = NOW()
                WHERE credential_id = %s
                """).format(TABLE_CREDENTIALS),
                (status.value, validated_at, credential_id),
            )
            return result.rowcount > 0

    async def delete(self, credential_id: str) -> bool:
        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("DELETE FROM {} WHERE credential_id = %s").format(TABLE_CREDENTIALS),
                (credential_id,),
            )
            deleted = result.rowcount > 0
            if deleted:
                logger.info(f"Deleted credential {credential_id}")
            return deleted


__all__ = ["CredentialRepository"]
