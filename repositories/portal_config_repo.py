# ============================================================================
# PORTAL CONFIG REPOSITORY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Carrier portal reference data
# PURPOSE: Database access for carrier_portal_configs table
# CREATED: 19 OCT 2026
# ============================================================================
"""
Portal Config Repository

One row per carrier. `seed_defaults()` inserts DEFAULT_PORTAL_CONFIGS for
carriers that have no row yet and never overwrites operator edits.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import Carrier
from core.models import PortalConfig, DEFAULT_PORTAL_CONFIGS
from .database import TABLE_PORTAL_CONFIGS

logger = logging.getLogger(__name__)


class PortalConfigRepository:
    """Repository for PortalConfig entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    @staticmethod
    def _params(config: PortalConfig) -> Dict[str, Any]:
        return {
            "carrier": config.carrier.value,
            "login_url": config.login_url,
            "claims_url": config.claims_url,
            "tracking_url": config.tracking_url,
            "login_selectors": Json(config.login_selectors.model_dump()),
            "claim_form_selectors": Json(config.claim_form_selectors.model_dump()),
            "has_captcha": config.has_captcha,
            "captcha_type": config.captcha_type.value,
            "max_concurrent_sessions": config.max_concurrent_sessions,
            "session_timeout_seconds": config.session_timeout_seconds,
            "is_enabled": config.is_enabled,
            "created_at": config.created_at,
            "updated_at": config.updated_at,
        }

    async def get(self, carrier: Carrier) -> Optional[PortalConfig]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE carrier = %s").format(TABLE_PORTAL_CONFIGS),
                (carrier.value,),
            )
            row = await result.fetchone()
            if row is None:
                return None
            return PortalConfig.model_validate(row)

    async def list_all(self) -> List[PortalConfig]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} ORDER BY carrier").format(TABLE_PORTAL_CONFIGS),
            )
            rows = await result.fetchall()
            return [PortalConfig.model_validate(row) for row in rows]

    async def upsert(self, config: PortalConfig, overwrite: bool = True) -> bool:
        """
        Insert or replace a carrier's config.

        Returns:
            True if a row was written
        """
        conflict = sql.SQL("""
            DO UPDATE SET
                login_url = EXCLUDED.login_url,
                claims_url = EXCLUDED.claims_url,
                tracking_url = EXCLUDED.tracking_url,
                login_selectors = EXCLUDED.login_selectors,
                claim_form_selectors = EXCLUDED.claim_form_selectors,
                has_captcha = EXCLUDED.has_captcha,
                captcha_type = EXCLUDED.captcha_type,
                max_concurrent_sessions = EXCLUDED.max_concurrent_sessions,
                session_timeout_seconds = EXCLUDED.session_timeout_seconds,
                is_enabled = EXCLUDED.is_enabled,
                updated_at = NOW()
        """) if overwrite else sql.SQL("DO NOTHING")

        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                INSERT INTO {table} (
                    carrier, login_url, claims_url, tracking_url,
                    login_selectors, claim_form_selectors, has_captcha,
                    captcha_type, max_concurrent_sessions,
                    session_timeout_seconds, is_enabled, created_at, updated_at
                ) VALUES (
                    %(carrier)s, %(login_url)s, %(claims_url)s, %(tracking_url)s,
                    %(login_selectors)s, %(claim_form_selectors)s, %(has_captcha)s,
                    %(captcha_type)s, %(max_concurrent_sessions)s,
                    %(session_timeout_seconds)s, %(is_enabled)s,
                    %(created_at)s, %(updated_at)s
                )
                ON CONFLICT (carrier) {conflict}
                """).format(table=TABLE_PORTAL_CONFIGS, conflict=conflict),
                self._params(config),
            )
            return result.rowcount > 0

    async def seed_defaults(self) -> int:
        """
        Insert the built-in configs for carriers without a row.

        Returns:
            Number of configs inserted
        """
        inserted = 0
        for config in DEFAULT_PORTAL_CONFIGS:
            if await self.upsert(config, overwrite=False):
                inserted += 1
        logger.info(f"Seeded {inserted} default portal configs")
        return inserted


__all__ = ["PortalConfigRepository"]
