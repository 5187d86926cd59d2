# ============================================================================
# CASE REPOSITORY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Narrow access to externally owned case tables
# PURPOSE: CaseStore and ReminderStore over the cases / reminders tables
# CREATED: 19 OCT 2026
# ============================================================================
"""
Case Repository

The case-management application owns the `cases` and `reminders` tables
(schema from CASE_SCHEMA, default public). This repository reads the columns
the workflows need and performs the few writes they make: status changes,
the FILED transition with the carrier claim number, and reminders.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.models import CaseRecord
from services.collaborators import CaseStore, ReminderStore
from .database import TABLE_CASES, TABLE_REMINDERS

logger = logging.getLogger(__name__)

FILED_STATUS = "FILED"


class CaseRepository(CaseStore, ReminderStore):
    """CaseStore and ReminderStore backed by PostgreSQL."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def get_case(self, case_id: str) -> Optional[CaseRecord]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT case_id, carrier, tracking_id, case_type, claimed_amount,
                       customer_name, recipient_email, recipient_phone,
                       damage_description, adjustment_reason, status,
                       carrier_guarantee_claim_number
                FROM {}
                WHERE case_id = %s
                """).format(TABLE_CASES),
                (case_id,),
            )
            row = await result.fetchone()
            if row is None:
                return None
            return CaseRecord.model_validate(row)

    async def update_status(self, case_id: str, status: str) -> None:
        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                UPDATE {} SET status = %s, updated_at = NOW()
                WHERE case_id = %s
                """).format(TABLE_CASES),
                (status, case_id),
            )
            if result.rowcount == 0:
                logger.warning(f"Status update matched no case: {case_id}")
            else:
                logger.info(f"Case {case_id} status -> {status}")

    async def record_claim_filed(self, case_id: str, claim_number: Optional[str]) -> None:
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                UPDATE {} SET
                    status = %s,
                    carrier_guarantee_claim_number = COALESCE(%s, carrier_guarantee_claim_number),
                    updated_at = NOW()
                WHERE case_id = %s
                """).format(TABLE_CASES),
                (FILED_STATUS, claim_number, case_id),
            )
            logger.info(f"Case {case_id} filed (claim number {claim_number})")

    async def create_reminder(self, case_id: str, due_at: datetime, message: str) -> str:
        reminder_id = str(uuid.uuid4())
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (reminder_id, case_id, due_at, message, created_at)
                VALUES (%s, %s, %s, %s, NOW())
                """).format(TABLE_REMINDERS),
                (reminder_id, case_id, due_at, message),
            )
        logger.info(f"Reminder {reminder_id} for case {case_id} due {due_at.isoformat()}")
        return reminder_id


__all__ = ["CaseRepository", "FILED_STATUS"]
