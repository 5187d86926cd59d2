# ============================================================================
# WORKFLOW REPOSITORY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Workflow definition CRUD operations
# PURPOSE: Database access for workflows table
# CREATED: 19 OCT 2026
# ============================================================================
"""
Workflow Repository

CRUD operations for workflow definitions. Nodes and edges are stored as
JSONB and re-validated through the tagged-union models on read.
"""

import logging
from datetime import datetime
from typing import List, Optional, Dict, Any

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.models import WorkflowDefinition
from core.contracts import ExecutionStatus
from .database import TABLE_WORKFLOWS

logger = logging.getLogger(__name__)


class WorkflowRepository:
    """Repository for WorkflowDefinition entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    @staticmethod
    def _params(workflow: WorkflowDefinition) -> Dict[str, Any]:
        dumped = workflow.model_dump(mode="json", include={"nodes", "edges"})
        return {
            "workflow_id": workflow.workflow_id,
            "name": workflow.name,
            "description": workflow.description,
            "category": workflow.category.value,
            "trigger_type": workflow.trigger_type.value,
            "trigger_config": Json(workflow.trigger_config),
            "tags": Json(workflow.tags),
            "is_active": workflow.is_active,
            "nodes": Json(dumped["nodes"]),
            "edges": Json(dumped["edges"]),
            "execution_count": workflow.execution_count,
            "success_count": workflow.success_count,
            "failure_count": workflow.failure_count,
            "created_by": workflow.created_by,
            "created_at": workflow.created_at,
            "updated_at": workflow.updated_at,
            "version": workflow.version,
        }

    async def create(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    workflow_id, name, description, category, trigger_type,
                    trigger_config, tags, is_active, nodes, edges,
                    execution_count, success_count, failure_count,
                    created_by, created_at, updated_at, version
                ) VALUES (
                    %(workflow_id)s, %(name)s, %(description)s, %(category)s,
                    %(trigger_type)s, %(trigger_config)s, %(tags)s, %(is_active)s,
                    %(nodes)s, %(edges)s, %(execution_count)s, %(success_count)s,
                    %(failure_count)s, %(created_by)s, %(created_at)s,
                    %(updated_at)s, %(version)s
                )
                """).format(TABLE_WORKFLOWS),
                self._params(workflow),
            )
            logger.info(f"Created workflow {workflow.workflow_id} ({workflow.node_count} nodes)")
            return workflow

    async def get(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE workflow_id = %s").format(TABLE_WORKFLOWS),
                (workflow_id,),
            )
            row = await result.fetchone()
            if row is None:
                return None
            return WorkflowDefinition.model_validate(row)

    async def update(self, workflow: WorkflowDefinition) -> bool:
        """
        Update a definition with optimistic locking.

        Returns:
            True if update succeeded, False if version conflict
        """
        workflow.updated_at = datetime.utcnow()

        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                UPDATE {} SET
                    name = %(name)s,
                    description = %(description)s,
                    category = %(category)s,
                    trigger_type = %(trigger_type)s,
                    trigger_config = %(trigger_config)s,
                    tags = %(tags)s,
                    is_active = %(is_active)s,
                    nodes = %(nodes)s,
                    edges = %(edges)s,
                    updated_at = %(updated_at)s,
                    version = version + 1
                WHERE workflow_id = %(workflow_id)s
                  AND version = %(version)s
                """).format(TABLE_WORKFLOWS),
                self._params(workflow),
            )

            if result.rowcount == 0:
                logger.warning(
                    f"Version conflict updating workflow {workflow.workflow_id} "
                    f"(expected version {workflow.version})"
                )
                return False

            workflow.version += 1
            return True

    async def delete(self, workflow_id: str) -> bool:
        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("DELETE FROM {} WHERE workflow_id = %s").format(TABLE_WORKFLOWS),
                (workflow_id,),
            )
            return result.rowcount > 0

    async def list_all(
        self,
        category: Optional[str] = None,
        active_only: bool = False,
        limit: int = 100,
    ) -> List[WorkflowDefinition]:
        filters = [sql.SQL("TRUE")]
        params: List[Any] = []
        if category:
            filters.append(sql.SQL("category = %s"))
            params.append(category)
        if active_only:
            filters.append(sql.SQL("is_active"))
        params.append(limit)

        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE {}
                ORDER BY updated_at DESC
                LIMIT %s
                """).format(TABLE_WORKFLOWS, sql.SQL(" AND ").join(filters)),
                params,
            )
            rows = await result.fetchall()
            return [WorkflowDefinition.model_validate(row) for row in rows]

    async def record_outcome(self, workflow_id: str, status: ExecutionStatus) -> None:
        """
        Bump execution counters for a finished execution.

        Counters are incremented in SQL so concurrent executions do not
        overwrite each other.
        """
        if status == ExecutionStatus.COMPLETED:
            column = sql.Identifier("success_count")
        elif status == ExecutionStatus.FAILED:
            column = sql.Identifier("failure_count")
        else:
            return

        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                UPDATE {table}
                SET execution_count = execution_count + 1,
                    {column} = {column} + 1,
                    updated_at = NOW()
                WHERE workflow_id = %s
                """).format(table=TABLE_WORKFLOWS, column=column),
                (workflow_id,),
            )


__all__ = ["WorkflowRepository"]
