# ============================================================================
# EXECUTION REPOSITORY
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Execution and step persistence
# PURPOSE: Database access for workflow_executions and workflow_execution_steps
# CREATED: 19 OCT 2026
# ============================================================================
"""
Execution Repository

Executions carry the traversal checkpoint (ready_nodes, edge_state,
context, resume_at) and are updated with optimistic locking. Operator
transitions (pause/resume/cancel) go through `transition()`, a conditional
UPDATE that also bumps the version so a running executor notices on its
next checkpoint.

Steps are append-only: created RUNNING, then completed or failed once.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import ExecutionStatus
from core.models import WorkflowExecution, WorkflowExecutionStep
from .database import TABLE_EXECUTIONS, TABLE_STEPS

logger = logging.getLogger(__name__)

# Column stamped by each operator transition
_TRANSITION_STAMPS = {
    ExecutionStatus.RUNNING: "resumed_at",
    ExecutionStatus.PAUSED: "paused_at",
    ExecutionStatus.CANCELLED: "completed_at",
}


class ExecutionRepository:
    """Repository for WorkflowExecution entities."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    @staticmethod
    def _params(execution: WorkflowExecution) -> Dict[str, Any]:
        return {
            "execution_id": execution.execution_id,
            "workflow_id": execution.workflow_id,
            "case_id": execution.case_id,
            "status": execution.status.value,
            "trigger_source": execution.trigger_source,
            "input_context": Json(execution.input_context),
            "context": Json(execution.context),
            "ready_nodes": Json(execution.ready_nodes),
            "edge_state": Json(execution.edge_state),
            "current_node_id": execution.current_node_id,
            "resume_at": execution.resume_at,
            "error_message": execution.error_message,
            "error_details": Json(execution.error_details) if execution.error_details else None,
            "started_at": execution.started_at,
            "paused_at": execution.paused_at,
            "resumed_at": execution.resumed_at,
            "completed_at": execution.completed_at,
            "created_at": execution.created_at,
            "updated_at": execution.updated_at,
            "version": execution.version,
        }

    async def create(self, execution: WorkflowExecution) -> WorkflowExecution:
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    execution_id, workflow_id, case_id, status, trigger_source,
                    input_context, context, ready_nodes, edge_state,
                    current_node_id, resume_at, error_message, error_details,
                    started_at, paused_at, resumed_at, completed_at,
                    created_at, updated_at, version
                ) VALUES (
                    %(execution_id)s, %(workflow_id)s, %(case_id)s, %(status)s,
                    %(trigger_source)s, %(input_context)s, %(context)s,
                    %(ready_nodes)s, %(edge_state)s, %(current_node_id)s,
                    %(resume_at)s, %(error_message)s, %(error_details)s,
                    %(started_at)s, %(paused_at)s, %(resumed_at)s,
                    %(completed_at)s, %(created_at)s, %(updated_at)s, %(version)s
                )
                """).format(TABLE_EXECUTIONS),
                self._params(execution),
            )
            logger.info(
                f"Created execution {execution.execution_id} for workflow {execution.workflow_id}"
            )
            return execution

    async def get(self, execution_id: str) -> Optional[WorkflowExecution]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE execution_id = %s").format(TABLE_EXECUTIONS),
                (execution_id,),
            )
            row = await result.fetchone()
            if row is None:
                return None
            return WorkflowExecution.model_validate(row)

    async def update(self, execution: WorkflowExecution) -> bool:
        """
        Persist status and checkpoint with optimistic locking.

        Returns:
            True if update succeeded, False if version conflict
        """
        execution.updated_at = datetime.utcnow()

        async with self.pool.connection() as conn:
            result = await conn.execute(
                sql.SQL("""
                UPDATE {} SET
                    status = %(status)s,
                    context = %(context)s,
                    ready_nodes = %(ready_nodes)s,
                    edge_state = %(edge_state)s,
                    current_node_id = %(current_node_id)s,
                    resume_at = %(resume_at)s,
                    error_message = %(error_message)s,
                    error_details = %(error_details)s,
                    started_at = %(started_at)s,
                    paused_at = %(paused_at)s,
                    resumed_at = %(resumed_at)s,
                    completed_at = %(completed_at)s,
                    updated_at = %(updated_at)s,
                    version = version + 1
                WHERE execution_id = %(execution_id)s
                  AND version = %(version)s
                """).format(TABLE_EXECUTIONS),
                self._params(execution),
            )

            if result.rowcount == 0:
                logger.warning(
                    f"Version conflict updating execution {execution.execution_id} "
                    f"(expected version {execution.version})"
                )
                return False

            execution.version += 1
            logger.debug(
                f"Updated execution {execution.execution_id} status={execution.status.value} "
                f"version={execution.version}"
            )
            return True

    async def transition(
        self,
        execution_id: str,
        from_statuses: Iterable[ExecutionStatus],
        to_status: ExecutionStatus,
    ) -> Optional[WorkflowExecution]:
        """
        Conditional status change for operator actions.

        Returns:
            The updated execution, or None if it was not in from_statuses
        """
        stamp = sql.Identifier(_TRANSITION_STAMPS[to_status])
        clear_resume = to_status == ExecutionStatus.CANCELLED

        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                UPDATE {table}
                SET status = %s,
                    {stamp} = NOW(),
                    resume_at = CASE WHEN %s THEN NULL ELSE resume_at END,
                    updated_at = NOW(),
                    version = version + 1
                WHERE execution_id = %s
                  AND status::text = ANY(%s)
                RETURNING *
                """).format(table=TABLE_EXECUTIONS, stamp=stamp),
                (
                    to_status.value,
                    clear_resume,
                    execution_id,
                    [s.value for s in from_statuses],
                ),
            )
            row = await result.fetchone()
            if row is None:
                return None
            return WorkflowExecution.model_validate(row)

    async def list_for_workflow(self, workflow_id: str, limit: int = 100) -> List[WorkflowExecution]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE workflow_id = %s
                ORDER BY created_at DESC
                LIMIT %s
                """).format(TABLE_EXECUTIONS),
                (workflow_id, limit),
            )
            rows = await result.fetchall()
            return [WorkflowExecution.model_validate(row) for row in rows]

    async def list_recent(
        self,
        status: Optional[ExecutionStatus] = None,
        limit: int = 100,
    ) -> List[WorkflowExecution]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            if status:
                result = await conn.execute(
                    sql.SQL("""
                    SELECT * FROM {}
                    WHERE status = %s
                    ORDER BY created_at DESC
                    LIMIT %s
                    """).format(TABLE_EXECUTIONS),
                    (status.value, limit),
                )
            else:
                result = await conn.execute(
                    sql.SQL("SELECT * FROM {} ORDER BY created_at DESC LIMIT %s").format(TABLE_EXECUTIONS),
                    (limit,),
                )
            rows = await result.fetchall()
            return [WorkflowExecution.model_validate(row) for row in rows]

    async def list_due(self, now: Optional[datetime] = None, limit: int = 20) -> List[WorkflowExecution]:
        """RUNNING executions whose WAIT continuation is due."""
        now = now or datetime.utcnow()
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE status = 'running'
                  AND resume_at IS NOT NULL
                  AND resume_at <= %s
                ORDER BY resume_at ASC
                LIMIT %s
                """).format(TABLE_EXECUTIONS),
                (now, limit),
            )
            rows = await result.fetchall()
            return [WorkflowExecution.model_validate(row) for row in rows]


class StepRepository:
    """Repository for WorkflowExecutionStep entities (audit trail)."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def create(self, step: WorkflowExecutionStep) -> WorkflowExecutionStep:
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    step_id, execution_id, node_id, node_type, node_name,
                    status, input, started_at
                ) VALUES (
                    %(step_id)s, %(execution_id)s, %(node_id)s, %(node_type)s,
                    %(node_name)s, %(status)s, %(input)s, %(started_at)s
                )
                """).format(TABLE_STEPS),
                {
                    "step_id": step.step_id,
                    "execution_id": step.execution_id,
                    "node_id": step.node_id,
                    "node_type": step.node_type,
                    "node_name": step.node_name,
                    "status": step.status.value,
                    "input": Json(step.input),
                    "started_at": step.started_at,
                },
            )
            return step

    async def finish(self, step: WorkflowExecutionStep) -> None:
        """Write the terminal state of a step."""
        async with self.pool.connection() as conn:
            await conn.execute(
                sql.SQL("""
                UPDATE {} SET
                    status = %(status)s,
                    output = %(output)s,
                    error_message = %(error_message)s,
                    error_details = %(error_details)s,
                    completed_at = %(completed_at)s,
                    duration_ms = %(duration_ms)s
                WHERE step_id = %(step_id)s
                """).format(TABLE_STEPS),
                {
                    "step_id": step.step_id,
                    "status": step.status.value,
                    "output": Json(step.output) if step.output is not None else None,
                    "error_message": step.error_message,
                    "error_details": Json(step.error_details) if step.error_details else None,
                    "completed_at": step.completed_at,
                    "duration_ms": step.duration_ms,
                },
            )

    async def list_for_execution(self, execution_id: str) -> List[WorkflowExecutionStep]:
        async with self.pool.connection() as conn:
            conn.row_factory = dict_row
            result = await conn.execute(
                sql.SQL("""
                SELECT * FROM {}
                WHERE execution_id = %s
                ORDER BY started_at ASC
                """).format(TABLE_STEPS),
                (execution_id,),
            )
            rows = await result.fetchall()
            return [WorkflowExecutionStep.model_validate(row) for row in rows]


__all__ = ["ExecutionRepository", "StepRepository"]
