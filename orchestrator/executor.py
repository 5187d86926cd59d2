# ============================================================================
# GRAPH EXECUTOR
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Workflow graph traversal
# PURPOSE: Run workflow executions node by node with checkpointing
# CREATED: 19 OCT 2026
# ============================================================================
"""
Graph Executor

Drives one WorkflowExecution through its workflow graph:

1. execute_workflow() validates the definition, creates the execution
   (RUNNING, ready_nodes=[start]) and starts traversal.
2. For each ready node:
     - write a step record (RUNNING)
     - resolve {{ }} templates in the node parameters against the context
     - run the registered action
     - merge its output into the context (last write wins)
     - complete the step
     - evaluate the outgoing edges and advance the in-degree gate
     - persist the checkpoint (ready_nodes, edge_state, context)
3. When nothing is ready the execution is COMPLETED.

Pause and cancel come from other requests. They bump the execution's
version, so the next checkpoint write conflicts; the executor then reloads
the operator-owned fields, saves its checkpoint on top and stops unless the
execution is still RUNNING. The node in flight always finishes first.

A WAIT longer than ExecutorDefaults.inline_wait_max_ms suspends: the
checkpoint is written with resume_at and the worker is released. The
scheduler calls resume_due_executions() to continue it.

A failing node marks the step and the execution FAILED before the
NodeActionError is raised to the caller. Unexpected exceptions (template
runtime errors, a node missing from an edited definition) are wrapped in a
NodeActionError with the original as `cause` and take the same path.
There is no retry at this layer.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from psycopg_pool import AsyncConnectionPool

from core.config import ExecutorDefaults, get_defaults
from core.contracts import ExecutionStatus
from core.errors import (
    ExecutionNotFound,
    InvalidExecutionTransition,
    NodeActionError,
    WorkflowInactive,
)
from core.logging import log_checkpoint, log_context
from core.models import (
    BaseNode,
    WorkflowDefinition,
    WorkflowExecution,
    WorkflowExecutionStep,
    node_params,
)
from handlers.registry import ActionContext, ActionResult, ActionServices, execute_action
from orchestrator.engine.evaluator import DependencyGraph, get_evaluator
from orchestrator.engine.templates import get_resolver
from repositories import ExecutionRepository, StepRepository

logger = logging.getLogger(__name__)


class GraphExecutor:
    """
    Executes workflow graphs.

    One executor per process. Executions started in the background or
    continued after a WAIT run as tasks tracked in an in-process registry;
    the same execution is never driven twice at once.
    """

    def __init__(
        self,
        pool: AsyncConnectionPool,
        workflow_service: Any,
        services: Optional[ActionServices] = None,
        lock_service: Any = None,
        defaults: Optional[ExecutorDefaults] = None,
    ):
        """
        Args:
            pool: Database connection pool
            workflow_service: WorkflowService for definitions and counters
            services: Collaborators handed to node actions
            lock_service: Optional LockService for cross-process exclusion
            defaults: Executor defaults
        """
        self.pool = pool
        self.workflow_service = workflow_service
        self.execution_repo = ExecutionRepository(pool)
        self.step_repo = StepRepository(pool)
        self.lock_service = lock_service
        self.defaults = defaults or get_defaults().executor

        self.evaluator = get_evaluator()
        self.resolver = get_resolver()

        self.services = services or ActionServices(defaults=self.defaults)
        if self.services.condition_evaluator is None:
            self.services.condition_evaluator = self.evaluator.condition_evaluator

        self._driving: Set[str] = set()
        # Resumed while their driver was stopping
        self._handoffs: Set[str] = set()
        self._tasks: Dict[str, asyncio.Task] = {}

    # =========================================================================
    # START
    # =========================================================================

    async def execute_workflow(
        self,
        workflow_id: str,
        context: Optional[Dict[str, Any]] = None,
        trigger_source: str = "manual",
        wait: bool = True,
    ) -> str:
        """
        Start an execution of a workflow.

        Args:
            workflow_id: Workflow to run
            context: Initial context (case_id is picked up from here)
            trigger_source: Recorded on the execution
            wait: Drive the traversal before returning; otherwise run it
                  as a background task

        Returns:
            execution_id

        Raises:
            WorkflowNotFound, WorkflowInactive, MalformedGraph: nothing is created
            NodeActionError: a node failed (wait=True only); already persisted
        """
        workflow = await self.workflow_service.get_or_raise(workflow_id)
        if not workflow.is_active:
            raise WorkflowInactive(workflow_id)
        self.workflow_service.validate(workflow)

        context = dict(context or {})
        start_node = self.evaluator.get_start_node(workflow)
        case_id = context.get("case_id")

        execution = WorkflowExecution(
            execution_id=str(uuid.uuid4()),
            workflow_id=workflow_id,
            case_id=str(case_id) if case_id not in (None, "") else None,
            trigger_source=trigger_source,
            input_context=context,
            context=dict(context),
            ready_nodes=[start_node],
        )
        execution.mark_running()
        await self.execution_repo.create(execution)

        with log_context(execution_id=execution.execution_id, workflow_id=workflow_id,
                         trigger_source=trigger_source):
            log_checkpoint("execution_started", {"start_node": start_node}, logger)

        if wait:
            await self._drive(workflow, execution)
        else:
            self._spawn(workflow, execution)

        return execution.execution_id

    # =========================================================================
    # TRAVERSAL
    # =========================================================================

    def _spawn(self, workflow: WorkflowDefinition, execution: WorkflowExecution) -> asyncio.Task:
        execution_id = execution.execution_id
        task = asyncio.create_task(
            self._drive_in_background(workflow, execution),
            name=f"execution-{execution_id[:8]}",
        )
        self._tasks[execution_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(execution_id, None))
        return task

    async def _drive_in_background(self, workflow: WorkflowDefinition, execution: WorkflowExecution) -> None:
        try:
            await self._drive(workflow, execution)
        except NodeActionError as e:
            logger.warning(f"Execution {execution.execution_id} failed at node {e.node_id}: {e}")
        except Exception as e:
            logger.exception(f"Execution {execution.execution_id} crashed: {e}")

    async def _drive(self, workflow: WorkflowDefinition, execution: WorkflowExecution) -> bool:
        """
        Run traversal with the in-process guard and, when wired, the
        execution advisory lock.

        A resume that arrives while this driver is winding down is handed
        back to it: once the guard is released the execution is reloaded
        and driven again if it is RUNNING with work left.

        Returns:
            False if another driver owns the execution
        """
        execution_id = execution.execution_id
        if execution_id in self._driving:
            logger.debug(f"Execution {execution_id} is already being driven in this process")
            return False

        self._driving.add(execution_id)
        try:
            driven = await self._drive_locked(workflow, execution)
        finally:
            self._driving.discard(execution_id)
            handed_off = execution_id in self._handoffs
            self._handoffs.discard(execution_id)

        if handed_off:
            latest = await self.execution_repo.get(execution_id)
            if (
                latest is not None
                and latest.status == ExecutionStatus.RUNNING
                and latest.ready_nodes
                and latest.resume_at is None
            ):
                logger.info(f"Execution {execution_id} was resumed while its driver stopped, continuing")
                return await self._drive(workflow, latest)
        return driven

    async def _drive_locked(self, workflow: WorkflowDefinition, execution: WorkflowExecution) -> bool:
        if self.lock_service is None:
            await self._run(workflow, execution)
            return True

        async with self.lock_service.execution_lock(execution.execution_id) as acquired:
            if not acquired:
                logger.info(f"Execution {execution.execution_id} is driven by another process")
                return False
            await self._run(workflow, execution)
            return True

    async def _run(self, workflow: WorkflowDefinition, execution: WorkflowExecution) -> None:
        graph = self.evaluator.build_graph(workflow)

        with log_context(execution_id=execution.execution_id, workflow_id=workflow.workflow_id,
                         case_id=execution.case_id):
            try:
                if not await self._traverse(workflow, graph, execution):
                    return
            except NodeActionError as e:
                await self._fail(execution, e)
                raise
            except Exception as e:
                node_id = execution.current_node_id
                error = NodeActionError(
                    f"Execution stopped at node {node_id}: {type(e).__name__}: {e}",
                    node_id=node_id,
                    cause=e,
                )
                if not execution.can_transition_to(ExecutionStatus.FAILED):
                    logger.error(
                        f"Execution {execution.execution_id} hit {type(e).__name__} while "
                        f"{execution.status.value}, leaving it to the operator"
                    )
                    raise error from e
                await self._fail(execution, error)
                raise error from e

            await self._complete(execution)

    async def _traverse(
        self,
        workflow: WorkflowDefinition,
        graph: DependencyGraph,
        execution: WorkflowExecution,
    ) -> bool:
        """
        Run ready nodes until the graph drains or traversal has to stop.

        Returns:
            True if every node has run and the execution can complete
        """
        while execution.ready_nodes:
            if execution.status != ExecutionStatus.RUNNING:
                logger.info(f"Execution {execution.execution_id} stopped ({execution.status.value})")
                return False

            node_id = execution.ready_nodes[0]
            execution.current_node_id = node_id
            node = workflow.get_node(node_id)

            result = await self._execute_node(execution, node)

            execution.context.update(result.output)
            self._advance(graph, execution, node_id)

            if result.suspend_until is not None:
                execution.resume_at = result.suspend_until
                if await self._checkpoint(execution):
                    log_checkpoint(
                        "execution_suspended",
                        {"node_id": node_id, "resume_at": result.suspend_until.isoformat()},
                        logger,
                    )
                return False

            if not await self._checkpoint(execution):
                logger.info(
                    f"Execution {execution.execution_id} stopped after {node_id} "
                    f"({execution.status.value})"
                )
                return False

        return True

    def _advance(self, graph: DependencyGraph, execution: WorkflowExecution, node_id: str) -> None:
        outcomes = self.evaluator.evaluate_outgoing(graph, node_id, execution.context)
        edge_state = dict(execution.edge_state)
        advance = self.evaluator.advance(graph, node_id, outcomes, edge_state)
        execution.edge_state = edge_state

        ready = [n for n in execution.ready_nodes if n != node_id]
        ready.extend(n for n in advance.ready_nodes if n not in ready)
        execution.ready_nodes = ready
        execution.current_node_id = None

        if advance.skipped_nodes:
            logger.debug(f"Skipped nodes after {node_id}: {advance.skipped_nodes}")

    async def _execute_node(self, execution: WorkflowExecution, node: BaseNode) -> ActionResult:
        params = node_params(node)
        step = WorkflowExecutionStep(
            step_id=str(uuid.uuid4()),
            execution_id=execution.execution_id,
            node_id=node.id,
            node_type=node.type,
            node_name=node.label,
            input=params,
        )
        await self.step_repo.create(step)

        with log_context(node_id=node.id, step_id=step.step_id):
            logger.info(f"Executing node {node.id} ({node.type})")

            try:
                resolved = self.resolver.resolve(params, execution.context)
                ctx = ActionContext(
                    execution_id=execution.execution_id,
                    workflow_id=execution.workflow_id,
                    node=node,
                    params=resolved,
                    context=dict(execution.context),
                    services=self.services,
                )
                result = await execute_action(ctx)

            except NodeActionError as e:
                e.node_id = e.node_id or node.id
                e.node_type = e.node_type or node.type
                step.mark_failed(str(e), e.to_details())
                await self.step_repo.finish(step)
                logger.warning(f"Node {node.id} failed: {e}")
                raise

            except Exception as e:
                error = NodeActionError(
                    f"Node {node.id} failed: {type(e).__name__}: {e}",
                    node_id=node.id,
                    node_type=node.type,
                    cause=e,
                )
                step.mark_failed(str(error), error.to_details())
                await self.step_repo.finish(step)
                logger.exception(f"Node {node.id} raised {type(e).__name__}")
                raise error from e

            step.mark_completed(result.output)
            await self.step_repo.finish(step)
            logger.debug(f"Node {node.id} completed in {step.duration_ms}ms")
            return result

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    async def _merge_operator_state(self, execution: WorkflowExecution) -> bool:
        """
        Adopt the operator-owned fields after a version conflict.

        Returns:
            False if the execution no longer exists
        """
        current = await self.execution_repo.get(execution.execution_id)
        if current is None:
            logger.error(f"Execution {execution.execution_id} disappeared")
            return False

        execution.status = current.status
        execution.paused_at = current.paused_at
        execution.resumed_at = current.resumed_at
        execution.completed_at = current.completed_at
        execution.version = current.version
        if current.status == ExecutionStatus.CANCELLED:
            execution.resume_at = None
        return True

    async def _save(self, execution: WorkflowExecution) -> bool:
        """
        Write the checkpoint, adopting operator changes until it lands.

        Every conflict means an operator transition committed in between,
        so each retry starts from a newer version.

        Returns:
            False if the execution no longer exists
        """
        conflicts = 0
        while not await self.execution_repo.update(execution):
            conflicts += 1
            if not await self._merge_operator_state(execution):
                return False
            logger.info(
                f"Checkpoint for execution {execution.execution_id} merged operator state "
                f"({execution.status.value}, conflict {conflicts})"
            )
        return True

    async def _checkpoint(self, execution: WorkflowExecution) -> bool:
        """
        Persist the checkpoint at a node boundary.

        Returns:
            True if traversal should continue
        """
        if not await self._save(execution):
            return False
        return execution.status == ExecutionStatus.RUNNING

    async def _save_terminal(self, execution: WorkflowExecution, status: ExecutionStatus) -> bool:
        """
        Persist a terminal state unless an operator cancelled first.

        Returns:
            True if `status` was recorded
        """
        if await self.execution_repo.update(execution):
            return True

        terminal = {
            "status": execution.status,
            "error_message": execution.error_message,
            "error_details": execution.error_details,
            "completed_at": execution.completed_at,
        }
        if not await self._merge_operator_state(execution):
            return False
        if execution.status == ExecutionStatus.CANCELLED:
            logger.info(f"Execution {execution.execution_id} was cancelled, keeping CANCELLED over {status.value}")
            await self.execution_repo.update(execution)
            return False

        for key, value in terminal.items():
            setattr(execution, key, value)
        execution.resume_at = None
        if await self.execution_repo.update(execution):
            return True
        logger.error(f"Lost {status.value} state for execution {execution.execution_id}")
        return False

    async def _complete(self, execution: WorkflowExecution) -> None:
        execution.mark_completed()

        if await self._save_terminal(execution, ExecutionStatus.COMPLETED):
            await self.workflow_service.record_outcome(execution.workflow_id, ExecutionStatus.COMPLETED)
            log_checkpoint(
                "execution_completed",
                {"duration_seconds": execution.duration_seconds},
                logger,
            )
            logger.info(f"Execution {execution.execution_id} completed")

    async def _fail(self, execution: WorkflowExecution, error: NodeActionError) -> None:
        error.execution_id = execution.execution_id
        execution.mark_failed(str(error), error.to_details())

        if await self._save_terminal(execution, ExecutionStatus.FAILED):
            await self.workflow_service.record_outcome(execution.workflow_id, ExecutionStatus.FAILED)
            log_checkpoint("execution_failed", {"node_id": error.node_id, "error": str(error)}, logger)

    # =========================================================================
    # OPERATOR CONTROL
    # =========================================================================

    async def _get_or_raise(self, execution_id: str) -> WorkflowExecution:
        execution = await self.execution_repo.get(execution_id)
        if execution is None:
            raise ExecutionNotFound(execution_id)
        return execution

    async def _transition(
        self,
        execution_id: str,
        from_statuses: List[ExecutionStatus],
        to_status: ExecutionStatus,
    ) -> WorkflowExecution:
        current = await self._get_or_raise(execution_id)
        updated = await self.execution_repo.transition(execution_id, from_statuses, to_status)
        if updated is None:
            latest = await self.execution_repo.get(execution_id) or current
            raise InvalidExecutionTransition(execution_id, latest.status.value, to_status.value)
        logger.info(f"Execution {execution_id}: {current.status.value} -> {to_status.value}")
        return updated

    async def pause_execution(self, execution_id: str) -> WorkflowExecution:
        """
        Pause a RUNNING execution. The node in flight finishes; traversal
        stops at the next boundary.

        Raises:
            ExecutionNotFound, InvalidExecutionTransition
        """
        return await self._transition(execution_id, [ExecutionStatus.RUNNING], ExecutionStatus.PAUSED)

    async def resume_execution(self, execution_id: str, wait: bool = False) -> WorkflowExecution:
        """
        Resume a PAUSED execution from its checkpoint.

        A suspended WAIT that is not yet due is left for the scheduler.

        Raises:
            ExecutionNotFound, InvalidExecutionTransition
        """
        execution = await self._transition(execution_id, [ExecutionStatus.PAUSED], ExecutionStatus.RUNNING)

        if execution_id in self._driving:
            # The in-flight driver picks RUNNING up at its next checkpoint, or
            # re-drives on exit if it had already stopped
            self._handoffs.add(execution_id)
            return execution
        if execution.resume_at is not None and execution.resume_at > datetime.utcnow():
            logger.info(f"Execution {execution_id} resumes its wait until {execution.resume_at.isoformat()}")
            return execution

        execution.resume_at = None
        workflow = await self.workflow_service.get_or_raise(execution.workflow_id)
        if wait:
            await self._drive(workflow, execution)
        else:
            self._spawn(workflow, execution)
        return execution

    async def cancel_execution(self, execution_id: str) -> WorkflowExecution:
        """
        Cancel a non-terminal execution.

        Raises:
            ExecutionNotFound, InvalidExecutionTransition
        """
        return await self._transition(
            execution_id,
            [ExecutionStatus.PENDING, ExecutionStatus.RUNNING, ExecutionStatus.PAUSED],
            ExecutionStatus.CANCELLED,
        )

    # =========================================================================
    # WAIT CONTINUATIONS
    # =========================================================================

    async def resume_due_executions(self, now: Optional[datetime] = None) -> int:
        """
        Continue executions whose WAIT has elapsed.

        Each one is claimed by clearing resume_at with optimistic locking and
        then driven as a background task.

        Returns:
            Number of continuations started
        """
        due = await self.execution_repo.list_due(now or datetime.utcnow(), limit=self.defaults.resume_batch_size)
        started = 0

        for execution in due:
            if execution.execution_id in self._driving or execution.execution_id in self._tasks:
                continue

            workflow = await self.workflow_service.get(execution.workflow_id)
            if workflow is None:
                logger.error(
                    f"Execution {execution.execution_id} references missing workflow "
                    f"{execution.workflow_id}, leaving it suspended"
                )
                continue

            execution.resume_at = None
            if not await self.execution_repo.update(execution):
                logger.debug(f"Execution {execution.execution_id} claimed elsewhere")
                continue

            with log_context(execution_id=execution.execution_id):
                log_checkpoint("execution_resumed", {"ready_nodes": execution.ready_nodes}, logger)

            self._spawn(workflow, execution)
            started += 1

        return started

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_execution_status(self, execution_id: str) -> Dict[str, Any]:
        """
        Returns:
            {"execution": WorkflowExecution, "steps": [WorkflowExecutionStep, ...]}

        Raises:
            ExecutionNotFound
        """
        execution = await self._get_or_raise(execution_id)
        steps = await self.step_repo.list_for_execution(execution_id)
        return {"execution": execution, "steps": steps}

    async def list_executions(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[ExecutionStatus] = None,
        limit: int = 100,
    ) -> List[WorkflowExecution]:
        if workflow_id:
            executions = await self.execution_repo.list_for_workflow(workflow_id, limit=limit)
            if status:
                executions = [e for e in executions if e.status == status]
            return executions
        return await self.execution_repo.list_recent(status=status, limit=limit)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def active_executions(self) -> List[str]:
        return sorted(self._driving)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Wait for background executions, cancelling whatever is left after timeout."""
        tasks = list(self._tasks.values())
        if not tasks:
            return

        logger.info(f"Waiting for {len(tasks)} background executions")
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(pending)} executions at shutdown")


__all__ = ["GraphExecutor"]
