# ============================================================================
# SCHEDULER LOOP
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Background ticks for the queue and WAIT continuations
# PURPOSE: Process one portal submission and resume due executions per tick
# CREATED: 19 OCT 2026
# ============================================================================
"""
Scheduler Loop - Single Leader

Every instance serves HTTP; only one runs the scheduler. Leadership is a
PostgreSQL session-level advisory lock held on a dedicated connection
(LockService.try_acquire_scheduler_lock). If the lock is taken the instance
stays in standby and retries periodically. When the leader dies its session
ends, the lock is released and a standby promotes itself.

Each cycle:
1. resume executions whose WAIT has elapsed
2. run one submission queue attempt (process_queue never raises)

Runs as background tasks in the FastAPI application.
"""

import asyncio
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import QueueDefaults, get_defaults
from services.submission_queue import IDLE_MESSAGE

logger = logging.getLogger(__name__)


class Scheduler:
    """
    Leader-elected background loop.

    The queue tick and the WAIT resume tick share one cycle; the poll
    interval comes from QueueDefaults.poll_interval_seconds.
    """

    STANDBY_RETRY_SEC = int(os.environ.get("SCHEDULER_STANDBY_RETRY_SEC", "10"))

    def __init__(
        self,
        executor: Any,
        submission_queue: Any,
        lock_service: Any = None,
        poll_interval: Optional[float] = None,
        defaults: Optional[QueueDefaults] = None,
    ):
        """
        Args:
            executor: GraphExecutor (resume_due_executions)
            submission_queue: SubmissionQueue (process_queue)
            lock_service: LockService for leader election; None runs unguarded
            poll_interval: Seconds between cycles
            defaults: Queue defaults
        """
        self.executor = executor
        self.submission_queue = submission_queue
        self.lock_service = lock_service
        self.defaults = defaults or get_defaults().queue
        self.poll_interval = poll_interval if poll_interval is not None else self.defaults.poll_interval_seconds

        self._instance_id = str(uuid.uuid4())

        self._running = False
        self._is_leader = False
        self._stop_event = asyncio.Event()
        self._main_task: Optional[asyncio.Task] = None
        self._standby_task: Optional[asyncio.Task] = None

        # Metrics
        self._started_at: Optional[datetime] = None
        self._cycles = 0
        self._submissions_processed = 0
        self._executions_resumed = 0
        self._errors = 0
        self._last_cycle_at: Optional[datetime] = None
        self._last_queue_result: Optional[Dict[str, Any]] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Start as leader if the scheduler lock is free, else as standby."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._stop_event.clear()

        if await self._try_become_leader():
            self._start_as_leader()
        else:
            logger.info(
                f"Scheduler entering standby mode "
                f"(instance={self._instance_id[:8]}..., retry_interval={self.STANDBY_RETRY_SEC}s)"
            )
            self._standby_task = asyncio.create_task(
                self._standby_loop(),
                name=f"scheduler-standby-{self._instance_id[:8]}",
            )

    async def _try_become_leader(self) -> bool:
        if self.lock_service is None:
            self._is_leader = True
            return True
        try:
            self._is_leader = await self.lock_service.try_acquire_scheduler_lock()
        except Exception as e:
            logger.error(f"Scheduler lock acquisition failed: {e}")
            self._is_leader = False
        return self._is_leader

    def _start_as_leader(self) -> None:
        self._main_task = asyncio.create_task(
            self._main_loop(),
            name=f"scheduler-main-{self._instance_id[:8]}",
        )
        logger.info(
            f"Scheduler started as LEADER (instance={self._instance_id[:8]}..., "
            f"poll={self.poll_interval}s, queue_enabled={self.defaults.enabled})"
        )

    async def _standby_loop(self) -> None:
        while self._running and not self._stop_event.is_set():
            try:
                await asyncio.sleep(self.STANDBY_RETRY_SEC)
                if self._stop_event.is_set():
                    break

                if await self._try_become_leader():
                    logger.info(f"Scheduler standby promoted to LEADER (instance={self._instance_id[:8]}...)")
                    self._start_as_leader()
                    return
                logger.debug(f"Scheduler lock still held elsewhere, retrying in {self.STANDBY_RETRY_SEC}s")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Scheduler standby error: {e}")

    async def stop(self) -> None:
        """Stop the loop and release the scheduler lock."""
        logger.info(f"Stopping scheduler (instance={self._instance_id[:8]}...)")

        self._running = False
        self._stop_event.set()

        for task in (self._main_task, self._standby_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._main_task = None
        self._standby_task = None

        was_leader = self._is_leader
        if self.lock_service is not None and was_leader:
            await self.lock_service.release_scheduler_lock()
        self._is_leader = False

        logger.info(
            f"Scheduler stopped (was_leader={was_leader}, cycles={self._cycles}, "
            f"submissions_processed={self._submissions_processed}, "
            f"executions_resumed={self._executions_resumed})"
        )

    # =========================================================================
    # MAIN LOOP
    # =========================================================================

    async def _main_loop(self) -> None:
        logger.info(f"Starting scheduler loop (instance={self._instance_id[:8]}...)")

        while self._running and not self._stop_event.is_set():
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self._errors += 1
                logger.exception(f"Error in scheduler cycle: {e}")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                break
            except asyncio.TimeoutError:
                pass

        logger.info(f"Scheduler loop stopped (instance={self._instance_id[:8]}...)")

    async def run_cycle(self) -> Dict[str, Any]:
        """
        One scheduler cycle. Also used by the manual "process now" endpoint
        and by tests.
        """
        resumed = await self.executor.resume_due_executions()
        self._executions_resumed += resumed

        queue_result: Optional[Dict[str, Any]] = None
        if self.defaults.enabled:
            queue_result = await self.submission_queue.process_queue()
            self._last_queue_result = queue_result
            if queue_result.get("processed"):
                self._submissions_processed += 1
            elif queue_result.get("message") != IDLE_MESSAGE:
                logger.debug(f"Queue tick: {queue_result.get('message')}")

        self._cycles += 1
        self._last_cycle_at = datetime.now(timezone.utc)
        return {"executions_resumed": resumed, "queue": queue_result}

    # =========================================================================
    # STATS AND PROPERTIES
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_leader(self) -> bool:
        return self._is_leader

    @property
    def stats(self) -> Dict[str, Any]:
        uptime_seconds = None
        if self._started_at:
            uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()

        return {
            "running": self._running,
            "is_leader": self._is_leader,
            "role": "leader" if self._is_leader else "standby",
            "instance_id": self._instance_id,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime_seconds,
            "poll_interval": self.poll_interval,
            "queue_enabled": self.defaults.enabled,
            "cycles": self._cycles,
            "last_cycle_at": self._last_cycle_at.isoformat() if self._last_cycle_at else None,
            "submissions_processed": self._submissions_processed,
            "executions_resumed": self._executions_resumed,
            "errors": self._errors,
            "last_queue_result": self._last_queue_result,
        }


__all__ = ["Scheduler"]
