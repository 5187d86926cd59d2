# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Workflow execution and background scheduling
# PURPOSE: Drive workflow graphs, resume waits, tick the submission queue
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator Module

Usage:
    from orchestrator import GraphExecutor, Scheduler

    executor = GraphExecutor(pool, workflow_service, services=action_services)
    execution_id = await executor.execute_workflow("claim-lifecycle", {"case_id": "42"})

    scheduler = Scheduler(executor, submission_queue, lock_service)
    await scheduler.start()
"""

from .executor import GraphExecutor
from .scheduler import Scheduler

__all__ = ["GraphExecutor", "Scheduler"]
