# ============================================================================
# WORKFLOW SERVICE
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core - Workflow definition management
# PURPOSE: Validate, store and template workflow definitions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Workflow Service

Definitions live in the workflows table. Every create/update validates the
graph (unique ids, edge endpoints, exactly one start node, no cycles) and
raises MalformedGraph rather than persisting a broken definition.

Reusable templates are YAML files in the workflows/ directory, loaded and
cached on first use. A template is copied into a new definition with
create_from_template().
"""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from psycopg_pool import AsyncConnectionPool
from pydantic import ValidationError

from core.contracts import ExecutionStatus, WorkflowCategory
from core.errors import MalformedGraph, WorkflowError, WorkflowNotFound
from core.models import WorkflowDefinition
from repositories import WorkflowRepository

logger = logging.getLogger(__name__)

# Fields an update may not touch
_IMMUTABLE_FIELDS = {
    "workflow_id", "created_at", "created_by", "version",
    "execution_count", "success_count", "failure_count",
}


class WorkflowService:
    """Service for managing workflow definitions and templates."""

    def __init__(self, pool: AsyncConnectionPool, templates_dir: Optional[str] = None):
        """
        Args:
            pool: Database connection pool
            templates_dir: Directory containing template YAML files.
                           Defaults to ./workflows/
        """
        self.pool = pool
        self.workflow_repo = WorkflowRepository(pool)

        if templates_dir:
            self.templates_dir = Path(templates_dir)
        else:
            self.templates_dir = Path(__file__).parent.parent / "workflows"

        self._templates: Dict[str, WorkflowDefinition] = {}
        self._templates_loaded = False

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def validate(workflow: WorkflowDefinition) -> None:
        errors = workflow.validate_structure()
        if errors:
            raise MalformedGraph(workflow.workflow_id, errors)

    # =========================================================================
    # DEFINITIONS
    # =========================================================================

    async def create(self, workflow: WorkflowDefinition) -> WorkflowDefinition:
        self.validate(workflow)
        created = await self.workflow_repo.create(workflow)
        logger.info(f"Created workflow {workflow.workflow_id}: {workflow.name}")
        return created

    async def get(self, workflow_id: str) -> Optional[WorkflowDefinition]:
        return await self.workflow_repo.get(workflow_id)

    async def get_or_raise(self, workflow_id: str) -> WorkflowDefinition:
        workflow = await self.workflow_repo.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFound(workflow_id)
        return workflow

    async def update(self, workflow_id: str, changes: Dict[str, Any]) -> WorkflowDefinition:
        """
        Apply a partial update and re-validate the graph.

        Raises:
            WorkflowNotFound, MalformedGraph, WorkflowError on version conflict
        """
        current = await self.get_or_raise(workflow_id)

        data = current.model_dump(mode="json", exclude={"node_count"})
        data.update({k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS})
        try:
            updated = WorkflowDefinition.model_validate(data)
        except ValidationError as e:
            raise MalformedGraph(workflow_id, [err["msg"] for err in e.errors()]) from e

        self.validate(updated)

        if not await self.workflow_repo.update(updated):
            raise WorkflowError(f"Workflow {workflow_id} was modified concurrently")

        logger.info(f"Updated workflow {workflow_id} (version {updated.version})")
        return updated

    async def delete(self, workflow_id: str) -> bool:
        deleted = await self.workflow_repo.delete(workflow_id)
        if deleted:
            logger.info(f"Deleted workflow {workflow_id}")
        return deleted

    async def list_workflows(
        self,
        category: Optional[WorkflowCategory] = None,
        active_only: bool = False,
        limit: int = 100,
    ) -> List[WorkflowDefinition]:
        return await self.workflow_repo.list_all(
            category=category.value if category else None,
            active_only=active_only,
            limit=limit,
        )

    async def record_outcome(self, workflow_id: str, status: ExecutionStatus) -> None:
        """Bump counters for a finished execution. Logs errors but doesn't raise."""
        try:
            await self.workflow_repo.record_outcome(workflow_id, status)
        except Exception as e:
            logger.warning(f"Failed to record {status.value} outcome for workflow {workflow_id}: {e}")

    # =========================================================================
    # TEMPLATES
    # =========================================================================

    def load_templates(self) -> int:
        """
        Load all template definitions from the templates directory.

        Returns:
            Number of templates loaded
        """
        if not self.templates_dir.exists():
            logger.warning(f"Templates directory not found: {self.templates_dir}")
            self._templates_loaded = True
            return 0

        count = 0
        paths = sorted(self.templates_dir.glob("*.yaml")) + sorted(self.templates_dir.glob("*.yml"))
        for yaml_file in paths:
            try:
                template = self._load_yaml(yaml_file)
            except (OSError, yaml.YAMLError, ValidationError, MalformedGraph) as e:
                logger.error(f"Failed to load {yaml_file}: {e}")
                continue
            self._templates[template.workflow_id] = template
            count += 1
            logger.info(f"Loaded template: {template.workflow_id}")

        self._templates_loaded = True
        logger.info(f"Loaded {count} templates from {self.templates_dir}")
        return count

    def list_templates(self) -> List[WorkflowDefinition]:
        if not self._templates_loaded:
            self.load_templates()
        return list(self._templates.values())

    def get_template(self, template_id: str) -> Optional[WorkflowDefinition]:
        if not self._templates_loaded:
            self.load_templates()
        return self._templates.get(template_id)

    async def create_from_template(
        self,
        template_id: str,
        workflow_id: Optional[str] = None,
        name: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> WorkflowDefinition:
        template = self.get_template(template_id)
        if template is None:
            raise WorkflowNotFound(template_id)

        workflow = template.model_copy(
            deep=True,
            update={
                "workflow_id": workflow_id or f"{template_id}-{uuid.uuid4().hex[:8]}",
                "name": name or template.name,
                "created_by": created_by,
                "execution_count": 0,
                "success_count": 0,
                "failure_count": 0,
                "version": 1,
                "created_at": datetime.utcnow(),
                "updated_at": datetime.utcnow(),
            },
        )
        return await self.create(workflow)

    def _load_yaml(self, path: Path) -> WorkflowDefinition:
        with open(path) as f:
            data = yaml.safe_load(f)

        template = WorkflowDefinition.model_validate(data)
        self.validate(template)
        return template

    def reload_templates(self) -> int:
        self._templates.clear()
        self._templates_loaded = False
        return self.load_templates()


__all__ = ["WorkflowService"]
