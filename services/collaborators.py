# ============================================================================
# COLLABORATOR INTERFACES
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Service - Narrow interfaces to systems we do not own
# PURPOSE: Case store, letters, email, reminders, evidence packages
# CREATED: 19 OCT 2026
# ============================================================================
"""
Collaborator Interfaces

Node actions reach the rest of the case-management system only through these
interfaces. Production wiring:

- CaseStore / ReminderStore: repositories.case_repo.CaseRepository
- LetterGenerator: TemplateLetterGenerator (jinja2)
- Notifier: LoggingNotifier (email transport lives elsewhere)
- EvidencePackager: LoggingEvidencePackager

The logging implementations record intent and return identifiers so a
workflow can run end to end without the downstream systems.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from jinja2 import Environment, BaseLoader, StrictUndefined

from core.models import CaseRecord

logger = logging.getLogger(__name__)


# ============================================================================
# INTERFACES
# ============================================================================

class CaseStore(ABC):
    """Read and advance cases."""

    @abstractmethod
    async def get_case(self, case_id: str) -> Optional[CaseRecord]:
        ...

    @abstractmethod
    async def update_status(self, case_id: str, status: str) -> None:
        ...

    @abstractmethod
    async def record_claim_filed(self, case_id: str, claim_number: Optional[str]) -> None:
        """Move the case to FILED and store the carrier claim number."""
        ...


class LetterGenerator(ABC):
    @abstractmethod
    async def generate(
        self,
        case: CaseRecord,
        tone: str = "professional",
        format: str = "markdown",
        template: Optional[str] = None,
    ) -> str:
        ...


class Notifier(ABC):
    @abstractmethod
    async def send_email(self, to: str, subject: str, body: str) -> None:
        ...


class ReminderStore(ABC):
    @abstractmethod
    async def create_reminder(self, case_id: str, due_at: datetime, message: str) -> str:
        """Returns the reminder id."""
        ...


class EvidencePackager(ABC):
    @abstractmethod
    async def build_package(self, case: CaseRecord) -> str:
        """Returns the package id."""
        ...


# ============================================================================
# DEFAULT IMPLEMENTATIONS
# ============================================================================

DEFAULT_LETTER_TEMPLATE = """\
# Claim Dispute - {{ case.carrier.value }} {{ case.tracking_id or "" }}

Dear {{ case.carrier.value }} Claims Department,

{% if tone == "firm" -%}
We require immediate resolution of the claim below.
{%- else -%}
We are writing to request review of the claim below.
{%- endif %}

- Tracking number: {{ case.tracking_id or "n/a" }}
- Claim type: {{ case.case_type or "n/a" }}
- Amount claimed: ${{ "%.2f"|format(case.claimed_amount / 100) }}
{% if case.damage_description %}- Description: {{ case.damage_description }}
{% endif %}{% if case.adjustment_reason %}- Reason: {{ case.adjustment_reason }}
{% endif %}
Sincerely,
{{ case.customer_name or "Claims Team" }}
"""


class TemplateLetterGenerator(LetterGenerator):
    """Renders dispute letters from a jinja2 template."""

    def __init__(self, default_template: str = DEFAULT_LETTER_TEMPLATE):
        self._env = Environment(loader=BaseLoader(), autoescape=False, undefined=StrictUndefined)
        self._default = self._env.from_string(default_template)

    async def generate(
        self,
        case: CaseRecord,
        tone: str = "professional",
        format: str = "markdown",
        template: Optional[str] = None,
    ) -> str:
        compiled = self._env.from_string(template) if template else self._default
        content = compiled.render(case=case, tone=tone, format=format)
        logger.info(f"Generated {tone} letter for case {case.case_id} ({len(content)} chars)")
        return content


class LoggingNotifier(Notifier):
    """Records outgoing email instead of sending it."""

    async def send_email(self, to: str, subject: str, body: str) -> None:
        logger.info(f"Email to {to}: {subject} ({len(body)} chars)")


class LoggingEvidencePackager(EvidencePackager):
    """Allocates a package id and records the request."""

    async def build_package(self, case: CaseRecord) -> str:
        package_id = f"pkg-{uuid.uuid4().hex[:12]}"
        logger.info(f"Evidence package {package_id} requested for case {case.case_id}")
        return package_id


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "CaseStore",
    "LetterGenerator",
    "Notifier",
    "ReminderStore",
    "EvidencePackager",
    "TemplateLetterGenerator",
    "LoggingNotifier",
    "LoggingEvidencePackager",
    "DEFAULT_LETTER_TEMPLATE",
]
