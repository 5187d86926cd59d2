# ============================================================================
# CLAUDE CONTEXT - CASE RECORD (COLLABORATOR VIEW)
# ============================================================================
# EPOCH: 1 - CLAIM AUTOMATION
# STATUS: Core model - Read view of an externally owned case
# PURPOSE: The fields of a case the workflows and portal forms need
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: CaseRecord
# DEPENDENCIES: pydantic
# ============================================================================
"""
Case Record

Cases are owned by the surrounding case-management system. This model is the
narrow view the orchestrator reads through services.collaborators.CaseStore;
it has no SQL metadata because the table is not ours to create.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from core.contracts import Carrier


class CaseRecord(BaseModel):
    """A shipping damage / loss case."""
    case_id: str
    carrier: Carrier
    tracking_id: Optional[str] = None
    case_type: Optional[str] = None

    # Cents
    claimed_amount: int = Field(default=0, ge=0)

    customer_name: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_phone: Optional[str] = None
    damage_description: Optional[str] = None
    adjustment_reason: Optional[str] = None

    status: Optional[str] = None
    carrier_guarantee_claim_number: Optional[str] = None

    def to_form_data(self) -> Dict[str, Any]:
        """Snapshot stored on a queue item at enqueue time."""
        return {
            "tracking_number": self.tracking_id,
            "claim_type": self.case_type,
            "claim_amount": self.claimed_amount / 100,
            "customer_name": self.customer_name,
            "recipient_email": self.recipient_email,
            "recipient_phone": self.recipient_phone,
            "damage_description": self.damage_description,
            "adjustment_reason": self.adjustment_reason,
        }


__all__ = ["CaseRecord"]
