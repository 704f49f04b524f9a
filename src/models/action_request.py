"""Action request documents and payloads for the approval workflow."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models.customer import CustomerStatus, new_id, utcnow

MIN_REASON_LENGTH = 10


class ActionType(str, Enum):
    ACTIVATION = "activation"
    DEACTIVATION = "deactivation"
    PLAN_CHANGE = "plan_change"


class RequestStatus(str, Enum):
    """pending -> approved | rejected; both outcomes are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ActionRequest(BaseModel):
    """An employee proposal awaiting (or past) admin review."""

    id: str = Field(default_factory=new_id)
    customer_id: str
    customer_name: str
    vc_number: str
    employee_id: str
    employee_name: str
    action_type: ActionType
    current_status: Optional[CustomerStatus] = None
    current_plan: Optional[str] = None
    requested_plan: Optional[str] = None
    reason: str
    status: RequestStatus = RequestStatus.PENDING
    request_date: datetime = Field(default_factory=utcnow)
    review_date: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    reviewed_by_id: Optional[str] = None
    admin_notes: Optional[str] = None
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING


class SubmitActionRequest(BaseModel):
    """Payload an employee submits."""

    customer_id: str = Field(min_length=1)
    vc_number: str = Field(min_length=1)
    action_type: ActionType
    reason: str
    requested_plan: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if len(cleaned) < MIN_REASON_LENGTH:
            raise ValueError(f"Reason must be at least {MIN_REASON_LENGTH} characters")
        return cleaned

    @model_validator(mode="after")
    def check_requested_plan(self) -> "SubmitActionRequest":
        plan = (self.requested_plan or "").strip()
        if self.action_type == ActionType.PLAN_CHANGE:
            if not plan:
                raise ValueError("requested_plan is required for plan_change requests")
            self.requested_plan = plan
        else:
            self.requested_plan = None
        return self


class ResolveActionRequest(BaseModel):
    """Admin decision on a pending request."""

    decision: Decision
    admin_notes: Optional[str] = None


class RequestSummary(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
