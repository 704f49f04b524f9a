"""VC inventory documents with status and ownership history."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from models.customer import new_id, utcnow


class VCStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    AVAILABLE = "available"


class StatusHistoryEntry(BaseModel):
    status: VCStatus
    changed_at: datetime = Field(default_factory=utcnow)
    changed_by: str
    reason: Optional[str] = None


class OwnershipHistoryEntry(BaseModel):
    customer_id: str
    customer_name: str
    start_date: datetime = Field(default_factory=utcnow)
    end_date: Optional[datetime] = None
    assigned_by: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.end_date is None


class VCInventoryItem(BaseModel):
    """A VC line in stock or assigned to a customer."""

    id: str = Field(default_factory=new_id)
    vc_number: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    package_id: Optional[str] = None
    package_name: Optional[str] = None
    package_amount: float = 0.0
    status: VCStatus = VCStatus.AVAILABLE
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    ownership_history: List[OwnershipHistoryEntry] = Field(default_factory=list)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def open_ownership(self) -> List[OwnershipHistoryEntry]:
        return [entry for entry in self.ownership_history if entry.is_open]


class VCCreateInput(BaseModel):
    vc_number: str
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    package_id: Optional[str] = None
    package_name: Optional[str] = None
    package_amount: float = Field(default=0.0, ge=0)
    status: VCStatus = VCStatus.AVAILABLE
    reason: Optional[str] = None

    @field_validator("vc_number")
    @classmethod
    def validate_vc_number(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("VC number is required")
        return cleaned


class VCStatusChangeInput(BaseModel):
    status: VCStatus
    reason: Optional[str] = None


class VCReassignInput(BaseModel):
    customer_id: str = Field(min_length=1)
    customer_name: str = Field(min_length=1)


class VCBulkCreateInput(BaseModel):
    vc_numbers: List[str] = Field(min_length=1)
    package_id: Optional[str] = None
    package_name: Optional[str] = None


class BulkFailure(BaseModel):
    vc_number: str
    error: str


class BulkCreateResult(BaseModel):
    success: List[str] = Field(default_factory=list)
    failed: List[BulkFailure] = Field(default_factory=list)
