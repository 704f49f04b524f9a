"""Customer and connection documents."""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomerStatus(str, Enum):
    """Service status shared by customers and their connections."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    DEMO = "demo"


class CustomPlan(BaseModel):
    """Per-customer plan that overrides the catalog package."""

    name: str
    price: float = Field(ge=0)
    description: str = ""


class Connection(BaseModel):
    """One VC line of a customer."""

    id: str = Field(default_factory=new_id)
    vc_number: str
    plan_name: str = ""
    plan_price: float = Field(default=0.0, ge=0)
    is_custom_plan: bool = False
    custom_plan: Optional[CustomPlan] = None
    status: CustomerStatus = CustomerStatus.ACTIVE
    previous_outstanding: float = 0.0
    current_outstanding: float = 0.0
    is_primary: bool = False
    index: int = 0

    @property
    def effective_plan_name(self) -> str:
        if self.is_custom_plan and self.custom_plan:
            return self.custom_plan.name
        return self.plan_name

    @property
    def effective_plan_price(self) -> float:
        if self.is_custom_plan and self.custom_plan:
            return self.custom_plan.price
        return self.plan_price


class Customer(BaseModel):
    """
    Customer document.

    When ``connections`` is non-empty the top-level VC/package/status/
    outstanding fields are a cache of the connections, refreshed by
    ``services.customer_service.apply_legacy_fields`` on every write.
    """

    id: str = Field(default_factory=new_id)
    name: str
    phone: str
    address: str
    email: Optional[str] = None
    join_date: date = Field(default_factory=date.today)
    bill_due_day: int = Field(default=1, ge=1, le=31)
    status: CustomerStatus = CustomerStatus.ACTIVE
    is_active: bool = True
    collector_name: str
    previous_outstanding: float = 0.0
    current_outstanding: float = 0.0
    connections: List[Connection] = Field(default_factory=list)

    # Legacy single-VC view
    vc_number: Optional[str] = None
    current_package: Optional[str] = None
    package_amount: float = 0.0
    number_of_connections: int = 0
    custom_plan: Optional[CustomPlan] = None

    activation_date: Optional[datetime] = None
    deactivation_date: Optional[datetime] = None

    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def primary_connection(self) -> Optional[Connection]:
        for connection in self.connections:
            if connection.is_primary:
                return connection
        return None

    def find_connection(self, vc_number: str) -> Optional[Connection]:
        for connection in self.connections:
            if connection.vc_number == vc_number:
                return connection
        return None

    def owns_vc(self, vc_number: str) -> bool:
        if self.connections:
            return self.find_connection(vc_number) is not None
        return bool(self.vc_number) and self.vc_number == vc_number


class LegacyFields(BaseModel):
    """Top-level fields derived from the connections list."""

    vc_number: Optional[str] = None
    current_package: Optional[str] = None
    package_amount: float = 0.0
    status: CustomerStatus
    is_active: bool
    previous_outstanding: float = 0.0
    current_outstanding: float = 0.0
    number_of_connections: int = 0


class ConnectionInput(BaseModel):
    """Connection fields accepted from clients."""

    id: Optional[str] = None
    vc_number: str
    plan_name: str = ""
    plan_price: float = Field(default=0.0, ge=0)
    is_custom_plan: bool = False
    custom_plan: Optional[CustomPlan] = None
    status: Optional[CustomerStatus] = None
    previous_outstanding: float = 0.0
    current_outstanding: float = 0.0
    is_primary: bool = False

    @field_validator("vc_number")
    @classmethod
    def validate_vc_number(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("VC number is required")
        return cleaned


class CustomerInput(BaseModel):
    """Create/update payload for a customer."""

    name: str
    phone: str
    address: str
    collector_name: str
    email: Optional[str] = None
    join_date: Optional[date] = None
    bill_due_day: int = Field(default=1, ge=1, le=31)
    status: CustomerStatus = CustomerStatus.ACTIVE
    previous_outstanding: float = 0.0
    current_outstanding: float = 0.0
    vc_number: Optional[str] = None
    current_package: Optional[str] = None
    package_amount: float = Field(default=0.0, ge=0)
    custom_plan: Optional[CustomPlan] = None
    connections: List[ConnectionInput] = Field(default_factory=list)

    @field_validator("name", "phone", "address", "collector_name")
    @classmethod
    def validate_required(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("field is required")
        return cleaned

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        cleaned = value.strip()
        if not EMAIL_RE.match(cleaned):
            raise ValueError("Invalid email format")
        return cleaned

    @model_validator(mode="after")
    def require_vc_number(self) -> "CustomerInput":
        if not self.connections and not (self.vc_number or "").strip():
            raise ValueError("VC Number is required")
        return self
