"""Payment receipts collected against customer outstanding balances."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from models.customer import new_id, utcnow

# Largest amount a collector may take in one receipt.
MAX_PAYMENT_AMOUNT = 100000


class PaymentMethod(str, Enum):
    CASH = "cash"
    ONLINE = "online"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"


class Payment(BaseModel):
    """
    A collected payment.

    ``applied_amount`` is the part that reduced the customer's balance;
    anything above what was owed is recorded but not carried forward.
    """

    id: str = Field(default_factory=new_id)
    receipt_number: str
    customer_id: str
    customer_name: str
    customer_area: str
    vc_number: Optional[str] = None
    amount_paid: float = Field(gt=0)
    applied_amount: float = Field(default=0.0, ge=0)
    outstanding_before: float = 0.0
    outstanding_after: float = 0.0
    payment_method: PaymentMethod = PaymentMethod.CASH
    paid_at: datetime = Field(default_factory=utcnow)
    collected_by: str
    collected_by_id: str
    notes: str = ""
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PaymentInput(BaseModel):
    """Collection payload sent by a collector."""

    customer_id: str
    amount_paid: float = Field(gt=0, le=MAX_PAYMENT_AMOUNT)
    payment_method: PaymentMethod = PaymentMethod.CASH
    vc_number: Optional[str] = None
    paid_at: Optional[datetime] = None
    receipt_number: Optional[str] = None
    notes: str = ""

    @field_validator("customer_id")
    @classmethod
    def validate_customer_id(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("customer_id is required")
        return cleaned

    @field_validator("paid_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class CollectionTotals(BaseModel):
    count: int = 0
    amount: float = 0.0


class PaymentSummary(BaseModel):
    total_payments: int = 0
    total_amount: float = 0.0
    by_method: Dict[str, CollectionTotals] = Field(default_factory=dict)
    by_collector: Dict[str, CollectionTotals] = Field(default_factory=dict)
