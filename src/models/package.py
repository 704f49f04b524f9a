"""Plan catalog models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from models.customer import new_id, utcnow


class Package(BaseModel):
    """A subscription plan that connections can be moved to."""

    id: str = Field(default_factory=new_id)
    name: str
    price: float = Field(ge=0)
    description: str = ""
    channels: int = Field(default=0, ge=0)
    features: List[str] = Field(default_factory=list)
    is_active: bool = True
    portal_amount: float = Field(default=0.0, ge=0)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class PackageInput(BaseModel):
    name: str
    price: float = Field(ge=0)
    description: str = ""
    channels: int = Field(default=0, ge=0)
    features: List[str] = Field(default_factory=list)
    is_active: bool = True
    portal_amount: float = Field(default=0.0, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Package name is required")
        return cleaned


class PackageUpdate(BaseModel):
    """Partial package update; omitted fields keep their stored value."""

    name: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    description: Optional[str] = None
    channels: Optional[int] = Field(default=None, ge=0)
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None
    portal_amount: Optional[float] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Package name is required")
        return cleaned
