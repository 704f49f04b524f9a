"""Collection areas customers and employees are assigned to."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models.customer import new_id, utcnow


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        raise ValueError("Area name is required")
    return cleaned


class Area(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    is_active: bool = True
    created_by: Optional[str] = None
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class AreaInput(BaseModel):
    name: str
    description: str = ""
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _clean_name(value)


class AreaUpdate(BaseModel):
    """Partial area update; omitted fields keep their stored value."""

    name: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)
