"""The acting user, as supplied by the authentication provider."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Console roles."""

    ADMIN = "admin"
    EMPLOYEE = "employee"


class Actor(BaseModel):
    """Read-only view of who is acting, with which role and areas."""

    user_id: str
    name: str
    role: Role = Role.EMPLOYEE
    assigned_areas: List[str] = Field(default_factory=list)
    collector_name: Optional[str] = None
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def areas(self) -> List[str]:
        """Areas the actor collects for; falls back to the collector name."""
        if self.assigned_areas:
            return list(self.assigned_areas)
        return [self.collector_name or self.name]

    def can_access_area(self, area: Optional[str]) -> bool:
        if self.is_admin:
            return True
        return bool(area) and area in self.areas
