"""Success envelope returned by every routed handler."""

from typing import Any, Optional
from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Mirrors ``AppError.to_dict`` so clients can branch on ``status``."""

    status: str = "success"
    message: str
    data: Optional[Any] = None
    correlation_id: Optional[str] = None
