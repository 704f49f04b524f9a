"""Validation helpers shared by handlers and services."""

from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from utils.error_handling import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: Type[ModelT], payload: Mapping[str, Any]) -> ModelT:
    """Validate a raw payload against a pydantic model.

    Pydantic errors are flattened into ``field: message`` strings so the
    caller gets the same 422 shape as every other validation failure.
    """
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ValidationError("Validation failed", errors=errors) from exc
