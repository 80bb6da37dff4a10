"""
Input Validation Utilities
==========================

Helpers shared by services that accept caller-supplied payloads:
- Schema validation that raises the domain ``ValidationError``
- Free-text trimming for notes fields
"""
import logging
from typing import Any, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.domain.exceptions import ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_pydantic_errors(exc: PydanticValidationError) -> List[str]:
    """Flatten pydantic error details into ``"field: message"`` strings."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "__root__")
        message = error.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def validate_model(schema: Type[ModelT], data: Optional[Mapping[str, Any]]) -> ModelT:
    """
    Validate ``data`` against ``schema``.

    Args:
        schema: Pydantic model class
        data: Raw payload (``None`` is treated as empty)

    Returns:
        The validated model instance

    Raises:
        ValidationError: every violated field, as readable strings
    """
    try:
        return schema.model_validate(dict(data or {}))
    except PydanticValidationError as exc:
        errors = format_pydantic_errors(exc)
        logger.debug("%s validation failed: %s", schema.__name__, errors)
        raise ValidationError(errors=errors, detail={"schema": schema.__name__}) from exc


def sanitize_string(value: Optional[str], max_length: int = 1000) -> Optional[str]:
    """
    Strip and truncate free text.

    Returns:
        The cleaned string, or None for empty input
    """
    if value is None:
        return None

    if not isinstance(value, str):
        value = str(value)

    value = value.strip()
    if not value:
        return None

    return value[:max_length]
