"""
Input validation helpers shared by the workflows.

Pydantic does the field-level checks; these helpers turn its errors into a
single domain ValidationError and parse path identifiers.
"""

import logging
import re
from typing import Any, Type, TypeVar

import pydantic
from pydantic import BaseModel

from messaging_api.errors import InvalidIdentifier, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Largest value of a signed 64-bit integer primary key
MAX_ID = 2 ** 63 - 1

_DIGITS = re.compile(r"[0-9]+")


def parse_id(raw: str) -> int:
    """
    Parse a path identifier into a positive integer.

    Only ASCII digits are accepted, so signs, whitespace, decimal points and
    non-ASCII digits are all rejected. Zero and values above MAX_ID are
    rejected too.

    Raises:
        InvalidIdentifier: if raw is not a valid identifier
    """
    if not isinstance(raw, str) or not _DIGITS.fullmatch(raw):
        raise InvalidIdentifier()
    value = int(raw)
    if value < 1 or value > MAX_ID:
        raise InvalidIdentifier()
    return value


def format_errors(exc: pydantic.ValidationError) -> str:
    """Join every field error into one human-readable description."""
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ())) or "body"
        parts.append(f"{field}: {err.get('msg')}")
    return "; ".join(parts)


def validate_payload(model: Type[ModelT], data: Any) -> ModelT:
    """
    Validate a decoded JSON payload against a schema.

    Raises:
        ValidationError: with all field problems aggregated into one message
    """
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        message = format_errors(e)
        logger.debug(f"{model.__name__} validation failed: {message}")
        raise ValidationError(message) from e
