"""Validation package."""

from src.validation.validator import (
    RequestValidator,
    parse_amount,
    parse_uuid,
    raise_for_errors,
)

__all__ = [
    "RequestValidator",
    "parse_amount",
    "parse_uuid",
    "raise_for_errors",
]
