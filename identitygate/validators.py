"""
Shared validation helpers for identity store services.
"""

from __future__ import annotations

from typing import Optional

from identitygate.errors import ValidationIssue


def validate_required_text(value: str, field: str, max_len: int) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> None:
    if value is None:
        return
    validate_required_text(value, field, max_len)


def validate_non_negative_int(value: int, field: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationIssue(f"{field} must be an integer", field=field, error_type="invalid_type")
    if value < 0:
        raise ValidationIssue(f"{field} must be >= 0", field=field, error_type="out_of_range")


def validate_payload(payload, field: str = "payload") -> None:
    # Contents are opaque; only the container type is checked
    if not isinstance(payload, (bytes, bytearray, memoryview)):
        raise ValidationIssue(f"{field} must be bytes", field=field, error_type="invalid_type")
