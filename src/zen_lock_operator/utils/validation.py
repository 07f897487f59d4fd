"""Validation of ZenLock specs."""

from __future__ import annotations

from typing import Any

from ..constants import SUBJECT_KINDS, SUPPORTED_ALGORITHMS


class ValidationError(ValueError):
    """A ZenLock spec that can never be decrypted or injected as written."""

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


def validate_zenlock(spec: dict[str, Any] | None) -> None:
    """Validate a ZenLock spec.

    Raises:
        ValidationError: With a short ``reason`` usable as a metric label
    """
    if not spec:
        raise ValidationError("spec is empty", "empty_spec")

    encrypted_data = spec.get("encryptedData") or {}
    if not encrypted_data:
        raise ValidationError("encryptedData cannot be empty", "empty_data")

    algorithm = spec.get("algorithm")
    if algorithm and algorithm not in SUPPORTED_ALGORITHMS:
        raise ValidationError(
            f"unsupported algorithm: {algorithm} (only 'age' is supported)",
            "unsupported_algorithm",
        )

    for key, value in encrypted_data.items():
        if not key:
            raise ValidationError("encryptedData key cannot be empty", "invalid_data")
        if not value:
            raise ValidationError(f"encryptedData value for key {key!r} cannot be empty", "invalid_data")

    for i, subject in enumerate(spec.get("allowedSubjects") or []):
        try:
            validate_subject_reference(subject)
        except ValidationError as e:
            raise ValidationError(f"allowedSubjects[{i}]: {e}", e.reason) from e


def validate_subject_reference(subject: dict[str, Any] | None) -> None:
    if not subject:
        raise ValidationError("subject is empty", "invalid_subject")
    kind = subject.get("kind")
    if not kind:
        raise ValidationError("kind is required", "invalid_subject")
    if not subject.get("name"):
        raise ValidationError("name is required", "invalid_subject")
    if kind not in SUBJECT_KINDS:
        raise ValidationError(
            f"invalid kind: {kind} (must be ServiceAccount, User, or Group)", "invalid_subject"
        )
    if kind == "ServiceAccount" and not subject.get("namespace"):
        raise ValidationError("namespace is required for ServiceAccount kind", "invalid_subject")
