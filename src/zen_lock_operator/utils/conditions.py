"""Utilities for managing ZenLock status conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import COND_DECRYPTABLE, PHASE_ERROR


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    ``lastTransitionTime`` is carried over from the existing condition of the
    same type unless ``status`` changed.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        now: Transition time to stamp (current UTC time when omitted)

    Returns:
        Updated list of conditions
    """
    timestamp = (now or datetime.now(timezone.utc)).isoformat()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": timestamp,
    }

    if existing_idx is not None:
        existing = conditions[existing_idx]
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime") or timestamp
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def set_decryptable_condition(
    conditions: list[dict[str, Any]],
    phase: str,
    reason: str,
    message: str,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Set the Decryptable condition from a phase; only the Error phase is False."""
    return update_condition(
        conditions,
        COND_DECRYPTABLE,
        "False" if phase == PHASE_ERROR else "True",
        reason,
        message,
        now,
    )


def get_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if any."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None
