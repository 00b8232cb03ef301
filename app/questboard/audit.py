"""
Append-only audit trail.

Services record one event per write, in the same session as the write, so
the event commits (or rolls back) together with the change it describes.
"""
import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.questboard.models import AuditEvent, User


def apply_changes(row: Any, values: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Set `values` on `row`; return {field: {"old", "new"}} for fields that actually changed."""
    changes: dict[str, dict[str, Any]] = {}
    for key, new in values.items():
        old = getattr(row, key)
        if old != new:
            changes[key] = {"old": old, "new": new}
            setattr(row, key, new)
    return changes


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    in_request = has_request_context()
    ev = AuditEvent(
        request_id=request_id or (g.get("request_id") if in_request else None),
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        # default=str: metadata may carry datetimes from change diffs
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev
