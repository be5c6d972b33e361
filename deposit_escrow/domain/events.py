# deposit_escrow/domain/events.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import WorkflowEvent


def emit_workflow_event(
    db: Session,
    *,
    event_type: str,
    actor_user_id: Optional[int] = None,
    property_id: Optional[int] = None,
    tenant_id: Optional[int] = None,
    payload: Optional[dict[str, Any]] = None,
) -> WorkflowEvent:
    """
    Workflow event emitter.

    NOTE:
    - Does NOT commit. Adds + flushes only.
    - Callers decide when to commit.
    """
    if not event_type:
        raise ValueError("event_type required")

    ev = WorkflowEvent(
        property_id=int(property_id) if property_id is not None else None,
        tenant_id=int(tenant_id) if tenant_id is not None else None,
        actor_user_id=int(actor_user_id) if actor_user_id is not None else None,
        event_type=str(event_type),
        payload_json=json.dumps(payload or {}, ensure_ascii=False, default=str),
        created_at=datetime.utcnow(),
    )
    db.add(ev)
    db.flush()
    return ev


def list_workflow_events(
    db: Session,
    *,
    property_id: Optional[int] = None,
    tenant_id: Optional[int] = None,
    limit: int = 200,
) -> list[WorkflowEvent]:
    q = select(WorkflowEvent).order_by(WorkflowEvent.id.desc())
    if property_id is not None:
        q = q.where(WorkflowEvent.property_id == int(property_id))
    if tenant_id is not None:
        q = q.where(WorkflowEvent.tenant_id == int(tenant_id))
    return list(db.scalars(q.limit(int(limit))).all())
