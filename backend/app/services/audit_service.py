# Overview: Service-layer operations for the audit log; append-only writes and reads.

"""
Audit Log Invariants

- Append-only record of every state-changing engine action.
- No updates/deletes of existing entries.
- Entries are written after the action's own transaction has committed, in a
  separate unit of work. A failing audit write is logged and swallowed; it
  never rolls back or fails the action it describes.
- Listing order is most recent first (insertion order, reversed).
"""

from __future__ import annotations

import logging
import secrets
import time

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLogEntry
from app.time_utils import utcnow


logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "SYSTEM"


def _new_entry_id() -> str:
    return f"LOG-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


def append_entry(
    *,
    action: str,
    performed_by: str,
    target_id: str,
    details: str | None = None,
) -> AuditLogEntry | None:
    """
    Append one audit entry and commit it.

    Returns the entry, or None if the write failed (already logged).
    """
    entry = AuditLogEntry(
        entry_id=_new_entry_id(),
        action=action,
        performed_by=performed_by or SYSTEM_ACTOR,
        target_id=target_id,
        occurred_at=utcnow(),
        details=details,
    )
    try:
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Audit write failed: %s on %s by %s", action, target_id, performed_by)
        return None

    logger.info("[AUDIT] %s: %s (%s by %s)", action, details or "", target_id, performed_by)
    return entry


def list_entries(
    *,
    target_id: str | None = None,
    action: str | None = None,
    limit: int = 200,
) -> list[AuditLogEntry]:
    q = db.session.query(AuditLogEntry)
    if target_id:
        q = q.filter(AuditLogEntry.target_id == target_id)
    if action:
        q = q.filter(AuditLogEntry.action == action)
    return q.order_by(AuditLogEntry.seq.desc()).limit(limit).all()
