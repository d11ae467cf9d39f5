# Overview: Append-only SyncLog writer and reader.

from __future__ import annotations

from ..extensions import db
from ..models import SyncLog, SYNC_LOG_STATUSES
"""
SyncLog Invariants

- Append-only audit log for order attempts and channel sync attempts.
- No updates or deletes of existing rows.
- append_sync_log flushes; the caller decides when to commit so that a
  success log lands in the same transaction as the work it records. Failure
  logs are written after the failed transaction has been rolled back.
"""


def append_sync_log(
    *,
    account_id: int,
    event_type: str,
    status: str,
    payload: dict | None = None,
    channel_id: int | None = None,
    commit: bool = False,
) -> SyncLog:
    if status not in SYNC_LOG_STATUSES:
        raise ValueError(f"invalid sync log status: {status}")

    entry = SyncLog(
        account_id=account_id,
        channel_id=channel_id,
        event_type=event_type,
        status=status,
        payload=payload,
    )
    db.session.add(entry)
    db.session.flush()
    if commit:
        db.session.commit()
    return entry


def list_sync_logs(account_id: int, limit: int = 20, event_type: str | None = None) -> list[SyncLog]:
    query = db.session.query(SyncLog).filter_by(account_id=account_id)
    if event_type:
        query = query.filter_by(event_type=event_type)
    return (
        query.order_by(SyncLog.created_at.desc(), SyncLog.id.desc())
        .limit(max(1, min(limit, 200)))
        .all()
    )
