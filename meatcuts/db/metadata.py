from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from .models import SyncMetadata, utcnow

LAST_CATALOG_UPDATE = "last_catalog_update"
LAST_CSV_EXPORT = "last_csv_export"


def touch(session: Session, key: str, when: datetime | None = None) -> SyncMetadata:
    """Upsert ``key`` with the current UTC timestamp.

    Only stages the change: it commits with the write it tracks.
    """
    ts = when or utcnow()
    row = session.get(SyncMetadata, key)
    if row is None:
        row = SyncMetadata(key=key, value=ts.isoformat(), updated_at=ts)
        session.add(row)
    else:
        row.value = ts.isoformat()
        row.updated_at = ts
    return row


def read(session: Session, key: str) -> str | None:
    row = session.get(SyncMetadata, key)
    return row.value if row else None
