"""Snapshot, restore and wipe of the application tables.

Identity records (``users``) never appear in a snapshot; a restore expects
the identities its profiles point at to already exist.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from coachdesk.db.base import to_naive_utc
from coachdesk.models.message import Message
from coachdesk.models.pair import CoachStudentPair
from coachdesk.models.profile import Profile
from coachdesk.models.reward import Reward
from coachdesk.models.task import Task
from coachdesk.realtime.feed import ChangeFeed
from coachdesk.services import accounts

logger = logging.getLogger(__name__)

# Insert order; deletes run in reverse so foreign keys are never dangling.
SNAPSHOT_TABLES = (
    ("profiles", Profile),
    ("coach_student_pairs", CoachStudentPair),
    ("rewards", Reward),
    ("messages", Message),
    ("tasks", Task),
)


def _row_to_dict(row) -> dict[str, Any]:
    data = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        data[column.key] = value
    return data


def _dict_to_row(model, data: dict[str, Any]):
    values = {}
    for column in model.__table__.columns:
        if column.key not in data:
            continue
        value = data[column.key]
        if isinstance(column.type, DateTime) and isinstance(value, str):
            value = to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        values[column.key] = value
    return model(**values)


def backup_snapshot(db: Session) -> dict[str, list[dict[str, Any]]]:
    snapshot = {
        name: [_row_to_dict(row) for row in db.query(model).all()]
        for name, model in SNAPSHOT_TABLES
    }
    logger.info(
        "Backup taken: "
        + ", ".join(f"{name}={len(rows)}" for name, rows in snapshot.items())
    )
    return snapshot


def _wipe_tables(db: Session) -> None:
    for _, model in reversed(SNAPSHOT_TABLES):
        db.query(model).delete(synchronize_session=False)


def restore_snapshot(
    db: Session,
    snapshot: dict[str, list[dict[str, Any]]],
    feed: ChangeFeed | None = None,
) -> None:
    """Replace the application tables with ``snapshot`` in one transaction.

    Missing keys restore as empty tables. Any failure rolls everything back
    and re-raises, leaving the previous data in place. Receivers of the old
    and the restored messages are notified once the new rows are committed.
    """
    receivers = accounts.message_receivers(db)
    # Rows already loaded (the caller's own profile) would clash with the
    # restored instances sharing their primary keys.
    db.expunge_all()
    try:
        _wipe_tables(db)
        for name, model in SNAPSHOT_TABLES:
            rows = [_dict_to_row(model, data) for data in snapshot.get(name) or []]
            db.add_all(rows)
            db.flush()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Restore failed, previous data kept")
        raise
    receivers |= {
        data["receiver_id"]
        for data in snapshot.get("messages") or []
        if data.get("receiver_id")
    }
    accounts.publish_messages_removed(feed, receivers)
    logger.info(
        "Restore complete: "
        + ", ".join(f"{name}={len(snapshot.get(name) or [])}" for name, _ in SNAPSHOT_TABLES)
    )


def clear_database(
    db: Session, feed: ChangeFeed | None = None
) -> tuple[list[str], list[str]]:
    """Wipe the application tables, then every identity one by one.

    Each identity is deleted in its own transaction; a failure is logged and
    skipped and the rest of the batch still runs. Returns
    ``(deleted_ids, failed_ids)``.
    """
    profile_ids = [profile_id for (profile_id,) in db.query(Profile.id).all()]
    receivers = accounts.message_receivers(db)
    _wipe_tables(db)
    db.commit()
    accounts.publish_messages_removed(feed, receivers)

    deleted: list[str] = []
    failed: list[str] = []
    for profile_id in profile_ids:
        try:
            if not accounts.delete_identity(db, profile_id):
                raise LookupError(f"No identity record for {profile_id}")
            db.commit()
            deleted.append(profile_id)
        except (SQLAlchemyError, LookupError) as exc:
            db.rollback()
            logger.warning(f"Could not delete identity {profile_id}: {exc}")
            failed.append(profile_id)
    logger.info(f"Database cleared: {len(deleted)} identities deleted, {len(failed)} failed")
    return deleted, failed
