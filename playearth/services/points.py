from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playearth.models.points_ledger import PointsLedgerEntry
from playearth.models.profile import Profile

logger = logging.getLogger(__name__)


LEADERBOARD_SIZE = 20


def ensure_profile(db: Session, user_id: str, email: Optional[str] = None) -> None:
    """Create the profile row on first sight of a user; concurrent creators are tolerated."""
    exists = db.execute(select(Profile.id).where(Profile.id == user_id)).scalar_one_or_none()
    if exists is not None:
        return
    try:
        with db.begin_nested():
            db.add(Profile(id=user_id, email=email, points=0, credits=0, level=1))
    except IntegrityError:
        logger.info("profile.create_race user=%s", user_id)


def award_points(
    db: Session,
    user_id: str,
    points: int,
    source: str,
    reason: str,
    *,
    source_id: Optional[str] = None,
    action_log_id: Optional[int] = None,
    event_id: Optional[int] = None,
    client_request_id: Optional[str] = None,
    meta: Optional[dict[str, Any]] = None,
) -> PointsLedgerEntry:
    """Append a ledger entry and bump the profile total in the caller's transaction.

    The caller commits; nothing here is visible until it does.
    """
    entry = PointsLedgerEntry(
        user_id=user_id,
        points=points,
        reason=reason,
        source=source,
        source_id=source_id,
        action_log_id=action_log_id,
        event_id=event_id,
        client_request_id=client_request_id,
        meta=meta,
    )
    db.add(entry)
    ensure_profile(db, user_id)
    db.execute(
        update(Profile)
        .where(Profile.id == user_id)
        .values(points=Profile.points + points)
        .execution_options(synchronize_session=False)
    )
    db.flush()
    return entry


def source_breakdown(db: Session, user_id: str) -> dict[str, int]:
    rows = db.execute(
        select(PointsLedgerEntry.source, func.sum(PointsLedgerEntry.points))
        .where(PointsLedgerEntry.user_id == user_id)
        .group_by(PointsLedgerEntry.source)
    ).all()
    return {source: int(total or 0) for source, total in rows}


def profile_totals(db: Session, user_id: str) -> tuple[int, int]:
    row = db.execute(select(Profile.points, Profile.credits).where(Profile.id == user_id)).one_or_none()
    if row is None:
        return 0, 0
    return int(row.points or 0), int(row.credits or 0)


def leaderboard(db: Session, anonymize: bool, limit: int = LEADERBOARD_SIZE) -> list[dict[str, Any]]:
    profiles = db.execute(
        select(Profile.display_name, Profile.points, Profile.level)
        .order_by(Profile.points.desc(), Profile.created_at.asc())
        .limit(limit)
    ).all()
    board = []
    for idx, p in enumerate(profiles):
        placeholder = f"EcoHero{idx + 1:03d}"
        name = placeholder if anonymize else (p.display_name or placeholder)
        board.append({"rank": idx + 1, "displayName": name, "points": int(p.points or 0), "level": p.level})
    return board
