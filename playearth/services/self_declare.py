"""
Self-declared action logging with daily caps.

Unverified actions still earn points, but a user can log at most
``DAILY_ACTION_CAP`` of them per UTC day and earn at most ``DAILY_POINTS_CAP``
points from them. Every rejection happens before anything is written.

The counter write is one conditional statement (insert for the first action of
the day, otherwise an update guarded by the counts that were read), executed in
the same transaction as the action log and ledger writes. When a concurrent
request moved the counter first, the transaction is rolled back and the whole
request is evaluated again.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playearth.core.clock import Clock, naive_utc, utc_today
from playearth.core.errors import (
    Conflict,
    DailyActionCapReached,
    DailyPointsCapReached,
    DuplicateRequest,
    NotFound,
)
from playearth.models.action import ActionLog, ActionType
from playearth.models.self_declare_limit import SelfDeclareLimit
from playearth.services.points import award_points

logger = logging.getLogger(__name__)


SOURCE_SELF_DECLARED = "self_declared"

DAILY_ACTION_CAP = 5
DAILY_POINTS_CAP = 10
# Per-action ceiling regardless of the action type's base reward
MAX_POINTS_PER_SELF_DECLARED_ACTION = 3
SELF_DECLARED_SCALE = 0.3
DEFAULT_CONFIDENCE = 0.85

CAS_RETRIES = 3


def confidence_multiplier(confidence: float) -> float:
    if confidence >= 0.8:
        return 1.0
    if confidence >= 0.4:
        return 0.6
    return 0.3


def _round_half_up(value: float) -> int:
    # Math.round semantics; Python's round() is banker's rounding
    return int(math.floor(value + 0.5))


def self_declared_points(base_reward_credits: int, confidence: float) -> int:
    raw = _round_half_up(base_reward_credits * confidence_multiplier(confidence) * SELF_DECLARED_SCALE)
    return min(raw, MAX_POINTS_PER_SELF_DECLARED_ACTION)


@dataclass(frozen=True)
class DailyUsage:
    actions_count: int = 0
    points_used: int = 0

    @property
    def actions_remaining(self) -> int:
        return DAILY_ACTION_CAP - self.actions_count

    @property
    def points_remaining(self) -> int:
        return DAILY_POINTS_CAP - self.points_used


@dataclass(frozen=True)
class LogResult:
    points_awarded: int
    daily_points_remaining: int
    daily_actions_remaining: int
    action_log_id: int


class _CounterMoved(Exception):
    """The counter row changed between read and write."""


class SelfDeclareService:
    def __init__(self, db: Session, clock: Clock) -> None:
        self.db = db
        self.clock = clock

    def usage(self, user_id: str, day: Optional[date] = None) -> DailyUsage:
        row = self._counter(user_id, day or utc_today(self.clock))
        if row is None:
            return DailyUsage()
        return DailyUsage(actions_count=row.daily_actions_count, points_used=row.daily_points_used)

    def log_action(
        self,
        user_id: str,
        action_type_id: str,
        client_request_id: str,
        note: Optional[str] = None,
        confidence: Optional[float] = None,
    ) -> LogResult:
        conf = confidence or DEFAULT_CONFIDENCE
        for attempt in range(1, CAS_RETRIES + 1):
            try:
                return self._attempt(user_id, action_type_id, client_request_id, note, conf)
            except _CounterMoved:
                self.db.rollback()
                logger.warning("actions.log counter_moved user=%s attempt=%s", user_id, attempt)
        raise Conflict("Could not record action, please try again")

    def list_actions(self, user_id: str, limit: int = 50) -> list[ActionLog]:
        return list(
            self.db.execute(
                select(ActionLog)
                .where(ActionLog.user_id == user_id)
                .order_by(ActionLog.created_at.desc(), ActionLog.id.desc())
                .limit(limit)
            ).scalars()
        )

    def _counter(self, user_id: str, day: date) -> Optional[SelfDeclareLimit]:
        return self.db.execute(
            select(SelfDeclareLimit).where(SelfDeclareLimit.user_id == user_id, SelfDeclareLimit.day == day)
        ).scalar_one_or_none()

    def _already_logged(self, client_request_id: str) -> bool:
        return self.db.execute(
            select(ActionLog.id).where(ActionLog.client_request_id == client_request_id)
        ).first() is not None

    def _attempt(
        self,
        user_id: str,
        action_type_id: str,
        client_request_id: str,
        note: Optional[str],
        confidence: float,
    ) -> LogResult:
        if self._already_logged(client_request_id):
            raise DuplicateRequest()

        today = utc_today(self.clock)
        counter = self._counter(user_id, today)
        seen = DailyUsage() if counter is None else DailyUsage(counter.daily_actions_count, counter.daily_points_used)

        if seen.actions_count >= DAILY_ACTION_CAP:
            raise DailyActionCapReached(f"Daily self-declared action limit reached ({DAILY_ACTION_CAP} per day)")
        if seen.points_used >= DAILY_POINTS_CAP:
            raise DailyPointsCapReached(f"Daily self-declared points limit reached ({DAILY_POINTS_CAP} per day)")

        action_type = self.db.get(ActionType, action_type_id)
        if action_type is None:
            raise NotFound("Action type not found")

        raw_points = self_declared_points(action_type.base_reward_credits, confidence)
        points = min(raw_points, DAILY_POINTS_CAP - seen.points_used)

        log = ActionLog(
            user_id=user_id,
            action_type_id=action_type_id,
            note=note or None,
            confidence=confidence,
            credits_earned=points,
            client_request_id=client_request_id,
            source=SOURCE_SELF_DECLARED,
            created_at=naive_utc(self.clock.now()),
        )
        self.db.add(log)
        try:
            self.db.flush()
        except IntegrityError:
            # a concurrent retry with the same key got there first
            self.db.rollback()
            raise DuplicateRequest()

        if points > 0:
            award_points(
                self.db,
                user_id,
                points,
                SOURCE_SELF_DECLARED,
                f"Self-declared: {action_type.title}",
                action_log_id=log.id,
                client_request_id=client_request_id,
            )

        self._advance_counter(user_id, today, seen, points, first_of_day=counter is None)
        self.db.commit()

        logger.info(
            "actions.log user=%s action_type=%s points=%s used=%s/%s",
            user_id, action_type_id, points, seen.points_used + points, DAILY_POINTS_CAP,
        )
        after = DailyUsage(seen.actions_count + 1, seen.points_used + points)
        return LogResult(
            points_awarded=points,
            daily_points_remaining=after.points_remaining,
            daily_actions_remaining=after.actions_remaining,
            action_log_id=log.id,
        )

    def _advance_counter(self, user_id: str, day: date, seen: DailyUsage, points: int, first_of_day: bool) -> None:
        if first_of_day:
            try:
                with self.db.begin_nested():
                    self.db.add(
                        SelfDeclareLimit(
                            user_id=user_id,
                            day=day,
                            daily_actions_count=1,
                            daily_points_used=points,
                            updated_at=naive_utc(self.clock.now()),
                        )
                    )
            except IntegrityError:
                raise _CounterMoved()
            return

        result = self.db.execute(
            update(SelfDeclareLimit)
            .where(
                SelfDeclareLimit.user_id == user_id,
                SelfDeclareLimit.day == day,
                SelfDeclareLimit.daily_actions_count == seen.actions_count,
                SelfDeclareLimit.daily_points_used == seen.points_used,
            )
            .values(
                daily_actions_count=SelfDeclareLimit.daily_actions_count + 1,
                daily_points_used=SelfDeclareLimit.daily_points_used + points,
                updated_at=naive_utc(self.clock.now()),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise _CounterMoved()
