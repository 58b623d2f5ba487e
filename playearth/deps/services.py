from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from playearth.core.clock import Clock, get_clock
from playearth.core.config import Settings, get_settings
from playearth.core.db import get_db
from playearth.services.feedback import FeedbackService, FixedWindowLimiter
from playearth.services.feedback_email import FeedbackMailer
from playearth.services.quests import QuestService
from playearth.services.self_declare import SelfDeclareService
from playearth.services.strava import StravaService


_feedback_limiter = FixedWindowLimiter()


def get_feedback_limiter() -> FixedWindowLimiter:
    return _feedback_limiter


def get_self_declare_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> SelfDeclareService:
    return SelfDeclareService(db, clock)


def get_quest_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> QuestService:
    return QuestService(db, clock)


def get_strava_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
) -> StravaService:
    return StravaService(db, settings, clock)


def get_feedback_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    limiter: FixedWindowLimiter = Depends(get_feedback_limiter),
) -> FeedbackService:
    return FeedbackService(db, limiter, FeedbackMailer(settings), settings.session_secret)
