from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from playearth.core.clock import utcnow
from playearth.core.db import Base


class Quest(Base):
    __tablename__ = "quests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # photo | video | gps | quiz | strava
    verification_type: Mapped[str] = mapped_column(String(16), nullable=False, default="photo")
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    # gps quests only
    min_duration_sec: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class QuestParticipant(Base):
    __tablename__ = "quest_participants"
    __table_args__ = (
        UniqueConstraint("user_id", "quest_id", name="uq_quest_participants_user_quest"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    quest_id: Mapped[str] = mapped_column(ForeignKey("quests.id"), index=True, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    quest: Mapped[Quest] = relationship(lazy="joined")


class ProofSubmission(Base):
    __tablename__ = "proof_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    quest_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    proof_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    # photo | video | screenshot
    proof_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # the daily code the user says is visible in the media, and whether it was today's
    daily_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    daily_code_valid: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class GpsSession(Base):
    __tablename__ = "gps_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    quest_id: Mapped[str] = mapped_column(String(64), nullable=False)
    duration_sec: Mapped[int] = mapped_column(Integer, nullable=False)
    distance_m: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="approved")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class QuizCompletion(Base):
    __tablename__ = "quiz_completions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    quest_id: Mapped[str] = mapped_column(String(64), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class VideoSubmission(Base):
    """One video per user and quest; a resubmission replaces the pending one."""

    __tablename__ = "video_submissions"
    __table_args__ = (
        UniqueConstraint("user_id", "quest_id", name="uq_video_submissions_user_quest"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    quest_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    video_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # pending | approved | rejected
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
