from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from playearth.core.clock import utcnow
from playearth.core.db import Base


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        Index("idx_feedback_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # praise | idea | bug | confusing | other
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    screen_path: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    app_version: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    viewport: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    referrer: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    can_contact: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    # bug
    severity: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    steps_to_reproduce: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expected_result: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    actual_result: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # confusing
    user_intent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expectation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # idea
    problem_solved: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    target_user: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    value_rating: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    screenshot_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    ip_hash: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    email_sent: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
