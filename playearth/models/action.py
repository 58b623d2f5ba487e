from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from playearth.core.clock import utcnow
from playearth.core.db import Base


class ActionType(Base):
    __tablename__ = "action_types"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    base_reward_credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)


class ActionLog(Base):
    """Append-only record of a logged action; never updated after insert."""

    __tablename__ = "action_logs"
    __table_args__ = (
        # idempotency key for client retries
        UniqueConstraint("client_request_id", name="uq_action_logs_client_request_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    action_type_id: Mapped[str] = mapped_column(ForeignKey("action_types.id"), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    credits_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    client_request_id: Mapped[str] = mapped_column(String(128), nullable=False)
    # self_declared | verified_strava | ...
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="self_declared")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    action_type: Mapped[ActionType] = relationship(lazy="joined")
