from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from playearth.core.clock import utcnow
from playearth.core.db import Base


class SelfDeclareLimit(Base):
    """Per-user, per-UTC-day usage of the self-declared action caps.

    A row is created by the first accepted action of the day; a new UTC date
    simply means a new row.
    """

    __tablename__ = "self_declare_limits"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_self_declare_limits_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    day: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    daily_actions_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    daily_points_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
