from __future__ import annotations

import hashlib
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from playearth.core.clock import Clock, get_clock
from playearth.core.errors import RateLimited, ValidationError
from playearth.models.feedback import Feedback
from playearth.services.feedback_email import FeedbackMailer

logger = logging.getLogger(__name__)


ALLOWED_TYPES = ("praise", "idea", "bug", "confusing", "other")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_MESSAGE_LENGTH = 5000
MAX_FIELD_LENGTH = 3000
DEFAULT_APP_VERSION = "1.5.0-pilot"

RATE_WINDOW_SECONDS = 10 * 60
RATE_MAX = 10
# expired windows are dropped once this many callers are tracked
PRUNE_ABOVE = 1000

LONG_TEXT_FIELDS = (
    "steps_to_reproduce", "expected_result", "actual_result",
    "user_intent", "expectation", "problem_solved", "target_user",
)
TYPE_FIELDS = {
    "bug": ("severity", "steps_to_reproduce", "expected_result", "actual_result"),
    "confusing": ("user_intent", "expectation"),
    "idea": ("problem_solved", "target_user", "value_rating"),
}


class FixedWindowLimiter:
    """Process-local fixed-window counter keyed by caller."""

    def __init__(
        self,
        max_hits: int = RATE_MAX,
        window_seconds: int = RATE_WINDOW_SECONDS,
        clock: Optional[Clock] = None,
        prune_above: int = PRUNE_ABOVE,
    ) -> None:
        self.max_hits = max_hits
        self.window_seconds = window_seconds
        self.clock = clock or get_clock()
        self.prune_above = prune_above
        self._entries: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> bool:
        now = self.clock.now().timestamp()
        with self._lock:
            if len(self._entries) >= self.prune_above:
                self._prune(now)
            entry = self._entries.get(key)
            if entry is None or now > entry[1]:
                self._entries[key] = (1, now + self.window_seconds)
                return True
            count, reset_at = entry
            if count >= self.max_hits:
                return False
            self._entries[key] = (count + 1, reset_at)
            return True

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._entries.items() if now > reset_at]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("feedback.limiter pruned=%s kept=%s", len(expired), len(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


def hash_ip(ip: str, secret: str) -> str:
    return hashlib.sha256((ip + secret).encode("utf-8")).hexdigest()[:16]


@dataclass
class Sender:
    user_id: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        if self.user_id:
            return self.display_name or self.email or "Authenticated User"
        return "Guest"


def validate_feedback(data: dict[str, Any]) -> None:
    kind = data.get("type")
    if not kind or kind not in ALLOWED_TYPES:
        raise ValidationError("Invalid feedback type.")
    message = data.get("message")
    if not message or not isinstance(message, str):
        raise ValidationError("Message is required.")
    min_length = 10 if kind == "praise" else 20
    if len(message.strip()) < min_length:
        raise ValidationError(f"Message must be at least {min_length} characters.")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message is too long (max {MAX_MESSAGE_LENGTH} characters).")
    email = data.get("email")
    if data.get("can_contact") and email and not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address format.")
    for field in LONG_TEXT_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            raise ValidationError(f"Field content too long (max {MAX_FIELD_LENGTH} characters).")


def build_feedback_row(data: dict[str, Any], ip_hash: str) -> Feedback:
    kind = data["type"]
    can_contact = bool(data.get("can_contact"))
    row = Feedback(
        type=kind,
        message=data["message"].strip(),
        screen_path=data.get("screen_path") or None,
        url=data.get("url") or None,
        user_agent=data.get("user_agent") or None,
        app_version=data.get("app_version") or DEFAULT_APP_VERSION,
        viewport=data.get("viewport") or None,
        referrer=data.get("referrer") or None,
        user_id=data.get("user_id") or None,
        session_id=data.get("session_id") or None,
        can_contact=can_contact,
        email=data.get("email") if can_contact and data.get("email") else None,
        screenshot_url=data.get("screenshot_url") or None,
        ip_hash=ip_hash,
    )
    # type-specific fields are only kept for their own type
    for field in TYPE_FIELDS.get(kind, ()):
        setattr(row, field, data.get(field) or None)
    return row


class FeedbackService:
    def __init__(self, db: Session, limiter: FixedWindowLimiter, mailer: FeedbackMailer, ip_secret: str) -> None:
        self.db = db
        self.limiter = limiter
        self.mailer = mailer
        self.ip_secret = ip_secret

    def submit(self, data: dict[str, Any], client_ip: str, sender: Sender) -> int:
        ip_hash = hash_ip(client_ip or "unknown", self.ip_secret)
        if not self.limiter.hit(f"ip:{ip_hash}"):
            raise RateLimited("Too many feedback submissions. Please try again later.")

        validate_feedback(data)

        user_id = sender.user_id or data.get("user_id")
        if user_id and not self.limiter.hit(f"user:{user_id}"):
            raise RateLimited("Too many feedback submissions. Please try again later.")

        row = build_feedback_row({**data, "user_id": user_id}, ip_hash)
        self.db.add(row)
        self.db.commit()
        logger.info("feedback.received id=%s type=%s", row.id, row.type)

        feedback_id = row.id
        sent = self.mailer.send(row, sender.label, sender.email)
        self.db.execute(update(Feedback).where(Feedback.id == feedback_id).values(email_sent=sent))
        self.db.commit()
        return feedback_id

    def recent(self, limit: int = 50) -> list[Feedback]:
        return list(
            self.db.execute(select(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc()).limit(limit)).scalars()
        )
