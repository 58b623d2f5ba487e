"""
Feedback notification email through the Resend HTTP API.

Sending is best effort: any failure is logged and reported as ``False`` so the
caller can flag the stored row.
"""
from __future__ import annotations

import logging
from html import escape
from typing import Any, Optional

import requests

from playearth.core.config import Settings
from playearth.models.feedback import Feedback

logger = logging.getLogger(__name__)


RESEND_EMAILS_URL = "https://api.resend.com/emails"

TYPE_LABELS = {
    "praise": "Praise / Good",
    "idea": "Idea / Suggestion",
    "bug": "Bug / Issue",
    "confusing": "Confusing",
    "other": "Other",
}


def type_label(kind: str) -> str:
    return TYPE_LABELS.get(kind, kind)


def build_subject(fb: Feedback, sender: str) -> str:
    parts = ["[PfPE Feedback]", type_label(fb.type)]
    if fb.screen_path:
        parts.append(f"| {fb.screen_path}")
    parts.append(f"| {sender}")
    if fb.type == "bug" and fb.severity:
        parts.append(f"| {fb.severity}")
    return " ".join(parts)


def _p(label: str, value: Optional[str]) -> str:
    return f"<p><strong>{label}:</strong> {escape(value)}</p>" if value else ""


def build_html_body(fb: Feedback, sender: str, sender_email: Optional[str] = None) -> str:
    sections = [
        '<h2 style="color:#16a34a;">Play for Planet Earth - Feedback</h2>',
        f"<p><strong>From:</strong> {escape(sender)}</p>",
        _p("Email", sender_email),
        f"<p><strong>Type:</strong> {type_label(fb.type)}</p>",
        f"<p><strong>Message:</strong></p><blockquote>{escape(fb.message)}</blockquote>",
    ]
    if fb.type == "bug":
        sections += [
            _p("Severity", fb.severity),
            _p("Steps to reproduce", fb.steps_to_reproduce),
            _p("Expected result", fb.expected_result),
            _p("Actual result", fb.actual_result),
        ]
    elif fb.type == "confusing":
        sections += [_p("What they were trying to do", fb.user_intent), _p("What they expected", fb.expectation)]
    elif fb.type == "idea":
        sections += [
            _p("Problem it solves", fb.problem_solved),
            _p("Who is it for", fb.target_user),
            _p("Value rating", fb.value_rating),
        ]
    if fb.screenshot_url:
        sections.append(f'<p><strong>Screenshot:</strong> <a href="{escape(fb.screenshot_url)}">View Screenshot</a></p>')
    if fb.can_contact and fb.email:
        sections.append(f"<p><strong>Contact permission:</strong> Yes, {escape(fb.email)}</p>")
    else:
        sections.append("<p><strong>Contact permission:</strong> No</p>")

    meta = [
        ("Feedback ID", str(fb.id) if fb.id is not None else None),
        ("Screen", fb.screen_path),
        ("URL", fb.url),
        ("Time", fb.created_at.isoformat() if fb.created_at else None),
        ("User ID", fb.user_id),
        ("User Agent", fb.user_agent),
        ("Viewport", fb.viewport),
        ("App Version", fb.app_version),
        ("Referrer", fb.referrer),
        ("Session", fb.session_id),
    ]
    sections.append('<table style="font-size:12px;color:#666;">')
    for label, value in meta:
        if value:
            sections.append(f"<tr><td>{label}</td><td>{escape(value)}</td></tr>")
    sections.append("</table>")
    return "\n".join(s for s in sections if s)


class FeedbackMailer:
    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.resend_api_key
        self.from_email = settings.feedback_from_email
        self.to_email = settings.admin_email

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def send(self, fb: Feedback, sender: str, sender_email: Optional[str] = None) -> bool:
        if not self.enabled:
            logger.info("feedback.email disabled id=%s", fb.id)
            return False
        payload: dict[str, Any] = {
            "from": self.from_email,
            "to": [self.to_email],
            "subject": build_subject(fb, sender),
            "html": build_html_body(fb, sender, sender_email),
        }
        if fb.can_contact and fb.email:
            payload["reply_to"] = fb.email
        try:
            r = requests.post(
                RESEND_EMAILS_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=15,
            )
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("feedback.email failed id=%s error=%s", fb.id, e)
            return False
        return True
