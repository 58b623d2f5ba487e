from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class FeedbackRequest(BaseModel):
    """Loosely typed on purpose; business validation lives in the service."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    message: Optional[str] = None
    screen_path: Optional[str] = None
    url: Optional[str] = None
    user_agent: Optional[str] = None
    app_version: Optional[str] = None
    viewport: Optional[str] = None
    referrer: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    can_contact: bool = False
    email: Optional[str] = None
    severity: Optional[str] = None
    steps_to_reproduce: Optional[str] = None
    expected_result: Optional[str] = None
    actual_result: Optional[str] = None
    user_intent: Optional[str] = None
    expectation: Optional[str] = None
    problem_solved: Optional[str] = None
    target_user: Optional[str] = None
    value_rating: Optional[str] = None
    screenshot_url: Optional[str] = None
