from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from playearth.core.config import Settings, get_settings
from playearth.core.db import get_db
from playearth.core.errors import Forbidden
from playearth.deps.auth import CurrentUser, get_current_user, get_optional_user
from playearth.deps.services import get_feedback_service
from playearth.models.profile import Profile
from playearth.schemas.feedback import FeedbackRequest
from playearth.services.feedback import FeedbackService, Sender


router = APIRouter(prefix="/api", tags=["feedback"])


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


@router.post("/feedback")
def submit_feedback(
    body: FeedbackRequest,
    request: Request,
    current: Optional[CurrentUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    service: FeedbackService = Depends(get_feedback_service),
) -> JSONResponse:
    sender = Sender()
    if current is not None:
        profile = db.get(Profile, current.id)
        sender = Sender(
            user_id=current.id,
            email=current.email,
            display_name=(profile.display_name or profile.full_name) if profile else None,
        )
    feedback_id = service.submit(body.model_dump(), _client_ip(request), sender)
    return JSONResponse({"ok": True, "id": feedback_id})


@router.get("/admin/feedback")
def list_feedback(
    current: CurrentUser = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    service: FeedbackService = Depends(get_feedback_service),
) -> JSONResponse:
    if (current.email or "").lower() != settings.admin_email.lower():
        raise Forbidden("Admin access required")
    items = [
        {
            "id": fb.id,
            "type": fb.type,
            "message": fb.message,
            "screen_path": fb.screen_path,
            "user_id": fb.user_id,
            "email": fb.email,
            "severity": fb.severity,
            "app_version": fb.app_version,
            "email_sent": fb.email_sent,
            "created_at": fb.created_at.isoformat(),
        }
        for fb in service.recent()
    ]
    return JSONResponse(items)
