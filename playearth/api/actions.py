from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from playearth.core.db import get_db
from playearth.deps.auth import CurrentUser, get_current_user
from playearth.deps.services import get_self_declare_service
from playearth.models.action import ActionType
from playearth.schemas.actions import ActionLogOut, ActionTypeOut, LogActionRequest
from playearth.services.self_declare import SelfDeclareService


router = APIRouter(prefix="/api", tags=["actions"])


@router.post("/actions/log")
def log_action(
    body: LogActionRequest,
    current: CurrentUser = Depends(get_current_user),
    service: SelfDeclareService = Depends(get_self_declare_service),
) -> JSONResponse:
    result = service.log_action(
        current.id,
        body.action_type_id,
        body.client_request_id,
        note=body.note,
        confidence=body.confidence,
    )
    return JSONResponse(
        {
            "success": True,
            "pointsEarned": result.points_awarded,
            "dailyPointsRemaining": result.daily_points_remaining,
            "dailyActionsRemaining": result.daily_actions_remaining,
        }
    )


@router.get("/actions/my")
def my_actions(
    current: CurrentUser = Depends(get_current_user),
    service: SelfDeclareService = Depends(get_self_declare_service),
) -> list[ActionLogOut]:
    out = []
    for log in service.list_actions(current.id):
        item = ActionLogOut.model_validate(log)
        at = log.action_type
        item.action_types = {"title": at.title, "category": at.category, "icon": at.icon} if at else None
        out.append(item)
    return out


@router.get("/action-types")
def action_types(db: Session = Depends(get_db)) -> list[ActionTypeOut]:
    rows = db.execute(
        select(ActionType).where(ActionType.is_active.is_(True)).order_by(ActionType.category, ActionType.title)
    ).scalars()
    return [ActionTypeOut.model_validate(r) for r in rows]
