from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from playearth.core.config import Settings, get_settings
from playearth.core.db import get_db
from playearth.deps.auth import CurrentUser, get_current_user
from playearth.deps.services import get_self_declare_service, get_strava_service
from playearth.services.points import leaderboard as top_profiles
from playearth.services.points import profile_totals, source_breakdown
from playearth.services.self_declare import SelfDeclareService
from playearth.services.strava import StravaService


router = APIRouter(prefix="/api", tags=["points"])


@router.get("/points/summary")
def points_summary(
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
    self_declare: SelfDeclareService = Depends(get_self_declare_service),
) -> JSONResponse:
    total_points, total_credits = profile_totals(db, current.id)
    usage = self_declare.usage(current.id)
    return JSONResponse(
        {
            "totalPoints": total_points,
            "totalCredits": total_credits,
            "breakdown": source_breakdown(db, current.id),
            "selfDeclare": {
                "dailyPointsUsed": usage.points_used,
                "dailyActionsCount": usage.actions_count,
                "dailyPointsRemaining": usage.points_remaining,
                "dailyActionsRemaining": usage.actions_remaining,
            },
        }
    )


@router.get("/activities")
def activities(
    current: CurrentUser = Depends(get_current_user),
    strava: StravaService = Depends(get_strava_service),
) -> JSONResponse:
    items = []
    for ev in strava.list_events(current.id):
        items.append(
            {
                "id": ev.id,
                "provider": ev.provider,
                "provider_event_id": ev.provider_event_id,
                "activity_type": ev.activity_type,
                "name": ev.name,
                "start_time": ev.start_time.isoformat() if ev.start_time else None,
                "moving_time_sec": ev.moving_time_sec,
                "distance_m": ev.distance_m,
                "points_awarded": ev.points_awarded,
            }
        )
    return JSONResponse(items)


@router.get("/leaderboard")
def leaderboard(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> JSONResponse:
    return JSONResponse(top_profiles(db, anonymize=settings.leaderboard_anonymize))
