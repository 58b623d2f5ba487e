from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, RedirectResponse

from playearth.core.errors import UpstreamError, ValidationError
from playearth.deps.auth import CurrentUser, get_current_user
from playearth.deps.services import get_strava_service
from playearth.services.strava import StravaService

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api/strava", tags=["strava"])


def _error_redirect(reason: str) -> RedirectResponse:
    return RedirectResponse(url=f"/?strava=error&message={quote(reason)}", status_code=302)


@router.get("/connect")
def connect(
    current: CurrentUser = Depends(get_current_user),
    strava: StravaService = Depends(get_strava_service),
) -> JSONResponse:
    return JSONResponse({"authUrl": strava.connect_url(current.id)})


@router.get("/callback")
def callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    strava: StravaService = Depends(get_strava_service),
) -> RedirectResponse:
    """Strava redirects the browser here; every outcome ends in a redirect back to the web app."""
    if error:
        logger.info("strava.callback denied error=%s", error)
        return _error_redirect(error)
    if not code or not state:
        return _error_redirect("missing_params")
    try:
        strava.complete_connection(code, state)
    except ValidationError:
        logger.warning("strava.callback invalid_state")
        return _error_redirect("invalid_state")
    except UpstreamError as e:
        logger.error("strava.callback exchange_failed detail=%s", e.detail)
        return _error_redirect("exchange_failed")
    return RedirectResponse(url="/settings?strava=connected", status_code=302)


@router.get("/status")
def status(
    current: CurrentUser = Depends(get_current_user),
    strava: StravaService = Depends(get_strava_service),
) -> JSONResponse:
    return JSONResponse(strava.status(current.id))


@router.post("/sync")
def sync(
    current: CurrentUser = Depends(get_current_user),
    strava: StravaService = Depends(get_strava_service),
) -> JSONResponse:
    result = strava.sync(current.id)
    return JSONResponse(
        {
            "success": True,
            "synced": result.synced,
            "points": result.points,
            "message": f"Synced {result.synced} activities, earned {result.points} points",
        }
    )


@router.post("/disconnect")
def disconnect(
    current: CurrentUser = Depends(get_current_user),
    strava: StravaService = Depends(get_strava_service),
) -> JSONResponse:
    strava.disconnect(current.id)
    return JSONResponse({"success": True})
