from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from playearth.core.clock import Clock, get_clock
from playearth.core.config import Settings, get_settings
from playearth.services.todays_code import format_time_remaining, get_code_valid_until, get_todays_code


router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health")
def health(clock: Clock = Depends(get_clock)) -> JSONResponse:
    return JSONResponse({"status": "ok", "timestamp": clock.now().isoformat()})


@router.get("/config")
def public_config(settings: Settings = Depends(get_settings)) -> JSONResponse:
    # safe subset only; no secrets leave the server
    return JSONResponse(settings.public_config())


@router.get("/todays-code")
def todays_code(clock: Clock = Depends(get_clock)) -> JSONResponse:
    expires_at = get_code_valid_until(clock)
    return JSONResponse(
        {
            "code": get_todays_code(clock),
            "expires_at": expires_at.isoformat(),
            "time_remaining": format_time_remaining(expires_at, clock),
        }
    )
