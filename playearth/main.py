from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, Response

from playearth.core.config import get_settings
from playearth.core.errors import register_error_handlers

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="Play for Planet Earth API", version="1.5.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.get("/", include_in_schema=False)
def _root() -> RedirectResponse:
    return RedirectResponse(url="/docs")


@app.get("/favicon.ico", include_in_schema=False)
def _favicon() -> Response:
    return Response(status_code=204)


# ---- Routers ----
from playearth.api.actions import router as actions_router
from playearth.api.feedback import router as feedback_router
from playearth.api.points import router as points_router
from playearth.api.quests import router as quests_router
from playearth.api.strava import router as strava_router
from playearth.api.system import router as system_router

app.include_router(system_router)
app.include_router(actions_router)
app.include_router(points_router)
app.include_router(strava_router)
app.include_router(quests_router)
app.include_router(feedback_router)

# ---- DB init on startup ----
from playearth.core.db import create_tables


@app.on_event("startup")
def _startup() -> None:
    app.state.settings = settings
    create_tables()
    logging.getLogger(__name__).info(
        "app.started env=%s pilot=%s demo=%s", settings.environment, settings.pilot_mode, settings.demo_mode
    )
