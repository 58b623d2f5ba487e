"""
Strava connection and activity sync.

Verified activities earn points outside the self-declared caps. Each activity
is ingested at most once per ``(provider, provider_event_id)`` and its event
row and ledger entry commit together, so an interrupted sync resumes cleanly
on the next run.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import urlencode

import requests
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from playearth.core.clock import Clock, naive_utc
from playearth.core.config import Settings
from playearth.core.crypto import decrypt_secret, encrypt_secret
from playearth.core.errors import UpstreamError, ValidationError
from playearth.models.activity import ActivityEvent, ActivitySource
from playearth.services.oauth_state import create_signed_state, verify_signed_state
from playearth.services.points import award_points

logger = logging.getLogger(__name__)


PROVIDER = "strava"
SOURCE_VERIFIED_STRAVA = "verified_strava"

STRAVA_AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"
STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"
STRAVA_API_BASE = "https://www.strava.com/api/v3"
STRAVA_SCOPES = "read,activity:read"

REFRESH_BUFFER = timedelta(minutes=5)
SYNC_LOOKBACK = timedelta(days=30)
SYNC_PAGE_SIZE = 30

MINUTES_PER_POINT = 5
BONUS_TYPES = frozenset({"Ride", "Swim", "Run", "Walk", "Hike"})
BONUS_MULTIPLIER = 1.2
MAX_POINTS_PER_ACTIVITY = 50

REQUEST_TIMEOUT = 30


def activity_points(moving_time_sec: int, activity_type: Optional[str]) -> int:
    """1 point per 5 whole moving minutes, +20% for bonus sports, capped at 50."""
    minutes = (moving_time_sec or 0) // 60
    points = minutes // MINUTES_PER_POINT
    if activity_type in BONUS_TYPES:
        points = math.floor(points * BONUS_MULTIPLIER)
    return min(points, MAX_POINTS_PER_ACTIVITY)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return naive_utc(datetime.fromisoformat(value))


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class StravaClient:
    """Thin wrapper around the Strava OAuth and REST endpoints."""

    def __init__(self, client_id: Optional[str], client_secret: Optional[str], redirect_uri: str) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    def authorize_url(self, state: str) -> str:
        if not self.client_id:
            raise UpstreamError("Failed to initiate Strava connection", detail="STRAVA_CLIENT_ID not configured")
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "approval_prompt": "auto",
            "scope": STRAVA_SCOPES,
            "state": state,
        }
        return f"{STRAVA_AUTHORIZE_URL}?{urlencode(params)}"

    def _token_request(self, grant: dict[str, str], what: str) -> dict[str, Any]:
        if not self.client_id or not self.client_secret:
            raise UpstreamError(f"Strava {what} failed", detail="Strava credentials not configured")
        body = {"client_id": self.client_id, "client_secret": self.client_secret, **grant}
        try:
            r = requests.post(STRAVA_TOKEN_URL, json=body, timeout=REQUEST_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"Strava {what} failed", detail=str(e)) from e
        if r.status_code >= 400:
            raise UpstreamError(f"Strava {what} failed", detail=f"{r.status_code} {r.text}")
        return r.json()

    def exchange_code(self, code: str) -> dict[str, Any]:
        return self._token_request({"code": code, "grant_type": "authorization_code"}, "token exchange")

    def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        return self._token_request({"refresh_token": refresh_token, "grant_type": "refresh_token"}, "token refresh")

    def list_activities(self, access_token: str, after: Optional[int] = None) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"per_page": SYNC_PAGE_SIZE}
        if after:
            params["after"] = after
        try:
            r = requests.get(
                f"{STRAVA_API_BASE}/athlete/activities",
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamError("Failed to fetch Strava activities", detail=str(e)) from e
        if r.status_code >= 400:
            raise UpstreamError("Failed to fetch Strava activities", detail=f"{r.status_code} {r.text}")
        return r.json()


@dataclass(frozen=True)
class SyncResult:
    synced: int
    points: int


class StravaService:
    def __init__(self, db: Session, settings: Settings, clock: Clock, client: Optional[StravaClient] = None) -> None:
        self.db = db
        self.settings = settings
        self.clock = clock
        self.client = client or StravaClient(
            settings.strava_client_id, settings.strava_client_secret, settings.strava_redirect_uri
        )

    # ---- OAuth ----
    def connect_url(self, user_id: str) -> str:
        state = create_signed_state(user_id, self.settings.session_secret, self.clock)
        return self.client.authorize_url(state)

    def complete_connection(self, code: str, state: str) -> str:
        user_id = verify_signed_state(state, self.settings.session_secret, self.settings.oauth_state_ttl_seconds, self.clock)
        if not user_id:
            raise ValidationError("invalid_state")
        tokens = self.client.exchange_code(code)
        self.store_connection(user_id, tokens)
        logger.info("strava.connected user=%s athlete=%s", user_id, (tokens.get("athlete") or {}).get("id"))
        return user_id

    def _source(self, user_id: str) -> Optional[ActivitySource]:
        return self.db.execute(
            select(ActivitySource).where(ActivitySource.user_id == user_id, ActivitySource.provider == PROVIDER)
        ).scalar_one_or_none()

    def _apply_tokens(self, rec: ActivitySource, tokens: dict[str, Any]) -> None:
        rec.access_token_enc = encrypt_secret(tokens["access_token"], self.settings.enc_master_key)
        refresh = tokens.get("refresh_token")
        if refresh:
            rec.refresh_token_enc = encrypt_secret(refresh, self.settings.enc_master_key)
        expires_at = tokens.get("expires_at")
        if expires_at:
            rec.expires_at = naive_utc(datetime.fromtimestamp(int(expires_at), tz=timezone.utc))
        rec.updated_at = naive_utc(self.clock.now())

    def store_connection(self, user_id: str, tokens: dict[str, Any]) -> None:
        athlete = tokens.get("athlete") or {}
        rec = self._source(user_id)
        if rec is None:
            rec = ActivitySource(user_id=user_id, provider=PROVIDER)
            self.db.add(rec)
        rec.provider_user_id = str(athlete["id"]) if athlete.get("id") is not None else None
        rec.scopes = STRAVA_SCOPES
        rec.athlete_data = athlete or None
        self._apply_tokens(rec, tokens)
        self.db.commit()

    def status(self, user_id: str) -> dict[str, Any]:
        rec = self._source(user_id)
        if rec is None:
            return {"connected": False}
        athlete = rec.athlete_data or {}
        last_sync = rec.last_sync_at or rec.updated_at
        return {
            "connected": True,
            "athlete": {"firstname": athlete.get("firstname"), "lastname": athlete.get("lastname")},
            "lastSync": _as_utc(last_sync).isoformat() if last_sync else None,
        }

    def disconnect(self, user_id: str) -> None:
        self.db.execute(
            delete(ActivitySource).where(ActivitySource.user_id == user_id, ActivitySource.provider == PROVIDER)
        )
        self.db.commit()
        logger.info("strava.disconnected user=%s", user_id)

    def ensure_fresh_access_token(self, user_id: str) -> Optional[str]:
        """Stored access token, refreshed first when it expires within five minutes."""
        rec = self._source(user_id)
        if rec is None:
            return None
        access = decrypt_secret(rec.access_token_enc, self.settings.enc_master_key)
        expires_at = _as_utc(rec.expires_at)
        if expires_at is not None and expires_at - REFRESH_BUFFER > self.clock.now():
            return access
        if not rec.refresh_token_enc:
            return None
        refresh = decrypt_secret(rec.refresh_token_enc, self.settings.enc_master_key)
        try:
            tokens = self.client.refresh_token(refresh)
        except UpstreamError as e:
            logger.error("strava.refresh_failed user=%s detail=%s", user_id, e.detail)
            return None
        self._apply_tokens(rec, tokens)
        self.db.commit()
        return tokens["access_token"]

    # ---- Sync ----
    def sync(self, user_id: str) -> SyncResult:
        access = self.ensure_fresh_access_token(user_id)
        if not access:
            raise ValidationError("No valid Strava connection")

        after = int((self.clock.now() - SYNC_LOOKBACK).timestamp())
        activities = self.client.list_activities(access, after)

        synced = 0
        total_points = 0
        for activity in activities:
            points = self._ingest(user_id, activity)
            if points is None:
                continue
            synced += 1
            total_points += points

        rec = self._source(user_id)
        if rec is not None:
            rec.last_sync_at = naive_utc(self.clock.now())
            self.db.commit()
        logger.info("strava.sync user=%s fetched=%s synced=%s points=%s", user_id, len(activities), synced, total_points)
        return SyncResult(synced=synced, points=total_points)

    def _ingest(self, user_id: str, activity: dict[str, Any]) -> Optional[int]:
        """Insert one activity and its points; None when it was already ingested."""
        event_id = str(activity["id"])
        existing = self.db.execute(
            select(ActivityEvent.id).where(
                ActivityEvent.provider == PROVIDER, ActivityEvent.provider_event_id == event_id
            )
        ).scalar_one_or_none()
        if existing is not None:
            return None

        activity_type = activity.get("type")
        moving_time = int(activity.get("moving_time") or 0)
        points = activity_points(moving_time, activity_type)
        event = ActivityEvent(
            user_id=user_id,
            provider=PROVIDER,
            provider_event_id=event_id,
            activity_type=activity_type,
            name=activity.get("name"),
            start_time=_parse_time(activity.get("start_date")),
            duration_sec=activity.get("elapsed_time"),
            moving_time_sec=moving_time,
            distance_m=activity.get("distance"),
            elevation_m=activity.get("total_elevation_gain"),
            calories=activity.get("calories"),
            points_awarded=points,
            raw_json=activity,
        )
        self.db.add(event)
        try:
            self.db.flush()
            if points > 0:
                award_points(
                    self.db,
                    user_id,
                    points,
                    SOURCE_VERIFIED_STRAVA,
                    f"Strava {activity_type}: {activity.get('name')}",
                    event_id=event.id,
                    meta={
                        "activity_type": activity_type,
                        "duration_minutes": moving_time // 60,
                        "distance_m": activity.get("distance"),
                    },
                )
            self.db.commit()
        except IntegrityError:
            # ingested by a concurrent sync
            self.db.rollback()
            logger.info("strava.sync duplicate user=%s event=%s", user_id, event_id)
            return None
        return points

    def list_events(self, user_id: str, limit: int = 50) -> list[ActivityEvent]:
        return list(
            self.db.execute(
                select(ActivityEvent)
                .where(ActivityEvent.user_id == user_id)
                .order_by(ActivityEvent.start_time.desc(), ActivityEvent.id.desc())
                .limit(limit)
            ).scalars()
        )
