from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Built once at process start and handed to request handlers through
    ``Depends(get_settings)``. Secrets must come from the environment in
    production.
    """

    app_name: str = "Play for Planet Earth"
    environment: str = "development"
    log_level: str = "INFO"

    # Supabase (auth + managed Postgres)
    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_service_key: str | None = None
    supabase_jwt_secret: str = "change-me-in-prod"
    supabase_jwt_audience: str = "authenticated"

    # Database
    database_url: str = "sqlite:///./app_data/playearth.sqlite3"

    # Strava
    strava_client_id: str | None = None
    strava_client_secret: str | None = None
    strava_redirect_uri: str = "https://play4earth.co/api/strava/callback"
    oauth_state_ttl_seconds: int = 10 * 60

    # Crypto / hashing
    session_secret: str = "salt"
    enc_master_key: str = "dev-master-key-32-bytes-please-change!!!"

    # Feedback email (Resend)
    resend_api_key: str | None = None
    feedback_from_email: str = "feedback@playearth.co.uk"

    # Feature flags
    pilot_mode: bool = True
    demo_mode: bool = False
    enable_marketplace: bool = False
    enable_donations: bool = False
    enable_wallet: bool = False
    enable_partners: bool = False
    enable_learn: bool = True
    enable_credits: bool = True
    enable_actions: bool = True
    enable_quests: bool = True
    enable_leaderboard: bool = True
    leaderboard_anonymize: bool = True

    admin_email: str = "info@playearth.co.uk"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def feature_flags(self) -> dict[str, Any]:
        """Flags shared with the client, keyed the way the web app reads them."""
        return {
            "PILOT_MODE": self.pilot_mode,
            "DEMO_MODE": self.demo_mode,
            "ENABLE_MARKETPLACE": self.enable_marketplace,
            "ENABLE_DONATIONS": self.enable_donations,
            "ENABLE_WALLET": self.enable_wallet,
            "ENABLE_PARTNERS": self.enable_partners,
            "ENABLE_LEARN": self.enable_learn,
            "ENABLE_CREDITS": self.enable_credits,
            "ENABLE_ACTIONS": self.enable_actions,
            "ENABLE_QUESTS": self.enable_quests,
            "ENABLE_LEADERBOARD": self.enable_leaderboard,
            "ADMIN_EMAIL": self.admin_email,
            "LEADERBOARD_ANONYMIZE": self.leaderboard_anonymize,
        }

    def public_config(self) -> dict[str, Any]:
        return {
            "supabaseUrl": self.supabase_url,
            "supabaseAnonKey": self.supabase_anon_key,
            **self.feature_flags(),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
