from __future__ import annotations

import os
from dataclasses import dataclass

from flask import current_app

# At least 32 bytes for HS256.
DEV_JWT_SECRET = "partsmarket-dev-jwt-secret-change-me"


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int, *, minimum: int = 0, maximum: int = 1000000) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        value = int(default)
    else:
        try:
            value = int(raw)
        except Exception:
            value = int(default)
    if value < minimum:
        value = minimum
    if value > maximum:
        value = maximum
    return value


def current_env() -> str:
    return (os.getenv("PARTSMARKET_ENV", "dev") or "dev").strip().lower()


def is_production(env: str | None = None) -> bool:
    return (env or current_env()) in ("prod", "production")


@dataclass
class Settings:
    env: str = "dev"

    auth_jwt_secret: str = DEV_JWT_SECRET
    auth_jwt_audience: str = ""

    profile_initial_tokens: int = 3

    reveal_token_cost: int = 1
    reveal_min_interval_ms: int = 2000
    reveal_max_per_window: int = 10
    reveal_window_seconds: int = 60

    verify_code_ttl_seconds: int = 600
    verify_code_cooldown_seconds: int = 30
    verify_code_max_per_hour: int = 10
    verify_confirm_max_attempts: int = 5
    expose_verify_code: bool = True

    messaging_mode: str = "mock"

    @property
    def production(self) -> bool:
        return is_production(self.env)


def load_settings() -> Settings:
    env = current_env()
    prod = is_production(env)
    secret = (os.getenv("AUTH_JWT_SECRET") or os.getenv("SECRET_KEY") or DEV_JWT_SECRET).strip()
    messaging_default = "disabled" if prod else "mock"
    messaging_mode = (os.getenv("MESSAGING_MODE") or messaging_default).strip().lower()
    if messaging_mode not in ("disabled", "mock", "live"):
        messaging_mode = messaging_default
    return Settings(
        env=env,
        auth_jwt_secret=secret,
        auth_jwt_audience=(os.getenv("AUTH_JWT_AUDIENCE") or "").strip(),
        profile_initial_tokens=_env_int("PROFILE_INITIAL_TOKENS", 3, minimum=0, maximum=1000),
        reveal_token_cost=_env_int("REVEAL_TOKEN_COST", 1, minimum=1, maximum=100),
        reveal_min_interval_ms=_env_int("REVEAL_MIN_INTERVAL_MS", 2000, minimum=0, maximum=600000),
        reveal_max_per_window=_env_int("REVEAL_MAX_PER_WINDOW", 10, minimum=1, maximum=10000),
        reveal_window_seconds=_env_int("REVEAL_WINDOW_SECONDS", 60, minimum=1, maximum=86400),
        verify_code_ttl_seconds=_env_int("VERIFY_CODE_TTL_SECONDS", 600, minimum=30, maximum=86400),
        verify_code_cooldown_seconds=_env_int("VERIFY_CODE_COOLDOWN_SECONDS", 30, minimum=0, maximum=3600),
        verify_code_max_per_hour=_env_int("VERIFY_CODE_MAX_PER_HOUR", 10, minimum=1, maximum=1000),
        verify_confirm_max_attempts=_env_int("VERIFY_CONFIRM_MAX_ATTEMPTS", 5, minimum=1, maximum=1000),
        expose_verify_code=_env_bool("PILOT_EXPOSE_VERIFY_CODE", not prod),
        messaging_mode=messaging_mode,
    )


def get_settings() -> Settings:
    settings = current_app.config.get("PARTSMARKET_SETTINGS")
    if settings is None:
        settings = load_settings()
        current_app.config["PARTSMARKET_SETTINGS"] = settings
    return settings
