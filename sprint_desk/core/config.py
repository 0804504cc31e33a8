# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Core configuration — all env-driven, zero hardcode.
Single source of truth for every tunable parameter.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent


class Settings:
    """Application settings loaded from environment variables."""

    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "sprint-desk")
    SERVICE_VERSION: str = os.getenv("SERVICE_VERSION", "1.0.0")
    SERVICE_PORT: int = int(os.getenv("SERVICE_PORT", "8000"))

    # ── Record store (PocketBase or in-process) ──
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory").lower()
    POCKETBASE_URL: str = os.getenv("POCKETBASE_URL", "http://127.0.0.1:8090")
    POCKETBASE_TIMEOUT: float = float(os.getenv("POCKETBASE_TIMEOUT", "5.0"))
    SUBSCRIPTION_POLL_SECONDS: float = float(
        os.getenv("SUBSCRIPTION_POLL_SECONDS", "0.5")
    )

    # ── Rotation ──
    ROTATION_CONFIG_PATH: str = os.getenv(
        "ROTATION_CONFIG_PATH", str(BASE_DIR / "data" / "rotation.json")
    )
    ROTATION_VALIDATION_HORIZON: int = int(
        os.getenv("ROTATION_VALIDATION_HORIZON", "24")
    )
    HISTORY_PAST_SPRINTS: int = int(os.getenv("HISTORY_PAST_SPRINTS", "24"))
    HISTORY_FUTURE_SPRINTS: int = int(os.getenv("HISTORY_FUTURE_SPRINTS", "12"))

    # ── Capacity planning ──
    TEAM_CONFIG_PATH: str = os.getenv(
        "TEAM_CONFIG_PATH", str(BASE_DIR / "data" / "team.json")
    )
    DEFAULT_FULL_CAPACITY: float = float(os.getenv("DEFAULT_FULL_CAPACITY", "20"))
    SPRINT_WORKING_DAYS: int = int(os.getenv("SPRINT_WORKING_DAYS", "10"))
    HOURS_TO_POINTS: float = float(os.getenv("HOURS_TO_POINTS", "0.25"))
    DAYS_TO_POINTS: float = float(os.getenv("DAYS_TO_POINTS", "2"))
    BUFFER_FACTOR: float = float(os.getenv("BUFFER_FACTOR", "1.2"))
    CODE_FREEZE_FACTOR: float = float(os.getenv("CODE_FREEZE_FACTOR", "0.8"))
    FACTOR_MIN: float = float(os.getenv("FACTOR_MIN", "10"))
    FACTOR_MAX: float = float(os.getenv("FACTOR_MAX", "100"))
    DEFAULT_SPRINT_LIST_LIMIT: int = int(os.getenv("DEFAULT_SPRINT_LIST_LIMIT", "50"))

    # ── Planning poker ──
    POKER_MAX_ROUNDS: int = int(os.getenv("POKER_MAX_ROUNDS", "100"))
    POKER_MAX_TIMER_SECONDS: int = int(os.getenv("POKER_MAX_TIMER_SECONDS", "3600"))

    CORS_ORIGINS: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
