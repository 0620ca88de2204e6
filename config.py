# ─────────────────────────────────────────────────────────────────
# config.py — Environment Settings
#
# Every tunable value the server reads lives here. Values come from
# environment variables (or a local .env file) so the same code runs
# on a laptop and in a container without edits.
# ─────────────────────────────────────────────────────────────────

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    app_env: str = "production"
    jwt_secret: str = "hydronexus_secret_key"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7
    cors_origin: str = "*"
    host: str = "0.0.0.0"
    port: int = 3000
    bcrypt_rounds: int = 12
    subscriber_queue_size: int = 100
    auto_sensor_alerts: bool = True
    log_level: str = "INFO"

    @property
    def debug(self) -> bool:
        # Stack traces are only exposed to clients in development
        return self.app_env == "development"


def load_settings() -> Settings:
    """Build a Settings object from the current environment."""

    return Settings(
        app_env=os.getenv("APP_ENV", "production"),
        jwt_secret=os.getenv("JWT_SECRET", "hydronexus_secret_key"),
        jwt_expire_days=int(os.getenv("JWT_EXPIRE_DAYS", "7")),
        cors_origin=os.getenv("CORS_ORIGIN", "*"),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
        subscriber_queue_size=int(os.getenv("SUBSCRIBER_QUEUE_SIZE", "100")),
        auto_sensor_alerts=_flag("AUTO_SENSOR_ALERTS", "true"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
