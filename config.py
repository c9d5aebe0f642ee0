import logging
import os
import secrets
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    environment: str = "development"
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 24 hours
    api_prefix: str = ""
    seed_sample_data: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            jwt_secret=os.getenv("JWT_SECRET") or None,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)),
            api_prefix=os.getenv("API_PREFIX", "").rstrip("/"),
            seed_sample_data=_env_bool("SEED_SAMPLE_DATA", True),
            cors_origins=_env_list("CORS_ORIGINS", "*"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", 8000)),
        )

    def resolve_secret(self) -> str:
        """Return the signing secret, generating a throwaway one in development.

        Outside development a missing secret is a startup error.
        """
        if self.jwt_secret:
            return self.jwt_secret
        if not self.is_development:
            raise RuntimeError("JWT_SECRET must be set when ENVIRONMENT is not 'development'")
        logger.warning("JWT_SECRET is not set; using a random secret, tokens will not survive a restart")
        self.jwt_secret = secrets.token_urlsafe(32)
        return self.jwt_secret


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
