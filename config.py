import os
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "gebeya-dev-secret-change-me"


class Settings:
    """
    Runtime settings read from the environment.

    Everything has a usable default except the database, which must be
    provided by DATABASE_URL + DATABASE_NAME (or injected into create_app).
    """

    def __init__(self, env: Optional[dict] = None):
        env = os.environ if env is None else env
        self.database_url: Optional[str] = env.get("DATABASE_URL")
        self.database_name: Optional[str] = env.get("DATABASE_NAME")
        self.jwt_secret: str = env.get("JWT_SECRET") or DEV_JWT_SECRET
        self.jwt_expires_minutes: int = int(env.get("JWT_EXPIRES_MINUTES", 60 * 24 * 7))
        self.cors_origins: List[str] = [o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()]
        self.log_level: str = env.get("LOG_LEVEL", "INFO").upper()
        self.port: int = int(env.get("PORT", 8000))
        self.admin_email: Optional[str] = env.get("ADMIN_EMAIL")
        self.admin_password: Optional[str] = env.get("ADMIN_PASSWORD")

    def warn_insecure_defaults(self):
        if self.jwt_secret == DEV_JWT_SECRET:
            logger.warning("JWT_SECRET not set, using the development secret")


def get_settings() -> Settings:
    return Settings()
