from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000"]


def _parse_cors_origins(v: Any) -> List[str]:
    if v is None or v == "":
        return _DEFAULT_CORS.copy()
    if isinstance(v, list):
        return [x for x in v if isinstance(x, str) and x.strip()]
    s = str(v).strip()
    if s.startswith("["):
        import json
        try:
            out = json.loads(s)
        except ValueError:
            return _DEFAULT_CORS.copy()
        return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
    return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="codeshelf", alias="MONGODB_DB_NAME")
    # Requires a replica set; switch off for a standalone mongod
    mongodb_transactions: bool = Field(default=True, alias="MONGODB_TRANSACTIONS")

    # JWT
    jwt_secret: str = Field(default="dev-secret-fallback", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expiry_hours: int = Field(default=24, alias="JWT_EXPIRY_HOURS")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    # Coins
    ledger_transfers: bool = Field(default=True, alias="LEDGER_TRANSFERS")
    default_page_limit: int = 50
    max_page_limit: int = 200


@lru_cache
def get_settings() -> Settings:
    return Settings()
