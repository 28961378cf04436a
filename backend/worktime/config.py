"""
Runtime configuration for the worktime data layer.

Settings are read from environment variables once at startup and passed
explicitly to the store context and the API factory.
"""
import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError

ENVIRONMENTS = ("development", "test", "production")

_DB_TYPE_ALIASES = {
    "server": "server",
    "postgresql": "server",
    "postgres": "server",
    "embedded": "embedded",
    "sqlite": "embedded",
}

DEFAULT_EMBEDDED_DB_PATH = os.path.join("~", ".time-tracker", "database.sqlite")


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def normalize_db_type(value: str) -> str:
    """Map a configured backend name onto ``server`` or ``embedded``."""
    try:
        return _DB_TYPE_ALIASES[value.strip().lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported DB_TYPE '{value}'. Use one of: {', '.join(sorted(_DB_TYPE_ALIASES))}"
        )


def normalize_database_url(url: str) -> str:
    """Point plain PostgreSQL URLs at the asyncpg driver."""
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


class Settings(BaseModel):
    """Process configuration."""

    environment: str = Field(default="development", description="development, test or production")
    db_type: str = Field(default="server", description="Active backend: server or embedded")
    database_url: Optional[str] = Field(None, description="Server store connection string")
    embedded_db_path: str = Field(default=DEFAULT_EMBEDDED_DB_PATH, description="Embedded store file")
    encryption_key: Optional[str] = Field(None, description="Field encryption secret")
    jwt_secret: Optional[str] = Field(None, description="Secret used to verify bearer tokens")
    jwt_algorithm: str = "HS256"
    sql_echo: bool = False
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        environment = str(v).strip().lower()
        if environment not in ENVIRONMENTS:
            raise ValueError(f"environment must be one of: {', '.join(ENVIRONMENTS)}")
        return environment

    @field_validator("db_type", mode="before")
    @classmethod
    def validate_db_type(cls, v):
        db_type = _DB_TYPE_ALIASES.get(str(v).strip().lower())
        if db_type is None:
            raise ValueError(f"db_type must be one of: {', '.join(sorted(_DB_TYPE_ALIASES))}")
        return db_type

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        return normalize_database_url(v) if v else None

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_embedded(self) -> bool:
        return self.db_type == "embedded"

    def validate_for_startup(self) -> "Settings":
        """Check the combination of values needed to open a store."""
        if self.db_type == "server" and not self.database_url:
            raise ConfigurationError("DATABASE_URL is required when DB_TYPE is server")
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        raw_db_type = env.get("DB_TYPE")
        if raw_db_type:
            db_type = normalize_db_type(raw_db_type)
        else:
            db_type = "embedded" if _flag(env.get("EMBEDDED_MODE")) else "server"

        origins = env.get("ALLOWED_ORIGINS", "*")

        try:
            settings = cls(
                environment=env.get("APP_ENV") or env.get("ENVIRONMENT") or "development",
                db_type=db_type,
                database_url=env.get("DATABASE_URL") or None,
                embedded_db_path=env.get("EMBEDDED_DB_PATH", DEFAULT_EMBEDDED_DB_PATH),
                encryption_key=env.get("ENCRYPTION_KEY") or None,
                jwt_secret=env.get("SECRET_KEY") or None,
                sql_echo=_flag(env.get("SQL_ECHO")),
                allowed_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc
        return settings.validate_for_startup()
