import os
from pathlib import Path

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BACKEND_CHOICES = {"keyvalue", "docstore", "remote"}


def get_database_url() -> str:
    """Get the server-side database URL, using an absolute path for SQLite.

    The remote storage endpoint keeps its root document and week rows here.
    """
    db_url = os.getenv("ROSTER_DATABASE_URL", "")
    if db_url:
        logger.info(f"Using ROSTER_DATABASE_URL from environment: {db_url}")
        return db_url

    db_path = Path(__file__).parent.parent.parent / "data" / "roster.db"
    abs_path = db_path.resolve()
    db_url = f"sqlite:///{abs_path}"
    logger.info(f"Using default database path: {db_url}")
    return db_url


def get_docstore_url() -> str:
    """Get the document-store URL; a SQLite file under data/ unless overridden."""
    docstore_url = os.getenv("ROSTER_DOCSTORE_URL", "")
    if docstore_url:
        return docstore_url

    db_path = Path(__file__).parent.parent.parent / "data" / "docstore.db"
    return f"sqlite:///{db_path.resolve()}"


class Settings(BaseSettings):
    storage_backend: str = Field(default="keyvalue", validation_alias="ROSTER_STORAGE_BACKEND")
    docstore_enabled: bool = Field(
        default=True,
        validation_alias="ROSTER_DOCSTORE_ENABLED",
        description="Allow the transactional document store; when false requests for it use the key-value backend",
    )
    bootstrap_timeout_s: float = Field(
        default=2.5,
        validation_alias="ROSTER_BOOTSTRAP_TIMEOUT_S",
        description="How long backend initialization may take before falling back",
    )
    local_store_path: str | None = Field(
        default=None,
        validation_alias="ROSTER_LOCAL_STORE_PATH",
        description="JSON file backing the local key-value store (in-memory when unset)",
    )
    docstore_url: str = Field(default_factory=get_docstore_url, validation_alias="ROSTER_DOCSTORE_URL")
    database_url: str = Field(
        default_factory=get_database_url,
        validation_alias="ROSTER_DATABASE_URL",
    )
    remote_base_url: str = Field(
        default="http://localhost:8000/api/storage",
        validation_alias="ROSTER_REMOTE_BASE_URL",
    )
    remote_timeout_s: float = Field(default=10.0, validation_alias="ROSTER_REMOTE_TIMEOUT_S")
    storage_namespace: str = Field(default="db:", validation_alias="ROSTER_STORAGE_NAMESPACE")
    log_level: str = Field(default="INFO", validation_alias="ROSTER_LOG_LEVEL")
    log_file: str | None = Field(default=None, validation_alias="ROSTER_LOG_FILE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ROSTER_",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid ROSTER_LOG_LEVEL '{value}'. Valid levels are: {', '.join(valid_levels)}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, value: str) -> str:
        """Unknown backends fall back to the key-value store."""
        lower_value = value.strip().lower()
        if lower_value not in BACKEND_CHOICES:
            logger.warning(f"Unknown ROSTER_STORAGE_BACKEND '{value}'. Valid backends are: {', '.join(sorted(BACKEND_CHOICES))}. Defaulting to keyvalue.")
            return "keyvalue"
        return lower_value

    @field_validator("bootstrap_timeout_s")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            logger.warning(f"ROSTER_BOOTSTRAP_TIMEOUT_S must be positive, got {value}. Defaulting to 2.5.")
            return 2.5
        return value


settings = Settings()
