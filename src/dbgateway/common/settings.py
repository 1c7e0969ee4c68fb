from typing import List, Literal, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables from .env into os.environ
load_dotenv()


DEFAULT_BLOCKED_KEYWORDS = [
    "DROP",
    "TRUNCATE",
    "DELETE",
    "ALTER",
    "GRANT",
    "REVOKE",
    "RENAME",
    "SHUTDOWN",
]


class Settings(BaseSettings):
    """Application configuration settings backed by environment variables."""

    datasource_config_path: str = Field(
        default="configs/datasources.yaml",
        validation_alias="DATASOURCE_CONFIG",
        description="Path to the YAML file declaring the named backends."
    )
    extension_config_path: str = Field(
        default="configs/extensions.yaml",
        validation_alias="EXTENSION_CONFIG",
        description="Path to the YAML file declaring the post-processing extensions."
    )

    fanout_timeout_sec: float = Field(
        default=60,
        validation_alias="FANOUT_TIMEOUT_SEC",
        description=(
            "Wall-clock deadline for one fan-out batch, measured from dispatch. A call that "
            "abandons units returns after at most this plus FANOUT_SHUTDOWN_GRACE_SEC."
        )
    )
    fanout_max_workers: int = Field(
        default=32,
        validation_alias="FANOUT_MAX_WORKERS",
        description="Upper bound of worker threads owned by a single fan-out call."
    )
    fanout_shutdown_grace_sec: float = Field(
        default=5,
        validation_alias="FANOUT_SHUTDOWN_GRACE_SEC",
        description=(
            "Time granted to abandoned units to finish before the call returns; their results "
            "are discarded. Adds to FANOUT_TIMEOUT_SEC in the worst-case latency of a call."
        )
    )
    unresolved_datasource_policy: Literal["report", "omit"] = Field(
        default="report",
        validation_alias="UNRESOLVED_DATASOURCE_POLICY",
        description="Whether unknown datasource names appear as error entries or are skipped."
    )

    sql_security_enabled: bool = Field(
        default=True,
        validation_alias="SQL_SECURITY_ENABLED",
        description="Enables the keyword admission check before execution."
    )
    sql_blocked_keywords: List[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_KEYWORDS),
        validation_alias="SQL_BLOCKED_KEYWORDS",
        description="Keywords (or multi-word phrases) rejected by the admission check."
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(
        default=False,
        validation_alias="LOG_JSON",
        description="Emit structured JSON log lines instead of text."
    )
    environment: Optional[str] = Field(default=None, validation_alias="DBGATEWAY_ENV")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def configure_env(self, env: str) -> None:
        """Loads environment-specific variables and reloads settings."""
        if not env:
            return

        load_dotenv(f".env.{env}", override=True)
        new_settings = Settings()
        self.__dict__.update(new_settings.__dict__)
        self.environment = env


settings = Settings()

# Configure logging during import
from dbgateway.common.logger import configure_logging
configure_logging(level=settings.log_level, json_format=settings.log_json)
