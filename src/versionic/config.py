"""
Runtime settings, read from ``VERSIONIC_*`` environment variables or a
``.env`` file in the working directory.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .persistence.store import DeletePolicy, UpdatePolicy
from .service import FieldPolicy


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="VERSIONIC_", env_file=".env", extra="ignore"
    )

    database_url: str = Field(
        "sqlite:///versionic.db", description="SQLAlchemy URL of the catalog database."
    )
    echo_sql: bool = False

    update_policy: UpdatePolicy = UpdatePolicy.REFRESH
    delete_policy: DeletePolicy = DeletePolicy.SOFT
    field_policy: FieldPolicy = FieldPolicy.STRIP

    lock_timeout: float = Field(
        5.0, gt=0, description="Seconds to wait for an identity lock before giving up."
    )
    max_attempts: int = Field(
        3, ge=1, description="Compare-and-swap attempts per update/delete."
    )

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
