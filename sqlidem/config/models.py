"""Pydantic models for sqlidem configuration."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlidem.script.limits import DEFAULT_STACK_LIMIT


class DatabaseConfig(BaseModel):
    """Connection settings of one named database."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., description="SQLAlchemy database URL")
    user: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("user", "username"),
        description="User name; overrides the one in the URL",
    )
    password: Optional[str] = Field(default=None, description="Password; overrides the one in the URL")
    reference_url: Optional[str] = Field(
        default=None, description="URL of the reference database used by !verify"
    )
    explain_prefix: Optional[str] = Field(
        default=None, description="Text prepended to a query by !plan"
    )

    @field_validator("url", "reference_url")
    @classmethod
    def validate_url(cls, v):
        """A database URL needs a dialect, as in ``sqlite:///scott.db``."""
        if v is not None and "://" not in v:
            raise ValueError(f"'{v}' is not a database URL")
        return v


class SQLIdemConfig(BaseModel):
    """Main configuration model for sqlidem."""

    databases: Dict[str, DatabaseConfig] = Field(default_factory=dict)
    variables: Dict[str, Any] = Field(
        default_factory=dict, description="Environment for !if conditions"
    )
    stack_limit: Optional[int] = Field(default=None, ge=1)


class EnvironmentSettings(BaseSettings):
    """Environment-specific settings."""

    model_config = SettingsConfigDict(env_prefix="SQLIDEM_", case_sensitive=False)

    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    config_file: Optional[str] = Field(default=None)
    stack_limit: int = Field(default=DEFAULT_STACK_LIMIT, ge=1)
