"""
Application configuration management.
"""

import logging
from typing import Any
from urllib.parse import quote

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings

from vibedeploy.utils.logging import parse_log_level


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Redis
    redis_addr: str = "localhost:6379"
    redis_password: str = ""

    # Slack
    slack_bot_token: str

    # Deployment
    base_dir: str = "/app/repos"

    # Channels and lists
    redis_pubsub_channel: str = "slack-relay-reaction-added"
    redis_list_name: str = "poppit-commands"
    redis_output_channel: str = "poppit:command-output"
    redis_reaction_list: str = "slack_reactions"

    # Application
    log_level: str = "INFO"
    allowed_repos_config: str = ""  # Empty disables the allowlist

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    @field_validator("*", mode="before")
    @classmethod
    def _empty_means_default(cls, value: Any, info: ValidationInfo) -> Any:
        # An exported but empty variable behaves like an unset one
        if isinstance(value, str) and not value.strip():
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.default
        return value

    @field_validator("slack_bot_token")
    @classmethod
    def _require_slack_token(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("SLACK_BOT_TOKEN environment variable is required")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return logging.getLevelName(parse_log_level(value))

    @property
    def redis_url(self) -> str:
        """Redis connection URL built from address and password."""
        if self.redis_password:
            return f"redis://:{quote(self.redis_password, safe='')}@{self.redis_addr}/0"
        return f"redis://{self.redis_addr}/0"


def load_settings(**overrides: Any) -> Settings:
    """
    Load settings from the environment.

    Called once by the entry point; the result is passed to every
    component that needs configuration.

    Raises:
        pydantic.ValidationError: If SLACK_BOT_TOKEN is missing or empty
    """
    return Settings(**overrides)
