"""Application settings for the room service and its tests."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Typed settings loaded from environment variables or explicit kwargs."""

    insider_app_env: str = "dev"
    insider_app_host: str = "127.0.0.1"
    insider_app_port: int = Field(default=8000, ge=1)
    insider_log_level: str = "INFO"

    insider_jwt_secret: str = Field(min_length=1)

    insider_sqlite_path: str = "insider.db"
    insider_cors_allow_origins: str = "*"
    insider_reset_score_on_join: bool = True

    insider_topic_provider: Literal["static", "chat"] = "static"
    insider_chat_endpoint: str = ""
    insider_chat_model: str = "gpt-4o-mini"
    insider_chat_api_key: str = ""
    insider_chat_timeout_seconds: float = Field(default=15.0, gt=0)

    insider_ws_heartbeat_interval_seconds: float = Field(default=30.0, gt=0)
    insider_ws_pong_timeout_seconds: float = Field(default=10.0, gt=0)

    @model_validator(mode="after")
    def validate_topic_provider(self) -> "Settings":
        """A chat topic provider needs somewhere to send requests."""
        if self.insider_topic_provider == "chat" and not self.insider_chat_endpoint.strip():
            raise ValueError("INSIDER_CHAT_ENDPOINT is required when INSIDER_TOPIC_PROVIDER=chat")
        return self

    @model_validator(mode="after")
    def validate_heartbeat(self) -> "Settings":
        if self.insider_ws_pong_timeout_seconds >= self.insider_ws_heartbeat_interval_seconds:
            raise ValueError(
                "INSIDER_WS_PONG_TIMEOUT_SECONDS must be less than "
                "INSIDER_WS_HEARTBEAT_INTERVAL_SECONDS"
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.insider_cors_allow_origins.split(",") if origin.strip()]


def load_settings() -> Settings:
    """Load settings from process environment."""
    return Settings()
