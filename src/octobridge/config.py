"""Bridge configuration using pydantic-settings.

This module defines the BridgeSettings class that reads configuration
from environment variables with the OCTOBRIDGE_ prefix. Everything has a
default except the OAuth client credentials, which are only needed once
a user links an account.

Timeouts are expressed in milliseconds, matching the chat platform's
conventions; the ``*_seconds`` properties convert them for httpx and the
reply registry.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_REPLY_FOOTER = "\n".join(
    [
        "---",
        "Generated by [octobridge](https://github.com/octobridge/octobridge).",
    ]
)

# One hour
DEFAULT_REPLY_TIMEOUT_MS = 60 * 60 * 1000


class BridgeSettings(BaseSettings):
    """Bridge configuration from environment variables.

    All environment variables are prefixed with OCTOBRIDGE_ (e.g.,
    OCTOBRIDGE_APP_ID).
    """

    model_config = SettingsConfigDict(
        env_prefix="OCTOBRIDGE_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Webhook Configuration
    # -------------------------------------------------------------------------
    # Mount path of the GitHub endpoints on the HTTP app
    path: str = "/github"

    # -------------------------------------------------------------------------
    # OAuth Configuration
    # -------------------------------------------------------------------------
    # OAuth App client id and secret used for the token exchange
    app_id: Optional[str] = None
    app_secret: Optional[str] = None

    # Where to send the user after a successful authorization
    redirect: Optional[str] = None

    # -------------------------------------------------------------------------
    # GitHub API Configuration
    # -------------------------------------------------------------------------
    # Timeout applied to every outbound call, None uses the httpx default
    request_timeout: Optional[int] = None

    # -------------------------------------------------------------------------
    # Message Configuration
    # -------------------------------------------------------------------------
    message_prefix: str = "[GitHub] "
    reply_footer: str = DEFAULT_REPLY_FOOTER

    # Prefix that marks a chat reply as an explicit command ("/merge ...")
    command_prefix: str = "/"

    # -------------------------------------------------------------------------
    # Quick-action Configuration
    # -------------------------------------------------------------------------
    # How long a notification accepts quick-action replies
    reply_timeout: int = DEFAULT_REPLY_TIMEOUT_MS

    # Upper bound on remembered notifications
    reply_cache_size: int = 1024

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 8080

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate that the mount path is absolute and has no trailing slash."""
        if not v.startswith("/"):
            raise ValueError("path must start with /")
        return v.rstrip("/") or "/"

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: Optional[int]) -> Optional[int]:
        """Validate that the request timeout is positive when set."""
        if v is not None and v < 1:
            raise ValueError("request_timeout must be at least 1 ms")
        return v

    @field_validator("reply_timeout")
    @classmethod
    def validate_reply_timeout(cls, v: int) -> int:
        """Validate that the reply timeout is positive."""
        if v < 1:
            raise ValueError("reply_timeout must be at least 1 ms")
        return v

    @field_validator("reply_cache_size")
    @classmethod
    def validate_reply_cache_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("reply_cache_size must be at least 1")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @property
    def request_timeout_seconds(self) -> Optional[float]:
        if self.request_timeout is None:
            return None
        return self.request_timeout / 1000

    @property
    def reply_timeout_seconds(self) -> float:
        return self.reply_timeout / 1000


def get_settings() -> BridgeSettings:
    """Create and return a BridgeSettings instance.

    Returns:
        BridgeSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If a value is invalid.
    """
    return BridgeSettings()
