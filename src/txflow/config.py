"""Application configuration using pydantic-settings.

All settings can be overridden with ``TXFLOW_``-prefixed environment
variables or a local ``.env`` file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TXFLOW_",
        extra="ignore",
    )

    # ======================
    # Gateway
    # ======================
    gateway_url: str = Field(
        default="http://127.0.0.1:8080/api/v2",
        description="Base URL of the transaction gateway",
    )
    gateway_api_key: str = Field(default="", description="Gateway X-API-Key header value")
    request_timeout: float = Field(default=30.0, description="HTTP request timeout in seconds")

    # ======================
    # Confirmation watching
    # ======================
    use_streaming: bool = Field(
        default=True, description="Watch via server-sent events (falls back to polling)"
    )
    poll_interval: float = Field(default=5.0, description="Seconds between status polls")
    watch_timeout: float = Field(
        default=900.0, description="Seconds to wait for a terminal status before expiring"
    )
    watch_cleanup_delay: float = Field(
        default=60.0, description="Seconds a finished subscription stays cached"
    )

    # ======================
    # Pending transactions
    # ======================
    pending_poll_interval: float = Field(
        default=30.0, description="Seconds between pending list refreshes"
    )
    pending_max_items: int = Field(default=10, description="Maximum pending items kept")

    # ======================
    # Explorer
    # ======================
    explorer_url: Optional[str] = Field(
        default="https://preprod.cardanoscan.io/transaction",
        description="Block explorer transaction URL prefix",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Mock gateway
    # ======================
    mock_host: str = Field(default="127.0.0.1", description="Mock gateway host")
    mock_port: int = Field(default=8080, description="Mock gateway port")
    mock_step_delay: float = Field(
        default=3.0, description="Seconds between mock gateway state advances"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def explorer_link(self, tx_hash: str) -> Optional[str]:
        """Build a block explorer link for a transaction hash."""
        if not self.explorer_url:
            return None
        return f"{self.explorer_url.rstrip('/')}/{tx_hash}"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "gateway": {
                "url": self.gateway_url,
                "api_key": "***" if self.gateway_api_key else "(not set)",
                "timeout": self.request_timeout,
            },
            "watcher": {
                "streaming": self.use_streaming,
                "poll_interval": self.poll_interval,
                "timeout": self.watch_timeout,
                "cleanup_delay": self.watch_cleanup_delay,
            },
            "pending": {
                "poll_interval": self.pending_poll_interval,
                "max_items": self.pending_max_items,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
