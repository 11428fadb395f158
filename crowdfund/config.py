from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Strip trailing slashes so URL joins stay predictable."""

        super().model_post_init(__context)

        for name in ("trails_base_url", "public_url", "explorer_base_url"):
            value = getattr(self, name)
            if value.endswith("/"):
                object.__setattr__(self, name, value.rstrip("/"))

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="auto", description="Log renderer: auto, json or console")

    # Trails workflow API
    trails_base_url: str = Field(
        default="https://trails-api.herd.eco/v1",
        description="Base URL of the hosted Trails workflow API",
    )
    trail_id: str = Field(
        default="0198c2e0-a2d8-76d3-bfe1-3c9191ebd378",
        description="Trail identifier for the crowdfund flow",
    )
    trail_version_id: str = Field(
        default="0198c2e0-a2e1-79cb-9c8f-1ea675b21ce7",
        description="Pinned trail version",
    )
    trail_app_id: str = Field(
        default="0198c2df-d48c-7f25-aae1-873d55126415",
        description="Sent as the Herd-Trail-App-Id header on every request",
        validation_alias=AliasChoices("trail_app_id", "TRAIL_APP_ID", "HERD_TRAIL_APP_ID"),
    )
    request_timeout_seconds: int = Field(default=30, description="Request timeout")

    # Chain / wallet
    target_chain_id: int = Field(default=8453, description="Chain every transaction must be sent on")
    target_chain_name: str = Field(default="Base", description="Human name of the target chain")
    wallet_rpc_url: str = Field(
        default="http://127.0.0.1:8545",
        description="JSON-RPC endpoint of the signing wallet used by the CLI",
    )
    receipt_timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="Max seconds to wait for a transaction receipt before giving up",
    )
    receipt_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Delay between receipt polls",
    )
    explorer_base_url: str = Field(
        default="https://herd.eco/base/tx",
        description="Explorer prefix for transaction links",
    )

    # Background refresh
    refresh_scheduler_enabled: bool = Field(
        default=True,
        description="Start the periodic feed/stats refresh alongside FastAPI",
    )
    feed_refresh_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Community feed refresh interval",
    )
    stats_refresh_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Step statistics refresh interval",
    )

    # Farcaster mini-app
    public_url: str = Field(
        default="http://localhost:3000",
        description="Public origin of the mini-app, used in the manifest",
        validation_alias=AliasChoices("public_url", "PUBLIC_URL", "NEXT_PUBLIC_URL"),
    )
    hosted_manifest_url: str = Field(
        default="https://api.farcaster.xyz/miniapps/hosted-manifest/0198c3e4-94b4-265d-4302-f25ff2e209fd",
        description="Farcaster-hosted manifest that /.well-known/farcaster.json redirects to",
    )

    def explorer_url(self, tx_hash: str) -> str:
        return f"{self.explorer_base_url}/{tx_hash}"


# Global settings instance
settings = Settings()
