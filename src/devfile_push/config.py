"""Configuration and environment for devfile-push."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Push settings loaded from environment and .env."""

    model_config = SettingsConfigDict(
        env_prefix="DEVFILE_PUSH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Kubernetes
    kubeconfig: Path | None = Field(
        default=None,
        description="Path to kubeconfig; uses KUBECONFIG env or default location if unset",
    )
    context: str | None = Field(default=None, description="Kubernetes context to use")
    namespace: str = Field(default="default", description="Namespace the component is pushed to")
    app: str = Field(default="app", description="Application the component belongs to")

    # Supervisord bootstrap
    supervisord_image: str = Field(
        default="registry.access.redhat.com/ocp-tools-4/odo-init-container-rhel8:1.1.11",
        description="Image of the init container that installs the supervisord binary",
    )

    # Waits
    pod_wait_timeout: int = Field(
        default=240,
        ge=1,
        description="Seconds to wait for the component pod to reach the Running phase",
    )
    rollout_timeout: int = Field(
        default=300,
        ge=1,
        description="Seconds to wait for the deployment rollout to complete",
    )
    supervisor_wait_seconds: float = Field(
        default=1.0,
        gt=0.0,
        description="Budget for the supervised program to reach RUNNING after commands ran",
    )
    supervisor_poll_interval: float = Field(
        default=0.25,
        gt=0.0,
        description="Interval between supervisord status polls",
    )
    log_tail_lines: int = Field(
        default=20,
        ge=1,
        description="Log lines shown when the supervised program is not running",
    )

    # Local state
    state_dir: Path = Field(
        default=Path(".devfile-push"),
        description="Directory for local env info (run mode) and the sync index",
    )


def get_settings() -> Settings:
    """Return validated settings instance."""
    return Settings()
