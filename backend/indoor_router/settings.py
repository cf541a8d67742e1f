from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _running_in_docker() -> bool:
    """Best-effort check for container execution.

    Used only to pick sensible defaults. Environment variables always win.
    """
    return Path("/.dockerenv").exists() or os.environ.get("RUNNING_IN_DOCKER") == "1"


def _default_out_dir() -> str:
    # Keep route records and logs in backend/out when running outside docker.
    if _running_in_docker():
        return "/app/out"
    return str(Path(__file__).resolve().parents[1] / "out")


class Settings(BaseSettings):
    """Validated settings (env-driven) for the indoor routing service."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" (docker compose) and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Seed file for the in-memory graph store (maps, nodes, edges, positions).
    indoor_graph_asset_path: str = Field(default="", alias="INDOOR_GRAPH_ASSET_PATH")

    # Metres per second; indoor walking pace.
    average_walking_speed_mps: float = Field(default=1.4, gt=0.0, le=20.0, alias="AVERAGE_WALKING_SPEED_MPS")

    route_search_timeout_s: float = Field(default=5.0, gt=0.0, le=300.0, alias="ROUTE_SEARCH_TIMEOUT_S")
    route_search_max_state_budget: int = Field(
        default=2_000_000,
        ge=1,
        alias="ROUTE_SEARCH_MAX_STATE_BUDGET",
    )
    nearest_node_default_radius_m: float = Field(
        default=100.0,
        gt=0.0,
        le=10_000.0,
        alias="NEAREST_NODE_DEFAULT_RADIUS_M",
    )

    route_store_max_entries: int = Field(default=5000, ge=1, alias="ROUTE_STORE_MAX_ENTRIES")
    route_store_persist: bool = Field(default=False, alias="ROUTE_STORE_PERSIST")

    rbac_enabled: bool = Field(default=False, alias="RBAC_ENABLED")
    rbac_admin_token: str = Field(default="", alias="RBAC_ADMIN_TOKEN")
    rbac_responder_token: str = Field(default="", alias="RBAC_RESPONDER_TOKEN")

    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return str(value or "INFO").strip().upper() or "INFO"

    @property
    def cors_origins(self) -> list[str]:
        raw = str(self.cors_allow_origins or "").strip()
        if not raw:
            return []
        return [item.strip() for item in raw.split(",") if item.strip()]


settings = Settings()
