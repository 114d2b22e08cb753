from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    model_config = SettingsConfigDict(extra="forbid")

    database_url: str
    log_level: str = "info"
    admin_token: str = "dev-admin"
    otel_enabled: bool = True

    # Local dev UI (Vite) runs on :5173
    cors_origins: list[str] = ["http://localhost:5173"]

    # Assistant / search
    max_search_results: int = 20
    max_reply_properties: int = 5
    default_stay_months: int = 6

    # Listing pagination
    default_page_size: int = 20
    max_page_size: int = 100


SETTINGS = ApiSettings()
