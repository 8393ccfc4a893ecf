"""Configuration management for the Outlook node."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal, Sequence

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env early so BaseSettings can pick values up seamlessly.
load_dotenv()


def split_list(value: str | Sequence[str] | None, coerce_lower: bool = True) -> list[str]:
    """Turn delimiter-separated strings into cleaned lists."""
    if value is None:
        return []
    if isinstance(value, str):
        items = re.split(r"[;,]", value)
    else:
        items = list(value)
    cleaned: list[str] = []
    for item in items:
        trimmed = item.strip()
        if not trimmed:
            continue
        cleaned.append(trimmed.lower() if coerce_lower else trimmed)
    return cleaned


class Settings(BaseSettings):
    """Node configuration derived from environment variables."""

    graph_tenant_id: str | None = Field(None, alias="GRAPH_TENANT_ID")
    graph_client_id: str | None = Field(None, alias="GRAPH_CLIENT_ID")
    graph_client_secret: str | None = Field(None, alias="GRAPH_CLIENT_SECRET")
    graph_mailbox: str | None = Field(None, alias="GRAPH_MAILBOX")
    graph_auth_mode: Literal["client_credentials", "device_code", "access_token"] = Field(
        "device_code", alias="GRAPH_AUTH_MODE"
    )
    graph_authority: str | None = Field(None, alias="GRAPH_AUTHORITY")
    graph_scopes_raw: str = Field("Mail.ReadWrite;Mail.Send", alias="GRAPH_SCOPES")
    graph_access_token: str | None = Field(None, alias="GRAPH_ACCESS_TOKEN")
    graph_token_cache: Path = Field(Path("data/msal_token_cache.bin"), alias="GRAPH_TOKEN_CACHE")
    graph_base_url: str = Field("https://graph.microsoft.com/v1.0", alias="GRAPH_BASE_URL")
    graph_page_size: int = Field(100, alias="GRAPH_PAGE_SIZE", gt=0)
    graph_timeout: float = Field(60.0, alias="GRAPH_TIMEOUT", gt=0)

    continue_on_fail: bool = Field(False, alias="CONTINUE_ON_FAIL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _validate_authentication(self):
        if self.graph_auth_mode == "access_token":
            if not self.graph_access_token:
                raise ValueError("GRAPH_ACCESS_TOKEN is required for access_token mode.")
            return self
        if not self.graph_client_id:
            raise ValueError(f"GRAPH_CLIENT_ID is required for {self.graph_auth_mode} mode.")
        if self.graph_auth_mode == "client_credentials":
            if not self.graph_client_secret:
                raise ValueError("GRAPH_CLIENT_SECRET is required for client_credentials mode.")
            if not self.graph_mailbox:
                raise ValueError("GRAPH_MAILBOX is required for client_credentials mode.")
            if not (self.graph_tenant_id or self.graph_authority):
                raise ValueError(
                    "GRAPH_TENANT_ID or GRAPH_AUTHORITY must be provided for client_credentials mode."
                )
        return self

    @field_validator(
        "graph_tenant_id",
        "graph_client_id",
        "graph_client_secret",
        "graph_mailbox",
        "graph_authority",
        "graph_access_token",
        mode="before",
    )
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("graph_base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def authority_url(self) -> str:
        if self.graph_authority:
            return self.graph_authority.rstrip("/")
        if self.graph_tenant_id:
            return f"https://login.microsoftonline.com/{self.graph_tenant_id}"
        return "https://login.microsoftonline.com/common"

    @property
    def graph_scopes(self) -> list[str]:
        """Scopes requested for delegated Graph auth."""
        scopes = split_list(self.graph_scopes_raw, coerce_lower=False)
        return scopes or ["Mail.ReadWrite"]
