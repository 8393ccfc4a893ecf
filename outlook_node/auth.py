"""Bearer-token acquisition for Microsoft Graph."""

from __future__ import annotations

import logging
from pathlib import Path

import msal

from .config import Settings

logger = logging.getLogger(__name__)


class TokenProvider:
    """Hand out Graph access tokens according to ``GRAPH_AUTH_MODE``."""

    GRAPH_SCOPE = ["https://graph.microsoft.com/.default"]

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.auth_mode = settings.graph_auth_mode
        self.scopes = settings.graph_scopes
        self._token_cache = None
        self.app = None

        if self.auth_mode == "client_credentials":
            self.app = msal.ConfidentialClientApplication(
                client_id=settings.graph_client_id,
                client_credential=settings.graph_client_secret,
                authority=settings.authority_url,
            )
        elif self.auth_mode == "device_code":
            token_cache = msal.SerializableTokenCache()
            cache_path = settings.graph_token_cache
            if cache_path.exists():
                token_cache.deserialize(cache_path.read_text())
            self._token_cache = token_cache
            self.app = msal.PublicClientApplication(
                client_id=settings.graph_client_id,
                authority=settings.authority_url,
                token_cache=token_cache,
            )

    def __call__(self) -> str:
        return self.acquire_token()

    def acquire_token(self) -> str:
        if self.auth_mode == "access_token":
            return self.settings.graph_access_token
        if self.auth_mode == "client_credentials":
            return self._acquire_token_client_credentials()
        return self._acquire_token_device_flow()

    def _acquire_token_client_credentials(self) -> str:
        result = self.app.acquire_token_silent(self.GRAPH_SCOPE, account=None)
        if not result:
            result = self.app.acquire_token_for_client(scopes=self.GRAPH_SCOPE)
        if "access_token" not in result:
            raise RuntimeError(f"Unable to obtain Graph token: {result.get('error_description')}")
        return result["access_token"]

    def _acquire_token_device_flow(self) -> str:
        accounts = self.app.get_accounts()
        result = None
        if accounts:
            result = self.app.acquire_token_silent(self.scopes, account=accounts[0])
        if not result:
            flow = self.app.initiate_device_flow(scopes=self.scopes)
            if "user_code" not in flow:
                raise RuntimeError(f"Unable to start device code flow: {flow}")
            logger.info(flow.get("message"))
            result = self.app.acquire_token_by_device_flow(flow)
        if "access_token" not in result:
            raise RuntimeError(f"Unable to obtain Graph token: {result.get('error_description')}")
        self._persist_token_cache()
        return result["access_token"]

    def _persist_token_cache(self) -> None:
        if not self._token_cache or not self._token_cache.has_state_changed:
            return
        cache_path: Path = self.settings.graph_token_cache
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(self._token_cache.serialize())
