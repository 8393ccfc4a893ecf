"""Microsoft Graph helper: authenticated requests, pagination and upload-session PUTs."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import requests
from requests import Response

from .auth import TokenProvider
from .config import Settings
from .errors import NodeApiError

logger = logging.getLogger(__name__)


class GraphClient:
    """Thin wrapper that signs Graph requests and normalises their failures."""

    def __init__(
        self,
        settings: Settings,
        token_provider: Optional[Callable[[], str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.token_provider = token_provider or TokenProvider(settings)
        self.timeout = settings.graph_timeout

    @property
    def base_url(self) -> str:
        return f"{self.settings.graph_base_url}{self._mailbox_root()}"

    def request(
        self,
        method: str,
        resource: str,
        body: Optional[Dict[str, Any]] = None,
        qs: Optional[Dict[str, Any]] = None,
        *,
        uri: Optional[str] = None,
        raw: bool = False,
    ) -> Any:
        """Call ``{base_url}{resource}`` (or ``uri`` verbatim) and return the decoded JSON.

        With ``raw=True`` the ``requests.Response`` is returned untouched so
        callers can read binary content and headers.
        """
        url = uri or f"{self.base_url}{resource}"
        headers = {"Authorization": f"Bearer {self.token_provider()}"}
        logger.debug("Graph %s %s", method, url)
        response = self._send(
            method,
            url,
            headers=headers,
            params=qs or None,
            json=body or None,
        )
        if raw:
            return response
        return self._decode(response)

    def request_all_items(
        self,
        value_key: str,
        method: str,
        resource: str,
        body: Optional[Dict[str, Any]] = None,
        qs: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Follow ``@odata.nextLink`` until exhausted, concatenating ``value_key`` arrays."""
        params: Optional[Dict[str, Any]] = dict(qs or {})
        params["$top"] = self.settings.graph_page_size
        uri: Optional[str] = None
        records: List[Dict[str, Any]] = []

        while True:
            payload = self.request(method, resource, body, params, uri=uri)
            records.extend(payload.get(value_key) or [])
            uri = payload.get("@odata.nextLink")
            if not uri:
                break
            logger.debug("Following Graph nextLink %s", uri)
            params = None  # the nextLink already carries the query

        return records

    def upload_chunk(self, upload_url: str, chunk: bytes, range_header: str) -> Dict[str, Any]:
        """PUT one slice of an upload session; the session URL is pre-authenticated."""
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(chunk)),
            "Content-Range": range_header,
        }
        response = self._send("PUT", upload_url, headers=headers, data=chunk)
        return self._decode(response)

    def _send(self, method: str, url: str, **kwargs) -> Response:
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("Graph request %s %s could not be sent: %s", method, url, exc)
            raise NodeApiError(f"Request to Microsoft Graph failed: {exc}") from exc
        if response.status_code >= 400:
            logger.error("Graph request failed (%s): %s", response.status_code, response.text)
            raise NodeApiError.from_payload(response.status_code, self._parse_response_body(response))
        return response

    def _decode(self, response: Response) -> Dict[str, Any]:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise NodeApiError(
                "Microsoft Graph returned a malformed response body",
                status_code=response.status_code,
                payload=response.text,
            ) from exc

    @staticmethod
    def _parse_response_body(response: Response) -> dict | str:
        try:
            return response.json()
        except ValueError:
            return response.text

    def _mailbox_root(self) -> str:
        if self.settings.graph_mailbox:
            mailbox = quote(self.settings.graph_mailbox)
            return f"/users/{mailbox}"
        return "/me"
