"""Exception taxonomy raised by the Outlook node."""

from __future__ import annotations

from typing import Any


class OutlookNodeError(Exception):
    """Base class for every error the node raises on purpose."""

    def __init__(self, message: str, *, item_index: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.item_index = item_index


class NodeOperationError(OutlookNodeError):
    """Invalid input: missing parameters, binary data or file names."""


class NodeApiError(OutlookNodeError):
    """Graph rejected a request, answered with garbage, or could not be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any = None,
        item_index: int | None = None,
    ) -> None:
        super().__init__(message, item_index=item_index)
        self.status_code = status_code
        self.payload = payload

    @classmethod
    def from_payload(cls, status_code: int, payload: Any) -> "NodeApiError":
        """Build an error from a Graph error body (``{"error": {"code", "message"}}``)."""
        message = f"Graph request failed with status {status_code}"
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                code = error.get("code")
                message = f"{error['message']} ({code})" if code else error["message"]
        elif isinstance(payload, str) and payload.strip():
            message = f"{message}: {payload.strip()}"
        return cls(message, status_code=status_code, payload=payload)
