"""Attachment transfer: inline or chunked uploads, raw attachment and MIME downloads."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import NodeApiError
from .graph_client import GraphClient
from .messages import file_attachment
from .models import BinaryData
from .utils import byte_ranges, content_range

logger = logging.getLogger(__name__)

# Graph refuses inline attachments above 3 MB and upload-session slices above 4 MB.
SMALL_ATTACHMENT_LIMIT = 3_000_000
UPLOAD_CHUNK_SIZE = 4_000_000


@dataclass
class UploadSession:
    """Server-issued upload URL plus local progress bookkeeping."""

    upload_url: str
    total_bytes: int
    bytes_confirmed: int = 0

    @property
    def complete(self) -> bool:
        return self.bytes_confirmed >= self.total_bytes


class AttachmentTransfer:
    """Move attachment bytes between items and Outlook messages."""

    def __init__(
        self,
        client: GraphClient,
        small_limit: int = SMALL_ATTACHMENT_LIMIT,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ) -> None:
        self.client = client
        self.small_limit = small_limit
        self.chunk_size = chunk_size

    def add(self, message_id: str, file_name: str, data: bytes, content_type: Optional[str] = None) -> None:
        """Attach ``data`` to a message, picking the inline or upload-session path by size."""
        if len(data) > self.small_limit:
            session = self.create_upload_session(message_id, file_name, len(data), content_type)
            self.upload(session, data)
            return

        body = file_attachment(file_name, BinaryData(data=data, mime_type=content_type or ""))
        self.client.request("POST", f"/messages/{message_id}/attachments", body)

    def create_upload_session(
        self, message_id: str, file_name: str, size: int, content_type: Optional[str] = None
    ) -> UploadSession:
        item: Dict[str, Any] = {"attachmentType": "file", "name": file_name, "size": size}
        if content_type:
            item["contentType"] = content_type

        response = self.client.request(
            "POST",
            f"/messages/{message_id}/attachments/createUploadSession",
            {"AttachmentItem": item},
        )
        upload_url = response.get("uploadUrl")
        if not upload_url:
            raise NodeApiError("Failed to get upload session", payload=response)

        logger.info("Opened upload session for '%s' (%s bytes) on message %s", file_name, size, message_id)
        return UploadSession(upload_url=upload_url, total_bytes=size)

    def upload(self, session: UploadSession, data: bytes) -> UploadSession:
        """PUT ``data`` to the session in strictly increasing, non-overlapping slices."""
        total = len(data)
        for start, end in byte_ranges(total, self.chunk_size):
            header = content_range(start, end, total)
            logger.debug("Uploading %s", header)
            self.client.upload_chunk(session.upload_url, data[start:end], header)
            session.bytes_confirmed = end
        return session

    def get_mime(self, message_id: str) -> BinaryData:
        """Fetch the RFC 822 form of a message as ``{message_id}.eml``."""
        response = self.client.request("GET", f"/messages/{message_id}/$value", raw=True)
        mime_type = response.headers.get("content-type")
        return BinaryData.prepare(response.content, f"{message_id}.eml", mime_type)

    def download(self, message_id: str, attachment_id: str) -> BinaryData:
        details = self.client.request(
            "GET",
            f"/messages/{message_id}/attachments/{attachment_id}",
            qs={"$select": "id,name,contentType"},
        )
        response = self.client.request(
            "GET",
            f"/messages/{message_id}/attachments/{attachment_id}/$value",
            raw=True,
        )
        return BinaryData.prepare(response.content, details.get("name"), details.get("contentType"))
