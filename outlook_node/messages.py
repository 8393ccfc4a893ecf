"""Build Graph message payloads and turn messages with attachments into items."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping

from .errors import NodeOperationError
from .graph_client import GraphClient
from .models import BinaryData, Item
from .utils import split_comma_list

logger = logging.getLogger(__name__)

RECIPIENT_LIST_FIELDS = ("bccRecipients", "ccRecipients", "replyTo", "toRecipients")
SINGLE_RECIPIENT_FIELDS = ("from", "sender")


def make_recipient(address: str) -> Dict[str, Any]:
    return {"emailAddress": {"address": address}}


def create_message(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate flat node fields into a Graph ``message`` resource."""
    remaining = dict(fields)
    message: Dict[str, Any] = {}

    content = remaining.pop("bodyContent", None)
    content_type = remaining.pop("bodyContentType", None)
    if content or content_type:
        body: Dict[str, Any] = {}
        if content is not None:
            body["content"] = content
        if content_type is not None:
            body["contentType"] = content_type
        message["body"] = body

    headers = remaining.get("internetMessageHeaders")
    if isinstance(headers, Mapping) and "headers" in headers:
        remaining["internetMessageHeaders"] = headers["headers"]

    for key in RECIPIENT_LIST_FIELDS:
        if remaining.get(key) is not None:
            remaining[key] = [make_recipient(address) for address in split_comma_list(remaining[key])]

    for key in SINGLE_RECIPIENT_FIELDS:
        if remaining.get(key) is not None:
            remaining[key] = make_recipient(remaining[key])

    message.update(remaining)
    return message


def file_attachment(name: str | None, data: BinaryData) -> Dict[str, Any]:
    """Inline ``fileAttachment`` body carrying base64 content."""
    payload: Dict[str, Any] = {
        "@odata.type": "#microsoft.graph.fileAttachment",
        "contentBytes": data.to_base64(),
    }
    if name is not None:
        payload["name"] = name
    if data.mime_type:
        payload["contentType"] = data.mime_type
    return payload


def binary_to_attachments(attachments: Iterable[Mapping[str, Any]], item: Item) -> List[Dict[str, Any]]:
    """Resolve ``{"binaryPropertyName": ...}`` references against an item's binaries."""
    result: List[Dict[str, Any]] = []
    for attachment in attachments:
        if not item.binary:
            raise NodeOperationError("No binary data exists on item!")
        property_name = attachment.get("binaryPropertyName")
        binary = item.binary.get(property_name)
        if binary is None:
            raise NodeOperationError(f'Item has no binary property called "{property_name}"')
        result.append(file_attachment(binary.file_name, binary))
    return result


def download_attachments(
    client: GraphClient, messages: Dict[str, Any] | List[Dict[str, Any]], prefix: str
) -> List[Item]:
    """Return one item per message with its attachments stored as ``{prefix}{index}`` binaries."""
    if isinstance(messages, dict):
        messages = [messages]

    elements: List[Item] = []
    for message in messages:
        element = Item(json=message)
        if message.get("hasAttachments") is True:
            attachments = client.request_all_items(
                "value", "GET", f"/messages/{message['id']}/attachments"
            )
            logger.debug("Downloading %s attachments of message %s", len(attachments), message["id"])
            for index, attachment in enumerate(attachments):
                response = client.request(
                    "GET",
                    f"/messages/{message['id']}/attachments/{attachment['id']}/$value",
                    raw=True,
                )
                element.binary[f"{prefix}{index}"] = BinaryData.prepare(
                    response.content, attachment.get("name"), attachment.get("contentType")
                )
        elements.append(element)
    return elements
