"""Outlook node: run one (resource, operation) pair over a batch of items."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .attachments import AttachmentTransfer
from .errors import NodeOperationError, OutlookNodeError
from .graph_client import GraphClient
from .messages import binary_to_attachments, create_message, download_attachments, make_recipient
from .models import Item, ItemResult, NodeParameters
from .utils import guess_mime_type, split_comma_list

logger = logging.getLogger(__name__)

RESOURCE_OPERATIONS: Dict[str, Tuple[str, ...]] = {
    "draft": ("create", "delete", "get", "send", "update"),
    "message": ("delete", "get", "getAll", "getMime", "move", "reply", "send", "update"),
    "messageAttachment": ("add", "download", "get", "getAll"),
    "folder": ("create", "delete", "get", "getAll", "getChildren", "update"),
    "folderMessage": ("getAll",),
}

# These replace each input item with an enriched copy instead of accumulating results.
IN_PLACE_OPERATIONS = frozenset({("message", "getMime"), ("messageAttachment", "download")})

ATTACHMENT_DEFAULT_SELECT = "id,lastModifiedDateTime,name,contentType,size,isInline"
DEFAULT_LIMIT = 10

HandlerResult = Union[Item, List[Item]]
Handler = Callable[["OutlookNode", int, Item, NodeParameters], HandlerResult]
ParameterInput = Union[NodeParameters, Mapping[str, Any], Sequence[Mapping[str, Any]], None]


def json_items(data: Any) -> List[Item]:
    """Wrap a JSON object or array of objects as output items."""
    if data is None:
        return []
    if isinstance(data, list):
        return [Item(json=entry) for entry in data]
    return [Item(json=data)]


def build_query(additional: Mapping[str, Any], *, default_select: str | None = None, with_filter: bool = True) -> Dict[str, Any]:
    qs: Dict[str, Any] = {}
    if default_select:
        qs["$select"] = default_select
    if additional.get("fields"):
        qs["$select"] = additional["fields"]
    if with_filter and additional.get("filter"):
        qs["$filter"] = additional["filter"]
    return qs


class OutlookNode:
    """Dispatch items to Outlook handlers, isolating per-item failures on request."""

    def __init__(
        self,
        client: GraphClient,
        transfer: Optional[AttachmentTransfer] = None,
        continue_on_fail: bool = False,
    ) -> None:
        self.client = client
        self.transfer = transfer or AttachmentTransfer(client)
        self.continue_on_fail = continue_on_fail

    def execute(
        self,
        resource: str,
        operation: str,
        items: Sequence[Item],
        parameters: ParameterInput = None,
    ) -> List[Item]:
        """Run ``resource.operation`` over ``items`` in order and return the output items.

        Accumulating operations return every produced item tagged with the
        index of the input it came from. ``message.getMime`` and
        ``messageAttachment.download`` return the input batch position for
        position, each item replaced by a copy carrying the new binary.
        """
        handler = self._resolve(resource, operation)
        params = parameters if isinstance(parameters, NodeParameters) else NodeParameters(parameters)
        logger.info("Running %s.%s over %s item(s)", resource, operation, len(items))

        if (resource, operation) in IN_PLACE_OPERATIONS:
            return self._execute_in_place(handler, items, params)
        return self._execute_accumulating(handler, items, params)

    def list_categories(self) -> List[Dict[str, str]]:
        """Master categories as ``{name, value}`` options."""
        categories = self.client.request_all_items("value", "GET", "/outlook/masterCategories")
        return [{"name": category["displayName"], "value": category["id"]} for category in categories]

    def _resolve(self, resource: str, operation: str) -> Handler:
        handler = HANDLERS.get((resource, operation))
        if handler is None:
            raise NodeOperationError(f'The operation "{operation}" is not known for resource "{resource}"')
        return handler

    def _run(self, handler: Handler, index: int, item: Item, params: NodeParameters) -> ItemResult:
        try:
            produced = handler(self, index, item, params)
        except Exception as exc:
            if isinstance(exc, OutlookNodeError) and exc.item_index is None:
                exc.item_index = index
            return ItemResult.failure(index, exc)
        if isinstance(produced, Item):
            produced = [produced]
        return ItemResult.success(index, produced)

    def _check_failure(self, result: ItemResult) -> str:
        """Re-raise unless failures are isolated; return the message to record."""
        if not self.continue_on_fail:
            raise result.error
        message = str(result.error)
        logger.warning("Item %s failed, continuing: %s", result.index, message)
        return message

    def _execute_accumulating(self, handler: Handler, items: Sequence[Item], params: NodeParameters) -> List[Item]:
        output: List[Item] = []
        for index, item in enumerate(items):
            result = self._run(handler, index, item, params)
            if not result.ok:
                output.append(Item(json={"error": self._check_failure(result)}, paired_item=index))
                continue
            for produced in result.items:
                produced.paired_item = index
                output.append(produced)
        return output

    def _execute_in_place(self, handler: Handler, items: Sequence[Item], params: NodeParameters) -> List[Item]:
        output = list(items)
        for index, item in enumerate(items):
            result = self._run(handler, index, item, params)
            if not result.ok:
                derived = item.with_error(self._check_failure(result))
            else:
                derived = result.items[0]
            derived.paired_item = index
            output[index] = derived
        return output

    def _list(self, endpoint: str, index: int, params: NodeParameters, qs: Dict[str, Any]) -> List[Dict[str, Any]]:
        if params.get("returnAll", index, False):
            return self.client.request_all_items("value", "GET", endpoint, qs=qs)
        qs["$top"] = params.get("limit", index, DEFAULT_LIMIT)
        return self.client.request("GET", endpoint, qs=qs).get("value", [])

    # Drafts and messages

    def _message_delete(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        self.client.request("DELETE", f"/messages/{message_id}")
        return json_items({"success": True})

    def _message_get(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        additional = params.get("additionalFields", index, {})
        data = self.client.request("GET", f"/messages/{message_id}", qs=build_query(additional))
        prefix = additional.get("dataPropertyAttachmentsPrefixName")
        if prefix:
            return download_attachments(self.client, data, prefix)
        return json_items(data)

    def _message_update(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        body = create_message(params.get("updateFields", index, {}))
        return json_items(self.client.request("PATCH", f"/messages/{message_id}", body))

    def _draft_create(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        fields = dict(params.get("additionalFields", index, {}))
        fields["subject"] = params.get("subject", index)
        fields["bodyContent"] = params.get("bodyContent", index, "") or " "
        attachments = fields.pop("attachments", None)

        body = create_message(fields)
        if attachments:
            body["attachments"] = binary_to_attachments(attachments.get("attachments", []), item)

        return json_items(self.client.request("POST", "/messages", body))

    def _draft_send(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        additional = params.get("additionalFields", index, {})

        recipients = split_comma_list(additional.get("recipients"))
        if recipients:
            self.client.request(
                "PATCH",
                f"/messages/{message_id}",
                {"toRecipients": [make_recipient(address) for address in recipients]},
            )

        self.client.request("POST", f"/messages/{message_id}/send")
        return json_items({"success": True})

    def _message_reply(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        reply_type = params.get("replyType", index, "reply")
        send = params.get("send", index, False)
        fields = dict(params.get("additionalFields", index, {}))
        attachments = fields.pop("attachments", None)

        body: Dict[str, Any] = {"comment": params.get("comment", index, "")}
        if reply_type == "replyAll":
            action = "createReplyAll"
        else:
            action = "createReply"
            body["message"] = create_message(fields)

        reply = self.client.request("POST", f"/messages/{message_id}/{action}", body)

        if attachments:
            for attachment in binary_to_attachments(attachments.get("attachments", []), item):
                self.client.request("POST", f"/messages/{reply['id']}/attachments", attachment)

        if send:
            self.client.request("POST", f"/messages/{reply['id']}/send")

        return json_items(reply)

    def _message_get_mime(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        property_name = params.get("binaryPropertyName", index, "data")
        return item.with_binary(property_name, self.transfer.get_mime(message_id))

    def _message_get_all(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        additional = params.get("additionalFields", index, {})
        data = self._list("/messages", index, params, build_query(additional))
        prefix = additional.get("dataPropertyAttachmentsPrefixName")
        if prefix:
            return download_attachments(self.client, data, prefix)
        return json_items(data)

    def _message_move(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        destination_id = params.get("folderId", index)
        self.client.request("POST", f"/messages/{message_id}/move", {"destinationId": destination_id})
        return json_items({"success": True})

    def _message_send(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        fields = dict(params.get("additionalFields", index, {}))
        fields["subject"] = params.get("subject", index)
        fields["bodyContent"] = params.get("bodyContent", index, "") or " "
        fields["toRecipients"] = params.get("toRecipients", index)
        save_to_sent_items = fields.pop("saveToSentItems", True)
        attachments = fields.pop("attachments", None)

        message = create_message(fields)
        if attachments:
            message["attachments"] = binary_to_attachments(attachments.get("attachments", []), item)

        self.client.request("POST", "/sendMail", {"message": message, "saveToSentItems": save_to_sent_items})
        return json_items({"success": True})

    # Message attachments

    def _attachment_add(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        property_name = params.get("binaryPropertyName", index, "data")
        additional = params.get("additionalFields", index, {})

        if not item.binary:
            raise NodeOperationError("No binary data exists on item!", item_index=index)
        binary = item.binary.get(property_name)
        if binary is None:
            raise NodeOperationError(
                f'Item has no binary property called "{property_name}"', item_index=index
            )

        file_name = additional.get("fileName") or binary.file_name
        if not file_name:
            raise NodeOperationError(
                'File name is not set. It has either to be set via "Additional Fields" '
                "or has to be set on the binary property!",
                item_index=index,
            )

        content_type = binary.mime_type or guess_mime_type(file_name)
        self.transfer.add(message_id, file_name, binary.data, content_type)
        return json_items({"success": True})

    def _attachment_download(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        attachment_id = params.get("attachmentId", index)
        property_name = params.get("binaryPropertyName", index, "data")
        return item.with_binary(property_name, self.transfer.download(message_id, attachment_id))

    def _attachment_get(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        attachment_id = params.get("attachmentId", index)
        additional = params.get("additionalFields", index, {})
        qs = build_query(additional, default_select=ATTACHMENT_DEFAULT_SELECT, with_filter=False)
        return json_items(
            self.client.request("GET", f"/messages/{message_id}/attachments/{attachment_id}", qs=qs)
        )

    def _attachment_get_all(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        message_id = params.get("messageId", index)
        additional = params.get("additionalFields", index, {})
        qs = build_query(additional, default_select=ATTACHMENT_DEFAULT_SELECT)
        return json_items(self._list(f"/messages/{message_id}/attachments", index, params, qs))

    # Folders

    def _folder_create(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        body: Dict[str, Any] = {"displayName": params.get("displayName", index)}
        endpoint = "/mailFolders"

        if params.get("folderType", index, "folder") == "searchFolder":
            endpoint = "/mailFolders/searchfolders/childFolders"
            body.update(
                {
                    "@odata.type": "microsoft.graph.mailSearchFolder",
                    "includeNestedFolders": params.get("includeNestedFolders", index, False),
                    "sourceFolderIds": split_comma_list(params.get("sourceFolderIds", index)),
                    "filterQuery": params.get("filterQuery", index),
                }
            )

        return json_items(self.client.request("POST", endpoint, body))

    def _folder_delete(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        folder_id = params.get("folderId", index)
        self.client.request("DELETE", f"/mailFolders/{folder_id}")
        return json_items({"success": True})

    def _folder_get(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        folder_id = params.get("folderId", index)
        qs = build_query(params.get("additionalFields", index, {}))
        return json_items(self.client.request("GET", f"/mailFolders/{folder_id}", qs=qs))

    def _folder_get_all(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        qs = build_query(params.get("additionalFields", index, {}))
        return json_items(self._list("/mailFolders", index, params, qs))

    def _folder_get_children(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        folder_id = params.get("folderId", index)
        qs = build_query(params.get("additionalFields", index, {}))
        return json_items(self._list(f"/mailFolders/{folder_id}/childFolders", index, params, qs))

    def _folder_update(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        folder_id = params.get("folderId", index)
        body = dict(params.get("updateFields", index, {}))
        return json_items(self.client.request("PATCH", f"/mailFolders/{folder_id}", body))

    def _folder_message_get_all(self, index: int, item: Item, params: NodeParameters) -> HandlerResult:
        folder_id = params.get("folderId", index)
        qs = build_query(params.get("additionalFields", index, {}))
        return json_items(self._list(f"/mailFolders/{folder_id}/messages", index, params, qs))


HANDLERS: Dict[Tuple[str, str], Handler] = {
    ("draft", "create"): OutlookNode._draft_create,
    ("draft", "delete"): OutlookNode._message_delete,
    ("draft", "get"): OutlookNode._message_get,
    ("draft", "send"): OutlookNode._draft_send,
    ("draft", "update"): OutlookNode._message_update,
    ("message", "delete"): OutlookNode._message_delete,
    ("message", "get"): OutlookNode._message_get,
    ("message", "getAll"): OutlookNode._message_get_all,
    ("message", "getMime"): OutlookNode._message_get_mime,
    ("message", "move"): OutlookNode._message_move,
    ("message", "reply"): OutlookNode._message_reply,
    ("message", "send"): OutlookNode._message_send,
    ("message", "update"): OutlookNode._message_update,
    ("messageAttachment", "add"): OutlookNode._attachment_add,
    ("messageAttachment", "download"): OutlookNode._attachment_download,
    ("messageAttachment", "get"): OutlookNode._attachment_get,
    ("messageAttachment", "getAll"): OutlookNode._attachment_get_all,
    ("folder", "create"): OutlookNode._folder_create,
    ("folder", "delete"): OutlookNode._folder_delete,
    ("folder", "get"): OutlookNode._folder_get,
    ("folder", "getAll"): OutlookNode._folder_get_all,
    ("folder", "getChildren"): OutlookNode._folder_get_children,
    ("folder", "update"): OutlookNode._folder_update,
    ("folderMessage", "getAll"): OutlookNode._folder_message_get_all,
}


def _verify_handlers() -> None:
    declared = {(resource, operation) for resource, operations in RESOURCE_OPERATIONS.items() for operation in operations}
    missing = declared - HANDLERS.keys()
    unexpected = HANDLERS.keys() - declared
    if missing or unexpected:
        raise RuntimeError(
            f"Outlook handler table out of sync: missing={sorted(missing)} unexpected={sorted(unexpected)}"
        )


_verify_handlers()
