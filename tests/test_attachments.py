"""Tests for the attachment transfer paths."""

import base64
import math

import pytest

from outlook_node.attachments import (
    SMALL_ATTACHMENT_LIMIT,
    UPLOAD_CHUNK_SIZE,
    AttachmentTransfer,
    UploadSession,
)
from outlook_node.errors import NodeApiError

from conftest import make_response

UPLOAD_URL = "https://outlook.office.com/api/v2.0/Users('me')/Messages('AAA')/AttachmentSessions('s1')"


@pytest.fixture
def transfer(mock_client):
    mock_client.request.return_value = {"uploadUrl": UPLOAD_URL}
    return AttachmentTransfer(mock_client)


def uploaded_chunks(mock_client):
    return [(call.args[1], call.args[2]) for call in mock_client.upload_chunk.call_args_list]


class TestPathSelection:
    def test_limit_is_inline(self, transfer, mock_client):
        data = b"x" * SMALL_ATTACHMENT_LIMIT

        transfer.add("AAA", "report.pdf", data, "application/pdf")

        mock_client.request.assert_called_once()
        method, resource, body = mock_client.request.call_args.args
        assert (method, resource) == ("POST", "/messages/AAA/attachments")
        assert body["@odata.type"] == "#microsoft.graph.fileAttachment"
        assert body["name"] == "report.pdf"
        assert body["contentType"] == "application/pdf"
        assert base64.b64decode(body["contentBytes"]) == data
        mock_client.upload_chunk.assert_not_called()

    def test_one_byte_over_limit_uses_upload_session(self, transfer, mock_client):
        data = b"x" * (SMALL_ATTACHMENT_LIMIT + 1)

        transfer.add("AAA", "report.pdf", data)

        method, resource, body = mock_client.request.call_args.args
        assert (method, resource) == ("POST", "/messages/AAA/attachments/createUploadSession")
        assert body == {"AttachmentItem": {"attachmentType": "file", "name": "report.pdf", "size": 3_000_001}}
        assert uploaded_chunks(mock_client) == [(data, "bytes 0-3000000/3000001")]


class TestChunkedUpload:
    def test_nine_megabytes_in_three_ranges(self, transfer, mock_client):
        data = bytes(range(256)) * (9_000_000 // 256) + b"z" * (9_000_000 % 256)

        transfer.add("AAA", "video.mp4", data, "video/mp4")

        chunks = uploaded_chunks(mock_client)
        assert [header for _, header in chunks] == [
            "bytes 0-3999999/9000000",
            "bytes 4000000-7999999/9000000",
            "bytes 8000000-8999999/9000000",
        ]
        assert b"".join(chunk for chunk, _ in chunks) == data
        assert all(call.args[0] == UPLOAD_URL for call in mock_client.upload_chunk.call_args_list)

    @pytest.mark.parametrize("length", [3_000_001, 4_000_000, 8_000_001, 12_000_000])
    def test_chunk_count_and_last_range(self, transfer, mock_client, length):
        data = b"a" * length

        transfer.add("AAA", "big.bin", data)

        chunks = uploaded_chunks(mock_client)
        assert len(chunks) == math.ceil(length / UPLOAD_CHUNK_SIZE)
        assert chunks[-1][1].endswith(f"-{length - 1}/{length}")
        assert sum(len(chunk) for chunk, _ in chunks) == length

    def test_missing_upload_url_is_fatal(self, transfer, mock_client):
        mock_client.request.return_value = {"error": "nope"}

        with pytest.raises(NodeApiError, match="Failed to get upload session") as excinfo:
            transfer.add("AAA", "big.bin", b"a" * 3_500_000)

        assert excinfo.value.payload == {"error": "nope"}
        mock_client.upload_chunk.assert_not_called()

    def test_session_tracks_confirmed_bytes(self, mock_client):
        transfer = AttachmentTransfer(mock_client, chunk_size=4)
        session = UploadSession(upload_url=UPLOAD_URL, total_bytes=10)

        transfer.upload(session, b"0123456789")

        assert session.complete
        assert session.bytes_confirmed == 10
        assert [header for _, header in uploaded_chunks(mock_client)] == [
            "bytes 0-3/10",
            "bytes 4-7/10",
            "bytes 8-9/10",
        ]

    def test_chunk_failure_stops_upload(self, transfer, mock_client):
        mock_client.upload_chunk.side_effect = [{}, NodeApiError("range rejected", status_code=416)]

        with pytest.raises(NodeApiError, match="range rejected"):
            transfer.add("AAA", "big.bin", b"a" * 9_000_000)

        assert mock_client.upload_chunk.call_count == 2


class TestDownload:
    def test_get_mime_names_file_after_message(self, mock_client):
        mock_client.request.return_value = make_response(
            content=b"Subject: hi\r\n\r\nbody", headers={"Content-Type": "message/rfc822"}
        )

        binary = AttachmentTransfer(mock_client).get_mime("AAA")

        assert binary.file_name == "AAA.eml"
        assert binary.mime_type == "message/rfc822"
        assert binary.data == b"Subject: hi\r\n\r\nbody"
        mock_client.request.assert_called_once_with("GET", "/messages/AAA/$value", raw=True)

    def test_get_mime_without_content_type_guesses_from_name(self, mock_client):
        mock_client.request.return_value = make_response(content=b"raw")

        binary = AttachmentTransfer(mock_client).get_mime("AAA")

        assert binary.mime_type == "message/rfc822"

    def test_download_reads_metadata_then_value(self, mock_client):
        mock_client.request.side_effect = [
            {"id": "att1", "name": "invoice.pdf", "contentType": "application/pdf"},
            make_response(content=b"%PDF-1.7"),
        ]

        binary = AttachmentTransfer(mock_client).download("AAA", "att1")

        assert binary.file_name == "invoice.pdf"
        assert binary.mime_type == "application/pdf"
        assert binary.file_extension == "pdf"
        assert binary.data == b"%PDF-1.7"
        first, second = mock_client.request.call_args_list
        assert first.args == ("GET", "/messages/AAA/attachments/att1")
        assert first.kwargs == {"qs": {"$select": "id,name,contentType"}}
        assert second.args == ("GET", "/messages/AAA/attachments/att1/$value")
        assert second.kwargs == {"raw": True}
