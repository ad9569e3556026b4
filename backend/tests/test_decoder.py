"""Tests for backend response decoding."""

from __future__ import annotations

import json

import pytest

from designscout.gateway.decoder import (
    ResponseShape,
    decode_json,
    decode_response,
    decode_text,
    decode_url,
)


class TestDecodeResponse:
    """Tests for shape recognition."""

    def test_none_is_empty(self) -> None:
        """Test a missing response decodes to nothing."""
        decoded = decode_response(None)
        assert decoded.shape == ResponseShape.EMPTY
        assert decoded.text is None

    def test_plain_string(self) -> None:
        decoded = decode_response("hello")
        assert decoded.shape == ResponseShape.TEXT
        assert decoded.text == "hello"

    def test_content_items(self) -> None:
        """Test text items are joined and non-text items skipped."""
        decoded = decode_response(
            [
                {"type": "text", "text": "first"},
                {"type": "image", "data": "iVBORw0..."},
                {"type": "text", "text": "second"},
            ]
        )
        assert decoded.shape == ResponseShape.CONTENT_ITEMS
        assert decoded.texts == ("first", "second")
        assert decoded.text == "first\nsecond"

    def test_mapping_with_content_list(self) -> None:
        """Test MCP-style results with a content list."""
        decoded = decode_response({"content": [{"type": "text", "text": "ok"}], "isError": False})
        assert decoded.shape == ResponseShape.CONTENT_ITEMS
        assert decoded.text == "ok"

    @pytest.mark.parametrize("key", ["text", "content", "data", "result"])
    def test_mapping_payload_fields(self, key: str) -> None:
        """Test each payload key is recognised."""
        decoded = decode_response({key: "payload"})
        assert decoded.shape == ResponseShape.PAYLOAD_FIELD
        assert decoded.text == "payload"

    def test_payload_key_priority(self) -> None:
        """Test text wins over data when both are present."""
        assert decode_text({"data": "second", "text": "first"}) == "first"

    def test_structured_result(self) -> None:
        decoded = decode_response({"result": {"success": True}})
        assert decoded.shape == ResponseShape.STRUCTURED
        assert decoded.value == {"success": True}

    @pytest.mark.parametrize("raw", [42, [], [{"type": "image"}], {"status": "ok"}])
    def test_unrecognised(self, raw: object) -> None:
        """Test unknown shapes are not guessed at."""
        decoded = decode_response(raw)
        assert decoded.shape == ResponseShape.UNRECOGNISED
        assert decoded.text is None


class TestDecodeUrl:
    """Tests for URL extraction."""

    def test_quoted_url_after_prose(self) -> None:
        raw = [{"type": "text", "text": 'Executed JavaScript:\nwindow.location.href\n\nResult:\n"https://mobbin.com/apps"'}]
        assert decode_url(raw) == "https://mobbin.com/apps"

    def test_bare_url(self) -> None:
        assert decode_url("https://mobbin.com/screens/abc") == "https://mobbin.com/screens/abc"

    def test_no_url(self) -> None:
        """Test text without an absolute URL decodes to None."""
        assert decode_url("Result:\nundefined") is None
        assert decode_url('"/relative/path"') is None
        assert decode_url(None) is None


class TestDecodeJson:
    """Tests for structured value extraction."""

    def test_plain_json_text(self) -> None:
        assert decode_json('[{"text": "Chase"}]') == [{"text": "Chase"}]

    def test_double_encoded_after_result_marker(self) -> None:
        """Test JSON.stringify output wrapped in prose decodes to the value."""
        payload = json.dumps(json.dumps({"success": True}))
        raw = [{"type": "text", "text": f"Executed JavaScript:\n(() => ...)\n\nResult:\n{payload}"}]
        assert decode_json(raw) == {"success": True}

    def test_last_result_marker_wins(self) -> None:
        text = "Result:\nnot json\nResult:\n[1, 2]"
        assert decode_json(text) == [1, 2]

    def test_structured_value_passes_through(self) -> None:
        assert decode_json({"result": [1, 2, 3]}) == [1, 2, 3]

    def test_undecodable(self) -> None:
        """Test undecodable payloads return None instead of raising."""
        assert decode_json("Result:\nundefined") is None
        assert decode_json(None) is None
        assert decode_json({"status": "ok"}) is None
