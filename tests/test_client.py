"""Tests for the signing client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from itemgate.client import ItemClient, ItemClientError, sign_request
from itemgate.common.auth import SignatureVerifier
from itemgate.common.hmac import SignatureScheme
from itemgate.common.settings import Settings

from conftest import GET_SIGNATURE, GET_SIGNATURE_HEX_BASE64, POST_WIDGET_SIGNATURE


def _mock_response(status: int, payload):
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=None)
    return response


class TestSignRequest:
    """Tests for header construction."""

    def test_get_fixture(self, credentials):
        signed = sign_request(credentials, "GET", "/items", "1700000000")
        assert signed.headers == {
            "access_key": "k1",
            "access_sign": GET_SIGNATURE,
            "access_timestamp": "1700000000",
        }
        assert signed.body is None
        assert signed.canonical == "GET/items1700000000"

    def test_get_ignores_body(self, credentials):
        signed = sign_request(credentials, "GET", "/items", "1700000000", {"name": "x"})
        assert signed.headers["access_sign"] == GET_SIGNATURE
        assert signed.body is None

    def test_post_fixture(self, credentials):
        signed = sign_request(credentials, "post", "/items", "1700000000", {"name": "widget"})
        assert signed.headers["access_sign"] == POST_WIDGET_SIGNATURE
        assert signed.headers["Content-Type"] == "application/json"
        assert signed.body == b'{"name":"widget"}'

    def test_hex_base64(self, credentials):
        signed = sign_request(
            credentials,
            "GET",
            "/items",
            "1700000000",
            scheme=SignatureScheme.HEX_BASE64,
        )
        assert signed.headers["access_sign"] == GET_SIGNATURE_HEX_BASE64

    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE"])
    @pytest.mark.parametrize("scheme", list(SignatureScheme))
    def test_verifier_accepts_client_signature(self, credentials, method, scheme):
        """Signing and verification are inverse under the same key."""
        body = {"name": "widget", "tags": ["a", "b"]} if method in {"POST", "PUT"} else None
        signed = sign_request(credentials, method, "/items", "123", body, scheme=scheme)
        verifier = SignatureVerifier(credentials=credentials, path="/items", scheme=scheme)
        parsed = json.loads(signed.body) if signed.body else None
        assert verifier.verify(method, signed.headers, parsed) is None

    def test_custom_header_names(self, credentials):
        signed = sign_request(
            credentials,
            "GET",
            "/items",
            "1",
            key_header="x-key",
            signature_header="x-sig",
            timestamp_header="x-ts",
        )
        assert set(signed.headers) == {"x-key", "x-sig", "x-ts"}


class TestItemClient:
    """Tests for ItemClient HTTP calls."""

    @pytest.fixture
    def item_client(self, settings):
        return ItemClient(settings, base_url="http://items.test")

    @pytest.mark.asyncio
    async def test_list_items_signed(self, item_client, credentials):
        async with item_client:
            with patch.object(item_client._ensure_session(), "request") as mock_request:
                mock_request.return_value = _mock_response(200, [{"id": 1, "name": "a"}])

                result = await item_client.list_items()

        assert result == [{"id": 1, "name": "a"}]
        args, kwargs = mock_request.call_args
        assert args == ("GET", "http://items.test/items")
        assert kwargs["data"] is None
        verifier = SignatureVerifier(credentials=credentials, path="/items")
        assert verifier.verify("GET", kwargs["headers"]) is None

    @pytest.mark.asyncio
    async def test_update_item_signs_body(self, item_client, credentials):
        async with item_client:
            with patch.object(item_client._ensure_session(), "request") as mock_request:
                mock_request.return_value = _mock_response(200, {"id": 2, "name": "b"})

                await item_client.update_item(2, "b")

        args, kwargs = mock_request.call_args
        assert args == ("PUT", "http://items.test/items/2")
        assert kwargs["data"] == b'{"name":"b"}'
        verifier = SignatureVerifier(credentials=credentials, path="/items")
        assert verifier.verify("PUT", kwargs["headers"], {"name": "b"}) is None

    @pytest.mark.asyncio
    async def test_error_status_raises(self, item_client):
        async with item_client:
            with patch.object(item_client._ensure_session(), "request") as mock_request:
                mock_request.return_value = _mock_response(401, {"message": "Signature Failure"})

                with pytest.raises(ItemClientError) as exc_info:
                    await item_client.get_item(1)

        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == "Signature Failure"

    @pytest.mark.asyncio
    async def test_non_json_error(self, item_client):
        async with item_client:
            with patch.object(item_client._ensure_session(), "request") as mock_request:
                response = _mock_response(404, None)
                response.json = AsyncMock(side_effect=ValueError("not json"))
                mock_request.return_value = response

                with pytest.raises(ItemClientError) as exc_info:
                    await item_client.delete_item(7)

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "HTTP 404"

    @pytest.mark.asyncio
    async def test_connection_error(self, item_client):
        async with item_client:
            with patch.object(item_client._ensure_session(), "request") as mock_request:
                mock_request.side_effect = aiohttp.ClientConnectionError("refused")

                with pytest.raises(ItemClientError) as exc_info:
                    await item_client.create_item("widget")

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_trailing_slash_protected_path(self):
        settings = Settings(api_key="k1", secret="s3cr3t", protected_path="/items/")
        async with ItemClient(settings, base_url="http://items.test") as item_client:
            with patch.object(item_client._ensure_session(), "request") as mock_request:
                mock_request.return_value = _mock_response(200, {"id": 1, "name": "a"})

                await item_client.get_item(1)

        args, kwargs = mock_request.call_args
        assert args == ("GET", "http://items.test/items/1")
        verifier = SignatureVerifier.from_settings(settings)
        assert verifier.verify("GET", kwargs["headers"]) is None
