"""Unit tests for LcdClient."""

import json

import httpx
import pytest
import pytest_asyncio

from feeder.src.ChainClient import (
    BroadcastError,
    ChainClientError,
    TxNotFoundError,
)
from feeder.src.LcdClient import LcdClient


class Node:
    """Mocked LCD answering from a path -> (status, body) table."""

    def __init__(self) -> None:
        self.responses: dict[tuple[str, str], tuple[int, object]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, status: int, payload: object) -> None:
        self.responses[(method, path)] = (status, payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.responses:
            return httpx.Response(404, json={"error": "not found"})
        status, payload = self.responses[key]
        return httpx.Response(status, json=payload)


@pytest.fixture
def node() -> Node:
    return Node()


@pytest_asyncio.fixture
async def lcd(node):
    client = LcdClient("http://lcd.test/", transport=httpx.MockTransport(node.handler))
    yield client
    await client.close()


class TestOracleParams:
    """Test oracle parameter parsing."""

    @pytest.mark.asyncio
    async def test_legacy_envelope(self, node, lcd) -> None:
        node.on(
            "GET",
            "/oracle/parameters",
            200,
            {
                "height": "1000",
                "result": {
                    "vote_period": "5",
                    "whitelist": [
                        {"name": "ukrw", "tobin_tax": "0.002"},
                        {"name": "uusd", "tobin_tax": "0.002"},
                    ],
                },
            },
        )

        params = await lcd.oracle_params()

        assert params.vote_period == 5
        assert params.whitelist == ["ukrw", "uusd"]

    @pytest.mark.asyncio
    async def test_plain_string_whitelist(self, node, lcd) -> None:
        node.on("GET", "/oracle/parameters", 200, {"vote_period": 30, "whitelist": ["ukrw"]})
        params = await lcd.oracle_params()
        assert params.vote_period == 30
        assert params.whitelist == ["ukrw"]

    @pytest.mark.asyncio
    async def test_malformed(self, node, lcd) -> None:
        node.on("GET", "/oracle/parameters", 200, {"height": "1", "result": {}})
        with pytest.raises(ChainClientError, match="oracle parameters"):
            await lcd.oracle_params()

    @pytest.mark.asyncio
    async def test_http_error(self, node, lcd) -> None:
        node.on("GET", "/oracle/parameters", 500, {"error": "internal"})
        with pytest.raises(ChainClientError, match="HTTP 500"):
            await lcd.oracle_params()


class TestLatestHeight:
    @pytest.mark.asyncio
    async def test_parses_height(self, node, lcd) -> None:
        node.on("GET", "/blocks/latest", 200, {"block": {"header": {"height": "12345"}}})
        assert await lcd.latest_height() == 12345


class TestAccountInfo:
    @pytest.mark.asyncio
    async def test_parses_account(self, node, lcd) -> None:
        node.on(
            "GET",
            "/auth/accounts/terra1abc",
            200,
            {
                "height": "10",
                "result": {
                    "type": "core/Account",
                    "value": {"address": "terra1abc", "account_number": "42", "sequence": "7"},
                },
            },
        )
        assert await lcd.account_info("terra1abc") == (42, 7)


class TestBroadcast:
    """Test async broadcasting."""

    @pytest.mark.asyncio
    async def test_returns_txhash(self, node, lcd) -> None:
        node.on("POST", "/txs", 200, {"height": "0", "txhash": "ABCDEF"})

        txhash = await lcd.broadcast_async({"msg": []})

        assert txhash == "ABCDEF"
        sent = json.loads(node.requests[-1].content)
        assert sent == {"tx": {"msg": []}, "mode": "async"}

    @pytest.mark.asyncio
    async def test_non_zero_code(self, node, lcd) -> None:
        node.on("POST", "/txs", 200, {"txhash": "ABCDEF", "code": 4, "raw_log": "unauthorized"})
        with pytest.raises(BroadcastError, match="unauthorized") as exc_info:
            await lcd.broadcast_async({"msg": []})
        assert exc_info.value.code == 4

    @pytest.mark.asyncio
    async def test_http_error(self, node, lcd) -> None:
        node.on("POST", "/txs", 400, {"error": "bad request"})
        with pytest.raises(BroadcastError, match="HTTP 400"):
            await lcd.broadcast_async({"msg": []})

    @pytest.mark.parametrize(
        "payload",
        [["unexpected"], {"txhash": "ABCDEF", "code": "oops"}],
    )
    @pytest.mark.asyncio
    async def test_malformed_response(self, node, lcd, payload) -> None:
        """Unparseable broadcast responses should raise BroadcastError."""
        node.on("POST", "/txs", 200, payload)
        with pytest.raises(BroadcastError, match="malformed response"):
            await lcd.broadcast_async({"msg": []})


class TestTxInfo:
    """Test transaction lookup."""

    @pytest.mark.asyncio
    async def test_found(self, node, lcd) -> None:
        node.on("GET", "/txs/ABCDEF", 200, {"height": "101", "txhash": "ABCDEF", "raw_log": "[]"})
        info = await lcd.tx_info("ABCDEF")
        assert info.height == 101
        assert info.success

    @pytest.mark.asyncio
    async def test_failed_code(self, node, lcd) -> None:
        node.on(
            "GET", "/txs/ABCDEF", 200,
            {"height": "101", "txhash": "ABCDEF", "code": 3, "raw_log": "invalid salt"},
        )
        info = await lcd.tx_info("ABCDEF")
        assert not info.success
        assert info.raw_log == "invalid salt"

    @pytest.mark.asyncio
    async def test_not_found(self, lcd) -> None:
        with pytest.raises(TxNotFoundError):
            await lcd.tx_info("MISSING")

    @pytest.mark.asyncio
    async def test_server_error(self, node, lcd) -> None:
        node.on("GET", "/txs/ABCDEF", 500, {"error": "internal"})
        with pytest.raises(ChainClientError, match="HTTP 500"):
            await lcd.tx_info("ABCDEF")


class TestTransportErrors:
    @pytest.mark.asyncio
    async def test_connect_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = LcdClient("http://lcd.test", transport=httpx.MockTransport(refuse))
        try:
            with pytest.raises(ChainClientError, match="connection refused"):
                await client.latest_height()
        finally:
            await client.close()
