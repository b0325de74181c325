"""LcdClient: ChainClient over the LCD (light client daemon) REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .ChainClient import (
    BroadcastError,
    ChainClient,
    ChainClientError,
    OracleParams,
    TxInfo,
    TxNotFoundError,
)

logger = logging.getLogger(__name__)


def _unwrap(data: Any) -> Any:
    """Strip the {"height", "result"} envelope of legacy LCD responses."""
    if isinstance(data, dict) and "result" in data and "height" in data:
        return data["result"]
    return data


class LcdClient(ChainClient):
    """Chain client talking to an LCD node.

    :ivar url: Base URL of the LCD node.
    :ivar timeout: Request timeout in seconds.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the LCD client.

        :param url: Base URL (e.g. "https://lcd.terra.dev").
        :param timeout: Request timeout in seconds (default: 10).
        :param transport: Optional transport override.
        """
        self.url = url.rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=httpx.Timeout(self.timeout, connect=5.0),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def _request(
        self, method: str, path: str, *, json: dict | None = None
    ) -> httpx.Response:
        """Make an HTTP request to the LCD.

        :param method: HTTP method.
        :param path: API endpoint path.
        :param json: Optional JSON body.
        :returns: httpx.Response object (any status).
        :raises ChainClientError: On network/timeout errors.
        """
        try:
            logger.debug("%s %s", method, path)
            return await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise ChainClientError(f"LCD {method} {path} timeout: {e}") from e
        except httpx.RequestError as e:
            raise ChainClientError(f"LCD {method} {path} failed: {e}") from e

    async def _get_json(self, path: str) -> Any:
        """GET a path and return the unwrapped JSON body.

        :raises ChainClientError: On non-2xx response or invalid JSON.
        """
        response = await self._request("GET", path)
        if not response.is_success:
            raise ChainClientError(
                f"LCD GET {path} failed: HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )
        try:
            return _unwrap(response.json())
        except ValueError as e:
            raise ChainClientError(f"LCD GET {path} returned invalid JSON: {e}") from e

    async def oracle_params(self) -> OracleParams:
        """Fetch oracle parameters from /oracle/parameters."""
        data = await self._get_json("/oracle/parameters")
        try:
            whitelist = [
                entry["name"] if isinstance(entry, dict) else str(entry)
                for entry in data.get("whitelist") or []
            ]
            return OracleParams(vote_period=int(data["vote_period"]), whitelist=whitelist)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise ChainClientError(f"Failed to parse oracle parameters: {e}") from e

    async def latest_height(self) -> int:
        """Fetch the latest block height from /blocks/latest."""
        data = await self._get_json("/blocks/latest")
        try:
            return int(data["block"]["header"]["height"])
        except (KeyError, ValueError, TypeError) as e:
            raise ChainClientError(f"Failed to parse latest block: {e}") from e

    async def account_info(self, address: str) -> tuple[int, int]:
        """Fetch account number and sequence from /auth/accounts/{address}."""
        data = await self._get_json(f"/auth/accounts/{address}")
        try:
            value = data.get("value", data)
            return int(value.get("account_number") or 0), int(value.get("sequence") or 0)
        except (ValueError, TypeError, AttributeError) as e:
            raise ChainClientError(f"Failed to parse account {address}: {e}") from e

    async def broadcast_async(self, tx: dict[str, Any]) -> str:
        """Broadcast a signed StdTx in async mode via POST /txs.

        :raises BroadcastError: If the node rejects the transaction.
        """
        try:
            response = await self._request("POST", "/txs", json={"tx": tx, "mode": "async"})
        except ChainClientError as e:
            raise BroadcastError(str(e)) from e

        if not response.is_success:
            raise BroadcastError(
                f"Broadcast failed: HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            data = response.json()
            code = int(data.get("code") or 0)
            txhash = data.get("txhash")
        except (ValueError, TypeError, AttributeError) as e:
            raise BroadcastError(f"Broadcast returned malformed response: {e}") from e

        if code:
            raise BroadcastError(
                f"Broadcast rejected: code {code}: {data.get('raw_log', '')}", code=code
            )

        if not txhash:
            raise BroadcastError(f"Broadcast response without txhash: {data}")
        return txhash

    async def tx_info(self, txhash: str) -> TxInfo:
        """Look up a transaction via GET /txs/{txhash}.

        :raises TxNotFoundError: On HTTP 404.
        """
        response = await self._request("GET", f"/txs/{txhash}")
        if response.status_code == 404:
            raise TxNotFoundError(txhash)
        if not response.is_success:
            raise ChainClientError(
                f"LCD GET /txs/{txhash} failed: HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )

        try:
            data = _unwrap(response.json())
            return TxInfo(
                txhash=data.get("txhash", txhash),
                height=int(data.get("height") or 0),
                code=int(data.get("code") or 0),
                raw_log=data.get("raw_log", ""),
            )
        except (ValueError, TypeError, AttributeError) as e:
            raise ChainClientError(f"Failed to parse tx {txhash}: {e}") from e
