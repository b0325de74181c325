"""PriceSource: A single price server endpoint and shared HTTP client management.

Every price server answers ``GET <url>`` with a JSON document of the form::

    {
        "created_at": "2021-03-01T12:00:00.000Z",
        "prices": [{"currency": "KRW", "price": "1120.500000000000000000"}, ...]
    }

A shared httpx.AsyncClient is used across all sources to avoid connection
overhead.

.. code-block:: python

    source = PriceSource("http://127.0.0.1:8532/latest")
    response = await source.fetch()
    response.prices[0].currency
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

import httpx

logger = logging.getLogger(__name__)

# Responses older than this are ignored.
MAX_PRICE_AGE_SECONDS = 60.0


class PriceSourceError(Exception):
    """Base exception for price source errors."""

    pass


class PriceSourceHTTPError(PriceSourceError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


@dataclass(frozen=True)
class PricePoint:
    """Exchange rate of one currency.

    :ivar currency: Currency symbol as reported by the source (e.g. "KRW").
    :ivar price: Decimal price string, kept verbatim.
    """

    currency: str
    price: str


@dataclass
class PriceResponse:
    """Parsed reply of one price source.

    :ivar source: URL the response came from.
    :ivar created_at: ISO-8601 creation timestamp reported by the source.
    :ivar prices: Reported prices.
    """

    source: str
    created_at: str
    prices: list[PricePoint] = field(default_factory=list)

    def age(self, now: datetime | None = None) -> float:
        """Get the age of the response in seconds.

        :param now: Reference time (default: current UTC time).
        :returns: Seconds elapsed since created_at.
        :raises ValueError: If created_at is not a valid ISO-8601 timestamp.
        """
        created = parse_timestamp(self.created_at)
        now = now or datetime.now(timezone.utc)
        return (now - created).total_seconds()

    def is_fresh(
        self, now: datetime | None = None, max_age: float = MAX_PRICE_AGE_SECONDS
    ) -> bool:
        """Check if the response is younger than max_age seconds.

        :param now: Reference time (default: current UTC time).
        :param max_age: Maximum accepted age in seconds.
        :returns: True if the response may be used.
        """
        try:
            return self.age(now) < max_age
        except ValueError:
            return False


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware datetime.

    A trailing "Z" is accepted; naive timestamps are treated as UTC.

    :param value: Timestamp string.
    :returns: Timezone-aware datetime.
    :raises ValueError: If the string is not a valid timestamp.
    """
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_price_response(source: str, data: Any) -> PriceResponse | None:
    """Validate the structure of a price server reply.

    :param source: URL the data came from.
    :param data: Decoded JSON body.
    :returns: PriceResponse, or None if the structure is invalid.
    """
    if not isinstance(data, dict):
        return None

    created_at = data.get("created_at")
    prices = data.get("prices")
    if not isinstance(created_at, str) or not isinstance(prices, list) or not prices:
        return None

    points: list[PricePoint] = []
    for item in prices:
        if not isinstance(item, dict):
            return None
        currency = item.get("currency")
        price = item.get("price")
        if not isinstance(currency, str) or price is None:
            return None
        points.append(PricePoint(currency=currency, price=str(price)))

    return PriceResponse(source=source, created_at=created_at, prices=points)


class PriceSource:
    """One price server endpoint.

    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar url: Endpoint URL.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, url: str, timeout: float | None = None):
        """Initialize the source.

        :param url: Endpoint URL.
        :param timeout: Request timeout in seconds (default: 10).
        """
        self.url = url
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    def __repr__(self) -> str:
        """Return a developer-friendly string representation."""
        return f"PriceSource({self.url!r})"

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all sources to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if cls._shared_client is None or cls._shared_client.is_closed:
            cls._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
            )
        return cls._shared_client

    @classmethod
    def set_shared_client(cls, client: httpx.AsyncClient | None) -> None:
        """Replace the shared HTTP client (e.g. with a mocked transport).

        :param client: Client to use, or None to recreate lazily.
        """
        cls._shared_client = client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if cls._shared_client is not None and not cls._shared_client.is_closed:
            await cls._shared_client.aclose()
            cls._shared_client = None

    async def fetch(self) -> PriceResponse:
        """Fetch and validate the current prices.

        :returns: Structurally valid PriceResponse.
        :raises PriceSourceHTTPError: On non-2xx response.
        :raises PriceSourceError: On network/timeout errors or invalid payload.
        """
        response = await self._get(self.url)
        try:
            data = response.json()
        except ValueError as e:
            raise PriceSourceError(f"Invalid JSON from {self.url}: {e}") from e

        parsed = parse_price_response(self.url, data)
        if parsed is None:
            raise PriceSourceError(f"Invalid price response from {self.url}")
        return parsed

    async def _get(self, url: str) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :returns: httpx.Response object.
        :raises PriceSourceHTTPError: On non-2xx response.
        :raises PriceSourceError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(url, timeout=self.timeout)
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise PriceSourceHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise PriceSourceError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise PriceSourceError(f"Request failed: {e}") from e
