"""PriceAggregator: First-valid-wins race across redundant price sources.

Algorithm:
    1. Start one fetch task per source, each with its own timeout
    2. As tasks complete, discard failures, invalid and stale responses
    3. Return the prices of the first fresh, structurally valid response
    4. Leave the remaining fetches running (they are not cancelled)
    5. Return an empty list if no source qualifies, so every denom abstains

.. code-block:: python

    >>> aggregator = PriceAggregator(["http://a/latest", "http://b/latest"])
    >>> prices = await aggregator.fetch_prices()
    >>> aggregator.last_source
    'http://b/latest'
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from .PriceSource import (
    MAX_PRICE_AGE_SECONDS,
    PricePoint,
    PriceResponse,
    PriceSource,
    PriceSourceError,
)

logger = logging.getLogger(__name__)


class PriceAggregator:
    """Races multiple price sources and keeps the first usable answer.

    :ivar sources: Price sources to query.
    :ivar fetch_timeout: Ceiling for a single fetch in seconds.
    :ivar max_age: Maximum accepted response age in seconds.
    :ivar last_source: URL of the source selected by the last call, if any.
    """

    def __init__(
        self,
        sources: list[str] | list[PriceSource],
        fetch_timeout: float = 10.0,
        max_age: float = MAX_PRICE_AGE_SECONDS,
    ) -> None:
        """Initialize the aggregator.

        :param sources: Source URLs or PriceSource instances.
        :param fetch_timeout: Timeout for each fetch (default: 10.0).
        :param max_age: Maximum accepted response age (default: 60.0).
        :raises ValueError: If no sources are given.
        """
        if not sources:
            raise ValueError("At least one price source must be specified")

        self.sources: list[PriceSource] = [
            s if isinstance(s, PriceSource) else PriceSource(s, timeout=fetch_timeout)
            for s in sources
        ]
        self.fetch_timeout = fetch_timeout
        self.max_age = max_age
        self.last_source: str | None = None

        # Losing fetches keep running; hold references until they finish.
        self._abandoned: set[asyncio.Task] = set()

    async def fetch_prices(self) -> list[PricePoint]:
        """Fetch prices from the first source yielding a fresh, valid response.

        :returns: Prices of the winning source, or an empty list.
        """
        logger.info(f"timestamp: {datetime.now(timezone.utc).isoformat()}")
        logger.info(f"Getting price data from {[s.url for s in self.sources]}")

        self.last_source = None
        pending: set[asyncio.Task] = {
            asyncio.create_task(self._fetch_one(source)) for source in self.sources
        }

        while pending:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                response = task.result()
                if response is None:
                    continue

                self.last_source = response.source
                logger.info(
                    f"Using prices from {response.source} "
                    f"(created_at={response.created_at}, {len(response.prices)} prices)"
                )
                self._abandon(pending)
                return list(response.prices)

        logger.warning("No price source returned a fresh valid response; abstaining")
        return []

    async def _fetch_one(self, source: PriceSource) -> PriceResponse | None:
        """Fetch one source with timeout and validate freshness.

        :param source: Source to fetch.
        :returns: Fresh PriceResponse, or None if unusable.
        """
        try:
            response = await asyncio.wait_for(
                source.fetch(), timeout=self.fetch_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{source.url}] Timeout fetching prices")
            return None
        except PriceSourceError as e:
            logger.warning(f"[{source.url}] Failed to fetch prices: {e}")
            return None
        except Exception as e:
            logger.warning(f"[{source.url}] Error fetching prices: {e}")
            return None

        if not response.is_fresh(max_age=self.max_age):
            logger.info(f"[{source.url}] Price is too old (created_at={response.created_at})")
            return None

        return response

    def _abandon(self, tasks: set[asyncio.Task]) -> None:
        """Keep losing fetches alive without awaiting them.

        :param tasks: Tasks still in flight.
        """
        for task in tasks:
            self._abandoned.add(task)
            task.add_done_callback(self._abandoned.discard)
