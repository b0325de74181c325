"""Shared fixtures: an in-memory chain and a deterministic signing key."""

from typing import Any

import pytest

from feeder.src.ChainClient import (
    ChainClient,
    OracleParams,
    TxInfo,
    TxNotFoundError,
)
from feeder.src.TxSubmitter import TxSubmitter
from feeder.src.Wallet import RawKey, Wallet

TEST_PRIVATE_KEY = bytes.fromhex(
    "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
)


class FakeChainClient(ChainClient):
    """In-memory chain advancing one block per height query.

    :ivar include_at: Height at which broadcast txs become visible, None to drop them.
    :ivar include_code: Result code recorded for included txs.
    """

    def __init__(
        self,
        vote_period: int = 5,
        whitelist: list[str] | None = None,
        height: int = 100,
        advance: bool = True,
    ) -> None:
        self.params = OracleParams(
            vote_period=vote_period,
            whitelist=whitelist if whitelist is not None else ["ukrw", "uusd"],
        )
        self.height = height
        self.advance = advance
        self.include_at: int | None = None
        self.include_code = 0
        self.broadcast_error: Exception | None = None
        self.broadcasts: list[dict[str, Any]] = []
        self.txs: dict[str, TxInfo] = {}
        self.height_queries = 0
        self.tx_lookups = 0
        self.closed = False

    async def oracle_params(self) -> OracleParams:
        """Return a copy of the configured parameters."""
        return OracleParams(self.params.vote_period, list(self.params.whitelist))

    async def latest_height(self) -> int:
        """Return the height, advancing one block after the first query."""
        if self.advance and self.height_queries > 0:
            self.height += 1
        self.height_queries += 1
        return self.height

    async def account_info(self, address: str) -> tuple[int, int]:
        """Fixed account number; sequence counts broadcasts."""
        return 7, len(self.broadcasts)

    async def broadcast_async(self, tx: dict[str, Any]) -> str:
        """Record the tx and schedule its inclusion at include_at."""
        if self.broadcast_error is not None:
            raise self.broadcast_error
        self.broadcasts.append(tx)
        txhash = f"TXHASH{len(self.broadcasts)}"
        if self.include_at is not None:
            self.txs[txhash] = TxInfo(
                txhash=txhash, height=self.include_at, code=self.include_code
            )
        return txhash

    async def tx_info(self, txhash: str) -> TxInfo:
        """Return the tx once the chain has reached its inclusion height."""
        self.tx_lookups += 1
        info = self.txs.get(txhash)
        if info is None or info.height > self.height:
            raise TxNotFoundError(txhash)
        return info

    async def close(self) -> None:
        """Mark the client closed."""
        self.closed = True


@pytest.fixture
def chain() -> FakeChainClient:
    """Chain at height 100 with a 5-block vote period."""
    return FakeChainClient()


@pytest.fixture
def private_key() -> bytes:
    """Raw private key bytes of the test key."""
    return TEST_PRIVATE_KEY


@pytest.fixture
def raw_key(private_key: bytes) -> RawKey:
    """Deterministic signing key."""
    return RawKey(private_key)


@pytest.fixture
def wallet(chain: FakeChainClient, raw_key: RawKey) -> Wallet:
    """Wallet signing against the fake chain."""
    return Wallet(chain, raw_key, "columbus-4")


@pytest.fixture
def submitter(chain: FakeChainClient, wallet: Wallet) -> TxSubmitter:
    """Submitter polling without delays."""
    return TxSubmitter(
        chain,
        wallet,
        gas_prices="0.15uluna",
        memo="oracle-feeder@test",
        poll_interval=0,
        index_delay=0,
    )
