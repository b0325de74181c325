"""ChainClient: Abstract base class for blockchain interaction.

The vote loop only needs a handful of chain operations: reading oracle
parameters, reading the latest block height, broadcasting a signed
transaction and looking a transaction up by hash. Concrete clients (see
LcdClient) implement them over a specific transport.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ChainClientError(Exception):
    """Base exception for chain client errors."""

    pass


class BroadcastError(ChainClientError):
    """Raised when a transaction cannot be signed or broadcast.

    :ivar code: Result code returned by the node, if any.
    """

    def __init__(self, message: str, code: int | None = None):
        """Initialize the broadcast error.

        :param message: Error description.
        :param code: Optional result code from the node.
        """
        self.code = code
        super().__init__(message)


class TxNotFoundError(ChainClientError):
    """Raised when a transaction hash is not (yet) known to the node."""

    def __init__(self, txhash: str):
        """Initialize the not-found error.

        :param txhash: Transaction hash that was looked up.
        """
        self.txhash = txhash
        super().__init__(f"Transaction not found: {txhash}")


@dataclass
class OracleParams:
    """Oracle module parameters published on chain.

    :ivar vote_period: Length of one vote period in blocks.
    :ivar whitelist: Denoms eligible for oracle voting (e.g. "ukrw").
    """

    vote_period: int
    whitelist: list[str] = field(default_factory=list)


@dataclass
class TxInfo:
    """Result of a transaction lookup.

    :ivar txhash: Transaction hash.
    :ivar height: Block height the transaction was included in.
    :ivar code: Result code, 0 on success.
    :ivar raw_log: Raw log emitted by the chain.
    """

    txhash: str
    height: int
    code: int = 0
    raw_log: str = ""

    @property
    def success(self) -> bool:
        """Check if the transaction executed without error."""
        return self.code == 0


class ChainClient(ABC):
    """Abstract base class for chain client implementations."""

    @abstractmethod
    async def oracle_params(self) -> OracleParams:
        """Fetch the current oracle parameters.

        :returns: Fresh OracleParams snapshot.
        """
        pass

    @abstractmethod
    async def latest_height(self) -> int:
        """Fetch the height of the latest committed block.

        :returns: Block height.
        """
        pass

    @abstractmethod
    async def account_info(self, address: str) -> tuple[int, int]:
        """Fetch the account number and sequence for an address.

        :param address: Bech32 account address.
        :returns: Tuple of (account_number, sequence).
        """
        pass

    @abstractmethod
    async def broadcast_async(self, tx: dict[str, Any]) -> str:
        """Broadcast a signed transaction without waiting for CheckTx.

        :param tx: Signed StdTx in amino JSON form.
        :returns: Transaction hash.
        """
        pass

    @abstractmethod
    async def tx_info(self, txhash: str) -> TxInfo:
        """Look up a transaction by hash.

        :param txhash: Transaction hash.
        :returns: TxInfo for the included transaction.
        :raises TxNotFoundError: If the node does not know the transaction.
        """
        pass

    async def close(self) -> None:
        """Release transport resources held by the client."""
        return None
