"""TxSubmitter: Broadcast the vote transaction and confirm its inclusion.

One transaction carries both halves of the commit-reveal cycle:

    msgs = [votes revealing last period's prevotes] + [prevotes for this period]

It is broadcast in async mode, so acceptance into the mempool says nothing
about inclusion. Inclusion is confirmed by polling the transaction by hash
once per new block, for at most ``confirmation_blocks`` blocks past the
height the vote was aimed at.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal, InvalidOperation

from .ChainClient import BroadcastError, ChainClient, ChainClientError, TxNotFoundError
from .VoteMessage import PrevoteMessage, VoteMessage
from .Wallet import Coin, Fee, Wallet

logger = logging.getLogger(__name__)

GAS_PER_MSG = 100_000

# Delay between chain tip polls while waiting for inclusion.
POLL_INTERVAL_SECONDS = 1.5
# Delay after a new block before querying the tx, to let the node index it.
INDEX_DELAY_SECONDS = 0.5
CONFIRMATION_BLOCKS = 2
MAX_POLLS = 60

_GAS_PRICE_RE = re.compile(r"^(\d+(?:\.\d+)?)([a-zA-Z][a-zA-Z0-9/]*)$")


def parse_gas_prices(gas_prices: str) -> list[tuple[str, Decimal]]:
    """Parse a gas price string such as "0.15uluna,0.2ukrw".

    :param gas_prices: Comma-separated amount+denom list; empty for none.
    :returns: List of (denom, price per gas unit).
    :raises ValueError: If an entry is malformed.
    """
    result: list[tuple[str, Decimal]] = []
    for item in gas_prices.split(","):
        item = item.strip()
        if not item:
            continue
        match = _GAS_PRICE_RE.match(item)
        if not match:
            raise ValueError(f"Invalid gas price '{item}'. Expected e.g. '0.15uluna'")
        try:
            result.append((match.group(2), Decimal(match.group(1))))
        except InvalidOperation as e:
            raise ValueError(f"Invalid gas price '{item}'") from e
    return result


@dataclass
class ConfirmationResult:
    """Outcome of confirmation polling.

    :ivar txhash: Hash of the polled transaction.
    :ivar height: Inclusion height, 0 if not found within the window.
    """

    txhash: str
    height: int = 0

    @property
    def confirmed(self) -> bool:
        """Check if the transaction was found with a success code."""
        return self.height > 0


class TxSubmitter:
    """Builds, signs, broadcasts and confirms vote transactions.

    :ivar client: Chain client.
    :ivar wallet: Signing wallet.
    :ivar gas_prices: Parsed gas prices.
    :ivar memo: Memo attached to every transaction.
    """

    def __init__(
        self,
        client: ChainClient,
        wallet: Wallet,
        gas_prices: str = "",
        memo: str = "",
        poll_interval: float = POLL_INTERVAL_SECONDS,
        index_delay: float = INDEX_DELAY_SECONDS,
        confirmation_blocks: int = CONFIRMATION_BLOCKS,
        max_polls: int = MAX_POLLS,
    ) -> None:
        """Initialize the submitter.

        :param client: Chain client used for broadcast and lookups.
        :param wallet: Wallet used for signing.
        :param gas_prices: Gas price string (e.g. "0.15uluna").
        :param memo: Transaction memo.
        :param poll_interval: Seconds between chain tip polls (default: 1.5).
        :param index_delay: Seconds to wait after a new block (default: 0.5).
        :param confirmation_blocks: Blocks past the target height to wait (default: 2).
        :param max_polls: Upper bound on tip polls per confirmation (default: 60).
        """
        self.client = client
        self.wallet = wallet
        self.gas_prices = parse_gas_prices(gas_prices)
        self.memo = memo
        self.poll_interval = poll_interval
        self.index_delay = index_delay
        self.confirmation_blocks = confirmation_blocks
        self.max_polls = max_polls

    def compute_fee(self, num_msgs: int) -> Fee:
        """Compute a fee scaling linearly with the number of messages.

        :param num_msgs: Number of messages in the transaction.
        :returns: Fee with gas = num_msgs * GAS_PER_MSG.
        """
        gas = num_msgs * GAS_PER_MSG
        amount = [
            Coin(denom=denom, amount=int((price * gas).to_integral_value(ROUND_CEILING)))
            for denom, price in self.gas_prices
        ]
        return Fee(gas=gas, amount=amount)

    async def submit(
        self,
        reveals: Sequence[VoteMessage],
        prevotes: Sequence[PrevoteMessage],
    ) -> str:
        """Sign and broadcast reveals followed by prevotes in one transaction.

        :param reveals: Votes revealing the previous period's prevotes.
        :param prevotes: Prevotes for the current period.
        :returns: Transaction hash.
        :raises BroadcastError: If signing or broadcasting fails.
        """
        msgs = [m.to_amino() for m in reveals] + [m.to_amino() for m in prevotes]
        fee = self.compute_fee(len(msgs))

        try:
            tx = await self.wallet.create_and_sign_tx(msgs, fee, self.memo)
        except ChainClientError as e:
            raise BroadcastError(f"Failed to sign transaction: {e}") from e

        try:
            txhash = await self.client.broadcast_async(tx)
        except ChainClientError as e:
            logger.error(f"Broadcast failed for tx: {json.dumps(tx)}")
            if isinstance(e, BroadcastError):
                raise
            raise BroadcastError(str(e)) from e

        logger.info(
            f"Broadcast {len(reveals)} votes + {len(prevotes)} prevotes: txhash={txhash}"
        )
        return txhash

    async def wait_for_confirmation(
        self, next_height: int, txhash: str
    ) -> ConfirmationResult:
        """Poll each new block for the transaction until the window closes.

        :param next_height: Height the transaction was aimed at.
        :param txhash: Transaction hash to look up.
        :returns: ConfirmationResult; height is 0 if not confirmed.
        """
        max_height = next_height + self.confirmation_blocks
        last_checked = next_height - 1

        for _ in range(self.max_polls):
            if last_checked >= max_height:
                break

            await asyncio.sleep(self.poll_interval)

            try:
                latest = await self.client.latest_height()
            except ChainClientError as e:
                logger.warning(f"Failed to read latest block while confirming {txhash}: {e}")
                continue

            if latest <= last_checked:
                continue
            last_checked = latest

            await asyncio.sleep(self.index_delay)

            try:
                info = await self.client.tx_info(txhash)
            except TxNotFoundError:
                logger.debug(f"{txhash} not found at height {latest}, retrying")
                continue
            except ChainClientError as e:
                logger.warning(f"Failed to look up {txhash}: {e}")
                continue

            if not info.success:
                logger.error(f"{txhash} failed with code {info.code}: {info.raw_log}")
            elif info.height > 0:
                return ConfirmationResult(txhash=txhash, height=info.height)
            else:
                logger.debug(f"{txhash} has no inclusion height yet, retrying")

        return ConfirmationResult(txhash=txhash)
