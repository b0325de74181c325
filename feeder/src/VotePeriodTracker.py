"""VotePeriodTracker: Vote period bookkeeping for the commit-reveal scheme.

A vote is included at the earliest in the next block, so every computation
is based on ``next_height = latest_height + 1``:

    current_period   = next_height // vote_period
    index_in_period  = next_height %  vote_period

The tracker decides, before any price or broadcast work happens, whether
the feeder should vote in this tick.

.. code-block:: python

    >>> tracker = VotePeriodTracker()
    >>> info = VotePeriodInfo.from_height(height=18, vote_period=5, whitelist=[])
    >>> info.current_period, info.index_in_period
    (3, 4)
    >>> tracker.decide(info, previous_vote_period=0)
    <VoteDecision.SKIP: 'skip'>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .ChainClient import ChainClient

logger = logging.getLogger(__name__)

# Blocks that must remain in the period for the tx to land and be confirmed.
DEFAULT_PERIOD_MARGIN = 2


class RevealMissError(Exception):
    """Raised when the previous prevote can no longer be revealed.

    :ivar previous_period: Period of the last confirmed prevote.
    :ivar current_period: Period the next block belongs to.
    """

    def __init__(self, previous_period: int, current_period: int):
        """Initialize the reveal miss error.

        :param previous_period: Period of the last confirmed prevote.
        :param current_period: Period the next block belongs to.
        """
        self.previous_period = previous_period
        self.current_period = current_period
        super().__init__(
            f"Failed to reveal exchange rates (previous period {previous_period}, "
            f"current period {current_period}); reset to prevote"
        )


class VoteDecision(str, Enum):
    """Outcome of the per-tick period check."""

    PROCEED = "proceed"
    SKIP = "skip"


@dataclass
class VotePeriodInfo:
    """Snapshot of the chain position relative to the vote period.

    :ivar vote_period: Vote period length in blocks.
    :ivar whitelist: Oracle whitelist at the time of the snapshot.
    :ivar next_height: Height of the block the vote would land in.
    :ivar current_period: Vote period of next_height.
    :ivar index_in_period: Position of next_height within its period.
    """

    vote_period: int
    next_height: int
    current_period: int
    index_in_period: int
    whitelist: list[str] = field(default_factory=list)

    @classmethod
    def from_height(
        cls, height: int, vote_period: int, whitelist: list[str]
    ) -> VotePeriodInfo:
        """Compute period information from the latest block height.

        :param height: Latest committed block height.
        :param vote_period: Vote period length in blocks.
        :param whitelist: Oracle whitelist.
        :returns: New VotePeriodInfo.
        :raises ValueError: If vote_period is not positive.
        """
        if vote_period < 1:
            raise ValueError(f"vote_period must be positive, got {vote_period}")

        next_height = height + 1
        return cls(
            vote_period=vote_period,
            next_height=next_height,
            current_period=next_height // vote_period,
            index_in_period=next_height % vote_period,
            whitelist=list(whitelist),
        )


class VotePeriodTracker:
    """Applies the skip / proceed / reveal-miss policy.

    :ivar period_margin: Minimum number of blocks that must remain in the
        current period for a vote to be attempted.
    """

    def __init__(self, period_margin: int = DEFAULT_PERIOD_MARGIN) -> None:
        """Initialize the tracker.

        :param period_margin: Blocks to hold off before the period boundary.
        :raises ValueError: If period_margin is negative.
        """
        if period_margin < 0:
            raise ValueError("period_margin must not be negative")
        self.period_margin = period_margin

    async def load(self, client: ChainClient) -> VotePeriodInfo:
        """Read oracle parameters and the chain tip.

        Both values are re-read on every call, never cached.

        :param client: Chain client to query.
        :returns: Fresh VotePeriodInfo.
        """
        params = await client.oracle_params()
        height = await client.latest_height()
        return VotePeriodInfo.from_height(height, params.vote_period, params.whitelist)

    def decide(self, info: VotePeriodInfo, previous_vote_period: int) -> VoteDecision:
        """Decide whether to vote in the period described by info.

        :param info: Current period snapshot.
        :param previous_vote_period: Period of the last confirmed vote, 0 if none.
        :returns: VoteDecision.PROCEED or VoteDecision.SKIP.
        :raises RevealMissError: If the previous prevote can no longer be revealed.
        """
        if previous_vote_period and info.current_period == previous_vote_period:
            logger.debug(f"Already voted in period {info.current_period}, skipping")
            return VoteDecision.SKIP

        if info.vote_period - info.index_in_period < self.period_margin:
            logger.debug(
                f"Too close to end of period {info.current_period} "
                f"(index {info.index_in_period}/{info.vote_period}), skipping"
            )
            return VoteDecision.SKIP

        if previous_vote_period and info.current_period - previous_vote_period != 1:
            raise RevealMissError(previous_vote_period, info.current_period)

        return VoteDecision.PROCEED
