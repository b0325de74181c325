"""VoteFeeder: Main orchestrator for the oracle commit-reveal vote loop.

Every tick runs the full pipeline:

    VotePeriodTracker -> PriceAggregator -> filter_prices -> build_vote_msgs
        -> TxSubmitter.submit -> TxSubmitter.wait_for_confirmation

Architecture:
    - Ticks run strictly one after another; a tick may span several blocks
    - Vote state (previous period and pending reveal) is an immutable
      FeederState value passed into and returned from each tick
    - Any failure inside a tick resets the state, so the next tick starts
      a fresh prevote-only cycle
    - Nothing is persisted; after a restart the feeder starts over
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from .ChainClient import ChainClient
from .PriceAggregator import PriceAggregator
from .PriceFilter import filter_prices
from .PriceSource import PriceSource
from .TxSubmitter import TxSubmitter
from .VoteMessage import VoteMessage, build_vote_msgs
from .VotePeriodTracker import VoteDecision, VotePeriodTracker

logger = logging.getLogger(__name__)

# Minimum time between the starts of two ticks.
MIN_TICK_INTERVAL = 0.5


class TickOutcome(str, Enum):
    """Result of a single tick."""

    SKIPPED = "skipped"
    CONFIRMED = "confirmed"
    NOT_FOUND = "not_found"
    RESET = "reset"


@dataclass(frozen=True)
class FeederState:
    """Vote state carried from one tick to the next.

    :ivar previous_vote_period: Period of the last confirmed vote tx, 0 if none.
    :ivar pending_votes: Votes to reveal in the period after previous_vote_period.
    """

    previous_vote_period: int = 0
    pending_votes: tuple[VoteMessage, ...] = ()

    def reveals_for(self, current_period: int) -> tuple[VoteMessage, ...]:
        """Get the pending votes if they may be revealed in current_period.

        :param current_period: Period the next block belongs to.
        :returns: Pending votes, or an empty tuple if they are stale.
        """
        if self.previous_vote_period and self.previous_vote_period == current_period - 1:
            return self.pending_votes
        return ()


class VoteFeeder:
    """Drives the vote pipeline for a set of validators.

    :ivar client: Chain client.
    :ivar aggregator: Price source race.
    :ivar submitter: Transaction submitter/confirmer.
    :ivar tracker: Vote period policy.
    :ivar validators: Validator operator addresses voted for.
    :ivar feeder_address: Address signing the votes.
    :ivar denoms: Lower-cased currencies voted on; others abstain.
    :ivar interval: Minimum seconds between tick starts.
    """

    def __init__(
        self,
        client: ChainClient,
        aggregator: PriceAggregator,
        submitter: TxSubmitter,
        validators: Sequence[str],
        feeder_address: str,
        denoms: Sequence[str],
        tracker: VotePeriodTracker | None = None,
        interval: float = MIN_TICK_INTERVAL,
    ) -> None:
        """Initialize the feeder.

        :param client: Chain client.
        :param aggregator: Price aggregator.
        :param submitter: Transaction submitter.
        :param validators: Validator operator addresses.
        :param feeder_address: Feeder account address.
        :param denoms: Currencies to vote on (e.g. ["krw", "usd"]).
        :param tracker: Vote period tracker (default: margin of 2 blocks).
        :param interval: Minimum seconds between tick starts (min 0.5).
        :raises ValueError: If no validators are given.
        """
        if not validators:
            raise ValueError("At least one validator address must be specified")

        self.client = client
        self.aggregator = aggregator
        self.submitter = submitter
        self.tracker = tracker or VotePeriodTracker()
        self.validators = list(validators)
        self.feeder_address = feeder_address
        self.denoms = [d.strip().lower() for d in denoms if d.strip()]
        self.interval = max(MIN_TICK_INTERVAL, interval)

    async def process_vote(
        self, state: FeederState
    ) -> tuple[FeederState, TickOutcome]:
        """Run one vote pipeline pass.

        :param state: State returned by the previous tick.
        :returns: Tuple of (new state, outcome).
        :raises RevealMissError: If the previous prevote cannot be revealed.
        :raises BroadcastError: If the transaction cannot be broadcast.
        """
        info = await self.tracker.load(self.client)

        if self.tracker.decide(info, state.previous_vote_period) is VoteDecision.SKIP:
            return state, TickOutcome.SKIPPED

        raw_prices = await self.aggregator.fetch_prices()
        prices = filter_prices(raw_prices, info.whitelist, self.denoms)

        votes = build_vote_msgs(prices, self.validators, self.feeder_address)
        prevotes = [vote.get_prevote() for vote in votes]
        reveals = state.reveals_for(info.current_period)

        txhash = await self.submitter.submit(reveals, prevotes)
        result = await self.submitter.wait_for_confirmation(info.next_height, txhash)

        if not result.confirmed:
            logger.error(f"Broadcast error: txhash not found: {txhash}")
            return state, TickOutcome.NOT_FOUND

        logger.info(f"Broadcast success: txhash={txhash}, height={result.height}")
        new_state = FeederState(
            previous_vote_period=result.height // info.vote_period,
            pending_votes=tuple(votes),
        )
        return new_state, TickOutcome.CONFIRMED

    async def tick(self, state: FeederState) -> tuple[FeederState, TickOutcome]:
        """Run one pipeline pass inside a failure boundary.

        :param state: State returned by the previous tick.
        :returns: Tuple of (new state, outcome); state is reset on failure.
        """
        try:
            return await self.process_vote(state)
        except Exception as e:
            logger.error(f"Vote failed, resetting to prevote: {e}")
            logger.debug("Vote failure details", exc_info=True)
            return FeederState(), TickOutcome.RESET

    async def run(
        self, state: FeederState | None = None, max_ticks: int | None = None
    ) -> FeederState:
        """Run the vote loop.

        :param state: Initial state (default: uninitialized).
        :param max_ticks: Stop after this many ticks (default: run forever).
        :returns: Final state when max_ticks is reached.
        """
        state = state or FeederState()
        logger.info(
            f"Starting vote loop for validators {self.validators} "
            f"as {self.feeder_address}, denoms={self.denoms}"
        )

        ticks = 0
        try:
            while max_ticks is None or ticks < max_ticks:
                started = time.monotonic()
                state, outcome = await self.tick(state)
                ticks += 1
                logger.debug(
                    f"Tick {ticks}: {outcome.value} "
                    f"(previous_vote_period={state.previous_vote_period})"
                )

                elapsed = time.monotonic() - started
                await asyncio.sleep(max(0.0, self.interval - elapsed))
        finally:
            await PriceSource.close_shared_client()
            await self.client.close()

        return state
