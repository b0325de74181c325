"""
Oracle Vote Feeder - Commit-Reveal Exchange Rate Voting

This module provides the oracle vote pipeline:
- VotePeriodTracker: Vote period computation and skip/reveal-miss policy
- PriceAggregator: First-valid-wins race across redundant price sources
- PriceFilter: Whitelist filtering with explicit abstain votes
- VoteMessage: Salted votes and their prevote commitments
- TxSubmitter: Transaction broadcast and inclusion confirmation
- VoteFeeder: Main orchestrator for the vote loop
"""

__version__ = "1.0.0"

from .ChainClient import (
    BroadcastError,
    ChainClient,
    ChainClientError,
    OracleParams,
    TxInfo,
    TxNotFoundError,
)
from .LcdClient import LcdClient
from .PriceAggregator import PriceAggregator
from .PriceFilter import ABSTAIN_PRICE, fill_abstain_prices, filter_prices
from .PriceSource import PricePoint, PriceResponse, PriceSource, PriceSourceError
from .TxSubmitter import ConfirmationResult, TxSubmitter
from .VoteFeeder import FeederState, TickOutcome, VoteFeeder
from .VoteMessage import PrevoteMessage, VoteMessage, build_vote_msgs
from .VotePeriodTracker import RevealMissError, VotePeriodInfo, VotePeriodTracker
from .Wallet import KeyLoadError, RawKey, Wallet, load_key

__all__ = [
    "ABSTAIN_PRICE",
    "BroadcastError",
    "ChainClient",
    "ChainClientError",
    "ConfirmationResult",
    "FeederState",
    "KeyLoadError",
    "LcdClient",
    "OracleParams",
    "PriceAggregator",
    "PricePoint",
    "PriceResponse",
    "PriceSource",
    "PriceSourceError",
    "PrevoteMessage",
    "RawKey",
    "RevealMissError",
    "TickOutcome",
    "TxInfo",
    "TxNotFoundError",
    "TxSubmitter",
    "VoteFeeder",
    "VoteMessage",
    "VotePeriodInfo",
    "VotePeriodTracker",
    "Wallet",
    "build_vote_msgs",
    "fill_abstain_prices",
    "filter_prices",
    "load_key",
]
