"""VoteMessage: Aggregate exchange rate vote and prevote messages.

A prevote commits to a vote without revealing it. The commitment is the
aggregate vote hash used by the oracle module::

    hex(sha256("{salt}:{exchange_rates}:{validator}"))[:40]

carried in a prevote message together with the feeder and validator
addresses. The matching vote, revealed one period later, must carry the same
salt and exchange rates.

.. code-block:: python

    >>> vote = VoteMessage("1.0uusd", "ab12", "terra1...", "terravaloper1...")
    >>> prevote = vote.get_prevote()
    >>> len(prevote.hash)
    40
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .PriceFilter import to_denom
from .PriceSource import PricePoint

VOTE_MSG_TYPE = "oracle/MsgAggregateExchangeRateVote"
PREVOTE_MSG_TYPE = "oracle/MsgAggregateExchangeRatePrevote"

# Bytes of randomness per salt (4 hex characters).
SALT_BYTES = 2


def aggregate_vote_hash(exchange_rates: str, salt: str, validator: str) -> str:
    """Compute the truncated SHA-256 commitment of a vote.

    :param exchange_rates: Composite exchange rate string.
    :param salt: Hex salt.
    :param validator: Validator operator address.
    :returns: First 20 bytes of the digest, hex encoded.
    """
    payload = f"{salt}:{exchange_rates}:{validator}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()[:40]


def generate_salt() -> str:
    """Draw a fresh random salt from the OS CSPRNG."""
    return secrets.token_hex(SALT_BYTES)


def format_exchange_rates(prices: Iterable[PricePoint]) -> str:
    """Join prices into a coin string ("1120.5ukrw,1.0uusd").

    :param prices: Filtered prices.
    :returns: Comma-separated amount+denom string.
    """
    return ",".join(f"{p.price}{to_denom(p.currency)}" for p in prices)


@dataclass(frozen=True)
class PrevoteMessage:
    """Commitment to a future vote.

    :ivar hash: Aggregate vote hash.
    :ivar feeder: Address signing the message.
    :ivar validator: Validator operator address voted for.
    """

    hash: str
    feeder: str
    validator: str

    def to_amino(self) -> dict[str, Any]:
        """Serialize to amino JSON."""
        return {
            "type": PREVOTE_MSG_TYPE,
            "value": {
                "hash": self.hash,
                "feeder": self.feeder,
                "validator": self.validator,
            },
        }


@dataclass(frozen=True)
class VoteMessage:
    """Plaintext vote revealed one period after its prevote.

    :ivar exchange_rates: Composite exchange rate string.
    :ivar salt: Hex salt bound into the prevote hash.
    :ivar feeder: Address signing the message.
    :ivar validator: Validator operator address voted for.
    """

    exchange_rates: str
    salt: str
    feeder: str
    validator: str

    def get_prevote(self) -> PrevoteMessage:
        """Derive the prevote committing to this vote."""
        return PrevoteMessage(
            hash=aggregate_vote_hash(self.exchange_rates, self.salt, self.validator),
            feeder=self.feeder,
            validator=self.validator,
        )

    def to_amino(self) -> dict[str, Any]:
        """Serialize to amino JSON."""
        return {
            "type": VOTE_MSG_TYPE,
            "value": {
                "exchange_rates": self.exchange_rates,
                "salt": self.salt,
                "feeder": self.feeder,
                "validator": self.validator,
            },
        }


def build_vote_msgs(
    prices: Iterable[PricePoint],
    validators: Iterable[str],
    feeder: str,
) -> list[VoteMessage]:
    """Build one salted vote per validator.

    Duplicate validator addresses yield a single message. Salts are distinct
    within one batch.

    :param prices: Filtered prices, one per whitelisted denom.
    :param validators: Validator operator addresses.
    :param feeder: Feeder (voter) account address.
    :returns: Vote messages in validator order.
    """
    exchange_rates = format_exchange_rates(prices)
    used_salts: set[str] = set()
    msgs: list[VoteMessage] = []
    for validator in dict.fromkeys(validators):
        salt = generate_salt()
        while salt in used_salts:
            salt = generate_salt()
        used_salts.add(salt)
        msgs.append(
            VoteMessage(
                exchange_rates=exchange_rates,
                salt=salt,
                feeder=feeder,
                validator=validator,
            )
        )
    return msgs
