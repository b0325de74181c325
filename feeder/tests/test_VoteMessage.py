"""Unit tests for VoteMessage."""

import hashlib
from unittest.mock import patch

from feeder.src.PriceSource import PricePoint
from feeder.src.VoteMessage import (
    PREVOTE_MSG_TYPE,
    VOTE_MSG_TYPE,
    VoteMessage,
    aggregate_vote_hash,
    build_vote_msgs,
    format_exchange_rates,
    generate_salt,
)

FEEDER = "terra1feeder"
VALIDATOR = "terravaloper1validator"


class TestAggregateVoteHash:
    """Test the prevote commitment."""

    def test_matches_truncated_sha256(self) -> None:
        """Hash should be the first 40 hex chars of sha256(salt:rates:validator)."""
        expected = hashlib.sha256(b"1234:1.0uusd:terravaloper1validator").hexdigest()[:40]
        assert aggregate_vote_hash("1.0uusd", "1234", VALIDATOR) == expected
        assert len(expected) == 40


class TestVoteMessage:
    """Test vote/prevote pairing."""

    def test_prevote_round_trip(self) -> None:
        """Identical votes should always produce identical prevotes."""
        a = VoteMessage("1.0uusd,1200.0ukrw", "ab12", FEEDER, VALIDATOR)
        b = VoteMessage("1.0uusd,1200.0ukrw", "ab12", FEEDER, VALIDATOR)
        assert a.get_prevote() == b.get_prevote()

    def test_prevote_changes_with_any_field(self) -> None:
        """Changing any vote field should change the prevote."""
        base = VoteMessage("1.0uusd", "ab12", FEEDER, VALIDATOR)
        variants = [
            VoteMessage("1.1uusd", "ab12", FEEDER, VALIDATOR),
            VoteMessage("1.0uusd", "ab13", FEEDER, VALIDATOR),
            VoteMessage("1.0uusd", "ab12", "terra1other", VALIDATOR),
            VoteMessage("1.0uusd", "ab12", FEEDER, "terravaloper1other"),
        ]
        for variant in variants:
            assert variant.get_prevote() != base.get_prevote()

    def test_prevote_carries_addresses(self) -> None:
        """Prevote should be signed by the feeder for the validator."""
        prevote = VoteMessage("1.0uusd", "ab12", FEEDER, VALIDATOR).get_prevote()
        assert prevote.feeder == FEEDER
        assert prevote.validator == VALIDATOR

    def test_amino_serialization(self) -> None:
        """Messages should serialize with their amino type names."""
        vote = VoteMessage("1.0uusd", "ab12", FEEDER, VALIDATOR)
        assert vote.to_amino() == {
            "type": VOTE_MSG_TYPE,
            "value": {
                "exchange_rates": "1.0uusd",
                "salt": "ab12",
                "feeder": FEEDER,
                "validator": VALIDATOR,
            },
        }
        prevote = vote.get_prevote().to_amino()
        assert prevote["type"] == PREVOTE_MSG_TYPE
        assert prevote["value"]["hash"] == aggregate_vote_hash("1.0uusd", "ab12", VALIDATOR)


class TestBuildVoteMsgs:
    """Test vote construction."""

    def test_format_exchange_rates(self) -> None:
        """Prices should be joined as amount+denom coins."""
        prices = [PricePoint("USD", "1.0"), PricePoint("KRW", "0.000000000000000000")]
        assert format_exchange_rates(prices) == "1.0uusd,0.000000000000000000ukrw"

    def test_one_message_per_validator(self) -> None:
        """Each validator should get its own message."""
        msgs = build_vote_msgs(
            [PricePoint("USD", "1.0")], ["terravaloper1a", "terravaloper1b"], FEEDER
        )
        assert [m.validator for m in msgs] == ["terravaloper1a", "terravaloper1b"]
        assert all(m.exchange_rates == "1.0uusd" for m in msgs)
        assert all(m.feeder == FEEDER for m in msgs)

    def test_duplicate_validators_collapsed(self) -> None:
        """Repeated validator addresses should yield one message."""
        msgs = build_vote_msgs([PricePoint("USD", "1.0")], ["v1", "v1", "v2"], FEEDER)
        assert [m.validator for m in msgs] == ["v1", "v2"]

    def test_salt_format(self) -> None:
        """Salt should be 2 random bytes in hex."""
        salt = generate_salt()
        assert len(salt) == 4
        int(salt, 16)

    def test_salts_unique_within_batch(self) -> None:
        """Colliding random draws should be redrawn."""
        with patch(
            "feeder.src.VoteMessage.secrets.token_hex",
            side_effect=["aaaa", "aaaa", "bbbb"],
        ):
            msgs = build_vote_msgs([PricePoint("USD", "1.0")], ["v1", "v2"], FEEDER)
        assert [m.salt for m in msgs] == ["aaaa", "bbbb"]
