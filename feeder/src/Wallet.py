"""Wallet: Key loading, address derivation and StdTx signing.

The voter key is stored as an encrypted JSON keystore (Web3 secret storage)
and decrypted with eth_account. Addresses are derived the Cosmos way::

    bech32(prefix, ripemd160(sha256(compressed_secp256k1_pubkey)))

Transactions are signed in the legacy amino JSON format: the canonical
(sorted, compact) JSON sign document is hashed with SHA-256 and signed with a
low-s secp256k1 signature.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import bech32
from Crypto.Hash import RIPEMD160
from eth_account import Account
from eth_keys import keys

if TYPE_CHECKING:
    from .ChainClient import ChainClient

logger = logging.getLogger(__name__)

ACCOUNT_PREFIX = "terra"
VALOPER_PREFIX = "terravaloper"

PUBKEY_TYPE = "tendermint/PubKeySecp256k1"

# secp256k1 group order
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


class KeyLoadError(Exception):
    """Raised when the key file cannot be read or decrypted."""

    pass


def address_to_bech32(prefix: str, address_bytes: bytes) -> str:
    """Encode raw address bytes as bech32.

    :param prefix: Human readable part (e.g. "terra").
    :param address_bytes: 20-byte address.
    :returns: Bech32 address.
    :raises ValueError: If the bytes cannot be converted.
    """
    data = bech32.convertbits(address_bytes, 8, 5)
    if data is None:
        raise ValueError(f"Failed to convert address to bech32: {address_bytes.hex()}")
    return bech32.bech32_encode(prefix, data)


@dataclass
class Coin:
    """Amount of a single denom."""

    denom: str
    amount: int

    def to_amino(self) -> dict[str, str]:
        """Serialize to amino JSON."""
        return {"denom": self.denom, "amount": str(self.amount)}


@dataclass
class Fee:
    """Transaction fee.

    :ivar gas: Gas limit.
    :ivar amount: Fee coins paid.
    """

    gas: int
    amount: list[Coin] = field(default_factory=list)

    def to_amino(self) -> dict[str, Any]:
        """Serialize to amino JSON."""
        return {"amount": [c.to_amino() for c in self.amount], "gas": str(self.gas)}


class RawKey:
    """secp256k1 key held in memory.

    :ivar acc_address: Account (feeder) address.
    :ivar val_address: Validator operator address of the same key.
    """

    def __init__(self, private_key: bytes) -> None:
        """Initialize from a raw 32-byte private key.

        :param private_key: Private key bytes.
        :raises KeyLoadError: If the key is invalid.
        """
        try:
            self._key = keys.PrivateKey(private_key)
        except Exception as e:
            raise KeyLoadError(f"Invalid private key: {e}") from e

        self.public_key = self._key.public_key.to_compressed_bytes()
        raw_address = RIPEMD160.new(hashlib.sha256(self.public_key).digest()).digest()
        self.acc_address = address_to_bech32(ACCOUNT_PREFIX, raw_address)
        self.val_address = address_to_bech32(VALOPER_PREFIX, raw_address)

    def __repr__(self) -> str:
        """Return a representation that never exposes the key."""
        return f"RawKey({self.acc_address!r})"

    def sign(self, payload: bytes) -> bytes:
        """Sign SHA-256 of payload, returning a 64-byte low-s r||s signature.

        :param payload: Bytes to sign.
        :returns: Signature bytes.
        """
        signature = self._key.sign_msg_hash(hashlib.sha256(payload).digest())
        s = signature.s
        if s > SECP256K1_N // 2:
            s = SECP256K1_N - s
        return signature.r.to_bytes(32, "big") + s.to_bytes(32, "big")


def load_key(key_path: str | Path, passphrase: str) -> RawKey:
    """Decrypt a JSON keystore file.

    :param key_path: Path to the keystore file.
    :param passphrase: Keystore passphrase.
    :returns: Decrypted RawKey.
    :raises KeyLoadError: If the file is missing, malformed or the passphrase is wrong.
    """
    try:
        with open(key_path, "r") as file:
            keyfile = json.load(file)
        private_key = Account.decrypt(keyfile, passphrase)
    except FileNotFoundError as e:
        raise KeyLoadError(f"Key file not found: {key_path}") from e
    except (ValueError, KeyError, TypeError) as e:
        raise KeyLoadError(f"Failed to decrypt key file {key_path}: {e}") from e

    return RawKey(bytes(private_key))


def canonical_json(data: Any) -> bytes:
    """Serialize data as sorted, compact JSON bytes."""
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


class Wallet:
    """Signs transactions for a key against a chain.

    :ivar client: Chain client used to look up account numbers.
    :ivar key: Signing key.
    :ivar chain_id: Chain identifier bound into signatures.
    """

    def __init__(self, client: ChainClient, key: RawKey, chain_id: str) -> None:
        """Initialize the wallet.

        :param client: Chain client.
        :param key: Signing key.
        :param chain_id: Chain ID (e.g. "columbus-4").
        """
        self.client = client
        self.key = key
        self.chain_id = chain_id

    def sign_doc(
        self,
        msgs: list[dict[str, Any]],
        fee: Fee,
        memo: str,
        account_number: int,
        sequence: int,
    ) -> dict[str, Any]:
        """Build the amino sign document."""
        return {
            "account_number": str(account_number),
            "chain_id": self.chain_id,
            "fee": fee.to_amino(),
            "memo": memo,
            "msgs": msgs,
            "sequence": str(sequence),
        }

    def sign_tx(
        self,
        msgs: list[dict[str, Any]],
        fee: Fee,
        memo: str,
        account_number: int,
        sequence: int,
    ) -> dict[str, Any]:
        """Sign messages into a StdTx.

        :param msgs: Amino JSON messages.
        :param fee: Transaction fee.
        :param memo: Transaction memo.
        :param account_number: Signer account number.
        :param sequence: Signer sequence.
        :returns: Signed StdTx in amino JSON form.
        """
        doc = self.sign_doc(msgs, fee, memo, account_number, sequence)
        signature = self.key.sign(canonical_json(doc))
        return {
            "msg": msgs,
            "fee": fee.to_amino(),
            "signatures": [
                {
                    "signature": base64.b64encode(signature).decode("ascii"),
                    "pub_key": {
                        "type": PUBKEY_TYPE,
                        "value": base64.b64encode(self.key.public_key).decode("ascii"),
                    },
                    "account_number": str(account_number),
                    "sequence": str(sequence),
                }
            ],
            "memo": memo,
        }

    async def create_and_sign_tx(
        self, msgs: list[dict[str, Any]], fee: Fee, memo: str
    ) -> dict[str, Any]:
        """Look up the signer account and sign messages into a StdTx.

        :param msgs: Amino JSON messages.
        :param fee: Transaction fee.
        :param memo: Transaction memo.
        :returns: Signed StdTx.
        """
        account_number, sequence = await self.client.account_info(self.key.acc_address)
        logger.debug(
            f"Signing {len(msgs)} msgs as {self.key.acc_address} "
            f"(account_number={account_number}, sequence={sequence})"
        )
        return self.sign_tx(msgs, fee, memo, account_number, sequence)
