"""
Construction data models using Pydantic for validation and serialization.

These mirror the Rosetta data API objects that flow between the constructor
and a protocol adapter.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AccountingModel(str, Enum):
    ACCOUNT = "account"
    UTXO = "utxo"


class CurveType(str, Enum):
    SECP256K1 = "secp256k1"
    SECP256R1 = "secp256r1"
    EDWARDS25519 = "edwards25519"
    TWEEDLE = "tweedle"
    PALLAS = "pallas"


class SignatureType(str, Enum):
    ECDSA = "ecdsa"
    ECDSA_RECOVERY = "ecdsa_recovery"
    ED25519 = "ed25519"
    SCHNORR_1 = "schnorr_1"
    SCHNORR_POSEIDON = "schnorr_poseidon"


class CoinAction(str, Enum):
    CREATED = "coin_created"
    SPENT = "coin_spent"


class NetworkIdentifier(BaseModel):
    blockchain: str = Field(..., min_length=1)
    network: str = Field(..., min_length=1)
    sub_network_identifier: dict[str, Any] | None = None


class Currency(BaseModel):
    symbol: str = Field(..., min_length=1)
    decimals: int = Field(..., ge=0)
    metadata: dict[str, Any] | None = None


class AccountIdentifier(BaseModel):
    address: str
    sub_account: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class Amount(BaseModel):
    # Kept as a string: templates carry placeholders like "-{{ SENDER_VALUE }}"
    value: str
    currency: Currency
    metadata: dict[str, Any] | None = None


class CoinIdentifier(BaseModel):
    identifier: str


class CoinChange(BaseModel):
    coin_identifier: CoinIdentifier
    coin_action: CoinAction


class OperationIdentifier(BaseModel):
    index: int = Field(..., ge=0)
    network_index: int | None = None


class Operation(BaseModel):
    """A single balance-changing operation inside a transaction."""

    operation_identifier: OperationIdentifier
    related_operations: list[OperationIdentifier] | None = None
    type: str
    status: str | None = None
    account: AccountIdentifier | None = None
    amount: Amount | None = None
    coin_change: CoinChange | None = None
    metadata: dict[str, Any] | None = None


class PublicKey(BaseModel):
    hex_bytes: str
    curve_type: CurveType


class KeyPair(BaseModel):
    """Generated key material handed to the adapter for storage."""

    public_key: PublicKey
    private_key: str  # hex

    def private_key_bytes(self) -> bytes:
        return bytes.fromhex(self.private_key)


class SigningPayload(BaseModel):
    account_identifier: AccountIdentifier | None = None
    # Deprecated upstream in favour of account_identifier, still emitted by some adapters
    address: str | None = None
    hex_bytes: str
    signature_type: SignatureType | None = None

    @property
    def signer(self) -> str:
        """Address expected to produce a signature for this payload."""
        if self.account_identifier is not None:
            return self.account_identifier.address
        return self.address or ""


class Signature(BaseModel):
    signing_payload: SigningPayload
    public_key: PublicKey
    signature_type: SignatureType
    hex_bytes: str


class TransactionIdentifier(BaseModel):
    hash: str = Field(..., min_length=1)


class Broadcast(BaseModel):
    """A transaction handed off for broadcast that has not yet confirmed."""

    identifier: TransactionIdentifier
    sender: str
