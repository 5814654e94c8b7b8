"""
Test configuration for constructor tests.

Provides an in-memory adapter that builds JSON "transactions" so the full
construction pipeline can be exercised without a chain.
"""

from __future__ import annotations

import hashlib
import json
import random
from typing import Any

import pytest

from constructor.config import ConstructionConfig
from constructor.helper import ConstructorHandler, ConstructorHelper
from constructor.models import (
    AccountIdentifier,
    AccountingModel,
    Broadcast,
    CoinIdentifier,
    Currency,
    KeyPair,
    NetworkIdentifier,
    Operation,
    PublicKey,
    Signature,
    SignatureType,
    SigningPayload,
    TransactionIdentifier,
)

CURRENCY = Currency(symbol="TST", decimals=8)
NETWORK = NetworkIdentifier(blockchain="testchain", network="regtest")


def transfer_template() -> list[dict[str, Any]]:
    return [
        {
            "operation_identifier": {"index": 0},
            "type": "TRANSFER",
            "account": {"address": "{{ SENDER }}"},
            "amount": {"value": "-{{ SENDER_VALUE }}", "currency": CURRENCY.model_dump()},
        },
        {
            "operation_identifier": {"index": 1},
            "type": "TRANSFER",
            "account": {"address": "{{ RECIPIENT }}"},
            "amount": {"value": "{{ RECIPIENT_VALUE }}", "currency": CURRENCY.model_dump()},
        },
    ]


def change_template() -> dict[str, Any]:
    return {
        "operation_identifier": {"index": 2},
        "type": "TRANSFER",
        "account": {"address": "{{ CHANGE_ADDRESS }}"},
        "amount": {"value": "{{ CHANGE_VALUE }}", "currency": CURRENCY.model_dump()},
    }


def make_config(**overrides: Any) -> ConstructionConfig:
    values: dict[str, Any] = {
        "network": NETWORK,
        "currency": CURRENCY,
        "minimum_balance": 100,
        "maximum_fee": 10,
        "scenario": transfer_template(),
        "sleep_time": 0.01,
    }
    values.update(overrides)
    return ConstructionConfig.model_validate(values)


class InMemoryHelper(ConstructorHelper):
    """Adapter that encodes transactions as JSON documents."""

    def __init__(self) -> None:
        self.balances: dict[str, int] = {}
        self.coins: dict[str, tuple[int, CoinIdentifier]] = {}
        self.keys: dict[str, KeyPair] = {}
        self.addresses: list[str] = []
        self.locked: list[str] = []
        self.broadcasts: list[Broadcast] = []
        self.calls: list[str] = []

    def add_address(self, address: str, balance: int = 0) -> None:
        self.addresses.append(address)
        self.balances[address] = balance
        self.coins[address] = (balance, CoinIdentifier(identifier=f"{address}:0"))

    async def derive(self, network, public_key, metadata):
        self.calls.append("derive")
        return "addr_" + public_key.hex_bytes[:16], metadata

    async def preprocess(self, network, intent, metadata):
        self.calls.append("preprocess")
        return {"operation_count": len(intent)}

    async def metadata(self, network, metadata_request):
        self.calls.append("metadata")
        return {"nonce": 7, **(metadata_request or {})}

    async def payloads(self, network, intent, metadata):
        self.calls.append("payloads")
        ops = [op.model_dump(mode="json", exclude_none=True) for op in intent]
        unsigned = json.dumps({"operations": ops, "metadata": metadata}, sort_keys=True)
        payloads = [
            SigningPayload(
                account_identifier=op.account,
                hex_bytes=hashlib.sha256(unsigned.encode()).hexdigest(),
                signature_type=SignatureType.ECDSA,
            )
            for op in intent
            if op.account is not None and op.amount is not None and op.amount.value.startswith("-")
        ]
        return unsigned, payloads

    async def parse(self, network, signed, transaction):
        self.calls.append("parse_signed" if signed else "parse_unsigned")
        document = json.loads(transaction)
        ops = [Operation.model_validate(op) for op in document["operations"]]
        return ops, list(document.get("signers", [])), document.get("metadata")

    async def combine(self, network, unsigned_transaction, signatures):
        self.calls.append("combine")
        document = json.loads(unsigned_transaction)
        signers: list[str] = []
        for signature in signatures:
            if signature.signing_payload.signer not in signers:
                signers.append(signature.signing_payload.signer)
        document["signers"] = signers
        return json.dumps(document, sort_keys=True)

    async def hash(self, network, network_transaction):
        self.calls.append("hash")
        return TransactionIdentifier(hash=hashlib.sha256(network_transaction.encode()).hexdigest())

    async def sign(self, payloads):
        self.calls.append("sign")
        return [
            Signature(
                signing_payload=payload,
                public_key=PublicKey(hex_bytes="02" + "00" * 32, curve_type="secp256k1"),
                signature_type=SignatureType.ECDSA,
                hex_bytes="ab" * 64,
            )
            for payload in payloads
        ]

    async def store_key(self, address, keypair):
        self.keys[address] = keypair
        if address not in self.addresses:
            self.add_address(address)

    async def account_balance(self, account: AccountIdentifier, currency: Currency) -> int:
        return self.balances.get(account.address, 0)

    async def coin_balance(self, account: AccountIdentifier, currency: Currency):
        return self.coins.get(account.address, (0, None))

    async def locked_addresses(self) -> list[str]:
        return list(self.locked)

    async def all_addresses(self) -> list[str]:
        return list(self.addresses)

    async def all_broadcasts(self) -> list[Broadcast]:
        return list(self.broadcasts)


class RecordingHandler(ConstructorHandler):
    """Handler that records notifications."""

    def __init__(self) -> None:
        self.addresses: list[str] = []
        self.transactions: list[tuple[str, TransactionIdentifier, str, list[Operation]]] = []

    async def address_created(self, address: str) -> None:
        self.addresses.append(address)

    async def transaction_created(
        self, sender, transaction_identifier, network_transaction, intent
    ):
        self.transactions.append((sender, transaction_identifier, network_transaction, intent))


@pytest.fixture
def helper() -> InMemoryHelper:
    return InMemoryHelper()


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for reproducible scenarios."""
    return random.Random(1234)


@pytest.fixture
def account_config() -> ConstructionConfig:
    return make_config()


@pytest.fixture
def utxo_config() -> ConstructionConfig:
    return make_config(
        accounting_model=AccountingModel.UTXO,
        minimum_balance=50,
        maximum_fee=5,
        change_scenario=change_template(),
    )


@pytest.fixture
def config_factory():
    """Build a ConstructionConfig with test defaults, overriding any field."""
    return make_config


@pytest.fixture
def make_constructor(helper, handler, rng):
    """Build a Constructor wired to the in-memory helper and handler."""
    from constructor.constructor import Constructor

    def _make(config: ConstructionConfig) -> Constructor:
        return Constructor(config=config, helper=helper, handler=handler, rng=rng)

    return _make
