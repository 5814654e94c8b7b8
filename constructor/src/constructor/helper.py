"""
Protocol adapter and handler interfaces.

A concrete ConstructorHelper implements construction for one blockchain
family. The constructor only ever talks to a chain through this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from constructor import parser
from constructor.models import (
    AccountIdentifier,
    Broadcast,
    CoinIdentifier,
    Currency,
    KeyPair,
    NetworkIdentifier,
    Operation,
    PublicKey,
    Signature,
    SigningPayload,
    TransactionIdentifier,
)


class ConstructorHelper(ABC):
    """
    Abstract construction adapter.

    Every method may raise; the constructor wraps the exception with the
    name of the step that failed.
    """

    @abstractmethod
    async def derive(
        self,
        network: NetworkIdentifier,
        public_key: PublicKey,
        metadata: dict[str, Any] | None,
    ) -> tuple[str, dict[str, Any] | None]:
        """Derive an address from a public key, returns (address, metadata)"""

    @abstractmethod
    async def preprocess(
        self,
        network: NetworkIdentifier,
        intent: list[Operation],
        metadata: dict[str, Any] | None,
    ) -> dict[str, Any] | None:
        """Build the request passed to metadata()"""

    @abstractmethod
    async def metadata(
        self,
        network: NetworkIdentifier,
        metadata_request: dict[str, Any] | None,
    ) -> dict[str, Any] | None:
        """Fetch online metadata required to construct a transaction"""

    @abstractmethod
    async def payloads(
        self,
        network: NetworkIdentifier,
        intent: list[Operation],
        metadata: dict[str, Any] | None,
    ) -> tuple[str, list[SigningPayload]]:
        """Build an unsigned transaction, returns (unsigned_tx, signing_payloads)"""

    @abstractmethod
    async def parse(
        self,
        network: NetworkIdentifier,
        signed: bool,
        transaction: str,
    ) -> tuple[list[Operation], list[str], dict[str, Any] | None]:
        """Parse a transaction, returns (operations, signers, metadata)"""

    @abstractmethod
    async def combine(
        self,
        network: NetworkIdentifier,
        unsigned_transaction: str,
        signatures: list[Signature],
    ) -> str:
        """Attach signatures to an unsigned transaction, returns the network transaction"""

    @abstractmethod
    async def hash(
        self,
        network: NetworkIdentifier,
        network_transaction: str,
    ) -> TransactionIdentifier:
        """Compute the identifier of a network transaction"""

    @abstractmethod
    async def sign(self, payloads: list[SigningPayload]) -> list[Signature]:
        """Sign payloads with stored keys"""

    @abstractmethod
    async def store_key(self, address: str, keypair: KeyPair) -> None:
        """Persist a keypair for a derived address"""

    @abstractmethod
    async def account_balance(self, account: AccountIdentifier, currency: Currency) -> int:
        """Get the balance of an account-model address"""

    @abstractmethod
    async def coin_balance(
        self, account: AccountIdentifier, currency: Currency
    ) -> tuple[int, CoinIdentifier | None]:
        """Get the value and identifier of the largest unspent coin owned by an address"""

    @abstractmethod
    async def locked_addresses(self) -> list[str]:
        """Addresses with an unconfirmed outbound transaction"""

    @abstractmethod
    async def all_addresses(self) -> list[str]:
        """All addresses with stored keys"""

    @abstractmethod
    async def all_broadcasts(self) -> list[Broadcast]:
        """Broadcasts that have not yet confirmed"""

    def expected_operations(
        self,
        intent: list[Operation],
        observed: list[Operation],
        error_extra: bool,
        confirm_success: bool,
    ) -> None:
        """
        Raise if observed operations do not reproduce intent.

        Default implementation performs a structural comparison of type,
        account and amount.
        """
        parser.expected_operations(intent, observed, error_extra, confirm_success)

    def expected_signers(self, payloads: list[SigningPayload], signers: list[str]) -> None:
        """Raise if recovered signers differ from the payload signers."""
        parser.expected_signers(payloads, signers)


class ConstructorHandler(ABC):
    """Receives notifications from the constructor."""

    @abstractmethod
    async def address_created(self, address: str) -> None:
        """Called after every successful address creation"""

    @abstractmethod
    async def transaction_created(
        self,
        sender: str,
        transaction_identifier: TransactionIdentifier,
        network_transaction: str,
        intent: list[Operation],
    ) -> None:
        """Called with a verified, signed transaction ready for broadcast"""
