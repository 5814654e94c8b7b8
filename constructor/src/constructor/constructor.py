"""
Constructor for automated transaction construction testing.

Repeatedly exercises a construction adapter:
1. Find a funded, unlocked sender (creating and funding addresses as needed)
2. Classify possible recipients by balance
3. Generate a transfer scenario sized to the sender's balance
4. Construct, sign and verify the transaction through the adapter
5. Hand the verified transaction to the handler for broadcast
"""

from __future__ import annotations

import asyncio
import random

from loguru import logger

from constructor.config import ConstructionConfig
from constructor.helper import ConstructorHandler, ConstructorHelper
from constructor.keys import generate_keypair
from constructor.models import (
    AccountIdentifier,
    AccountingModel,
    CoinIdentifier,
    Operation,
    TransactionIdentifier,
)
from constructor.scenario import Action, ScenarioContext, populate_scenario
from constructor.utils import pretty_amount, random_number


class ConstructorError(Exception):
    """Base class for constructor failures"""

    pass


class InsufficientFundsError(ConstructorError):
    """Raised when no transfer can be generated with current balances"""

    pass


class ConstructionStepError(ConstructorError):
    """Raised when an adapter call in the construction pipeline fails"""

    def __init__(self, step: str, message: str):
        super().__init__(f"{message}: unable to {step}")
        self.step = step


class ProtocolViolationError(ConstructorError):
    """Raised when the adapter's output breaks a construction invariant"""

    pass


class UnexpectedSignersError(ProtocolViolationError):
    pass


class OperationsMismatchError(ProtocolViolationError):
    pass


class SignersMismatchError(ProtocolViolationError):
    pass


class Constructor:
    """
    Drives transaction construction against a ConstructorHelper.
    """

    def __init__(
        self,
        config: ConstructionConfig,
        helper: ConstructorHelper,
        handler: ConstructorHandler,
        rng: random.Random | None = None,
    ):
        """
        Initialize the Constructor.

        Args:
            config: Construction configuration
            helper: Adapter for the chain under test
            handler: Receiver for created addresses and transactions
            rng: Random source for scenario generation (seed it for reproducible runs)
        """
        self.config = config
        self.helper = helper
        self.handler = handler
        self.rng = rng or random.Random()

        self.network = config.network
        self.accounting_model = config.accounting_model
        self.currency = config.currency
        self.minimum_balance = config.minimum_balance
        self.maximum_fee = config.maximum_fee

    def minimum_required_balance(self, action: Action) -> int:
        """Balance an address must hold to perform action."""
        if action in (Action.NEW_ACCOUNT_SEND, Action.CHANGE_SEND):
            # Account: keep the minimum in the sender and send at least the
            # minimum to the recipient. UTXO: both the recipient and the
            # change output must receive the minimum or we create dust.
            return 2 * self.minimum_balance + self.maximum_fee

        # Account: keep the minimum in the sender.
        # UTXO: the single new output must receive the minimum.
        return self.minimum_balance + self.maximum_fee

    async def balance(self, address: str) -> tuple[int | None, CoinIdentifier | None]:
        """
        Get the spendable balance of address.

        For UTXO chains this is the value of the largest unspent coin.
        """
        account = AccountIdentifier(address=address)

        try:
            if self.accounting_model == AccountingModel.UTXO:
                return await self.helper.coin_balance(account, self.currency)
            return await self.helper.account_balance(account, self.currency), None
        except Exception as e:
            raise ConstructorError(f"{e}: unable to fetch balance for {address}") from e

    async def new_address(self) -> str:
        """
        Generate a keypair and derive its address offline.

        Only works for chains that do not require an on-chain action to
        create an account.
        """
        try:
            keypair = generate_keypair(self.config.curve_type)
        except Exception as e:
            raise ConstructorError(f"{e}: unable to generate keypair") from e

        try:
            address, _ = await self.helper.derive(self.network, keypair.public_key, None)
        except Exception as e:
            raise ConstructorError(f"{e}: unable to derive address") from e

        try:
            await self.helper.store_key(address, keypair)
        except Exception as e:
            raise ConstructorError(f"{e}: unable to store address") from e

        try:
            await self.handler.address_created(address)
        except Exception as e:
            raise ConstructorError(f"{e}: could not handle address creation") from e

        logger.info(f"Created address {address}")
        return address

    async def request_funds(self, address: str) -> tuple[int, CoinIdentifier | None]:
        """Wait until address holds enough funds to send from."""
        minimum = self.minimum_required_balance(Action.NEW_ACCOUNT_SEND)
        if self.accounting_model == AccountingModel.UTXO:
            minimum = self.minimum_required_balance(Action.CHANGE_SEND)

        notified = False
        while True:
            balance, coin_identifier = await self.balance(address)
            if balance is not None and balance - minimum >= 0:
                logger.info(f"Found balance {pretty_amount(balance, self.currency)} on {address}")
                return balance, coin_identifier

            if not notified:
                logger.warning(
                    f"Waiting for funds on {address} "
                    f"(need {pretty_amount(minimum, self.currency)})"
                )
                notified = True

            await asyncio.sleep(self.config.sleep_time)

    async def _generate_new_and_request(self) -> None:
        address = await self.new_address()
        try:
            await self.request_funds(address)
        except ConstructorError as e:
            raise ConstructorError(f"{e}: unable to get funds on {address}") from e

    async def _best_unlocked_sender(
        self, addresses: list[str]
    ) -> tuple[str, int | None, CoinIdentifier | None]:
        try:
            locked = set(await self.helper.locked_addresses())
        except Exception as e:
            raise ConstructorError(f"{e}: unable to get locked addresses") from e

        best_address = ""
        best_balance: int | None = None
        best_coin: CoinIdentifier | None = None

        for address in addresses:
            if address in locked:
                continue

            balance, coin_identifier = await self.balance(address)
            if balance is None:
                continue

            # Ties keep the first address seen
            if best_balance is None or balance > best_balance:
                best_address = address
                best_balance = balance
                best_coin = coin_identifier

        return best_address, best_balance, best_coin

    async def find_sender(self) -> tuple[str, int, CoinIdentifier | None]:
        """
        Find the unlocked address with the highest balance (or largest coin).

        Creates and funds a new address when nothing is available, and waits
        for pending broadcasts when every address is locked.
        """
        while True:
            try:
                addresses = await self.helper.all_addresses()
            except Exception as e:
                raise ConstructorError(f"{e}: unable to get addresses") from e

            if not addresses:
                await self._generate_new_and_request()
                continue

            address, balance, coin_identifier = await self._best_unlocked_sender(addresses)
            if address and balance is not None:
                return address, balance, coin_identifier

            try:
                broadcasts = await self.helper.all_broadcasts()
            except Exception as e:
                raise ConstructorError(f"{e}: unable to get broadcasts") from e

            if broadcasts:
                # Funds may free up once a pending broadcast confirms
                logger.debug(f"All addresses locked, waiting on {len(broadcasts)} broadcasts")
                await asyncio.sleep(self.config.sleep_time)
                continue

            await self._generate_new_and_request()

    async def find_recipients(self, sender: str) -> tuple[list[str], list[str]]:
        """
        Split all non-sender addresses by whether they hold the minimum balance.

        Returns:
            (recipients at or above minimum, recipients below minimum)
        """
        try:
            addresses = await self.helper.all_addresses()
        except Exception as e:
            raise ConstructorError(f"{e}: unable to get addresses") from e

        minimum_recipients: list[str] = []
        below_minimum_recipients: list[str] = []

        for address in addresses:
            if address == sender:
                continue

            # Sending UTXOs always requires sending at least the minimum
            if self.accounting_model == AccountingModel.UTXO:
                below_minimum_recipients.append(address)
                continue

            balance, _ = await self.balance(address)
            if balance is not None and balance >= self.minimum_balance:
                minimum_recipients.append(address)
            else:
                below_minimum_recipients.append(address)

        return minimum_recipients, below_minimum_recipients

    def _create_scenario_context(
        self,
        sender: str,
        sender_value: int,
        recipient: str,
        recipient_value: int,
        change_address: str = "",
        change_value: int | None = None,
        coin_identifier: CoinIdentifier | None = None,
    ) -> tuple[ScenarioContext, list[Operation]]:
        # Deep copies keep hydration from mutating the loaded configuration
        operations = [op.model_copy(deep=True) for op in self.config.scenario]
        if change_address and self.config.change_scenario is not None:
            operations.append(self.config.change_scenario.model_copy(deep=True))

        context = ScenarioContext(
            sender=sender,
            sender_value=sender_value,
            recipient=recipient,
            recipient_value=recipient_value,
            currency=self.currency,
            change_address=change_address,
            change_value=change_value,
            coin_identifier=coin_identifier,
        )
        return context, operations

    async def _maybe_new_address(self, recipients: list[str]) -> tuple[str, bool]:
        """
        Pick a recipient, sometimes creating a new address.

        Returns:
            (address, whether it was created)
        """
        try:
            available = await self.helper.all_addresses()
        except Exception as e:
            raise ConstructorError(f"{e}: unable to get available addresses") from e

        if not recipients or (
            self.rng.random() > self.config.new_account_probability
            and len(available) < self.config.max_addresses
        ):
            return await self.new_address(), True

        return recipients[0], False

    async def generate_account_scenario(
        self,
        sender: str,
        balance: int,
        minimum_recipients: list[str],
        below_minimum_recipients: list[str],
    ) -> tuple[ScenarioContext, list[Operation]]:
        """Size a transfer for an account-model chain."""
        adjusted_balance = balance - self.minimum_balance

        if balance >= self.minimum_required_balance(Action.NEW_ACCOUNT_SEND):
            recipient, created = await self._maybe_new_address(
                minimum_recipients + below_minimum_recipients
            )

            if created or recipient in below_minimum_recipients:
                recipient_value = random_number(self.rng, self.minimum_balance, adjusted_balance)
            else:
                # Recipient already holds the minimum
                recipient_value = random_number(self.rng, 0, adjusted_balance)

            return self._create_scenario_context(
                sender, recipient_value, recipient, recipient_value
            )

        if balance >= self.minimum_required_balance(Action.EXISTING_ACCOUNT_SEND):
            if not minimum_recipients:
                raise InsufficientFundsError(
                    f"{sender} can only send to funded accounts but none exist"
                )

            recipient_value = random_number(self.rng, 0, adjusted_balance)
            return self._create_scenario_context(
                sender, recipient_value, minimum_recipients[0], recipient_value
            )

        raise InsufficientFundsError(
            f"balance {balance} on {sender} is below "
            f"{self.minimum_required_balance(Action.EXISTING_ACCOUNT_SEND)}"
        )

    async def generate_utxo_scenario(
        self,
        sender: str,
        balance: int,
        recipients: list[str],
        coin_identifier: CoinIdentifier | None,
    ) -> tuple[ScenarioContext, list[Operation]]:
        """Size a transfer spending a single coin on a UTXO chain."""
        fee_less_balance = balance - self.maximum_fee

        if balance < self.minimum_required_balance(Action.FULL_SEND):
            raise InsufficientFundsError(
                f"coin value {balance} on {sender} is below "
                f"{self.minimum_required_balance(Action.FULL_SEND)}"
            )

        recipient, created = await self._maybe_new_address(recipients)
        if not created:
            recipients = [r for r in recipients if r != recipient]

        if (
            balance >= self.minimum_required_balance(Action.CHANGE_SEND)
            and self.config.change_scenario is not None
        ):
            change_address, _ = await self._maybe_new_address(recipients)

            change_differential = fee_less_balance - 2 * self.minimum_balance
            recipient_share = random_number(self.rng, 0, change_differential)
            change_share = change_differential - recipient_share

            return self._create_scenario_context(
                sender,
                balance,
                recipient,
                self.minimum_balance + recipient_share,
                change_address=change_address,
                change_value=self.minimum_balance + change_share,
                coin_identifier=coin_identifier,
            )

        return self._create_scenario_context(
            sender,
            balance,
            recipient,
            random_number(self.rng, self.minimum_balance, fee_less_balance),
            coin_identifier=coin_identifier,
        )

    async def generate_scenario(
        self,
        sender: str,
        balance: int,
        coin_identifier: CoinIdentifier | None,
    ) -> tuple[ScenarioContext, list[Operation]]:
        """
        Decide what transfer to perform from sender.

        Raises:
            InsufficientFundsError: If no valid transfer is possible
        """
        minimum_recipients, below_minimum_recipients = await self.find_recipients(sender)

        if self.accounting_model == AccountingModel.UTXO:
            return await self.generate_utxo_scenario(
                sender, balance, below_minimum_recipients, coin_identifier
            )

        return await self.generate_account_scenario(
            sender, balance, minimum_recipients, below_minimum_recipients
        )

    async def create_transaction(
        self, intent: list[Operation]
    ) -> tuple[TransactionIdentifier, str]:
        """
        Construct and sign a transaction with the provided intent.

        Returns:
            (transaction identifier, network transaction ready for broadcast)
        """
        try:
            metadata_request = await self.helper.preprocess(self.network, intent, None)
        except Exception as e:
            raise ConstructionStepError("preprocess", str(e)) from e

        try:
            required_metadata = await self.helper.metadata(self.network, metadata_request)
        except Exception as e:
            raise ConstructionStepError("construct metadata", str(e)) from e

        try:
            unsigned_transaction, payloads = await self.helper.payloads(
                self.network, intent, required_metadata
            )
        except Exception as e:
            raise ConstructionStepError("construct payloads", str(e)) from e

        try:
            parsed_ops, signers, _ = await self.helper.parse(
                self.network, False, unsigned_transaction
            )
        except Exception as e:
            raise ConstructionStepError("parse unsigned transaction", str(e)) from e

        if signers:
            raise UnexpectedSignersError(
                f"signers should be empty in unsigned transaction but found {len(signers)}"
            )

        try:
            self.helper.expected_operations(intent, parsed_ops, False, False)
        except Exception as e:
            raise OperationsMismatchError(f"{e}: unsigned parsed ops do not match intent") from e

        logger.debug(f"Unsigned transaction verified, signing {len(payloads)} payloads")

        try:
            signatures = await self.helper.sign(payloads)
        except Exception as e:
            raise ConstructionStepError("sign payloads", str(e)) from e

        try:
            network_transaction = await self.helper.combine(
                self.network, unsigned_transaction, signatures
            )
        except Exception as e:
            raise ConstructionStepError("combine signatures", str(e)) from e

        try:
            signed_parsed_ops, signers, _ = await self.helper.parse(
                self.network, True, network_transaction
            )
        except Exception as e:
            raise ConstructionStepError("parse signed transaction", str(e)) from e

        try:
            self.helper.expected_operations(intent, signed_parsed_ops, False, False)
        except Exception as e:
            raise OperationsMismatchError(f"{e}: signed parsed ops do not match intent") from e

        try:
            self.helper.expected_signers(payloads, signers)
        except Exception as e:
            raise SignersMismatchError(
                f"{e}: signed transaction signers do not match intent"
            ) from e

        try:
            transaction_identifier = await self.helper.hash(self.network, network_transaction)
        except Exception as e:
            raise ConstructionStepError("get transaction hash", str(e)) from e

        return transaction_identifier, network_transaction

    async def create_transactions(self, max_transactions: int | None = None) -> int:
        """
        Continuously create transactions until max_transactions is reached.

        Runs until cancelled when max_transactions is None.

        Returns:
            Number of transactions created
        """
        created = 0
        while max_transactions is None or created < max_transactions:
            sender, balance, coin_identifier = await self.find_sender()

            try:
                context, operations = await self.generate_scenario(
                    sender, balance, coin_identifier
                )
            except InsufficientFundsError as e:
                try:
                    broadcasts = await self.helper.all_broadcasts()
                except Exception as broadcast_error:
                    raise ConstructorError(
                        f"{broadcast_error}: unable to get broadcasts"
                    ) from broadcast_error

                if broadcasts:
                    logger.debug(
                        f"Insufficient funds ({e}), waiting on {len(broadcasts)} broadcasts"
                    )
                    await asyncio.sleep(self.config.sleep_time)
                    continue

                logger.warning(f"Insufficient funds ({e}), requesting funds on a new address")
                await self._generate_new_and_request()
                continue

            intent = populate_scenario(context, operations)
            transaction_identifier, network_transaction = await self.create_transaction(intent)

            try:
                await self.handler.transaction_created(
                    sender, transaction_identifier, network_transaction, intent
                )
            except Exception as e:
                raise ConstructorError(f"{e}: could not handle transaction creation") from e

            created += 1
            logger.info(f"Created transaction {transaction_identifier.hash} from {sender}")

        return created
