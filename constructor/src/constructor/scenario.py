"""
Scenario context and template population.

Operation templates in the configuration use placeholders such as
``{{ SENDER }}`` and ``{{ RECIPIENT_VALUE }}``. Once a scenario has been
sized, the placeholders are replaced with concrete addresses and amounts to
form the intent submitted to the construction pipeline.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum

from constructor.models import CoinIdentifier, Currency, Operation

SENDER = "{{ SENDER }}"
SENDER_VALUE = "{{ SENDER_VALUE }}"
RECIPIENT = "{{ RECIPIENT }}"
RECIPIENT_VALUE = "{{ RECIPIENT_VALUE }}"
COIN_IDENTIFIER = "{{ COIN_IDENTIFIER }}"
CHANGE_ADDRESS = "{{ CHANGE_ADDRESS }}"
CHANGE_VALUE = "{{ CHANGE_VALUE }}"


class Action(str, Enum):
    """Transfer kinds, used to compute the balance a sender must hold."""

    NEW_ACCOUNT_SEND = "new-account-send"
    EXISTING_ACCOUNT_SEND = "existing-account-send"
    CHANGE_SEND = "change-send"
    FULL_SEND = "full-send"


@dataclass
class ScenarioContext:
    """Concrete values for a single transfer attempt."""

    sender: str
    sender_value: int
    recipient: str
    recipient_value: int
    currency: Currency
    change_address: str = ""
    change_value: int | None = None
    coin_identifier: CoinIdentifier | None = None

    @property
    def has_change(self) -> bool:
        return bool(self.change_address)


def populate_scenario(context: ScenarioContext, operations: list[Operation]) -> list[Operation]:
    """
    Replace template placeholders with the values in context.

    The input operations are left untouched; new models are returned. Every
    operation carrying an amount is set to the context currency.
    """
    payload = json.dumps(
        [op.model_dump(mode="json", exclude_none=True) for op in operations]
    )

    replacements = {
        SENDER_VALUE: str(context.sender_value),
        SENDER: context.sender,
        RECIPIENT_VALUE: str(context.recipient_value),
        RECIPIENT: context.recipient,
    }
    if context.coin_identifier is not None:
        replacements[COIN_IDENTIFIER] = context.coin_identifier.identifier
    if context.has_change:
        replacements[CHANGE_ADDRESS] = context.change_address
        replacements[CHANGE_VALUE] = str(context.change_value)

    for placeholder, value in replacements.items():
        # Addresses are arbitrary strings; escape them for the JSON document
        payload = payload.replace(placeholder, json.dumps(value)[1:-1])

    populated = [Operation.model_validate(op) for op in json.loads(payload)]
    for op in populated:
        if op.amount is not None:
            op.amount.currency = context.currency.model_copy(deep=True)

    return populated
