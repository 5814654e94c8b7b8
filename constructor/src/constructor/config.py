"""
Configuration for the transaction constructor.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from constructor.models import (
    AccountingModel,
    Currency,
    CurveType,
    NetworkIdentifier,
    Operation,
)

# Seconds to wait between balance polls and sender discovery retries
DEFAULT_SLEEP_TIME = 10.0


class ConstructionConfig(BaseModel):
    """Configuration for a construction run."""

    network: NetworkIdentifier
    accounting_model: AccountingModel = AccountingModel.ACCOUNT
    currency: Currency

    # Balance policy (atomic units of currency)
    minimum_balance: int = Field(default=0, ge=0)
    maximum_fee: int = Field(default=0, ge=0)

    # Address generation
    curve_type: CurveType = CurveType.SECP256K1
    new_account_probability: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Probability of reusing an existing recipient"
    )
    max_addresses: int = Field(default=200, ge=1)

    # Operation templates hydrated for every transfer
    scenario: list[Operation] = Field(..., min_length=1)
    change_scenario: Operation | None = None

    sleep_time: float = Field(default=DEFAULT_SLEEP_TIME, gt=0.0)

    @model_validator(mode="after")
    def check_change_scenario(self) -> ConstructionConfig:
        """Change outputs only exist for UTXO chains."""
        if self.change_scenario is not None and self.accounting_model != AccountingModel.UTXO:
            raise ValueError("change_scenario is only supported with the utxo accounting model")
        return self
