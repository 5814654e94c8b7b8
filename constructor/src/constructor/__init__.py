"""
constructor - Automated stress testing for blockchain construction APIs

Selects funded senders, sizes plausible transfers and drives a protocol
adapter through construct, sign and verify.
"""

__version__ = "0.1.0"

from constructor.config import ConstructionConfig
from constructor.constructor import (
    ConstructionStepError,
    Constructor,
    ConstructorError,
    InsufficientFundsError,
    OperationsMismatchError,
    ProtocolViolationError,
    SignersMismatchError,
    UnexpectedSignersError,
)
from constructor.helper import ConstructorHandler, ConstructorHelper
from constructor.models import AccountingModel, CurveType, Operation
from constructor.scenario import Action, ScenarioContext, populate_scenario

__all__ = [
    "AccountingModel",
    "Action",
    "ConstructionConfig",
    "ConstructionStepError",
    "Constructor",
    "ConstructorError",
    "ConstructorHandler",
    "ConstructorHelper",
    "CurveType",
    "InsufficientFundsError",
    "Operation",
    "OperationsMismatchError",
    "ProtocolViolationError",
    "ScenarioContext",
    "SignersMismatchError",
    "UnexpectedSignersError",
    "populate_scenario",
]
