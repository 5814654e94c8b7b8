"""
Matching of parsed transactions against the operations and signers we intended.

Adapters are free to override these checks, but most chains can rely on the
default structural comparison implemented here.
"""

from __future__ import annotations

from collections.abc import Iterable

from constructor.models import Operation, SigningPayload

SUCCESSFUL_STATUSES: frozenset[str] = frozenset({"SUCCESS"})


class ExpectedOperationsError(Exception):
    """Raised when observed operations do not reproduce the intent"""

    pass


class ExpectedSignersError(Exception):
    """Raised when recovered signers do not match the signing payloads"""

    pass


def expected_operation(intent: Operation, observed: Operation) -> None:
    """Check that a single observed operation matches an intended one."""
    if intent.account != observed.account:
        raise ExpectedOperationsError(
            f"account mismatch: expected {intent.account}, observed {observed.account}"
        )

    if intent.amount != observed.amount:
        raise ExpectedOperationsError(
            f"amount mismatch: expected {intent.amount}, observed {observed.amount}"
        )

    if intent.type != observed.type:
        raise ExpectedOperationsError(
            f"type mismatch: expected {intent.type}, observed {observed.type}"
        )


def expected_operations(
    intent: list[Operation],
    observed: list[Operation],
    error_extra: bool,
    confirm_success: bool,
    successful_statuses: Iterable[str] = SUCCESSFUL_STATUSES,
) -> None:
    """
    Verify that every intended operation appears in the observed operations.

    Observed operations are matched greedily against the first intended
    operation they satisfy. Ordering is not significant.

    Args:
        intent: Operations we asked the adapter to construct
        observed: Operations the adapter parsed back out of the transaction
        error_extra: Fail if an observed operation matches nothing
        confirm_success: Fail if a matched operation has a non-successful status
        successful_statuses: Statuses considered successful

    Raises:
        ExpectedOperationsError: If the observed operations do not match
    """
    successful = set(successful_statuses)
    matches: dict[int, int] = {}  # intent index -> observed index

    for obs_index, obs in enumerate(observed):
        found_match = False
        for intent_index, op in enumerate(intent):
            if intent_index in matches:
                continue

            try:
                expected_operation(op, obs)
            except ExpectedOperationsError:
                continue

            if confirm_success and obs.status not in successful:
                raise ExpectedOperationsError(
                    f"operation {obs_index} has unsuccessful status {obs.status!r}"
                )

            matches[intent_index] = obs_index
            found_match = True
            break

        if not found_match and error_extra:
            raise ExpectedOperationsError(f"found extra operation {obs_index}: {obs.type}")

    missing = [i for i in range(len(intent)) if i not in matches]
    if missing:
        raise ExpectedOperationsError(f"unable to find match for intent operations {missing}")


def expected_signers(payloads: list[SigningPayload], signers: list[str]) -> None:
    """
    Verify that recovered signers are exactly the addresses that had to sign.

    Multiple payloads for the same address (several inputs from one address)
    require only one signer entry.

    Raises:
        ExpectedSignersError: If signers are missing or unexpected
    """
    intended = {payload.signer for payload in payloads}

    if len(intended) != len(signers):
        raise ExpectedSignersError(
            f"expected {len(intended)} signers but found {len(signers)}"
        )

    unexpected = [signer for signer in signers if signer not in intended]
    missing = intended.difference(signers)

    if missing:
        raise ExpectedSignersError(f"missing signers: {sorted(missing)}")

    if unexpected:
        raise ExpectedSignersError(f"unexpected signers: {unexpected}")
