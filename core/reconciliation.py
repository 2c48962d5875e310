"""
Payment reconciliation.

Matches incoming ledger transactions to known invoice references and sums the
paid amounts. Stateless: every call recomputes from its inputs, so retries
can never double-count.

Matching rules:
- destination must equal own_address (case-insensitive)
- failed transactions and repeated transaction hashes are skipped
- the payload is scanned case-insensitively for each reference's hex body
- a transaction settles at most one reference: the one occurring earliest in
  the payload; at the same offset the longer reference wins, then the
  lexicographically smaller one
- transactions matching nothing are discarded
"""

import logging
from collections.abc import Iterable
from decimal import Decimal

from core.models import IncomingPayment, PaymentSummary, RawTransaction

logger = logging.getLogger(__name__)


def _normalize_reference(reference: str) -> str:
    reference = reference.strip().lower()
    if reference.startswith("0x"):
        return reference
    return "0x" + reference


def _match_reference(payload: str, bodies: dict[str, str]) -> tuple[str | None, bool]:
    """
    Find the reference settled by a payload.

    Returns:
        (reference or None, whether more than one reference was present)
    """
    found = []
    for body, reference in bodies.items():
        offset = payload.find(body)
        if offset >= 0:
            found.append((offset, -len(body), reference))

    if not found:
        return None, False

    found.sort()
    distinct = {reference for _, _, reference in found}
    return found[0][2], len(distinct) > 1


def reconcile(
    own_address: str,
    known_references: Iterable[str],
    transactions: Iterable[RawTransaction],
) -> PaymentSummary:
    """
    Sum incoming payments per known invoice reference.

    Args:
        own_address: Address payments are sent to
        known_references: Invoice references (0x hex) issued from own_address
        transactions: Transaction history in any order, possibly with repeats

    Returns:
        PaymentSummary with an entry for every known reference
    """
    own = own_address.lower()

    bodies: dict[str, str] = {}
    for reference in known_references:
        normalized = _normalize_reference(reference)
        body = normalized[2:]
        if not body:
            logger.warning("Skipping empty invoice reference")
            continue
        bodies[body] = normalized

    totals = {reference: Decimal(0) for reference in bodies.values()}
    payments: list[IncomingPayment] = []
    seen: set[str] = set()

    for tx in transactions:
        if not tx.to or tx.to.lower() != own:
            continue
        if tx.is_error:
            continue

        tx_hash = tx.hash.lower()
        if tx_hash in seen:
            continue
        seen.add(tx_hash)

        reference, ambiguous = _match_reference((tx.input or "").lower(), bodies)
        if reference is None:
            continue

        if ambiguous:
            logger.warning(
                f"Transaction {tx.hash} carries several known references; "
                f"attributed to {reference}"
            )

        totals[reference] += tx.value
        payments.append(IncomingPayment(
            tx_hash=tx.hash,
            from_address=tx.from_address,
            amount=tx.value,
            matched_reference=reference,
            timestamp=tx.timestamp,
            ambiguous=ambiguous,
        ))

    payments.sort(key=lambda p: (p.timestamp, p.tx_hash.lower()))

    logger.info(
        f"Reconciled {len(payments)} payments across {len(totals)} references "
        f"for {own_address}"
    )
    return PaymentSummary(totals=totals, payments=tuple(payments))
