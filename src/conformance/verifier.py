"""
Confirm that a submitted transaction reached a validated ledger and did what
it was supposed to do.

The lookup is repeated on a fixed interval until one of:
  - the node reports it validated (success or failure),
  - the latest validated ledger passes the window's max ledger version,
  - the attempt budget or the overall deadline runs out.
Only the first ends without an ExpirationError.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from xrpl.models.requests import Tx

import conformance.constants as C
from conformance.connection import Connection
from conformance.errors import ExpirationError, VerificationError
from conformance.ledger import validated_ledger_index
from conformance.models import LedgerRange, Outcome, VerificationResult

log = logging.getLogger("conformance.verifier")

# Lookup errors that only mean "not there (yet)"
_NOT_FOUND = {"txnNotFound"}


@dataclass(frozen=True, slots=True)
class PollPolicy:
    interval: float = C.POLL_INTERVAL
    max_attempts: int = C.POLL_ATTEMPTS
    overall: float = C.POLL_OVERALL

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


def _tx_fields(result: dict[str, Any]) -> dict[str, Any]:
    # API v2 nests the transaction under tx_json, v1 puts it at the top level
    tx_json = result.get("tx_json")
    return tx_json if isinstance(tx_json, dict) else result


def _ledger_index(result: dict[str, Any]) -> int | None:
    li = result.get("ledger_index", _tx_fields(result).get("ledger_index"))
    return int(li) if li is not None else None


def check_validated(
    transaction_id: str,
    result: dict[str, Any],
    expected_type: str,
    expected_account: str,
    ledger_range: LedgerRange,
) -> VerificationResult:
    """Match a validated `tx` result against what the case expects."""
    tx = _tx_fields(result)
    ledger_index = _ledger_index(result)
    if ledger_index is None or ledger_index not in ledger_range:
        raise ExpirationError(
            f"{transaction_id} validated in ledger {ledger_index}, outside "
            f"{ledger_range.min_ledger_version}..{ledger_range.max_ledger_version}",
            transaction_id=transaction_id,
            last_ledger=ledger_range.max_ledger_version,
        )

    meta = result.get("meta")
    engine_result = meta.get("TransactionResult") if isinstance(meta, dict) else None
    outcome = Outcome.SUCCESS if engine_result == C.SUCCESS else Outcome.FAILED
    vr = VerificationResult(
        transaction_id=transaction_id,
        matched_type=tx.get("TransactionType"),
        matched_account=tx.get("Account"),
        outcome=outcome,
        ledger_index=ledger_index,
        raw_record=result,
    )

    if vr.matched_type != expected_type:
        raise VerificationError(f"{transaction_id} is a {vr.matched_type}, expected {expected_type}", result=vr)
    if vr.matched_account != expected_account:
        raise VerificationError(f"{transaction_id} is from {vr.matched_account}, expected {expected_account}", result=vr)
    if outcome is not Outcome.SUCCESS:
        raise VerificationError(f"Transaction not successful: {transaction_id} -> {engine_result}", result=vr)
    return vr


async def verify(
    connection: Connection,
    transaction_id: str,
    expected_type: str,
    expected_account: str,
    ledger_range: LedgerRange,
    *,
    policy: PollPolicy | None = None,
    audit_log: list[str] | None = None,
) -> VerificationResult:
    """Poll `tx` until the transaction is validated inside `ledger_range`.

    Args:
        connection: Open connection to the node
        transaction_id: Hash of the signed blob that was submitted
        expected_type: TransactionType the validated record must carry
        expected_account: Account the validated record must carry
        ledger_range: Window the transaction must land in; its max is the LastLedgerSequence
        policy: Interval, attempt budget and overall deadline for the loop
        audit_log: Verified ids are appended here (the suite's transaction log)
    """
    policy = policy or PollPolicy()
    req = Tx(
        transaction=transaction_id,
        min_ledger=ledger_range.min_ledger_version,
        max_ledger=ledger_range.max_ledger_version,
    )
    latest: int | None = None

    try:
        async with asyncio.timeout(policy.overall):
            for attempt in range(1, policy.max_attempts + 1):
                await asyncio.sleep(policy.interval)
                r = await connection.request(req)
                result = r.result

                if r.is_successful() and result.get("validated"):
                    vr = check_validated(transaction_id, result, expected_type, expected_account, ledger_range)
                    if audit_log is not None:
                        audit_log.append(transaction_id)
                    log.debug("VERIFIED %s %s in ledger %s (attempt %d)", expected_type, transaction_id, vr.ledger_index, attempt)
                    return vr

                if not r.is_successful() and result.get("error") not in _NOT_FOUND:
                    raise VerificationError(f"tx lookup for {transaction_id} failed: {result.get('error', result)}")

                latest = await validated_ledger_index(connection)
                if latest > ledger_range.max_ledger_version:
                    raise ExpirationError(
                        f"{transaction_id} not validated by ledger {ledger_range.max_ledger_version} "
                        f"(latest validated {latest})",
                        transaction_id=transaction_id,
                        last_ledger=latest,
                    )
                log.debug("%s not validated yet (attempt %d/%d, latest %s)", transaction_id, attempt, policy.max_attempts, latest)
    except TimeoutError:
        raise ExpirationError(
            f"{transaction_id} not validated within {policy.overall:.1f}s",
            transaction_id=transaction_id,
            last_ledger=latest,
        ) from None

    raise ExpirationError(
        f"{transaction_id} not validated after {policy.max_attempts} attempts",
        transaction_id=transaction_id,
        last_ledger=latest,
    )
