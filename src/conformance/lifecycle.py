"""
Submit -> advance -> verify for one transaction.

Every step must finish before the next starts; sequence numbers are assigned
per account by the node, so the source account's lock is held from prepare
through ledger advance.
"""
import logging

from xrpl.models import SubmitOnly
from xrpl.wallet import Wallet

import conformance.constants as C
from conformance.connection import Connection
from conformance.errors import ExpirationError, SubmissionError, VerificationError
from conformance.ledger import advance
from conformance.models import (
    CombinedSignature,
    LedgerRange,
    PendingTx,
    PreparedTransaction,
    SignedTransaction,
    SubmitResult,
    SuiteContext,
    VerificationResult,
)
from conformance.signing import sign
from conformance.verifier import PollPolicy, verify

log = logging.getLogger("conformance.lifecycle")


def poll_policy(ctx: SuiteContext) -> PollPolicy:
    s = ctx.settings
    return PollPolicy(interval=s.poll_interval, max_attempts=s.poll_attempts, overall=s.poll_overall)


async def submit(connection: Connection, signed_blob: str, *, expect_success: bool = True) -> SubmitResult:
    """Hand a signed blob to the node. Never retried.

    With expect_success, anything other than tesSUCCESS raises SubmissionError.
    """
    r = await connection.request(SubmitOnly(tx_blob=signed_blob))
    res = r.result
    if not r.is_successful():
        raise SubmissionError(f"submit failed: {res.get('error_message') or res.get('error', res)}")
    sr = SubmitResult(
        engine_result=res.get("engine_result"),
        engine_result_message=res.get("engine_result_message"),
        transaction_id=res.get("tx_json", {}).get("hash", ""),
        raw=res,
    )
    log.debug("SUBMITTED... %s -> %s", sr.transaction_id, sr.engine_result)
    if expect_success and not sr.accepted:
        raise SubmissionError(
            f"engine rejected {sr.transaction_id}: {sr.engine_result} {sr.engine_result_message or ''}".rstrip(),
            engine_result=sr.engine_result,
            transaction_id=sr.transaction_id,
        )
    return sr


async def _submit_advance_verify(
    ctx: SuiteContext,
    connection: Connection,
    p: PendingTx,
    signed_blob: str,
    expected_type: str,
    ledger_range: LedgerRange,
) -> VerificationResult:
    try:
        sr = await submit(connection, signed_blob)
    except SubmissionError as e:
        p.mark(C.TxState.REJECTED, engine_result_first=e.engine_result)
        log.debug("%s", p)
        raise
    if sr.transaction_id and sr.transaction_id != p.tx_hash:
        log.warning("Node hashed %s as %s, following the node", p.tx_hash, sr.transaction_id)
        p.tx_hash = sr.transaction_id
    p.mark(C.TxState.SUBMITTED, engine_result_first=sr.engine_result)

    await advance(connection)

    try:
        vr = await verify(
            connection,
            p.tx_hash,
            expected_type,
            p.account,
            ledger_range,
            policy=poll_policy(ctx),
        )
    except ExpirationError:
        p.mark(C.TxState.EXPIRED)
        log.debug("%s", p)
        raise
    except VerificationError as e:
        meta = e.result.engine_result if e.result else None
        p.mark(C.TxState.FAILED, meta_txn_result=meta)
        log.debug("%s", p)
        raise

    p.mark(C.TxState.VALIDATED, validated_ledger=vr.ledger_index, meta_txn_result=vr.engine_result)
    ctx.record(vr)
    log.debug("%s", p)
    return vr


def _ledger_range(min_ledger_version: int, prepared: PreparedTransaction, tx_hash: str) -> LedgerRange:
    try:
        return LedgerRange.for_prepared(min_ledger_version, prepared)
    except ValueError as e:
        raise ExpirationError(f"{tx_hash}: {e}", transaction_id=tx_hash) from e


async def submit_and_verify(
    ctx: SuiteContext,
    connection: Connection,
    expected_type: str,
    min_ledger_version: int,
    prepared: PreparedTransaction,
    wallet: Wallet,
) -> VerificationResult:
    """Sign `prepared` with `wallet`, submit it, close the ledger and verify it.

    `min_ledger_version` is the last validated ledger seen before preparing.
    """
    tx = prepared.tx_json
    signed: SignedTransaction = sign(prepared, wallet)
    p = PendingTx(
        tx_hash=signed.id,
        account=tx["Account"],
        transaction_type=tx.get("TransactionType"),
        sequence=tx.get("Sequence"),
        last_ledger_seq=tx.get("LastLedgerSequence"),
        created_ledger=min_ledger_version,
    )
    ledger_range = _ledger_range(min_ledger_version, prepared, p.tx_hash)
    async with ctx.lock_for(p.account):
        return await _submit_advance_verify(ctx, connection, p, signed.signed_blob, expected_type, ledger_range)


async def submit_combined(
    ctx: SuiteContext,
    connection: Connection,
    expected_type: str,
    min_ledger_version: int,
    prepared: PreparedTransaction,
    combined: CombinedSignature,
) -> VerificationResult:
    """Same as submit_and_verify, for a blob already carrying combined multisig signatures."""
    tx = prepared.tx_json
    p = PendingTx(
        tx_hash=combined.id,
        account=tx["Account"],
        transaction_type=tx.get("TransactionType"),
        sequence=tx.get("Sequence"),
        last_ledger_seq=tx.get("LastLedgerSequence"),
        created_ledger=min_ledger_version,
    )
    ledger_range = _ledger_range(min_ledger_version, prepared, p.tx_hash)
    async with ctx.lock_for(p.account):
        return await _submit_advance_verify(ctx, connection, p, combined.signed_blob, expected_type, ledger_range)


async def submit_and_advance(connection: Connection, signed: SignedTransaction) -> SubmitResult:
    """Fixture flavour: submit, require tesSUCCESS, close the ledger. No lookup."""
    sr = await submit(connection, signed.signed_blob)
    await advance(connection)
    return sr
