import json
import logging

from xrpl.models import Transaction
from xrpl.models.requests import AccountInfo, Fee

from conformance.connection import Connection
from conformance.errors import SubmissionError
from conformance.intents import TransactionIntent, build_transaction
from conformance.ledger import validated_ledger_index
from conformance.models import FeeInfo, Instructions, PreparedTransaction

log = logging.getLogger("conformance.prepare")


async def get_fee_info(connection: Connection) -> FeeInfo:
    """Current fee escalation state; changes per transaction, so never cached."""
    r = await connection.request(Fee())
    return FeeInfo.from_fee_result(r.result)


async def next_sequence(connection: Connection, address: str) -> int:
    # "current" includes transactions applied to the open ledger but not yet validated
    r = await connection.request(AccountInfo(account=address, ledger_index="current", strict=True))
    if not r.is_successful():
        raise SubmissionError(f"cannot prepare for {address}: {r.result.get('error', r.result)}")
    return int(r.result["account_data"]["Sequence"])


async def prepare_transaction(
    connection: Connection,
    txn: Transaction,
    instructions: Instructions | None = None,
) -> PreparedTransaction:
    """Bind sequence, fee and LastLedgerSequence to an unsigned transaction."""
    instructions = instructions or Instructions()
    tx = txn.to_xrpl()
    if tx.get("Flags") == 0:
        del tx["Flags"]

    validated = await validated_ledger_index(connection)
    seq = instructions.sequence if instructions.sequence is not None else await next_sequence(connection, tx["Account"])

    if instructions.fee is not None:
        fee = int(instructions.fee)
    else:
        fee_info = await get_fee_info(connection)
        fee = max(fee_info.minimum_fee, fee_info.base_fee)
        # Each multisig signer adds one base fee
        if instructions.signers_count:
            fee = fee_info.base_fee * (1 + instructions.signers_count)

    tx["Sequence"] = seq
    tx["Fee"] = str(fee)
    tx["LastLedgerSequence"] = validated + instructions.max_ledger_version_offset
    if instructions.signers_count:
        tx["SigningPubKey"] = ""

    log.debug(
        "Prepared %s for %s seq=%s fee=%s lls=%s",
        tx.get("TransactionType"), tx["Account"], seq, fee, tx["LastLedgerSequence"],
    )
    return PreparedTransaction(serialized_body=json.dumps(tx), instructions=instructions)


async def prepare(
    connection: Connection,
    address: str,
    intent: TransactionIntent,
    instructions: Instructions | None = None,
) -> PreparedTransaction:
    return await prepare_transaction(connection, build_transaction(address, intent), instructions)
