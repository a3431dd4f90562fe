import logging

from xrpl.models.requests import GenericRequest, Ledger

from conformance.connection import Connection
from conformance.errors import LedgerConnectionError

log = logging.getLogger("conformance.ledger")


async def advance(connection: Connection) -> int:
    """Force the node to close and validate the open ledger now.

    Only works against a standalone node with admin access. Returns the index
    of the new open ledger. Never retried.
    """
    r = await connection.request(GenericRequest(method="ledger_accept"))
    if not r.is_successful():
        raise LedgerConnectionError(f"ledger_accept refused: {r.result.get('error', r.result)}")
    current = int(r.result["ledger_current_index"])
    log.debug("ledger_accept -> open ledger %s", current)
    return current


async def validated_ledger_index(connection: Connection) -> int:
    """Get the latest validated ledger index."""
    r = await connection.request(Ledger(ledger_index="validated"))
    if not r.is_successful():
        raise LedgerConnectionError(f"ledger lookup failed: {r.result.get('error', r.result)}")
    return int(r.result["ledger_index"])
