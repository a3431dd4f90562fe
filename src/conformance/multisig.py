"""
Combine independently produced multisig contributions into one submittable blob.

The combiner checks shape, not authority: distinct signers, one shared body,
canonical Signers order. Whether the weights reach the account's quorum is
decided by the node, unless the caller hands a SignerQuorum to check against.
"""
import logging
from collections import Counter
from collections.abc import Sequence

from xrpl.core.addresscodec import decode_classic_address
from xrpl.core.binarycodec import decode, encode

from conformance.errors import QuorumError
from conformance.models import CombinedSignature, PartialSignature, SignerQuorum
from conformance.signing import txid_from_signed_blob

log = logging.getLogger("conformance.multisig")


def _signer_sort_key(signer_entry: dict) -> bytes:
    # Signers must be ordered by the numeric value of their 160-bit account id
    return decode_classic_address(signer_entry["Signer"]["Account"])


def _body(tx: dict) -> dict:
    return {k: v for k, v in tx.items() if k != "Signers"}


def combine(partials: Sequence[PartialSignature], *, quorum: SignerQuorum | None = None) -> CombinedSignature:
    if not partials:
        raise QuorumError("nothing to combine")

    addresses = [p.signer_address for p in partials]
    dupes = sorted(a for a, n in Counter(addresses).items() if n > 1)
    if dupes:
        raise QuorumError(f"duplicate signer contributions from {', '.join(dupes)}")

    body: dict | None = None
    entries: list[dict] = []
    for p in partials:
        tx = decode(p.signed_blob)
        signers = tx.get("Signers") or []
        if len(signers) != 1 or signers[0]["Signer"]["Account"] != p.signer_address:
            raise QuorumError(f"partial from {p.signer_address} does not carry exactly its own signature")
        if body is None:
            body = _body(tx)
        elif _body(tx) != body:
            raise QuorumError(f"partial from {p.signer_address} signs a different transaction body")
        entries.append(signers[0])

    if quorum is not None:
        unknown = [a for a in addresses if a not in quorum.weights]
        if unknown:
            raise QuorumError(f"signers not on the signer list: {', '.join(sorted(unknown))}")
        weight = quorum.weight_of(addresses)
        if weight < quorum.threshold:
            raise QuorumError(f"signer weight {weight} below quorum {quorum.threshold}")

    entries.sort(key=_signer_sort_key)
    combined = dict(body)
    combined["Signers"] = entries
    signed_blob_hex = encode(combined)
    txid = txid_from_signed_blob(signed_blob_hex)
    ordered = tuple(e["Signer"]["Account"] for e in entries)
    log.debug("Combined %d signatures for %s -> %s", len(entries), combined.get("Account"), txid)
    return CombinedSignature(signed_blob=signed_blob_hex, id=txid, signers=ordered)
