import hashlib
import logging

from xrpl import CryptoAlgorithm
from xrpl.core.binarycodec import encode, encode_for_multisigning, encode_for_signing
from xrpl.core.keypairs import generate_seed, sign as keypairs_sign
from xrpl.wallet import Wallet

from conformance.errors import SubmissionError
from conformance.models import PartialSignature, PreparedTransaction, SignedTransaction

log = logging.getLogger("conformance.signing")


def _sha512half(b: bytes) -> bytes:
    return hashlib.sha512(b).digest()[:32]


def txid_from_signed_blob(signed_blob_hex: str) -> str:
    # XRPL txid = SHA512Half(0x54584E00 || signed_bytes)
    return _sha512half(bytes.fromhex("54584E00") + bytes.fromhex(signed_blob_hex)).hex().upper()


def wallet_from_seed(seed: str, address: str | None = None) -> Wallet:
    """Derive a secp256k1 wallet, optionally checking it matches an expected address."""
    wallet = Wallet.from_seed(seed, algorithm=CryptoAlgorithm.SECP256K1)
    if address is not None and wallet.address != address:
        raise ValueError(f"seed derives {wallet.address}, expected {address}")
    return wallet


def generate_wallet() -> Wallet:
    return Wallet.from_seed(
        seed=generate_seed(algorithm=CryptoAlgorithm.SECP256K1),
        algorithm=CryptoAlgorithm.SECP256K1,
    )


def sign(prepared: PreparedTransaction, wallet: Wallet) -> SignedTransaction:
    """Single-sign a prepared body with its own account's key.

    Raises SubmissionError before anything is signed if the body belongs to
    another account.
    """
    tx = prepared.tx_json
    if tx.get("Account") != wallet.address:
        raise SubmissionError(
            f"prepared {tx.get('TransactionType')} is for {tx.get('Account')}, not signer {wallet.address}"
        )
    tx["SigningPubKey"] = wallet.public_key
    tx.pop("Signers", None)
    tx["TxnSignature"] = keypairs_sign(bytes.fromhex(encode_for_signing(tx)), wallet.private_key)
    signed_blob_hex = encode(tx)
    txid = txid_from_signed_blob(signed_blob_hex)
    log.debug("Signed %s %s as %s", tx.get("TransactionType"), txid, wallet.address)
    return SignedTransaction(signed_blob=signed_blob_hex, id=txid)


def sign_partial(prepared: PreparedTransaction, wallet: Wallet, sign_as: str | None = None) -> PartialSignature:
    """Produce one multisig contribution for a prepared body.

    `sign_as` is the signer-list address this key signs for; defaults to the
    wallet's own address.
    """
    signer = sign_as or wallet.address
    tx = prepared.tx_json
    tx["SigningPubKey"] = ""
    tx.pop("TxnSignature", None)
    tx.pop("Signers", None)
    signature = keypairs_sign(bytes.fromhex(encode_for_multisigning(tx, signer)), wallet.private_key)
    tx["Signers"] = [
        {
            "Signer": {
                "Account": signer,
                "SigningPubKey": wallet.public_key,
                "TxnSignature": signature,
            }
        }
    ]
    signed_blob_hex = encode(tx)
    return PartialSignature(signer_address=signer, signed_blob=signed_blob_hex, id=txid_from_signed_blob(signed_blob_hex))
