from typing import Final
from enum import StrEnum

genesis_account: Final = {
    "address": "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh",
    "seed": "snoPBrXtMeMyMHUVTgbuqAfg1SUTb",
}

GENESIS = genesis_account


class TxType(StrEnum):
    ACCOUNT_SET     = "AccountSet"
    OFFER_CREATE    = "OfferCreate"
    OFFER_CANCEL    = "OfferCancel"
    PAYMENT         = "Payment"
    SIGNER_LIST_SET = "SignerListSet"
    TRUSTSET        = "TrustSet"


class TxState(StrEnum):
    CREATED   = "CREATED"
    SUBMITTED = "SUBMITTED"
    VALIDATED = "VALIDATED"
    REJECTED  = "REJECTED"
    FAILED    = "FAILED"
    EXPIRED   = "EXPIRED"


TERMINAL_STATE = {TxState.VALIDATED, TxState.REJECTED, TxState.FAILED, TxState.EXPIRED}

SUCCESS = "tesSUCCESS"

CASE_TIMEOUT = 20.0  # seconds per conformance case
POLL_INTERVAL = 1.0  # wait between forced close and each tx lookup
POLL_ATTEMPTS = 10
POLL_OVERALL = 15.0
RPC_TIMEOUT = 5.0
MAX_LEDGER_VERSION_OFFSET = 10
DEFAULT_LEDGER_OFFSET = 3  # used when instructions give no offset
FEE_CUSHION = 1.2

# Amounts in XRP unless noted
DEFAULT_FUNDING_XRP = "4003218"
ISSUED_CURRENCY = "USD"

__all__ = [
    "CASE_TIMEOUT",
    "DEFAULT_FUNDING_XRP",
    "DEFAULT_LEDGER_OFFSET",
    "FEE_CUSHION",
    "GENESIS",
    "ISSUED_CURRENCY",
    "MAX_LEDGER_VERSION_OFFSET",
    "POLL_ATTEMPTS",
    "POLL_INTERVAL",
    "POLL_OVERALL",
    "RPC_TIMEOUT",
    "SUCCESS",
    "TERMINAL_STATE",

    ######
    "TxType",
    "TxState",
]
