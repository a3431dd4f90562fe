"""Domain data structures shared by the lifecycle engine."""

import asyncio
import json
import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from xrpl.wallet import Wallet

import conformance.constants as C
from conformance.config import Settings


@dataclass
class FeeInfo:
    """Current fee escalation state from rippled fee command.

    All fee values are in drops. Sizes and counts reflect current open ledger state.
    """

    expected_ledger_size: int
    current_ledger_size: int
    current_queue_size: int
    max_queue_size: int
    base_fee: int  # drops
    median_fee: int  # drops
    minimum_fee: int  # drops
    open_ledger_fee: int  # drops
    ledger_current_index: int

    @classmethod
    def from_fee_result(cls, result: dict) -> "FeeInfo":
        drops = result["drops"]
        return cls(
            expected_ledger_size=int(result["expected_ledger_size"]),
            current_ledger_size=int(result["current_ledger_size"]),
            current_queue_size=int(result["current_queue_size"]),
            max_queue_size=int(result["max_queue_size"]),
            base_fee=int(drops["base_fee"]),
            median_fee=int(drops["median_fee"]),
            minimum_fee=int(drops["minimum_fee"]),
            open_ledger_fee=int(drops["open_ledger_fee"]),
            ledger_current_index=int(result["ledger_current_index"]),
        )


@dataclass(frozen=True, slots=True)
class Instructions:
    max_ledger_version_offset: int = C.DEFAULT_LEDGER_OFFSET
    min_ledger_version_offset: int = 0
    signers_count: int | None = None
    fee: str | None = None  # drops
    sequence: int | None = None


@dataclass(frozen=True, slots=True)
class PreparedTransaction:
    serialized_body: str
    instructions: Instructions = field(default_factory=Instructions)

    @property
    def tx_json(self) -> dict[str, Any]:
        return json.loads(self.serialized_body)

    @property
    def account(self) -> str:
        return self.tx_json["Account"]

    @property
    def last_ledger_sequence(self) -> int | None:
        return self.tx_json.get("LastLedgerSequence")


@dataclass(frozen=True, slots=True)
class SignedTransaction:
    signed_blob: str
    id: str


@dataclass(frozen=True, slots=True)
class PartialSignature:
    signer_address: str
    signed_blob: str
    id: str


@dataclass(frozen=True, slots=True)
class CombinedSignature:
    signed_blob: str
    id: str
    signers: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SignerQuorum:
    threshold: int
    weights: dict[str, int]

    def weight_of(self, addresses) -> int:
        return sum(self.weights.get(a, 0) for a in addresses)


@dataclass(frozen=True, slots=True)
class LedgerRange:
    min_ledger_version: int
    max_ledger_version: int

    def __post_init__(self) -> None:
        if self.min_ledger_version > self.max_ledger_version:
            raise ValueError(
                f"empty ledger range: min {self.min_ledger_version} > max {self.max_ledger_version}"
            )

    def __contains__(self, ledger_index: int) -> bool:
        return self.min_ledger_version <= ledger_index <= self.max_ledger_version

    @classmethod
    def for_prepared(cls, last_validated: int, prepared: PreparedTransaction) -> "LedgerRange":
        lls = prepared.last_ledger_sequence
        if lls is None:
            raise ValueError("prepared transaction has no LastLedgerSequence")
        low = max(last_validated - prepared.instructions.min_ledger_version_offset, 1)
        return cls(min_ledger_version=low, max_ledger_version=lls)


class Outcome(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class VerificationResult:
    transaction_id: str
    matched_type: str
    matched_account: str
    outcome: Outcome
    ledger_index: int | None
    raw_record: dict[str, Any] = field(repr=False, compare=False, hash=False, default_factory=dict)

    @property
    def engine_result(self) -> str | None:
        return self.raw_record.get("meta", {}).get("TransactionResult")


@dataclass(frozen=True, slots=True)
class SubmitResult:
    engine_result: str | None
    engine_result_message: str | None
    transaction_id: str
    raw: dict[str, Any] = field(repr=False, compare=False, default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.engine_result == C.SUCCESS


@dataclass(slots=True)
class PendingTx:
    tx_hash: str
    account: str
    transaction_type: str | None
    sequence: int | None
    last_ledger_seq: int | None
    created_ledger: int
    state: C.TxState = C.TxState.CREATED
    engine_result_first: str | None = None
    validated_ledger: int | None = None
    meta_txn_result: str | None = None
    created_at: float = field(default_factory=time.time)
    finalized_at: float | None = None

    def mark(self, state: C.TxState, **fields) -> None:
        for k, v in fields.items():
            setattr(self, k, v)
        self.state = state
        if state in C.TERMINAL_STATE and self.finalized_at is None:
            self.finalized_at = time.time()

    def __str__(self):
        return f"{self.transaction_type} -- {self.account} -- {self.state}"


@dataclass
class SuiteContext:
    """Per-suite state, created once at suite start and passed to every step and case."""

    settings: Settings
    funding_wallet: Wallet
    wallet: Wallet
    new_wallet: Wallet | None = None
    start_ledger_version: int | None = None
    transactions: list[str] = field(default_factory=list)
    results: list[VerificationResult] = field(default_factory=list)
    conditions: set[str] = field(default_factory=set)
    _locks: dict[str, asyncio.Lock] = field(default_factory=dict, repr=False)

    def lock_for(self, address: str) -> asyncio.Lock:
        """One lock per account: sequence numbers are handed out by the node per account."""
        lock = self._locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[address] = lock
        return lock

    def record(self, result: VerificationResult) -> None:
        self.transactions.append(result.transaction_id)
        self.results.append(result)
