"""
Harness error taxonomy and engine result classification.

Engine result prefixes:
    - tes: success (tesSUCCESS)
    - tec: claimed cost, included in a ledger but failed
    - tef: local failure, not forwarded
    - tel: local node rejection, may be held and retried by the server
    - tem: malformed, will never succeed
    - ter: retry, may succeed later

Connection and setup failures are fatal for the suite or case. Submission,
verification and expiration failures are assertion failures of one case.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from conformance.models import VerificationResult


class EngineClass(StrEnum):
    SUCCESS = "success"
    CLAIMED = "claimed"
    FAILURE = "failure"
    LOCAL = "local"
    MALFORMED = "malformed"
    RETRY = "retry"
    UNKNOWN = "unknown"


_PREFIX_MAP: dict[str, EngineClass] = {
    "tes": EngineClass.SUCCESS,
    "tec": EngineClass.CLAIMED,
    "tef": EngineClass.FAILURE,
    "tel": EngineClass.LOCAL,
    "tem": EngineClass.MALFORMED,
    "ter": EngineClass.RETRY,
}


def classify_engine_result(engine_result: str | None) -> EngineClass:
    """Map an engine result code to its class. None means the engine never answered."""
    if not engine_result:
        return EngineClass.UNKNOWN
    return _PREFIX_MAP.get(engine_result[:3], EngineClass.UNKNOWN)


class HarnessError(Exception):
    """Base class for everything the harness raises on purpose."""


class LedgerConnectionError(HarnessError, ConnectionError):
    """Transport failure or a node that refuses an admin/test-only command."""


class SubmissionError(HarnessError, AssertionError):
    def __init__(self, message: str, *, engine_result: str | None = None, transaction_id: str | None = None) -> None:
        super().__init__(message)
        self.engine_result = engine_result
        self.transaction_id = transaction_id

    @property
    def engine_class(self) -> EngineClass:
        return classify_engine_result(self.engine_result)


class VerificationError(HarnessError, AssertionError):
    def __init__(self, message: str, *, result: VerificationResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class ExpirationError(HarnessError, AssertionError):
    """The transaction never showed up validated inside its ledger window."""

    def __init__(self, message: str, *, transaction_id: str | None = None, last_ledger: int | None = None) -> None:
        super().__init__(message)
        self.transaction_id = transaction_id
        self.last_ledger = last_ledger


class QuorumError(HarnessError, ValueError):
    pass


class FixtureError(HarnessError):
    def __init__(self, step: str, cause: BaseException) -> None:
        super().__init__(f"fixture step {step!r} failed: {cause}")
        self.step = step
        self.cause = cause


class FixturePlanError(HarnessError, ValueError):
    pass


class CaseTimeoutError(HarnessError, TimeoutError):
    def __init__(self, case: str, timeout: float) -> None:
        super().__init__(f"case {case!r} did not finish within {timeout:.1f}s")
        self.case = case
        self.timeout = timeout
