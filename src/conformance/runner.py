"""
Suite runner: one fixture pass, then every case on its own connection.

A case gets a fresh Connection, a wall-clock budget enforced by
asyncio.timeout, and a disconnect at teardown whatever happened. Case failures
are recorded and the next case runs; a fixture or connection failure while
preparing the suite stops everything.
"""
import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass

from conformance.config import Settings
from conformance.connection import Connection, open_connection
from conformance.errors import CaseTimeoutError, FixtureError, LedgerConnectionError
from conformance.fixtures import prepare_suite
from conformance.models import SuiteContext
from conformance.scenarios import CaseFn, CaseSpec

log = logging.getLogger("conformance.runner")


@dataclass
class CaseReport:
    name: str
    passed: bool
    duration: float
    error: BaseException | None = None

    def __str__(self):
        status = "PASS" if self.passed else "FAIL"
        detail = f" -- {type(self.error).__name__}: {self.error}" if self.error else ""
        return f"{status} {self.name} ({self.duration:.2f}s){detail}"


@dataclass
class SuiteReport:
    cases: list[CaseReport]
    context: SuiteContext | None = None
    setup_error: BaseException | None = None

    @property
    def passed(self) -> bool:
        return self.setup_error is None and all(c.passed for c in self.cases)

    @property
    def failed(self) -> list[CaseReport]:
        return [c for c in self.cases if not c.passed]


async def run_case(ctx: SuiteContext, name: str, case: CaseFn, *, settings: Settings, timeout: float | None = None) -> None:
    """Run one case on a fresh connection, cancelled after `timeout` seconds.

    Raises CaseTimeoutError when the budget runs out. In-flight requests are
    abandoned, nothing is rolled back.
    """
    timeout = timeout or settings.case_timeout
    connection = Connection(settings.ws_url, request_timeout=settings.rpc_timeout)
    try:
        async with asyncio.timeout(timeout):
            await connection.connect()
            await case(ctx, connection)
    except TimeoutError as e:
        raise CaseTimeoutError(name, timeout) from e
    finally:
        await connection.disconnect()


async def _report(ctx: SuiteContext, spec: CaseSpec, settings: Settings, timeout: float | None) -> CaseReport:
    start = time.perf_counter()
    try:
        await run_case(ctx, spec.name, spec.run, settings=settings, timeout=timeout)
    except Exception as e:
        report = CaseReport(spec.name, False, time.perf_counter() - start, e)
        log.error("%s", report)
        return report
    report = CaseReport(spec.name, True, time.perf_counter() - start)
    log.info("%s", report)
    return report


async def run_suite(settings: Settings, cases: Sequence[CaseSpec], *, timeout: float | None = None) -> SuiteReport:
    log.info("Preparing suite against %s", settings.ws_url)
    try:
        async with open_connection(settings.ws_url, request_timeout=settings.rpc_timeout) as connection:
            ctx = await prepare_suite(connection, settings)
    except (FixtureError, LedgerConnectionError) as e:
        log.error("Suite setup failed: %s", e)
        return SuiteReport(cases=[], setup_error=e)

    reports = [await _report(ctx, spec, settings, timeout) for spec in cases]
    suite = SuiteReport(cases=reports, context=ctx)
    log.info(
        "%d/%d cases passed, %d transactions verified",
        len(reports) - len(suite.failed), len(reports), len(ctx.transactions),
    )
    return suite
