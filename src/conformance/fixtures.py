"""
Suite-level ledger fixtures.

Suite setup is a list of FixtureSteps run strictly one after the other. Each
step names the ledger conditions it needs and the ones it leaves behind, so
the ordering constraints are checked before anything is submitted. Any failing
step aborts the whole suite; nothing is torn down.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass

from xrpl.wallet import Wallet

import conformance.constants as C
from conformance.config import Settings
from conformance.connection import Connection
from conformance.errors import FixtureError, FixturePlanError
from conformance.intents import Amount, OrderIntent, PaymentIntent, SettingsIntent, TransactionIntent, TrustLineIntent
from conformance.ledger import advance, validated_ledger_index
from conformance.lifecycle import submit_and_advance
from conformance.models import Instructions, SubmitResult, SuiteContext
from conformance.prepare import prepare
from conformance.signing import generate_wallet, sign, wallet_from_seed

log = logging.getLogger("conformance.fixtures")

StepFn = Callable[[SuiteContext, Connection], Awaitable[None]]


# Ledger conditions a step can require or produce
def funded(address: str) -> str:
    return f"funded:{address}"


def default_ripple(address: str) -> str:
    return f"default_ripple:{address}"


def trust_line(address: str, currency: str, issuer: str) -> str:
    return f"trustline:{address}:{currency}.{issuer}"


def holds(address: str, currency: str, issuer: str) -> str:
    return f"balance:{address}:{currency}.{issuer}"


def order_placed(address: str, pays: str, gets: str) -> str:
    return f"order:{address}:{pays}/{gets}"


@dataclass(frozen=True, slots=True)
class FixtureStep:
    name: str
    run: StepFn
    requires: frozenset[str] = frozenset()
    produces: frozenset[str] = frozenset()


def check_plan(steps: Sequence[FixtureStep], initial: Iterable[str] = ()) -> None:
    """Reject a step list whose requirements are not produced by earlier steps."""
    satisfied = set(initial)
    names: set[str] = set()
    for i, step in enumerate(steps, 1):
        if step.name in names:
            raise FixturePlanError(f"duplicate fixture step {step.name!r}")
        names.add(step.name)
        missing = step.requires - satisfied
        if missing:
            raise FixturePlanError(f"step {i} {step.name!r} requires {sorted(missing)} before it is produced")
        satisfied |= step.produces


class AccountFixtureOrchestrator:
    def __init__(self, steps: Sequence[FixtureStep], *, initial: Iterable[str] = ()) -> None:
        self.initial = frozenset(initial)
        check_plan(steps, self.initial)
        self.steps = tuple(steps)

    async def setup_suite(self, connection: Connection, ctx: SuiteContext) -> SuiteContext:
        ctx.conditions |= self.initial
        total = len(self.steps)
        for i, step in enumerate(self.steps, 1):
            log.info("Fixture %d/%d: %s", i, total, step.name)
            try:
                await step.run(ctx, connection)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.error("Fixture %s failed: %s", step.name, e)
                raise FixtureError(step.name, e) from e
            ctx.conditions |= step.produces
        log.info("Suite fixtures ready (%d steps)", total)
        return ctx


# =============================================================================
# Fixture operations: prepare -> sign -> submit -> ledger_accept
# =============================================================================


async def run_signed(
    ctx: SuiteContext,
    connection: Connection,
    wallet: Wallet,
    intent: TransactionIntent,
    instructions: Instructions | None = None,
) -> SubmitResult:
    async with ctx.lock_for(wallet.address):
        prepared = await prepare(connection, wallet.address, intent, instructions)
        return await submit_and_advance(connection, sign(prepared, wallet))


async def pay_to(
    ctx: SuiteContext,
    connection: Connection,
    to: str,
    amount: str = C.DEFAULT_FUNDING_XRP,
    currency: str = "XRP",
    counterparty: str | None = None,
) -> SubmitResult:
    intent = PaymentIntent(destination=to, amount=Amount(currency, amount, counterparty))
    log.debug("Paying %s %s to %s", amount, currency, to)
    return await run_signed(ctx, connection, ctx.funding_wallet, intent)


async def enable_default_ripple(ctx: SuiteContext, connection: Connection, wallet: Wallet) -> SubmitResult:
    return await run_signed(ctx, connection, wallet, SettingsIntent(default_ripple=True))


async def make_trust_line(ctx: SuiteContext, connection: Connection, wallet: Wallet) -> SubmitResult:
    s = ctx.settings
    intent = TrustLineIntent(
        currency=s.currency,
        counterparty=ctx.funding_wallet.address,
        limit=s.trust_limit,
        rippling_disabled=True,
    )
    return await run_signed(ctx, connection, wallet, intent)


async def make_order(ctx: SuiteContext, connection: Connection, wallet: Wallet, intent: OrderIntent) -> SubmitResult:
    return await run_signed(ctx, connection, wallet, intent)


def build_default_steps(ctx: SuiteContext) -> list[FixtureStep]:
    """The standard suite plan: funding, rippling, trust lines, IOU issue, two standing orders."""
    s = ctx.settings
    master = ctx.funding_wallet
    wallet = ctx.wallet
    new_wallet = ctx.new_wallet
    if new_wallet is None:
        raise FixturePlanError("suite context has no new_wallet to build fixtures for")
    usd = s.currency
    steps: list[FixtureStep] = []

    fund_targets: list[str] = []
    for addr in [*s.destinations, wallet.address, new_wallet.address, s.order_counterparty]:
        if addr and addr not in fund_targets:
            fund_targets.append(addr)

    def _fund(addr: str) -> StepFn:
        async def run(c: SuiteContext, conn: Connection) -> None:
            await pay_to(c, conn, addr)
        return run

    for addr in fund_targets:
        steps.append(FixtureStep(
            name=f"fund {addr}",
            run=_fund(addr),
            requires=frozenset({funded(master.address)}),
            produces=frozenset({funded(addr)}),
        ))

    async def _default_ripple(c: SuiteContext, conn: Connection) -> None:
        await enable_default_ripple(c, conn, c.funding_wallet)

    steps.append(FixtureStep(
        name="default ripple on master",
        run=_default_ripple,
        requires=frozenset({funded(master.address)}),
        produces=frozenset({default_ripple(master.address)}),
    ))

    def _trust(w: Wallet) -> StepFn:
        async def run(c: SuiteContext, conn: Connection) -> None:
            await make_trust_line(c, conn, w)
        return run

    for w in (wallet, new_wallet):
        steps.append(FixtureStep(
            name=f"trust line {w.address} -> {usd}.{master.address}",
            run=_trust(w),
            requires=frozenset({funded(w.address), default_ripple(master.address)}),
            produces=frozenset({trust_line(w.address, usd, master.address)}),
        ))

    async def _issue(c: SuiteContext, conn: Connection) -> None:
        await pay_to(c, conn, wallet.address, s.issued_amount, usd, master.address)

    steps.append(FixtureStep(
        name=f"issue {s.issued_amount} {usd} to {wallet.address}",
        run=_issue,
        requires=frozenset({trust_line(wallet.address, usd, master.address)}),
        produces=frozenset({holds(wallet.address, usd, master.address)}),
    ))

    buy_usd = OrderIntent(
        direction="buy",
        quantity=Amount(usd, "432", master.address),
        total_price=Amount("XRP", "432"),
    )
    buy_xrp = OrderIntent(
        direction="buy",
        quantity=Amount("XRP", "1741"),
        total_price=Amount(usd, "171", master.address),
    )

    async def _order_usd(c: SuiteContext, conn: Connection) -> None:
        await make_order(c, conn, new_wallet, buy_usd)

    async def _order_xrp(c: SuiteContext, conn: Connection) -> None:
        await make_order(c, conn, c.funding_wallet, buy_xrp)

    steps.append(FixtureStep(
        name=f"order {new_wallet.address} buys {usd} for XRP",
        run=_order_usd,
        requires=frozenset({funded(new_wallet.address), trust_line(new_wallet.address, usd, master.address)}),
        produces=frozenset({order_placed(new_wallet.address, usd, "XRP")}),
    ))
    steps.append(FixtureStep(
        name=f"order {master.address} buys XRP for {usd}",
        run=_order_xrp,
        requires=frozenset({default_ripple(master.address), order_placed(new_wallet.address, usd, "XRP")}),
        produces=frozenset({order_placed(master.address, "XRP", usd)}),
    ))
    return steps


def new_suite_context(settings: Settings) -> SuiteContext:
    try:
        funding = wallet_from_seed(settings.funding_seed, settings.funding_address)
    except ValueError as e:
        raise FixtureError("funding account", e) from e
    return SuiteContext(settings=settings, funding_wallet=funding, wallet=generate_wallet())


async def prepare_suite(
    connection: Connection,
    settings: Settings,
    *,
    steps: Callable[[SuiteContext], Sequence[FixtureStep]] = build_default_steps,
) -> SuiteContext:
    """Bring a freshly connected node to the state every case assumes."""
    ctx = new_suite_context(settings)
    await advance(connection)
    ctx.new_wallet = generate_wallet()
    # Close twice so the validated index read next is not stale relative to
    # the ledgerClosed stream.
    await advance(connection)
    ctx.start_ledger_version = await validated_ledger_index(connection)
    log.info("Suite starts at validated ledger %s", ctx.start_ledger_version)

    orchestrator = AccountFixtureOrchestrator(steps(ctx), initial={funded(ctx.funding_wallet.address)})
    return await orchestrator.setup_suite(connection, ctx)
