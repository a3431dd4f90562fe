"""
Conformance cases.

Each case is an async function taking the suite context and a fresh, open
connection. Cases assume the suite fixtures are in place and run in
registration order; standalone-only cases are run last.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal

from xrpl.core.addresscodec import classic_address_to_xaddress, decode_seed, is_valid_xaddress

import conformance.constants as C
from conformance.connection import Connection
from conformance.errors import QuorumError, VerificationError
from conformance.fixtures import pay_to
from conformance.intents import (
    Amount,
    OrderCancellationIntent,
    OrderIntent,
    PaymentIntent,
    SettingsIntent,
    TrustLineIntent,
)
from conformance.ledger import validated_ledger_index
from conformance.lifecycle import submit, submit_and_verify, submit_combined
from conformance.models import Instructions, SignerQuorum, SuiteContext
from conformance.multisig import combine
from conformance.prepare import prepare
from conformance.queries import account_offers, get_balances, get_fee, get_orderbook, get_trustlines
from conformance.signing import generate_wallet, sign_partial, wallet_from_seed

log = logging.getLogger("conformance.scenarios")

CaseFn = Callable[[SuiteContext, Connection], Awaitable[None]]


@dataclass
class CaseSpec:
    name: str
    run: CaseFn
    standalone_only: bool = False


REGISTRY: dict[str, CaseSpec] = {}


def register_case(name: str, *, standalone_only: bool = False):
    """
    Decorator to register a conformance case under `name`.
    """
    def wrap(fn: CaseFn) -> CaseFn:
        if name in REGISTRY:
            raise ValueError(f"case {name!r} registered twice")
        REGISTRY[name] = CaseSpec(name=name, run=fn, standalone_only=standalone_only)
        return fn
    return wrap


def ordered_cases(names: list[str] | None = None) -> list[CaseSpec]:
    """Registered cases (optionally only `names`), standalone-only ones last."""
    if names:
        unknown = [n for n in names if n not in REGISTRY]
        if unknown:
            raise KeyError(f"unknown case(s): {', '.join(unknown)}")
        specs = [REGISTRY[n] for n in names]
    else:
        specs = list(REGISTRY.values())
    return sorted(specs, key=lambda s: s.standalone_only)


def expect(condition: bool, message: str) -> None:
    if not condition:
        raise VerificationError(message)


def _instructions(ctx: SuiteContext, **fields) -> Instructions:
    return Instructions(max_ledger_version_offset=ctx.settings.max_ledger_version_offset, **fields)


@register_case("trustline")
async def trustline(ctx: SuiteContext, connection: Connection) -> None:
    s = ctx.settings
    ledger_version = await validated_ledger_index(connection)
    intent = TrustLineIntent(
        currency=s.currency,
        counterparty=ctx.funding_wallet.address,
        limit=s.trust_limit,
        rippling_disabled=True,
    )
    prepared = await prepare(connection, ctx.wallet.address, intent, _instructions(ctx))
    await submit_and_verify(ctx, connection, C.TxType.TRUSTSET, ledger_version, prepared, ctx.wallet)


@register_case("payment")
async def payment(ctx: SuiteContext, connection: Connection) -> None:
    ledger_version = await validated_ledger_index(connection)
    amount = Amount("XRP", "0.000001")
    intent = PaymentIntent(destination=ctx.settings.payment_destination, amount=amount, send_max=amount)
    prepared = await prepare(connection, ctx.wallet.address, intent, _instructions(ctx))
    await submit_and_verify(ctx, connection, C.TxType.PAYMENT, ledger_version, prepared, ctx.wallet)


@register_case("order")
async def order(ctx: SuiteContext, connection: Connection) -> None:
    s = ctx.settings
    address = ctx.wallet.address
    ledger_version = await validated_ledger_index(connection)
    intent = OrderIntent(
        direction="buy",
        quantity=Amount(s.currency, "237", s.order_counterparty),
        total_price=Amount("XRP", "0.0002"),
    )
    prepared = await prepare(connection, address, intent, _instructions(ctx))
    await submit_and_verify(ctx, connection, C.TxType.OFFER_CREATE, ledger_version, prepared, ctx.wallet)

    order_sequence = prepared.tx_json["Sequence"]
    offers = await account_offers(connection, address)
    created = next((dict(o) for o in offers if o.get("seq") == order_sequence), None)
    expect(created is not None, f"no offer with seq {order_sequence} on {address}")
    del created["seq"]
    expected = {
        "flags": 0,
        "quality": "1.185",
        "taker_gets": "200",
        "taker_pays": {"currency": s.currency, "value": "237", "issuer": s.order_counterparty},
    }
    expect(created == expected, f"offer {order_sequence} is {created}, expected {expected}")

    cancel = await prepare(connection, address, OrderCancellationIntent(order_sequence), _instructions(ctx))
    await submit_and_verify(ctx, connection, C.TxType.OFFER_CANCEL, ledger_version, cancel, ctx.wallet)


@register_case("is_connected")
async def is_connected(ctx: SuiteContext, connection: Connection) -> None:
    expect(connection.is_connected(), f"not connected to {connection.url}")


@register_case("get_fee")
async def fee(ctx: SuiteContext, connection: Connection) -> None:
    value = await get_fee(connection)
    expect(isinstance(value, str), f"fee {value!r} is not a string")
    expect(Decimal(value) > 0, f"fee {value} is not positive")


@register_case("get_trustlines")
async def trustlines(ctx: SuiteContext, connection: Connection) -> None:
    s = ctx.settings
    master = ctx.funding_wallet.address
    lines = await get_trustlines(connection, ctx.wallet.address, s.currency, master)
    expect(len(lines) > 0, f"no {s.currency} trust line from {ctx.wallet.address} to {master}")
    line = lines[0]
    expect(Decimal(line.limit) == Decimal(s.trust_limit), f"limit {line.limit}, expected {s.trust_limit}")
    expect(line.currency == s.currency, f"currency {line.currency}, expected {s.currency}")
    expect(line.counterparty == master, f"counterparty {line.counterparty}, expected {master}")


@register_case("get_balances")
async def balances(ctx: SuiteContext, connection: Connection) -> None:
    s = ctx.settings
    master = ctx.funding_wallet.address
    found = await get_balances(connection, ctx.wallet.address, s.currency, master)
    expect(len(found) > 0, f"no {s.currency} balance for {ctx.wallet.address}")
    expect(found[0].currency == s.currency, f"currency {found[0].currency}, expected {s.currency}")
    expect(found[0].counterparty == master, f"counterparty {found[0].counterparty}, expected {master}")


@register_case("get_orderbook")
async def orderbook(ctx: SuiteContext, connection: Connection) -> None:
    s = ctx.settings
    base = Amount("XRP", "0")
    counter = Amount(s.currency, "0", ctx.funding_wallet.address)
    book = await get_orderbook(connection, ctx.wallet.address, base, counter)
    expect(len(book.bids) > 0, "orderbook has no bids")
    expect(len(book.asks) > 0, "orderbook has no asks")
    for side, direction, o in (("bid", "buy", book.bids[0]), ("ask", "sell", book.asks[0])):
        expect(o.direction == direction, f"best {side} is a {o.direction}")
        expect(o.quantity.currency == "XRP", f"best {side} quantity is {o.quantity.currency}")
        expect(o.total_price.currency == s.currency, f"best {side} total price is {o.total_price.currency}")


@register_case("generate_wallet")
async def wallet_generation(ctx: SuiteContext, connection: Connection) -> None:
    w = generate_wallet()
    xaddress = classic_address_to_xaddress(w.address, None, False)
    expect(is_valid_xaddress(xaddress), f"{xaddress} is not a valid X-address")
    decode_seed(w.seed)


@register_case("multisign", standalone_only=True)
async def multisign(ctx: SuiteContext, connection: Connection) -> None:
    ms = ctx.settings.multisign
    if ms is None:
        raise QuorumError("no [multisign] accounts configured")
    account = wallet_from_seed(ms.seed, ms.address)
    signers = [(wallet_from_seed(sg.seed, sg.address), sg.address) for sg in ms.signers]
    quorum = SignerQuorum(threshold=ms.threshold, weights={sg.address: sg.weight for sg in ms.signers})

    await pay_to(ctx, connection, account.address)

    ledger_version = await validated_ledger_index(connection)
    signer_list = await prepare(connection, account.address, SettingsIntent(signers=quorum), _instructions(ctx))
    await submit_and_verify(ctx, connection, C.TxType.SIGNER_LIST_SET, ledger_version, signer_list, account)

    ledger_version = await validated_ledger_index(connection)
    domain = SettingsIntent(domain="example.com")
    prepared = await prepare(connection, account.address, domain, _instructions(ctx, signers_count=len(signers)))
    partials = [sign_partial(prepared, w, sign_as=addr) for w, addr in signers]

    # One contribution alone is below the quorum; the node has to refuse it
    lone = await submit(connection, partials[0].signed_blob, expect_success=False)
    expect(not lone.accepted, f"single partial from {partials[0].signer_address} was accepted: {lone.engine_result}")
    log.info("Single partial rejected with %s", lone.engine_result)

    combined = combine(partials, quorum=quorum)
    await submit_combined(ctx, connection, C.TxType.ACCOUNT_SET, ledger_version, prepared, combined)
