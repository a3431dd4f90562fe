"""
Read-path helpers used by the conformance cases.

Amounts come back from the node as drops strings (XRP) or
{currency, issuer, value} objects (issued currencies); both are normalised to
intents.Amount so cases compare them the same way they build them.
"""
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Literal

from xrpl.models.currencies import IssuedCurrency, XRP
from xrpl.models.requests import AccountInfo, AccountLines, AccountOffers, BookOffers
from xrpl.utils import drops_to_xrp

import conformance.constants as C
from conformance.connection import Connection
from conformance.errors import LedgerConnectionError
from conformance.intents import Amount
from conformance.prepare import get_fee_info

log = logging.getLogger("conformance.queries")

LSF_SELL = 0x00020000
MAX_FEE_XRP = Decimal("2")


@dataclass(frozen=True, slots=True)
class Order:
    direction: Literal["buy", "sell"]
    quantity: Amount
    total_price: Amount
    maker: str = ""
    sequence: int | None = None
    quality: Decimal = Decimal(0)
    passive: bool = False

    def flipped(self) -> "Order":
        return Order(
            direction="sell" if self.direction == "buy" else "buy",
            quantity=self.total_price,
            total_price=self.quantity,
            maker=self.maker,
            sequence=self.sequence,
            quality=self.quality,
            passive=self.passive,
        )


@dataclass(frozen=True, slots=True)
class Orderbook:
    bids: list[Order] = field(default_factory=list)
    asks: list[Order] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Trustline:
    currency: str
    counterparty: str
    limit: str
    balance: str
    rippling_disabled: bool = False
    frozen: bool = False
    authorized: bool = False


def parse_amount(raw: str | dict) -> Amount:
    if isinstance(raw, str):
        return Amount("XRP", f"{drops_to_xrp(raw).normalize():f}")
    return Amount(raw["currency"], raw["value"], raw["issuer"])


def _same_asset(a: Amount, b: Amount) -> bool:
    if a.is_xrp or b.is_xrp:
        return a.is_xrp and b.is_xrp
    return a.currency == b.currency and a.counterparty == b.counterparty


def _book_currency(asset: Amount) -> XRP | IssuedCurrency:
    if asset.is_xrp:
        return XRP()
    return IssuedCurrency(currency=asset.currency, issuer=asset.counterparty)


def parse_order(offer: dict[str, Any]) -> Order:
    direction = "sell" if int(offer.get("Flags", 0)) & LSF_SELL else "buy"
    taker_pays = parse_amount(offer["TakerPays"])
    taker_gets = parse_amount(offer["TakerGets"])
    quantity, total_price = (taker_pays, taker_gets) if direction == "buy" else (taker_gets, taker_pays)
    return Order(
        direction=direction,
        quantity=quantity,
        total_price=total_price,
        maker=offer.get("Account", ""),
        sequence=offer.get("Sequence"),
        quality=Decimal(str(offer.get("quality", 0))),
    )


def align_order(base: Amount, order: Order) -> Order:
    """Express `order` in terms of the base asset: quantity is always base."""
    return order if _same_asset(order.quantity, base) else order.flipped()


async def _book_offers(connection: Connection, taker: str, gets: Amount, pays: Amount) -> list[dict]:
    r = await connection.request(
        BookOffers(taker=taker, taker_gets=_book_currency(gets), taker_pays=_book_currency(pays))
    )
    if not r.is_successful():
        raise LedgerConnectionError(f"book_offers failed: {r.result.get('error', r.result)}")
    return r.result.get("offers", [])


async def get_orderbook(connection: Connection, taker: str, base: Amount, counter: Amount) -> Orderbook:
    """Both sides of the base/counter book, bids and asks best first."""
    offers = [
        *await _book_offers(connection, taker, base, counter),
        *await _book_offers(connection, taker, counter, base),
    ]
    orders = sorted((parse_order(o) for o in offers), key=lambda o: o.quality)
    aligned = [align_order(base, o) for o in orders]
    book = Orderbook(
        bids=[o for o in aligned if o.direction == "buy"],
        asks=[o for o in aligned if o.direction == "sell"],
    )
    log.debug("Orderbook %s/%s: %d bids, %d asks", base.currency, counter.currency, len(book.bids), len(book.asks))
    return book


async def account_offers(connection: Connection, address: str) -> list[dict[str, Any]]:
    r = await connection.request(AccountOffers(account=address, ledger_index="validated"))
    if not r.is_successful():
        raise LedgerConnectionError(f"account_offers for {address} failed: {r.result.get('error', r.result)}")
    return r.result.get("offers", [])


async def get_trustlines(
    connection: Connection,
    address: str,
    currency: str | None = None,
    counterparty: str | None = None,
) -> list[Trustline]:
    r = await connection.request(AccountLines(account=address, peer=counterparty, ledger_index="validated"))
    if not r.is_successful():
        raise LedgerConnectionError(f"account_lines for {address} failed: {r.result.get('error', r.result)}")
    lines = []
    for line in r.result.get("lines", []):
        if currency is not None and line["currency"] != currency:
            continue
        lines.append(Trustline(
            currency=line["currency"],
            counterparty=line["account"],
            limit=line["limit"],
            balance=line["balance"],
            rippling_disabled=bool(line.get("no_ripple")),
            frozen=bool(line.get("freeze")),
            authorized=bool(line.get("authorized")),
        ))
    return lines


async def get_balances(
    connection: Connection,
    address: str,
    currency: str | None = None,
    counterparty: str | None = None,
) -> list[Amount]:
    """XRP balance first (unless filtered out), then one entry per trust line."""
    balances: list[Amount] = []
    if currency in (None, "XRP") and counterparty is None:
        r = await connection.request(AccountInfo(account=address, ledger_index="validated"))
        if not r.is_successful():
            raise LedgerConnectionError(f"account_info for {address} failed: {r.result.get('error', r.result)}")
        balances.append(Amount("XRP", f"{drops_to_xrp(r.result['account_data']['Balance']).normalize():f}"))
    if currency == "XRP":
        return balances
    for line in await get_trustlines(connection, address, currency, counterparty):
        balances.append(Amount(line.currency, line.balance, line.counterparty))
    return balances


async def get_fee(connection: Connection, cushion: float = C.FEE_CUSHION) -> str:
    """Suggested fee in XRP for a single-signed transaction, as a decimal string."""
    fee_info = await get_fee_info(connection)
    drops = math.ceil(max(fee_info.minimum_fee, fee_info.base_fee) * Decimal(str(cushion)))
    fee = min(drops_to_xrp(str(drops)), MAX_FEE_XRP)
    return f"{fee.normalize():f}"
