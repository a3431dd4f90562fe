"""Transaction intents: what a case wants to do, before sequence and fee are bound.

Each intent is turned into the JSON form of its transaction by a builder and
then parsed into the matching xrpl-py model, which validates it.
"""
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from xrpl.models.transactions import (
    AccountSet,
    AccountSetAsfFlag,
    OfferCancel,
    OfferCreate,
    OfferCreateFlag,
    Payment,
    SignerListSet,
    Transaction,
    TrustSet,
    TrustSetFlag,
)
from xrpl.utils import xrp_to_drops

from conformance.models import SignerQuorum


@dataclass(frozen=True, slots=True)
class Amount:
    currency: str
    value: str
    counterparty: str | None = None

    @property
    def is_xrp(self) -> bool:
        return self.currency == "XRP" and self.counterparty is None

    def to_xrpl(self) -> str | dict:
        if self.is_xrp:
            return xrp_to_drops(Decimal(self.value))
        if self.counterparty is None:
            raise ValueError(f"{self.currency} amount needs a counterparty")
        return {"currency": self.currency, "issuer": self.counterparty, "value": self.value}


@dataclass(frozen=True, slots=True)
class TrustLineIntent:
    currency: str
    counterparty: str
    limit: str
    rippling_disabled: bool = False
    frozen: bool = False
    authorized: bool = False


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    destination: str
    amount: Amount
    send_max: Amount | None = None
    destination_tag: int | None = None


@dataclass(frozen=True, slots=True)
class OrderIntent:
    direction: Literal["buy", "sell"]
    quantity: Amount
    total_price: Amount
    passive: bool = False


@dataclass(frozen=True, slots=True)
class OrderCancellationIntent:
    order_sequence: int


@dataclass(frozen=True, slots=True)
class SettingsIntent:
    default_ripple: bool | None = None
    domain: str | None = None
    signers: SignerQuorum | None = None


TransactionIntent = TrustLineIntent | PaymentIntent | OrderIntent | OrderCancellationIntent | SettingsIntent


def _build_trustline(address: str, intent: TrustLineIntent) -> tuple[type[Transaction], dict]:
    flags = 0
    if intent.rippling_disabled:
        flags |= TrustSetFlag.TF_SET_NO_RIPPLE
    if intent.frozen:
        flags |= TrustSetFlag.TF_SET_FREEZE
    if intent.authorized:
        flags |= TrustSetFlag.TF_SETF_AUTH
    tx = {
        "TransactionType": "TrustSet",
        "Account": address,
        "LimitAmount": {
            "currency": intent.currency,
            "issuer": intent.counterparty,
            "value": intent.limit,
        },
    }
    if flags:
        tx["Flags"] = int(flags)
    return TrustSet, tx


def _build_payment(address: str, intent: PaymentIntent) -> tuple[type[Transaction], dict]:
    tx = {
        "TransactionType": "Payment",
        "Account": address,
        "Destination": intent.destination,
        "Amount": intent.amount.to_xrpl(),
    }
    # SendMax is not allowed on XRP to XRP payments
    if intent.send_max is not None and not (intent.send_max.is_xrp and intent.amount.is_xrp):
        tx["SendMax"] = intent.send_max.to_xrpl()
    if intent.destination_tag is not None:
        tx["DestinationTag"] = intent.destination_tag
    return Payment, tx


def _build_order(address: str, intent: OrderIntent) -> tuple[type[Transaction], dict]:
    if intent.direction == "buy":
        taker_pays, taker_gets = intent.quantity, intent.total_price
    elif intent.direction == "sell":
        taker_pays, taker_gets = intent.total_price, intent.quantity
    else:
        raise ValueError(f"order direction must be 'buy' or 'sell', not {intent.direction!r}")

    flags = 0
    if intent.direction == "sell":
        flags |= OfferCreateFlag.TF_SELL
    if intent.passive:
        flags |= OfferCreateFlag.TF_PASSIVE
    tx = {
        "TransactionType": "OfferCreate",
        "Account": address,
        "TakerPays": taker_pays.to_xrpl(),
        "TakerGets": taker_gets.to_xrpl(),
    }
    if flags:
        tx["Flags"] = int(flags)
    return OfferCreate, tx


def _build_order_cancellation(address: str, intent: OrderCancellationIntent) -> tuple[type[Transaction], dict]:
    return OfferCancel, {
        "TransactionType": "OfferCancel",
        "Account": address,
        "OfferSequence": intent.order_sequence,
    }


def _build_settings(address: str, intent: SettingsIntent) -> tuple[type[Transaction], dict]:
    if intent.signers is not None:
        if intent.default_ripple is not None or intent.domain is not None:
            raise ValueError("a signer list change cannot be combined with other settings")
        entries = [
            {"SignerEntry": {"Account": a, "SignerWeight": w}}
            for a, w in sorted(intent.signers.weights.items())
        ]
        return SignerListSet, {
            "TransactionType": "SignerListSet",
            "Account": address,
            "SignerQuorum": intent.signers.threshold,
            "SignerEntries": entries,
        }

    tx = {"TransactionType": "AccountSet", "Account": address}
    if intent.default_ripple is True:
        tx["SetFlag"] = int(AccountSetAsfFlag.ASF_DEFAULT_RIPPLE)
    elif intent.default_ripple is False:
        tx["ClearFlag"] = int(AccountSetAsfFlag.ASF_DEFAULT_RIPPLE)
    if intent.domain is not None:
        tx["Domain"] = intent.domain.encode("ascii").hex()
    return AccountSet, tx


_BUILDERS: dict[type, Callable[[str, object], tuple[type[Transaction], dict]]] = {
    TrustLineIntent: _build_trustline,
    PaymentIntent: _build_payment,
    OrderIntent: _build_order,
    OrderCancellationIntent: _build_order_cancellation,
    SettingsIntent: _build_settings,
}


def build_transaction(address: str, intent: TransactionIntent) -> Transaction:
    """Turn an intent into an unsigned xrpl-py transaction model for `address`."""
    builder = _BUILDERS.get(type(intent))
    if builder is None:
        raise ValueError(f"Unsupported intent: {type(intent).__name__}")
    model, tx = builder(address, intent)
    return model.from_xrpl(tx)
