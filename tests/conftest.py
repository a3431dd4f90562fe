"""
Shared fixtures: a scripted stand-in for Connection and real offline wallets.

FakeConnection answers requests by method name. By default it behaves like a
tiny standalone node: submit accepts any blob and remembers it, ledger_accept
bumps the ledger counters, and tx reports remembered transactions as validated
with tesSUCCESS. Tests override single methods with `on()`.
"""
from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

import pytest
from xrpl.core.binarycodec import decode
from xrpl.models.response import Response, ResponseStatus

from conformance.config import MultisignSettings, Settings, SignerSettings
from conformance.constants import GENESIS
from conformance.models import SuiteContext
from conformance.signing import txid_from_signed_blob, wallet_from_seed

MULTISIG_ACCOUNT = ("r5nx8ZkwEbFztnc8Qyi22DE9JYjRzNmvs", "ss6F8381Br6wwpy9p582H8sBt19J3")
SIGNER_1 = ("rQDhz2ZNXmhxzCYwxU6qAbdxsHA4HV45Y2", "shK6YXzwYfnFVn3YZSaMh5zuAddKx")
SIGNER_2 = ("r3RtUvGw9nMoJ5FuHxuoVJvcENhKtuF9ud", "shUHQnL4EH27V4EiBrj6EfhWvZngF")

FEE_RESULT = {
    "current_ledger_size": "0",
    "current_queue_size": "0",
    "drops": {
        "base_fee": "10",
        "median_fee": "5000",
        "minimum_fee": "10",
        "open_ledger_fee": "10",
    },
    "expected_ledger_size": "1000",
    "ledger_current_index": 101,
    "max_queue_size": "20000",
}


def method_of(req: Any) -> str:
    """Wire command name; `GenericRequest` only carries it in its dict form."""
    return req.to_dict()["method"]


def ok(result: dict[str, Any]) -> Response:
    return Response(status=ResponseStatus.SUCCESS, result=result)


def err(error: str, **extra: Any) -> Response:
    return Response(status=ResponseStatus.ERROR, result={"error": error, **extra})


Handler = Response | Callable[[Any], Any]


class FakeConnection:
    """Records every request; answers from per-method handlers."""

    def __init__(self, url: str = "ws://fake:6006", *, validated: int = 100) -> None:
        self.url = url
        self.connected = True
        self.requests: list[Any] = []
        self.validated = validated
        self.submitted: dict[str, dict] = {}
        self.engine_result = "tesSUCCESS"
        self.meta_result = "tesSUCCESS"
        self._handlers: dict[str, list[Handler]] = {}

    # scripting
    def on(self, method: str, *handlers: Handler) -> "FakeConnection":
        """Queue handlers for `method`; the last one keeps answering."""
        self._handlers[method] = list(handlers)
        return self

    def methods(self) -> list[str]:
        return [method_of(r) for r in self.requests]

    # Connection surface
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def request(self, req: Any, *, timeout: float | None = None) -> Response:
        self.requests.append(req)
        method = method_of(req)
        queued = self._handlers.get(method)
        if queued:
            handler = queued.pop(0) if len(queued) > 1 else queued[0]
        else:
            handler = getattr(self, f"_default_{method}")
        if isinstance(handler, Response):
            return handler
        result = handler(req)
        if inspect.isawaitable(result):
            result = await result
        return result

    # default node behaviour
    def _default_ledger(self, req: Any) -> Response:
        return ok({"ledger_index": self.validated, "validated": True})

    def _default_ledger_accept(self, req: Any) -> Response:
        self.validated += 1
        return ok({"ledger_current_index": self.validated + 1})

    def _default_account_info(self, req: Any) -> Response:
        return ok({"account_data": {"Account": req.account, "Sequence": 7, "Balance": "100000000"}})

    def _default_fee(self, req: Any) -> Response:
        return ok(FEE_RESULT)

    def _default_submit(self, req: Any) -> Response:
        txid = txid_from_signed_blob(req.tx_blob)
        tx = decode(req.tx_blob)
        if self.engine_result == "tesSUCCESS":
            self.submitted[txid] = tx
        return ok({
            "engine_result": self.engine_result,
            "engine_result_message": "",
            "tx_json": {**tx, "hash": txid},
        })

    def _default_tx(self, req: Any) -> Response:
        tx = self.submitted.get(req.transaction)
        if tx is None:
            return err("txnNotFound")
        return ok({
            **tx,
            "hash": req.transaction,
            "ledger_index": self.validated,
            "meta": {"TransactionResult": self.meta_result},
            "validated": True,
        })


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ws_url="ws://fake:6006",
        rpc_url="http://fake:5005",
        funding_address=GENESIS["address"],
        funding_seed=GENESIS["seed"],
        case_timeout=2.0,
        poll_interval=0.0,
        poll_attempts=3,
        poll_overall=2.0,
        destinations=("rMH4UxPrbuMa1spCBR98hLLyNJp4d8p4tM",),
        order_counterparty="rMwjYedjc7qqtKYVLiAccJSmCwih4LnE2q",
        payment_destination="rKmBGxocj9Abgy25J51Mk1iqFzW9aVF9Tc",
        multisign=MultisignSettings(
            address=MULTISIG_ACCOUNT[0],
            seed=MULTISIG_ACCOUNT[1],
            threshold=2,
            signers=(SignerSettings(*SIGNER_1), SignerSettings(*SIGNER_2)),
        ),
    )


@pytest.fixture
def master():
    return wallet_from_seed(GENESIS["seed"], GENESIS["address"])


@pytest.fixture
def multisig_account():
    return wallet_from_seed(MULTISIG_ACCOUNT[1], MULTISIG_ACCOUNT[0])


@pytest.fixture
def signers():
    return [wallet_from_seed(SIGNER_1[1], SIGNER_1[0]), wallet_from_seed(SIGNER_2[1], SIGNER_2[0])]


@pytest.fixture
def ctx(settings, master, signers) -> SuiteContext:
    return SuiteContext(settings=settings, funding_wallet=master, wallet=signers[0], new_wallet=signers[1])
