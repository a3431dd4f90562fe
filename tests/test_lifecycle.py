"""
Tests for submit -> advance -> verify.

Test plan:
- Happy path: TrustSet from a funded wallet validates, id is recorded
- Engine rejection stops before ledger_accept
- Failed meta and expiry surface as distinct errors
- Signing a body for another account fails before anything is submitted
- Combined multisig blob goes through the same path
"""
import pytest

from conftest import ok
from conformance.constants import TxType
from conformance.errors import EngineClass, ExpirationError, SubmissionError, VerificationError
from conformance.intents import SettingsIntent, TrustLineIntent
from conformance.lifecycle import submit, submit_and_verify, submit_combined
from conformance.models import Instructions
from conformance.multisig import combine
from conformance.prepare import prepare
from conformance.signing import sign_partial


async def _trustline(connection, ctx):
    intent = TrustLineIntent(currency="USD", counterparty=ctx.funding_wallet.address, limit="1341.1", rippling_disabled=True)
    return await prepare(connection, ctx.wallet.address, intent, Instructions(max_ledger_version_offset=10))


class TestSubmit:
    @pytest.mark.asyncio
    async def test_reports_engine_result(self, connection) -> None:
        connection.on("submit", ok({"engine_result": "tesSUCCESS", "engine_result_message": "ok", "tx_json": {"hash": "AB"}}))
        sr = await submit(connection, "00")
        assert sr.accepted
        assert sr.transaction_id == "AB"

    @pytest.mark.asyncio
    async def test_rejection_raises(self, connection) -> None:
        connection.on("submit", ok({"engine_result": "temBAD_FEE", "tx_json": {"hash": "AB"}}))
        with pytest.raises(SubmissionError) as exc:
            await submit(connection, "00")
        assert exc.value.engine_result == "temBAD_FEE"
        assert exc.value.engine_class is EngineClass.MALFORMED

    @pytest.mark.asyncio
    async def test_rejection_can_be_expected(self, connection) -> None:
        connection.on("submit", ok({"engine_result": "tefBAD_QUORUM", "tx_json": {"hash": "AB"}}))
        sr = await submit(connection, "00", expect_success=False)
        assert not sr.accepted


class TestSubmitAndVerify:
    @pytest.mark.asyncio
    async def test_trustline_validates(self, connection, ctx) -> None:
        prepared = await _trustline(connection, ctx)

        vr = await submit_and_verify(ctx, connection, TxType.TRUSTSET, 100, prepared, ctx.wallet)

        assert vr.matched_type == "TrustSet"
        assert vr.matched_account == ctx.wallet.address
        assert ctx.transactions == [vr.transaction_id]
        assert ctx.results == [vr]
        methods = connection.methods()
        assert methods.index("submit") < methods.index("ledger_accept") < methods.index("tx")

    @pytest.mark.asyncio
    async def test_engine_rejection_does_not_advance(self, connection, ctx) -> None:
        prepared = await _trustline(connection, ctx)
        connection.engine_result = "tefPAST_SEQ"

        with pytest.raises(SubmissionError) as exc:
            await submit_and_verify(ctx, connection, TxType.TRUSTSET, 100, prepared, ctx.wallet)
        assert exc.value.engine_class is EngineClass.FAILURE
        assert "ledger_accept" not in connection.methods()
        assert ctx.transactions == []

    @pytest.mark.asyncio
    async def test_failed_outcome(self, connection, ctx) -> None:
        prepared = await _trustline(connection, ctx)
        connection.meta_result = "tecNO_LINE_INSUF_RESERVE"

        with pytest.raises(VerificationError):
            await submit_and_verify(ctx, connection, TxType.TRUSTSET, 100, prepared, ctx.wallet)
        assert ctx.transactions == []

    @pytest.mark.asyncio
    async def test_never_validated_expires(self, connection, ctx) -> None:
        prepared = await _trustline(connection, ctx)
        connection.on("tx", ok({"validated": False})).on("ledger", ok({"ledger_index": 111}))

        with pytest.raises(ExpirationError):
            await submit_and_verify(ctx, connection, TxType.TRUSTSET, 100, prepared, ctx.wallet)

    @pytest.mark.asyncio
    async def test_wrong_wallet_fails_before_submit(self, connection, ctx) -> None:
        prepared = await _trustline(connection, ctx)

        with pytest.raises(SubmissionError, match="not signer"):
            await submit_and_verify(ctx, connection, TxType.TRUSTSET, 100, prepared, ctx.funding_wallet)
        assert "submit" not in connection.methods()

    @pytest.mark.asyncio
    async def test_min_ledger_past_last_ledger_sequence(self, connection, ctx) -> None:
        prepared = await _trustline(connection, ctx)

        with pytest.raises(ExpirationError):
            await submit_and_verify(ctx, connection, TxType.TRUSTSET, 500, prepared, ctx.wallet)
        assert "submit" not in connection.methods()


class TestSubmitCombined:
    @pytest.mark.asyncio
    async def test_multisigned_account_set(self, connection, ctx, multisig_account, signers) -> None:
        prepared = await prepare(
            connection,
            multisig_account.address,
            SettingsIntent(domain="example.com"),
            Instructions(max_ledger_version_offset=10, signers_count=2),
        )
        combined = combine([sign_partial(prepared, w) for w in signers])

        vr = await submit_combined(ctx, connection, TxType.ACCOUNT_SET, 100, prepared, combined)

        assert vr.transaction_id == combined.id
        assert vr.matched_account == multisig_account.address
        assert ctx.transactions == [combined.id]
