import json

import pytest
from xrpl.core.binarycodec import decode

from conftest import err
from conformance.errors import SubmissionError
from conformance.intents import Amount, PaymentIntent, TrustLineIntent
from conformance.models import Instructions, LedgerRange, PreparedTransaction
from conformance.prepare import prepare
from conformance.signing import sign, sign_partial, txid_from_signed_blob, wallet_from_seed

DEST = "rKmBGxocj9Abgy25J51Mk1iqFzW9aVF9Tc"


def _payment() -> PaymentIntent:
    return PaymentIntent(destination=DEST, amount=Amount("XRP", "0.000001"))


class TestPrepare:
    @pytest.mark.asyncio
    async def test_binds_sequence_fee_and_last_ledger(self, connection, master) -> None:
        prepared = await prepare(connection, master.address, _payment())
        tx = json.loads(prepared.serialized_body)

        assert tx["Account"] == master.address
        assert tx["Sequence"] == 7
        assert tx["Fee"] == "10"
        assert tx["LastLedgerSequence"] == 103
        assert tx["Amount"] == "1"
        assert "Flags" not in tx

    @pytest.mark.asyncio
    async def test_offset_and_fixed_sequence(self, connection, master) -> None:
        prepared = await prepare(
            connection, master.address, _payment(),
            Instructions(max_ledger_version_offset=10, sequence=42, fee="15"),
        )
        assert prepared.tx_json["LastLedgerSequence"] == 110
        assert prepared.tx_json["Sequence"] == 42
        assert prepared.tx_json["Fee"] == "15"
        assert "account_info" not in connection.methods()

    @pytest.mark.asyncio
    async def test_multisig_fee_and_empty_pubkey(self, connection, master) -> None:
        prepared = await prepare(connection, master.address, _payment(), Instructions(signers_count=2))
        assert prepared.tx_json["Fee"] == "30"
        assert prepared.tx_json["SigningPubKey"] == ""

    @pytest.mark.asyncio
    async def test_unfunded_account(self, connection, master) -> None:
        connection.on("account_info", err("actNotFound"))
        with pytest.raises(SubmissionError, match="actNotFound"):
            await prepare(connection, master.address, _payment())


class TestSign:
    @pytest.mark.asyncio
    async def test_signed_blob_and_id(self, connection, master) -> None:
        prepared = await prepare(connection, master.address, _payment())
        signed = sign(prepared, master)
        tx = decode(signed.signed_blob)

        assert tx["Account"] == master.address
        assert tx["SigningPubKey"] == master.public_key
        assert tx["TxnSignature"]
        assert signed.id == txid_from_signed_blob(signed.signed_blob)
        assert len(signed.id) == 64

    @pytest.mark.asyncio
    async def test_body_for_other_account_is_refused(self, connection, master, signers) -> None:
        prepared = await prepare(connection, master.address, _payment())
        with pytest.raises(SubmissionError):
            sign(prepared, signers[0])

    @pytest.mark.asyncio
    async def test_prepared_body_is_not_mutated(self, connection, master) -> None:
        prepared = await prepare(connection, master.address, _payment())
        before = prepared.serialized_body
        sign(prepared, master)
        assert prepared.serialized_body == before

    @pytest.mark.asyncio
    async def test_partial_signs_as(self, connection, multisig_account, signers) -> None:
        intent = TrustLineIntent(currency="USD", counterparty=DEST, limit="10")
        prepared = await prepare(connection, multisig_account.address, intent, Instructions(signers_count=2))
        partial = sign_partial(prepared, signers[0], sign_as=signers[0].address)
        tx = decode(partial.signed_blob)

        assert partial.signer_address == signers[0].address
        assert tx["SigningPubKey"] == ""
        assert [s["Signer"]["Account"] for s in tx["Signers"]] == [signers[0].address]


class TestWallets:
    def test_genesis_seed(self, master) -> None:
        assert master.address == "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"

    def test_address_mismatch(self) -> None:
        with pytest.raises(ValueError):
            wallet_from_seed("snoPBrXtMeMyMHUVTgbuqAfg1SUTb", DEST)

    def test_prepared_without_last_ledger(self) -> None:
        prepared = PreparedTransaction(serialized_body=json.dumps({"Account": DEST}))
        with pytest.raises(ValueError):
            LedgerRange.for_prepared(100, prepared)
