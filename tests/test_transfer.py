"""
Tests for the transfer service.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from sendwallet.errors import BroadcastRejected, DataSourceFailure, InvalidInput, SigningFailure
from sendwallet.models import NetworkType
from sendwallet.transfer import TransferService, get_wallet_balance, send_transaction
from sendwallet.tx.transaction import parse_transaction, virtual_size
from sendwallet.wallet.address import address_to_scriptpubkey
from tests.conftest import (
    RECIPIENT_ADDRESS,
    SENDER_ADDRESS,
    SENDER_WIF,
    make_utxo,
    txid_of,
)

RECIPIENT_SCRIPT = address_to_scriptpubkey(RECIPIENT_ADDRESS, NetworkType.TESTNET)
SENDER_SCRIPT = address_to_scriptpubkey(SENDER_ADDRESS, NetworkType.TESTNET)


def _broadcast_hex(source: AsyncMock) -> str:
    source.broadcast_transaction.assert_awaited_once()
    return source.broadcast_transaction.await_args.args[0]


class TestSend:
    @pytest.mark.asyncio
    async def test_sends_with_change(self, funding_source: AsyncMock) -> None:
        funding_source.get_utxos.return_value = [make_utxo(100_000, 0), make_utxo(50_000, 1)]
        service = TransferService(funding_source, NetworkType.TESTNET, fee_rate=10)

        outcome = await service.send(SENDER_WIF, RECIPIENT_ADDRESS, 60_000)

        assert outcome.success is True
        assert outcome.sender_address == SENDER_ADDRESS
        assert outcome.recipient_address == RECIPIENT_ADDRESS
        assert outcome.sent_amount == 60_000
        funding_source.get_utxos.assert_awaited_once_with(SENDER_ADDRESS)

        raw = bytes.fromhex(_broadcast_hex(funding_source))
        parsed = parse_transaction(raw)
        assert outcome.txid == txid_of(raw.hex())
        assert len(parsed.inputs) == 1
        assert parsed.inputs[0]["txid"] == make_utxo(100_000, 0).txid
        assert parsed.inputs[0]["sequence"] == 0xFFFFFFFD
        assert [(o.value, o.scriptpubkey) for o in parsed.outputs] == [
            (60_000, RECIPIENT_SCRIPT),
            (100_000 - 60_000 - outcome.fee, SENDER_SCRIPT),
        ]
        # Fee follows the measured size, not the 182 vB heuristic
        assert outcome.fee < 1_820
        assert abs(outcome.fee - virtual_size(raw) * 10) <= 10

    @pytest.mark.asyncio
    async def test_change_above_dust_is_never_burned(self, funding_source: AsyncMock) -> None:
        # Provisional change is zero, the measured change is not
        funding_source.get_utxos.return_value = [make_utxo(100_000, 0)]
        service = TransferService(funding_source, fee_rate=10)

        outcome = await service.send(SENDER_WIF, RECIPIENT_ADDRESS, 98_180)

        assert outcome.success is True
        assert outcome.sent_amount == 98_180
        parsed = parse_transaction(bytes.fromhex(_broadcast_hex(funding_source)))
        assert [o.scriptpubkey for o in parsed.outputs] == [RECIPIENT_SCRIPT, SENDER_SCRIPT]
        change = parsed.outputs[1].value
        assert change > 546
        assert 98_180 + change + outcome.fee == 100_000
        assert outcome.fee < 1_820 - 546

    @pytest.mark.asyncio
    async def test_per_call_fee_rate(self, funding_source: AsyncMock) -> None:
        funding_source.get_utxos.return_value = [make_utxo(100_000, 0)]
        service = TransferService(funding_source, fee_rate=10)

        low = await service.send(SENDER_WIF, RECIPIENT_ADDRESS, 10_000, fee_rate=1)
        high = await service.send(SENDER_WIF, RECIPIENT_ADDRESS, 10_000, fee_rate=20)

        assert low.success and high.success
        assert low.fee < high.fee

    @pytest.mark.asyncio
    async def test_amount_exceeds_balance(self, funding_source: AsyncMock) -> None:
        funding_source.get_utxos.return_value = [make_utxo(30_000, 0), make_utxo(20_000, 1)]

        outcome = await TransferService(funding_source).send(SENDER_WIF, RECIPIENT_ADDRESS, 60_000)

        assert outcome.success is False
        assert outcome.failure_kind == "insufficient_funds"
        assert outcome.sender_address == SENDER_ADDRESS
        funding_source.broadcast_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_utxos(self, funding_source: AsyncMock) -> None:
        outcome = await TransferService(funding_source).send(SENDER_WIF, RECIPIENT_ADDRESS, 1_000)

        assert outcome.failure_kind == "insufficient_funds"
        funding_source.broadcast_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("wif", "recipient", "amount"),
        [
            (SENDER_WIF, "not-an-address", 1_000),
            (SENDER_WIF, "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4", 1_000),
            (SENDER_WIF, RECIPIENT_ADDRESS, 0),
            (SENDER_WIF, RECIPIENT_ADDRESS, -5),
            ("garbage", RECIPIENT_ADDRESS, 1_000),
            # Valid checksum over an empty payload
            ("3QJmnh", RECIPIENT_ADDRESS, 1_000),
        ],
    )
    async def test_invalid_input(
        self, funding_source: AsyncMock, wif: str, recipient: str, amount: int
    ) -> None:
        outcome = await TransferService(funding_source).send(wif, recipient, amount)

        assert outcome.success is False
        assert outcome.failure_kind == "invalid_input"
        funding_source.get_utxos.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_fee_rate(self, funding_source: AsyncMock) -> None:
        outcome = await TransferService(funding_source).send(
            SENDER_WIF, RECIPIENT_ADDRESS, 1_000, fee_rate=0
        )
        assert outcome.failure_kind == "invalid_input"

    @pytest.mark.asyncio
    async def test_signing_failure(self, funding_source: AsyncMock) -> None:
        class RefusingSigner:
            def __init__(self, identity):
                pass

            def sign_input(self, tx, input_index):
                raise SigningFailure("hardware signer declined", input_index=input_index)

        funding_source.get_utxos.return_value = [make_utxo(100_000, 0)]
        service = TransferService(funding_source, signer_factory=RefusingSigner)

        outcome = await service.send(SENDER_WIF, RECIPIENT_ADDRESS, 10_000)

        assert outcome.failure_kind == "signing_failure"
        assert "declined" in outcome.failure_reason
        funding_source.broadcast_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_utxo_fetch_failure(self, funding_source: AsyncMock) -> None:
        funding_source.get_utxos.side_effect = DataSourceFailure("HTTP 503", status_code=503)

        outcome = await TransferService(funding_source).send(SENDER_WIF, RECIPIENT_ADDRESS, 1_000)

        assert outcome.failure_kind == "data_source_failure"
        funding_source.broadcast_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_broadcast_rejected(self, funding_source: AsyncMock) -> None:
        funding_source.get_utxos.return_value = [make_utxo(100_000, 0)]
        funding_source.broadcast_transaction.side_effect = BroadcastRejected(
            "bad-txns-inputs-missingorspent", 400
        )

        outcome = await TransferService(funding_source).send(SENDER_WIF, RECIPIENT_ADDRESS, 10_000)

        assert outcome.success is False
        assert outcome.failure_kind == "broadcast_rejected"
        assert "missingorspent" in outcome.failure_reason
        assert outcome.txid is None

    @pytest.mark.asyncio
    async def test_broadcast_transport_failure(self, funding_source: AsyncMock) -> None:
        funding_source.get_utxos.return_value = [make_utxo(100_000, 0)]
        funding_source.broadcast_transaction.side_effect = DataSourceFailure("timed out")

        outcome = await TransferService(funding_source).send(SENDER_WIF, RECIPIENT_ADDRESS, 10_000)

        assert outcome.failure_kind == "data_source_failure"


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_balance(self, funding_source: AsyncMock) -> None:
        funding_source.get_utxos.return_value = [make_utxo(70_000, 0), make_utxo(5_000, 1)]

        balance = await TransferService(funding_source).get_balance(SENDER_WIF)

        assert balance.address == SENDER_ADDRESS
        assert balance.balance == 75_000
        assert balance.total_utxos == 2

    @pytest.mark.asyncio
    async def test_get_history_validates_address(self, funding_source: AsyncMock) -> None:
        with pytest.raises(InvalidInput):
            await TransferService(funding_source).get_history("nope")
        funding_source.get_mempool_transactions.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_history(self, funding_source: AsyncMock) -> None:
        funding_source.get_mempool_transactions.return_value = []
        funding_source.get_chain_transactions.side_effect = [
            [{"txid": "t1", "status": {"confirmed": True}, "vin": [],
              "vout": [{"scriptpubkey_address": SENDER_ADDRESS, "value": 9}]}],
            [],
        ]

        history = await TransferService(funding_source).get_history(SENDER_ADDRESS)

        assert history.net_total == 9


class TestEntryPoints:
    @pytest.mark.asyncio
    async def test_send_transaction_closes_backend(self) -> None:
        with patch("sendwallet.transfer.EsploraBackend") as backend_cls:
            backend = backend_cls.return_value
            backend.get_utxos = AsyncMock(return_value=[])
            backend.close = AsyncMock()

            outcome = await send_transaction(
                SENDER_WIF, RECIPIENT_ADDRESS, 1_000, esplora_api_url="http://esplora.local"
            )

        backend_cls.assert_called_once_with("http://esplora.local")
        backend.close.assert_awaited_once()
        assert outcome.failure_kind == "insufficient_funds"

    @pytest.mark.asyncio
    async def test_get_wallet_balance_uses_network_default(self) -> None:
        with patch("sendwallet.transfer.EsploraBackend") as backend_cls:
            backend = backend_cls.return_value
            backend.get_utxos = AsyncMock(return_value=[make_utxo(1_234, 0)])
            backend.close = AsyncMock()

            balance = await get_wallet_balance(SENDER_WIF, NetworkType.TESTNET)

        backend_cls.assert_called_once_with("https://blockstream.info/testnet/api")
        assert balance.balance == 1_234
        backend.close.assert_awaited_once()
