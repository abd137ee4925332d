"""
Tests for the sendwallet CLI.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from sendwallet.cli import app
from sendwallet.errors import BroadcastRejected
from sendwallet.models import TransferOutcome, WalletBalance
from tests.conftest import RECIPIENT_ADDRESS, SENDER_ADDRESS, SENDER_WIF, make_utxo

runner = CliRunner()


class TestCreate:
    def test_prints_new_key(self) -> None:
        result = runner.invoke(app, ["create"])

        assert result.exit_code == 0
        assert "Address:    tb1q" in result.output
        assert "WIF:        c" in result.output

    def test_mainnet(self) -> None:
        result = runner.invoke(app, ["create", "--network", "mainnet"])

        assert result.exit_code == 0
        assert "Address:    bc1q" in result.output

    def test_unknown_network(self) -> None:
        result = runner.invoke(app, ["create", "--network", "moonnet"])
        assert result.exit_code == 1


class TestBalance:
    def test_requires_wif(self) -> None:
        result = runner.invoke(app, ["balance"], env={"WIF": ""})
        assert result.exit_code == 1

    def test_prints_balance(self) -> None:
        with patch("sendwallet.cli.TransferService") as service_cls:
            service_cls.return_value.get_balance = AsyncMock(
                return_value=WalletBalance(
                    address=SENDER_ADDRESS, balance=150_000, utxos=(make_utxo(150_000, 7),)
                )
            )
            result = runner.invoke(app, ["balance", "--wif", SENDER_WIF])

        assert result.exit_code == 0
        assert "150,000 sats" in result.output
        assert "UTXOs:   1" in result.output


class TestSend:
    def test_success(self) -> None:
        outcome = TransferOutcome.succeeded(
            txid="ab" * 32,
            sender_address=SENDER_ADDRESS,
            recipient_address=RECIPIENT_ADDRESS,
            sent_amount=60_000,
            fee=1_410,
        )
        with patch("sendwallet.cli.TransferService") as service_cls:
            service_cls.return_value.send = AsyncMock(return_value=outcome)
            result = runner.invoke(
                app, ["send", RECIPIENT_ADDRESS, "60000", "--wif", SENDER_WIF, "-f", "5"]
            )

        assert result.exit_code == 0
        assert "ab" * 32 in result.output
        assert "fee:    1,410 sats" in result.output
        assert service_cls.call_args.args[2] == 5
        service_cls.return_value.send.assert_awaited_once_with(
            SENDER_WIF, RECIPIENT_ADDRESS, 60_000
        )

    def test_failure_exits_nonzero(self) -> None:
        outcome = TransferOutcome.failed(BroadcastRejected("min relay fee not met", 400))
        with patch("sendwallet.cli.TransferService") as service_cls:
            service_cls.return_value.send = AsyncMock(return_value=outcome)
            result = runner.invoke(app, ["send", RECIPIENT_ADDRESS, "1000", "--wif", SENDER_WIF])

        assert result.exit_code == 1
        assert "broadcast_rejected" in result.output
