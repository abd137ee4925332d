"""
Shared fixtures for sendwallet tests.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from sendwallet.backends.base import FundingSource
from sendwallet.models import NetworkType, UnspentOutput
from sendwallet.tx.transaction import Transaction, TxInput, parse_transaction
from sendwallet.wallet.keys import WalletIdentity

# Compressed mainnet-prefixed WIF, used on testnet (not for production use!)
SENDER_WIF = "L1AufixjzuQKcAHeNdv7wJ4YK4VfUK2fQaLdzT8CVypHnY7of3i3"
SENDER_PRIVKEY = "0becabf03648dcee3657a11f69d772b115c76c738dc5ea82f48472ba24ef1435"
SENDER_PUBKEY = "031ed29ab9d552537f5cc92b9b41663b5099b44681eff753970af8cd90df1a7325"
SENDER_ADDRESS = "tb1qa220d63y98uykm8qz4fa3w7fwsarg0ncwxzghh"

RECIPIENT_WIF = "KyGKqW2yVjps3CrqgsSWJ94SLWKJTPc5zSVyomLYJP1LBwwArypj"
RECIPIENT_ADDRESS = "tb1q6hks4hg2fv80g0rpk9732uem4z3sytp7gv9dea"


def make_utxo(value: int, index: int = 0, vout: int = 0) -> UnspentOutput:
    return UnspentOutput(txid=f"{index:064x}", vout=vout, value=value)


def txid_of(raw_hex: str) -> str:
    """Recompute the txid of a raw transaction, as a funding source would."""
    parsed = parse_transaction(bytes.fromhex(raw_hex))
    tx = Transaction(
        inputs=tuple(TxInput(i["txid"], i["vout"], 0, i["sequence"]) for i in parsed.inputs),
        outputs=tuple(parsed.outputs),
        version=parsed.version,
        locktime=parsed.locktime,
    )
    return tx.txid


@pytest.fixture
def sender() -> WalletIdentity:
    return WalletIdentity.from_wif(SENDER_WIF, NetworkType.TESTNET)


@pytest.fixture
def funding_source() -> AsyncMock:
    """Funding source mock that accepts any broadcast."""
    source = AsyncMock(spec=FundingSource)
    source.get_utxos.return_value = []
    source.broadcast_transaction.side_effect = txid_of
    return source
