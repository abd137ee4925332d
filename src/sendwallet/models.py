"""
Value objects for a single transfer.

All amounts are integer satoshis. Every object here is created fresh per
operation and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from sendwallet.errors import TransferError

# Minimum economically spendable P2WPKH output
DUST_THRESHOLD = 546

# Heuristic sizes (vbytes) used before the real transaction exists
EST_INPUT_VSIZE = 110
EST_OUTPUT_VSIZE = 31
EST_OVERHEAD_VSIZE = 10
EST_OUTPUT_COUNT = 2

# Real size of a P2WPKH output: 8 value + 1 length + 22 script
P2WPKH_OUTPUT_VSIZE = 31

# nSequence that signals opt-in replace-by-fee (BIP125)
RBF_SEQUENCE = 0xFFFFFFFD

DEFAULT_FEE_RATE = 10


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"

    @property
    def hrp(self) -> str:
        return {"mainnet": "bc", "testnet": "tb", "signet": "tb", "regtest": "bcrt"}[self.value]

    @property
    def is_mainnet(self) -> bool:
        return self is NetworkType.MAINNET


@dataclass(frozen=True)
class UnspentOutput:
    txid: str
    vout: int
    value: int

    @property
    def outpoint(self) -> tuple[str, int]:
        return (self.txid, self.vout)


@dataclass(frozen=True)
class SelectionResult:
    """Inputs chosen for spending, in the order the funding source returned them."""

    utxos: tuple[UnspentOutput, ...]
    total_input_value: int

    @property
    def input_count(self) -> int:
        return len(self.utxos)


@dataclass(frozen=True)
class FeeEstimate:
    virtual_size: int
    fee_rate: int
    fee: int
    kind: Literal["provisional", "exact"] = "provisional"


@dataclass(frozen=True)
class OutputPlan:
    """
    Final output amounts.

    total_input_value == recipient_value + change_value + fee always holds.
    When change is folded into the fee, change_value is 0 and emit_change False.
    """

    recipient_value: int
    change_value: int
    fee: int
    emit_change: bool
    absorbed_change: int = 0

    @property
    def total(self) -> int:
        return self.recipient_value + self.change_value + self.fee


@dataclass(frozen=True)
class TransferOutcome:
    success: bool
    txid: str | None = None
    sender_address: str | None = None
    recipient_address: str | None = None
    sent_amount: int | None = None
    fee: int | None = None
    failure_reason: str | None = None
    failure_kind: str | None = None

    @classmethod
    def succeeded(
        cls,
        txid: str,
        sender_address: str,
        recipient_address: str,
        sent_amount: int,
        fee: int,
    ) -> TransferOutcome:
        return cls(
            success=True,
            txid=txid,
            sender_address=sender_address,
            recipient_address=recipient_address,
            sent_amount=sent_amount,
            fee=fee,
        )

    @classmethod
    def failed(cls, error: TransferError, sender_address: str | None = None) -> TransferOutcome:
        return cls(
            success=False,
            sender_address=sender_address,
            failure_reason=str(error),
            failure_kind=error.kind,
        )


@dataclass(frozen=True)
class WalletBalance:
    address: str
    balance: int
    utxos: tuple[UnspentOutput, ...] = field(default_factory=tuple)

    @property
    def total_utxos(self) -> int:
        return len(self.utxos)
