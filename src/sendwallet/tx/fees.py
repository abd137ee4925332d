"""
Two-pass fee estimation.

The exact size of a transaction depends on its signatures, which depend on
the final outputs, which depend on the fee. The loop is broken by first
estimating the size heuristically, then signing a draft and measuring it.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from loguru import logger

from sendwallet.errors import InsufficientFunds
from sendwallet.models import (
    DUST_THRESHOLD,
    EST_INPUT_VSIZE,
    EST_OUTPUT_COUNT,
    EST_OUTPUT_VSIZE,
    EST_OVERHEAD_VSIZE,
    FeeEstimate,
    SelectionResult,
)
from sendwallet.tx.transaction import TxOutput, virtual_size

if TYPE_CHECKING:
    from loguru import Logger

    from sendwallet.tx.assembler import TransactionAssembler
    from sendwallet.wallet.signing import Signer


def estimate_vsize(input_count: int, output_count: int = EST_OUTPUT_COUNT) -> int:
    """Heuristic virtual size: ~110 vB per input, ~31 vB per output, 10 vB overhead."""
    return EST_INPUT_VSIZE * input_count + EST_OUTPUT_VSIZE * output_count + EST_OVERHEAD_VSIZE


def fee_for_vsize(vsize: int, fee_rate: int | float) -> int:
    return math.ceil(vsize * fee_rate)


class FeeEstimator:
    def __init__(
        self,
        fee_rate: int,
        assembler: TransactionAssembler,
        log: Logger = logger,
    ):
        if fee_rate <= 0:
            raise ValueError(f"Fee rate must be positive, got {fee_rate}")
        self.fee_rate = fee_rate
        self.assembler = assembler
        self.log = log.bind(component="fees")

    def provisional(self, selection: SelectionResult, amount: int) -> tuple[FeeEstimate, int]:
        """
        First pass: heuristic size for the selected input count.

        Returns:
            (estimate, change) where change = total input - amount - fee

        Raises:
            InsufficientFunds: if the change would be negative
        """
        vsize = estimate_vsize(selection.input_count)
        estimate = FeeEstimate(
            virtual_size=vsize,
            fee_rate=self.fee_rate,
            fee=fee_for_vsize(vsize, self.fee_rate),
            kind="provisional",
        )
        change = selection.total_input_value - amount - estimate.fee
        if change < 0:
            raise InsufficientFunds(
                "Insufficient balance to cover fees",
                required=amount + estimate.fee,
                available=selection.total_input_value,
            )

        self.log.debug(f"Provisional fee {estimate.fee:,} sats ({vsize} vB), change {change:,}")
        return estimate, change

    def measure(
        self,
        selection: SelectionResult,
        recipient: TxOutput,
        provisional_change: int,
        change_scriptpubkey: bytes,
        signer: Signer,
    ) -> tuple[FeeEstimate, int, bool]:
        """
        Second pass: sign a draft and measure its real virtual size.

        The draft pays the recipient and, if the provisional change is above
        dust, the change. It is thrown away after measuring.

        Returns:
            (estimate, change, draft_has_change)

        Raises:
            InsufficientFunds: if the exact change would be negative
            SigningFailure: if the signer rejects an input
        """
        outputs = [recipient]
        draft_has_change = provisional_change > DUST_THRESHOLD
        if draft_has_change:
            outputs.append(TxOutput(value=provisional_change, scriptpubkey=change_scriptpubkey))

        draft = self.assembler.sign(self.assembler.build(selection, outputs), signer)
        vsize = virtual_size(draft.serialize())

        estimate = FeeEstimate(
            virtual_size=vsize,
            fee_rate=self.fee_rate,
            fee=fee_for_vsize(vsize, self.fee_rate),
            kind="exact",
        )
        change = selection.total_input_value - recipient.value - estimate.fee
        if change < 0:
            raise InsufficientFunds(
                "Insufficient balance to cover the measured fee",
                required=recipient.value + estimate.fee,
                available=selection.total_input_value,
            )

        self.log.debug(
            f"Measured draft {vsize} vB ({len(outputs)} outputs): "
            f"exact fee {estimate.fee:,} sats, change {change:,}"
        )
        return estimate, change, draft_has_change
