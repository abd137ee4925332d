"""
Change output policy.

Change at or below the dust threshold is folded into the fee. The recipient
amount is never reduced to absorb it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from sendwallet.errors import InsufficientFunds
from sendwallet.models import DUST_THRESHOLD, P2WPKH_OUTPUT_VSIZE, FeeEstimate, OutputPlan
from sendwallet.tx.fees import fee_for_vsize

if TYPE_CHECKING:
    from loguru import Logger


def plan_outputs(
    total_input_value: int,
    amount: int,
    exact: FeeEstimate,
    draft_has_change: bool,
    dust_threshold: int = DUST_THRESHOLD,
    log: Logger = logger,
) -> OutputPlan:
    """
    Decide the final recipient/change/fee split from the exact fee.

    Change above the dust threshold is always emitted and at most
    ``dust_threshold`` sats are ever absorbed into the fee. If the measured
    draft had no change output, the new output pays for its own size out of
    the change, but only while the remainder stays above dust.
    """
    fee = exact.fee
    change = total_input_value - amount - fee
    if change < 0:
        raise InsufficientFunds(
            "Insufficient balance to cover fees",
            required=amount + fee,
            available=total_input_value,
        )

    if change > dust_threshold:
        if not draft_has_change:
            extra = fee_for_vsize(P2WPKH_OUTPUT_VSIZE, exact.fee_rate)
            if change - extra > dust_threshold:
                fee += extra
                change -= extra

        return OutputPlan(recipient_value=amount, change_value=change, fee=fee, emit_change=True)

    if change:
        log.info(f"Change of {change} sats is not worth an output, adding to fee")
    return OutputPlan(
        recipient_value=amount,
        change_value=0,
        fee=fee + change,
        emit_change=False,
        absorbed_change=change,
    )
