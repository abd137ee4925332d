"""
Greedy UTXO selection.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from loguru import logger

from sendwallet.errors import InsufficientFunds
from sendwallet.models import SelectionResult, UnspentOutput
from sendwallet.tx.fees import estimate_vsize, fee_for_vsize

if TYPE_CHECKING:
    from loguru import Logger


def select_utxos(
    utxos: Sequence[UnspentOutput],
    amount: int,
    fee_rate: int,
    log: Logger = logger,
) -> SelectionResult:
    """
    Accumulate UTXOs in source order until amount plus estimated fee is covered.

    The estimate is recomputed after every addition and selection stops on
    the first input that satisfies it. No attempt is made to minimise input
    count or change.

    Raises:
        InsufficientFunds: if utxos is empty or exhausted before the target is met
    """
    if not utxos:
        raise InsufficientFunds("No spendable UTXOs available", required=amount, available=0)

    selected: list[UnspentOutput] = []
    total = 0
    required = amount

    for utxo in utxos:
        selected.append(utxo)
        total += utxo.value

        fee = fee_for_vsize(estimate_vsize(len(selected)), fee_rate)
        required = amount + fee
        if total >= required:
            log.debug(
                f"Selected {len(selected)}/{len(utxos)} UTXOs: {total:,} sats "
                f"covers {amount:,} + ~{fee:,} fee"
            )
            return SelectionResult(utxos=tuple(selected), total_input_value=total)

    raise InsufficientFunds(
        f"Insufficient funds: need {required:,} sats including fee, have {total:,}",
        required=required,
        available=total,
    )
