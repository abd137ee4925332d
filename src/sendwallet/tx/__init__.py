"""
Transaction construction: selection, fees, change and assembly.
"""

from sendwallet.tx.assembler import FinalizedTransaction, TransactionAssembler
from sendwallet.tx.change import plan_outputs
from sendwallet.tx.fees import FeeEstimator, estimate_vsize, fee_for_vsize
from sendwallet.tx.selection import select_utxos
from sendwallet.tx.transaction import Transaction, TxInput, TxOutput, virtual_size

__all__ = [
    "FeeEstimator",
    "FinalizedTransaction",
    "Transaction",
    "TransactionAssembler",
    "TxInput",
    "TxOutput",
    "estimate_vsize",
    "fee_for_vsize",
    "plan_outputs",
    "select_utxos",
    "virtual_size",
]
