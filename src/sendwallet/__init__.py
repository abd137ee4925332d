"""
sendwallet - single-recipient P2WPKH transfers.
"""

from sendwallet.errors import (
    BroadcastRejected,
    DataSourceFailure,
    InsufficientFunds,
    InvalidInput,
    SigningFailure,
    TransactionAssemblyError,
    TransferError,
)
from sendwallet.models import (
    DUST_THRESHOLD,
    FeeEstimate,
    NetworkType,
    OutputPlan,
    SelectionResult,
    TransferOutcome,
    UnspentOutput,
)
from sendwallet.transfer import TransferService, get_wallet_balance, send_transaction

__version__ = "0.1.0"

__all__ = [
    "BroadcastRejected",
    "DataSourceFailure",
    "DUST_THRESHOLD",
    "FeeEstimate",
    "InsufficientFunds",
    "InvalidInput",
    "NetworkType",
    "OutputPlan",
    "SelectionResult",
    "SigningFailure",
    "TransactionAssemblyError",
    "TransferError",
    "TransferOutcome",
    "TransferService",
    "UnspentOutput",
    "get_wallet_balance",
    "send_transaction",
]
