"""
Failure taxonomy for transfers.

Each variant carries only the fields relevant to it. None of them are retried
internally; callers decide whether and how to resubmit.
"""

from __future__ import annotations


class TransferError(Exception):
    """Base class for every failure a transfer can report."""

    kind = "transfer_error"


class InvalidInput(TransferError):
    """Malformed address or secret, non-positive amount or fee rate."""

    kind = "invalid_input"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class InsufficientFunds(TransferError):
    kind = "insufficient_funds"

    def __init__(self, message: str, required: int | None = None, available: int = 0):
        super().__init__(message)
        self.required = required
        self.available = available


class SigningFailure(TransferError):
    kind = "signing_failure"

    def __init__(self, message: str, input_index: int | None = None):
        super().__init__(message)
        self.input_index = input_index


class DataSourceFailure(TransferError):
    """Fetch or broadcast failed at the transport level or returned garbage."""

    kind = "data_source_failure"

    def __init__(self, message: str, endpoint: str = "", status_code: int | None = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code


class BroadcastRejected(TransferError):
    """The network declined the finalized transaction."""

    kind = "broadcast_rejected"

    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(f"Broadcast rejected: {reason}")
        self.reason = reason
        self.status_code = status_code


class TransactionAssemblyError(TransferError):
    """Finalized transaction does not match the planned amounts."""

    kind = "assembly_error"
