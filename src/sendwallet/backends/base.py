"""
Base funding source interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from sendwallet.models import UnspentOutput


class FundingSource(ABC):
    """
    Abstract source of spendable outputs and transaction history.

    Implementations are treated as untrusted: they must surface any
    non-success response or malformed payload as DataSourceFailure (or
    BroadcastRejected for a declined broadcast) and must not retry.
    """

    @abstractmethod
    async def get_utxos(self, address: str) -> list[UnspentOutput]:
        """Get spendable outputs for an address, in source order"""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Broadcast transaction, returns txid"""

    @abstractmethod
    async def get_mempool_transactions(self, address: str) -> list[dict[str, Any]]:
        """Get unconfirmed transactions touching an address"""

    @abstractmethod
    async def get_chain_transactions(
        self, address: str, last_txid: str | None = None
    ) -> list[dict[str, Any]]:
        """Get one page of confirmed transactions, starting after last_txid"""

    async def get_balance(self, address: str) -> int:
        """Balance is derived from the spendable outputs, never fetched"""
        utxos = await self.get_utxos(address)
        return sum(utxo.value for utxo in utxos)

    async def close(self) -> None:
        """Close backend connection"""
        pass
