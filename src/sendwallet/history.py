"""
Address transaction history.

Collects mempool and confirmed transactions for an address and computes the
net amount each one moved for it. Net amounts are for display and logging
only: malformed entries count as zero instead of failing the whole listing,
so they must never feed balance-affecting logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from loguru import logger

from sendwallet.backends.base import FundingSource

if TYPE_CHECKING:
    from loguru import Logger

DEFAULT_MAX_PAGES = 1000


@dataclass(frozen=True)
class HistoryEntry:
    txid: str
    confirmed: bool
    net_amount: int
    block_height: int | None = None
    block_time: int | None = None
    fee: int | None = None


@dataclass(frozen=True)
class AddressHistory:
    """
    History of one address, unconfirmed entries first.

    ``truncated`` means paging stopped at the page ceiling. No page beyond the
    ceiling is requested, so the history may also happen to be complete.
    """

    address: str
    mempool: tuple[HistoryEntry, ...] = field(default_factory=tuple)
    confirmed: tuple[HistoryEntry, ...] = field(default_factory=tuple)
    truncated: bool = False

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return self.mempool + self.confirmed

    @property
    def net_total(self) -> int:
        return sum(entry.net_amount for entry in self.entries)


def _int_field(value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"expected integer, got {value!r}")
    return value


def compute_net_amount(tx: dict[str, Any], address: str, log: Logger = logger) -> int:
    """
    Outputs paying ``address`` minus prevouts spent from it.

    Inputs must embed their previous output (value and address), as Esplora
    does. Returns 0 when the transaction is missing or has malformed fields.
    """
    try:
        received = sum(
            _int_field(out["value"])
            for out in tx["vout"]
            if out.get("scriptpubkey_address") == address
        )
        spent = 0
        for inp in tx["vin"]:
            prevout = inp.get("prevout")
            # Coinbase inputs have no prevout
            if prevout is None:
                continue
            if prevout.get("scriptpubkey_address") == address:
                spent += _int_field(prevout["value"])
        return received - spent
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        log.debug(f"Could not compute net amount for {tx.get('txid', '?')!s}: {e}")
        return 0


def to_history_entry(tx: dict[str, Any], address: str, log: Logger = logger) -> HistoryEntry:
    status = tx.get("status") if isinstance(tx.get("status"), dict) else {}
    fee = tx.get("fee")
    return HistoryEntry(
        txid=str(tx.get("txid", "")),
        confirmed=bool(status.get("confirmed", False)),
        net_amount=compute_net_amount(tx, address, log),
        block_height=status.get("block_height"),
        block_time=status.get("block_time"),
        fee=fee if isinstance(fee, int) else None,
    )


class HistoryAggregator:
    """
    Pages through an address's history.

    Confirmed pages are requested with the last txid of the previous page as
    cursor until an empty page comes back or ``max_pages`` pages have been
    fetched, in which case the result is marked truncated.
    """

    def __init__(
        self,
        source: FundingSource,
        max_pages: int = DEFAULT_MAX_PAGES,
        log: Logger = logger,
    ):
        if max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {max_pages}")
        self.source = source
        self.max_pages = max_pages
        self.log = log.bind(component="history")

    async def fetch(self, address: str) -> AddressHistory:
        """
        Raises:
            DataSourceFailure: if any page fails to load
        """
        mempool_txs = await self.source.get_mempool_transactions(address)
        mempool = [to_history_entry(tx, address, self.log) for tx in mempool_txs]
        seen = {entry.txid for entry in mempool}

        confirmed: list[HistoryEntry] = []
        last_txid: str | None = None
        truncated = False
        pages = 0

        while True:
            if pages >= self.max_pages:
                truncated = True
                self.log.warning(
                    f"Stopped history for {address} at the {pages}-page ceiling; "
                    "results may be incomplete"
                )
                break

            page = await self.source.get_chain_transactions(address, last_txid)
            pages += 1
            if not page:
                break

            for tx in page:
                entry = to_history_entry(tx, address, self.log)
                # The first page can repeat unconfirmed transactions
                if entry.txid in seen or not entry.confirmed:
                    continue
                seen.add(entry.txid)
                confirmed.append(entry)

            last_txid = page[-1].get("txid")
            if not last_txid:
                self.log.warning(f"History page {pages} for {address} has no cursor txid")
                break

        self.log.debug(
            f"History for {address}: {len(mempool)} unconfirmed, "
            f"{len(confirmed)} confirmed over {pages} pages"
        )
        return AddressHistory(
            address=address,
            mempool=tuple(mempool),
            confirmed=tuple(confirmed),
            truncated=truncated,
        )
