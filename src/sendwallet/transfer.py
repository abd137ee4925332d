"""
Single-recipient transfer orchestration.

Flow: fetch UTXOs -> greedy selection -> provisional fee -> signed draft and
exact fee -> change decision -> final assembly -> broadcast. Every failure is
returned as a TransferOutcome; nothing is broadcast unless a complete,
verified transaction exists.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from loguru import logger

from sendwallet.backends.base import FundingSource
from sendwallet.backends.esplora import EsploraBackend, default_api_url
from sendwallet.errors import BroadcastRejected, InvalidInput, TransferError
from sendwallet.history import DEFAULT_MAX_PAGES, AddressHistory, HistoryAggregator
from sendwallet.models import (
    DEFAULT_FEE_RATE,
    NetworkType,
    TransferOutcome,
    WalletBalance,
)
from sendwallet.tx.assembler import TransactionAssembler
from sendwallet.tx.change import plan_outputs
from sendwallet.tx.fees import FeeEstimator
from sendwallet.tx.selection import select_utxos
from sendwallet.tx.transaction import TxOutput
from sendwallet.wallet.address import address_to_scriptpubkey
from sendwallet.wallet.keys import WalletIdentity
from sendwallet.wallet.signing import KeySigner, Signer

if TYPE_CHECKING:
    from loguru import Logger


def _validate_positive_int(value: object, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise InvalidInput(f"{name} must be a positive integer, got {value!r}", field=name)
    return value


class TransferService:
    """
    Builds, signs and broadcasts single-recipient P2WPKH transfers.

    The service holds no per-transfer state; each call works on fresh values.
    """

    def __init__(
        self,
        source: FundingSource,
        network: NetworkType = NetworkType.TESTNET,
        fee_rate: int = DEFAULT_FEE_RATE,
        signer_factory: Callable[[WalletIdentity], Signer] = KeySigner,
        log: Logger = logger,
    ):
        self.source = source
        self.network = NetworkType(network)
        self.fee_rate = fee_rate
        self.signer_factory = signer_factory
        self.log = log.bind(component="transfer")

    async def send(
        self,
        wif: str,
        recipient: str,
        amount: int,
        fee_rate: int | None = None,
    ) -> TransferOutcome:
        sender_address: str | None = None
        try:
            identity = WalletIdentity.from_wif(wif, self.network)
            sender_address = identity.address
            rate = self.fee_rate if fee_rate is None else fee_rate
            return await self._send(identity, recipient, amount, rate)
        except TransferError as e:
            self.log.error(f"Transfer failed ({e.kind}): {e}")
            return TransferOutcome.failed(e, sender_address)

    async def _send(
        self,
        identity: WalletIdentity,
        recipient: str,
        amount: int,
        fee_rate: int,
    ) -> TransferOutcome:
        _validate_positive_int(amount, "amount")
        _validate_positive_int(fee_rate, "fee_rate")
        recipient_script = address_to_scriptpubkey(recipient, self.network)
        sender = identity.address

        self.log.info(f"Sending {amount:,} sats from {sender} to {recipient} at {fee_rate} sat/vB")

        utxos = await self.source.get_utxos(sender)
        selection = select_utxos(utxos, amount, fee_rate, log=self.log)

        signer = self.signer_factory(identity)
        assembler = TransactionAssembler(log=self.log)
        estimator = FeeEstimator(fee_rate, assembler, log=self.log)

        _, provisional_change = estimator.provisional(selection, amount)
        exact, _, draft_has_change = estimator.measure(
            selection,
            TxOutput(value=amount, scriptpubkey=recipient_script),
            provisional_change,
            identity.scriptpubkey,
            signer,
        )
        plan = plan_outputs(
            selection.total_input_value, amount, exact, draft_has_change, log=self.log
        )
        final = assembler.assemble(selection, plan, recipient_script, identity.scriptpubkey, signer)

        try:
            txid = await self.source.broadcast_transaction(final.raw_hex)
        except BroadcastRejected:
            raise
        except TransferError:
            self.log.warning(
                f"Broadcast of {final.txid} was not acknowledged; it may still have been "
                "accepted, check before resubmitting"
            )
            raise

        if txid != final.txid:
            self.log.warning(f"Funding source reported txid {txid}, expected {final.txid}")

        self.log.info(f"Broadcast {txid}: sent {amount:,} sats, fee {plan.fee:,} sats")
        return TransferOutcome.succeeded(
            txid=txid,
            sender_address=sender,
            recipient_address=recipient,
            sent_amount=plan.recipient_value,
            fee=plan.fee,
        )

    async def get_balance(self, wif: str) -> WalletBalance:
        """
        Raises:
            InvalidInput: if the WIF is malformed
            DataSourceFailure: if the UTXO fetch fails
        """
        identity = WalletIdentity.from_wif(wif, self.network)
        utxos = await self.source.get_utxos(identity.address)
        balance = WalletBalance(
            address=identity.address,
            balance=sum(u.value for u in utxos),
            utxos=tuple(utxos),
        )
        self.log.info(
            f"Balance of {balance.address}: {balance.balance:,} sats "
            f"({balance.balance / 1e8:.8f} BTC) in {balance.total_utxos} UTXOs"
        )
        return balance

    async def get_history(self, address: str, max_pages: int = DEFAULT_MAX_PAGES) -> AddressHistory:
        address_to_scriptpubkey(address, self.network)
        aggregator = HistoryAggregator(self.source, max_pages=max_pages, log=self.log)
        return await aggregator.fetch(address)


async def send_transaction(
    wif: str,
    recipient: str,
    amount: int,
    network: NetworkType = NetworkType.TESTNET,
    esplora_api_url: str | None = None,
    fee_rate: int = DEFAULT_FEE_RATE,
) -> TransferOutcome:
    """Send ``amount`` sats to ``recipient`` through an Esplora instance."""
    network = NetworkType(network)
    backend = EsploraBackend(esplora_api_url or default_api_url(network))
    try:
        return await TransferService(backend, network, fee_rate).send(wif, recipient, amount)
    finally:
        await backend.close()


async def get_wallet_balance(
    wif: str,
    network: NetworkType = NetworkType.TESTNET,
    esplora_api_url: str | None = None,
) -> WalletBalance:
    network = NetworkType(network)
    backend = EsploraBackend(esplora_api_url or default_api_url(network))
    try:
        return await TransferService(backend, network).get_balance(wif)
    finally:
        await backend.close()
