"""
Transaction assembler.

Materializes already-computed amounts into a signed, serialized transaction.
It makes no decisions of its own, but it is where structural defects would
surface, so the result is checked against the plan before it is returned.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from sendwallet.errors import SigningFailure, TransactionAssemblyError
from sendwallet.models import RBF_SEQUENCE, OutputPlan, SelectionResult
from sendwallet.tx.transaction import Transaction, TxInput, TxOutput

if TYPE_CHECKING:
    from loguru import Logger

    from sendwallet.wallet.signing import Signer


@dataclass(frozen=True)
class FinalizedTransaction:
    """A signed transaction ready for broadcast."""

    tx: Transaction
    raw_hex: str
    txid: str
    fee: int
    vsize: int


class TransactionAssembler:
    def __init__(self, sequence: int = RBF_SEQUENCE, log: Logger = logger):
        self.sequence = sequence
        self.log = log.bind(component="assembler")

    def build(self, selection: SelectionResult, outputs: Sequence[TxOutput]) -> Transaction:
        """Build the unsigned structure. Every input signals replaceability."""
        inputs = tuple(
            TxInput(txid=u.txid, vout=u.vout, value=u.value, sequence=self.sequence)
            for u in selection.utxos
        )
        return Transaction(inputs=inputs, outputs=tuple(outputs))

    def sign(self, tx: Transaction, signer: Signer) -> Transaction:
        """Call the signer once per input and attach the witnesses."""
        witnesses: list[list[bytes]] = []
        for index in range(len(tx.inputs)):
            witness = signer.sign_input(tx, index)
            if not witness:
                raise SigningFailure(f"Signer returned an empty witness for input {index}", index)
            witnesses.append(witness)
        return tx.with_witnesses(witnesses)

    def assemble(
        self,
        selection: SelectionResult,
        plan: OutputPlan,
        recipient_scriptpubkey: bytes,
        change_scriptpubkey: bytes,
        signer: Signer,
    ) -> FinalizedTransaction:
        """
        Build, sign and finalize the transaction described by ``plan``.

        Raises:
            SigningFailure: if the signer rejects an input
            TransactionAssemblyError: if the result does not match the plan
        """
        outputs = [TxOutput(value=plan.recipient_value, scriptpubkey=recipient_scriptpubkey)]
        if plan.emit_change:
            outputs.append(TxOutput(value=plan.change_value, scriptpubkey=change_scriptpubkey))

        tx = self.sign(self.build(selection, outputs), signer)
        self.verify(tx, selection, plan)

        finalized = FinalizedTransaction(
            tx=tx,
            raw_hex=tx.to_hex(),
            txid=tx.txid,
            fee=plan.fee,
            vsize=tx.vsize,
        )
        self.log.info(
            f"Assembled {finalized.txid}: {len(tx.inputs)} inputs, {len(tx.outputs)} outputs, "
            f"{finalized.vsize} vB, fee {finalized.fee:,} sats"
        )
        return finalized

    @staticmethod
    def verify(tx: Transaction, selection: SelectionResult, plan: OutputPlan) -> None:
        if plan.total != selection.total_input_value:
            raise TransactionAssemblyError(
                f"Plan does not balance: {plan.total} != {selection.total_input_value}"
            )
        if tx.input_value != selection.total_input_value:
            raise TransactionAssemblyError(
                f"Input total {tx.input_value} != selected {selection.total_input_value}"
            )
        if any(out.value <= 0 for out in tx.outputs):
            raise TransactionAssemblyError("Transaction has a non-positive output")
        if tx.output_value + plan.fee != tx.input_value:
            raise TransactionAssemblyError(
                f"Outputs {tx.output_value} + fee {plan.fee} != inputs {tx.input_value}"
            )
        if not tx.is_signed:
            raise TransactionAssemblyError("Transaction has unsigned inputs")
