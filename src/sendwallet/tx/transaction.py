"""
Segwit transaction structure, serialization and size measurement.

Transactions are immutable: signing produces a new Transaction with witnesses
attached rather than mutating the unsigned one.
"""

from __future__ import annotations

import hashlib
import math
import struct
from dataclasses import dataclass, field, replace

from sendwallet.models import RBF_SEQUENCE

TX_VERSION = 2
WITNESS_SCALE_FACTOR = 4


class TransactionParseError(ValueError):
    pass


@dataclass(frozen=True)
class TxInput:
    """Transaction input spending a P2WPKH output."""

    txid: str
    vout: int
    value: int
    sequence: int = RBF_SEQUENCE
    witness: tuple[bytes, ...] = ()


@dataclass(frozen=True)
class TxOutput:
    value: int
    scriptpubkey: bytes


@dataclass(frozen=True)
class Transaction:
    inputs: tuple[TxInput, ...]
    outputs: tuple[TxOutput, ...]
    version: int = TX_VERSION
    locktime: int = 0

    @property
    def input_value(self) -> int:
        return sum(inp.value for inp in self.inputs)

    @property
    def output_value(self) -> int:
        return sum(out.value for out in self.outputs)

    @property
    def is_signed(self) -> bool:
        return bool(self.inputs) and all(inp.witness for inp in self.inputs)

    def with_witnesses(self, witnesses: list[list[bytes]]) -> Transaction:
        if len(witnesses) != len(self.inputs):
            raise ValueError(f"Expected {len(self.inputs)} witnesses, got {len(witnesses)}")
        inputs = tuple(
            replace(inp, witness=tuple(wit)) for inp, wit in zip(self.inputs, witnesses)
        )
        return replace(self, inputs=inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        """Serialize to raw bytes. Witness data is only written when present."""
        with_witness = include_witness and any(inp.witness for inp in self.inputs)

        result = struct.pack("<I", self.version)
        if with_witness:
            result += bytes([0x00, 0x01])  # SegWit marker and flag

        result += varint(len(self.inputs))
        for inp in self.inputs:
            result += serialize_outpoint(inp.txid, inp.vout)
            result += bytes([0x00])  # empty scriptSig for native segwit
            result += struct.pack("<I", inp.sequence)

        result += varint(len(self.outputs))
        for out in self.outputs:
            result += serialize_output(out)

        if with_witness:
            for inp in self.inputs:
                result += varint(len(inp.witness))
                for item in inp.witness:
                    result += varint(len(item)) + item

        result += struct.pack("<I", self.locktime)
        return result

    def to_hex(self) -> str:
        return self.serialize().hex()

    @property
    def txid(self) -> str:
        """Double SHA256 of the non-witness serialization, byte-reversed."""
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    @property
    def weight(self) -> int:
        base_size = len(self.serialize(include_witness=False))
        total_size = len(self.serialize())
        return base_size * (WITNESS_SCALE_FACTOR - 1) + total_size

    @property
    def vsize(self) -> int:
        return math.ceil(self.weight / WITNESS_SCALE_FACTOR)


@dataclass
class ParsedTransaction:
    """Raw transaction split back into its fields."""

    version: int
    has_witness: bool
    inputs: list[dict] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    witnesses: list[list[bytes]] = field(default_factory=list)
    locktime: int = 0
    base_size: int = 0
    total_size: int = 0


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint."""
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read varint at offset, returns (value, new_offset)."""
    first = data[offset]
    if first < 0xFD:
        return first, offset + 1
    if first == 0xFD:
        return struct.unpack("<H", data[offset + 1 : offset + 3])[0], offset + 3
    if first == 0xFE:
        return struct.unpack("<I", data[offset + 1 : offset + 5])[0], offset + 5
    return struct.unpack("<Q", data[offset + 1 : offset + 9])[0], offset + 9


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """Serialize outpoint (txid:vout)."""
    # txid is in RPC format (big-endian), need to reverse for raw tx
    return bytes.fromhex(txid)[::-1] + struct.pack("<I", vout)


def serialize_output(out: TxOutput) -> bytes:
    return struct.pack("<Q", out.value) + varint(len(out.scriptpubkey)) + out.scriptpubkey


def parse_transaction(tx_bytes: bytes) -> ParsedTransaction:
    """
    Parse a raw transaction.

    Raises:
        TransactionParseError: on truncated or malformed data
    """
    try:
        offset = 0
        version = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4

        has_witness = tx_bytes[offset] == 0x00 and tx_bytes[offset + 1] == 0x01
        if has_witness:
            offset += 2

        parsed = ParsedTransaction(version=version, has_witness=has_witness)

        input_count, offset = read_varint(tx_bytes, offset)
        for _ in range(input_count):
            txid = tx_bytes[offset : offset + 32][::-1].hex()
            offset += 32
            vout = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            script_len, offset = read_varint(tx_bytes, offset)
            scriptsig = tx_bytes[offset : offset + script_len]
            offset += script_len
            sequence = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
            offset += 4
            parsed.inputs.append(
                {"txid": txid, "vout": vout, "scriptsig": scriptsig, "sequence": sequence}
            )

        output_count, offset = read_varint(tx_bytes, offset)
        for _ in range(output_count):
            value = struct.unpack("<Q", tx_bytes[offset : offset + 8])[0]
            offset += 8
            script_len, offset = read_varint(tx_bytes, offset)
            parsed.outputs.append(TxOutput(value, tx_bytes[offset : offset + script_len]))
            offset += script_len

        witness_start = offset
        if has_witness:
            for _ in range(input_count):
                item_count, offset = read_varint(tx_bytes, offset)
                items = []
                for _ in range(item_count):
                    item_len, offset = read_varint(tx_bytes, offset)
                    items.append(tx_bytes[offset : offset + item_len])
                    offset += item_len
                parsed.witnesses.append(items)

        parsed.locktime = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4

        if offset != len(tx_bytes):
            raise TransactionParseError(f"{len(tx_bytes) - offset} trailing bytes")

        parsed.total_size = len(tx_bytes)
        witness_bytes = offset - 4 - witness_start
        parsed.base_size = parsed.total_size - (2 + witness_bytes if has_witness else 0)
        return parsed

    except TransactionParseError:
        raise
    except (IndexError, struct.error) as e:
        raise TransactionParseError(f"Failed to parse transaction: {e}") from e


def virtual_size(tx_bytes: bytes) -> int:
    """Measure the virtual size of a serialized transaction."""
    parsed = parse_transaction(tx_bytes)
    weight = parsed.base_size * (WITNESS_SCALE_FACTOR - 1) + parsed.total_size
    return math.ceil(weight / WITNESS_SCALE_FACTOR)
