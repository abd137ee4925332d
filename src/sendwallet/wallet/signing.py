"""
Bitcoin transaction signing utilities for P2WPKH inputs.
"""

from __future__ import annotations

import hashlib
import struct
from typing import Protocol

from coincurve import PrivateKey

from sendwallet.errors import SigningFailure
from sendwallet.tx.transaction import Transaction, hash256, serialize_outpoint, serialize_output
from sendwallet.tx.transaction import varint as encode_varint
from sendwallet.wallet.keys import WalletIdentity

SIGHASH_ALL = 1


class Signer(Protocol):
    """Produces the witness stack for one input of an unsigned transaction."""

    def sign_input(self, tx: Transaction, input_index: int) -> list[bytes]: ...


def create_p2wpkh_script_code(pubkey_bytes: bytes) -> bytes:
    """Create the scriptCode for P2WPKH signing (BIP 143).

    For P2WPKH, the scriptCode is the P2PKH script:
    OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
    """
    pubkey_hash = hashlib.new("ripemd160", hashlib.sha256(pubkey_bytes).digest()).digest()
    return b"\x76\xa9\x14" + pubkey_hash + b"\x88\xac"


def compute_sighash_segwit(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP143 signature hash. The spent value comes from the input itself."""
    if not 0 <= input_index < len(tx.inputs):
        raise SigningFailure("Input index out of range", input_index=input_index)

    hash_prevouts = hash256(b"".join(serialize_outpoint(inp.txid, inp.vout) for inp in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(serialize_output(out) for out in tx.outputs))

    target = tx.inputs[input_index]

    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + serialize_outpoint(target.txid, target.vout)
        + encode_varint(len(script_code))
        + script_code
        + struct.pack("<Q", target.value)
        + struct.pack("<I", target.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash_type)
    )

    return hash256(preimage)


def sign_p2wpkh_input(
    tx: Transaction,
    input_index: int,
    private_key: PrivateKey,
    sighash_type: int = SIGHASH_ALL,
) -> list[bytes]:
    """Sign a P2WPKH input using coincurve.

    Returns:
        Witness stack: [DER signature + sighash byte, compressed pubkey]
    """
    pubkey = private_key.public_key.format(compressed=True)
    sighash = compute_sighash_segwit(tx, input_index, create_p2wpkh_script_code(pubkey), sighash_type)

    # sighash is already SHA256d, so skip coincurve's own hashing
    signature = private_key.sign(sighash, hasher=None)

    return [signature + bytes([sighash_type]), pubkey]


class KeySigner:
    """Signs every input with the single key of a WalletIdentity."""

    def __init__(self, identity: WalletIdentity):
        self.identity = identity

    def sign_input(self, tx: Transaction, input_index: int) -> list[bytes]:
        try:
            return sign_p2wpkh_input(tx, input_index, self.identity.private_key)
        except SigningFailure:
            raise
        except (ValueError, TypeError) as e:
            raise SigningFailure(f"Failed to sign input {input_index}: {e}", input_index) from e
