"""
Bitcoin address and script utilities.
"""

from __future__ import annotations

import hashlib

import base58
import bech32

from sendwallet.errors import InvalidInput
from sendwallet.models import NetworkType

# Base58 version bytes: (P2PKH, P2SH)
_BASE58_VERSIONS = {
    True: (0x00, 0x05),
    False: (0x6F, 0xC4),
}


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def pubkey_to_p2wpkh_script(pubkey: bytes) -> bytes:
    """Create P2WPKH scriptPubKey (OP_0 <20-byte-hash>)"""
    return bytes([0x00, 0x14]) + hash160(pubkey)


def pubkey_to_p2wpkh_address(pubkey: bytes, network: NetworkType = NetworkType.MAINNET) -> str:
    """
    Convert compressed public key to P2WPKH (native segwit) address.
    BIP173 bech32 encoding.
    """
    if len(pubkey) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey)}")

    address = bech32.encode(network.hrp, 0, hash160(pubkey))
    if address is None:
        raise ValueError(f"Failed to encode P2WPKH address for {pubkey.hex()}")
    return address


def address_to_scriptpubkey(address: str, network: NetworkType = NetworkType.MAINNET) -> bytes:
    """
    Convert a destination address to its scriptPubKey.

    Supports P2WPKH, P2WSH, P2TR, P2PKH and P2SH. The address must belong
    to ``network``.

    Raises:
        InvalidInput: malformed address or address for another network
    """
    if not address or not isinstance(address, str):
        raise InvalidInput("Recipient address is empty", field="recipient")

    lowered = address.lower()
    if lowered.startswith(("bc1", "tb1", "bcrt1")):
        hrp = lowered.split("1", 1)[0]
        if hrp != network.hrp:
            raise InvalidInput(
                f"Address {address} is not a {network.value} address", field="recipient"
            )

        witver, witprog = bech32.decode(hrp, address)
        if witver is None or witprog is None:
            raise InvalidInput(f"Invalid bech32 address: {address}", field="recipient")

        program = bytes(witprog)
        if witver == 0 and len(program) == 20:
            return bytes([0x00, 0x14]) + program
        if witver == 0 and len(program) == 32:
            return bytes([0x00, 0x20]) + program
        if witver == 1 and len(program) == 32:
            return bytes([0x51, 0x20]) + program

        raise InvalidInput(f"Unsupported witness program in {address}", field="recipient")

    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise InvalidInput(f"Invalid address: {address}", field="recipient") from e

    if len(decoded) != 21:
        raise InvalidInput(f"Invalid address payload length: {address}", field="recipient")

    version, payload = decoded[0], decoded[1:]
    p2pkh_version, p2sh_version = _BASE58_VERSIONS[network.is_mainnet]

    if version == p2pkh_version:
        # OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    if version == p2sh_version:
        # OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise InvalidInput(
        f"Address {address} is not a {network.value} address (version {version})",
        field="recipient",
    )

