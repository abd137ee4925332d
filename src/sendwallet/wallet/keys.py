"""
Wallet identity derived from a wallet-import-format secret.
"""

from __future__ import annotations

from dataclasses import dataclass

import base58
from coincurve import PrivateKey

from sendwallet.errors import InvalidInput
from sendwallet.models import NetworkType
from sendwallet.wallet.address import pubkey_to_p2wpkh_address, pubkey_to_p2wpkh_script

WIF_MAINNET_PREFIX = 0x80
WIF_TESTNET_PREFIX = 0xEF
WIF_COMPRESSED_FLAG = 0x01


@dataclass(frozen=True)
class WalletIdentity:
    """A single-key P2WPKH identity."""

    private_key: PrivateKey
    network: NetworkType

    @classmethod
    def from_wif(cls, wif: str, network: NetworkType = NetworkType.TESTNET) -> WalletIdentity:
        """
        Parse a compressed WIF secret.

        Both mainnet (0x80) and test (0xEF) prefixes are accepted; the address is
        always derived for ``network``.

        Raises:
            InvalidInput: if the secret is malformed or uncompressed
        """
        if not wif or not isinstance(wif, str):
            raise InvalidInput("WIF secret is empty", field="wif")

        try:
            payload = base58.b58decode_check(wif.strip())
        except ValueError as e:
            raise InvalidInput("WIF secret has an invalid encoding or checksum", field="wif") from e

        # P2WPKH requires a compressed public key
        if len(payload) != 34:
            raise InvalidInput("Only compressed WIF secrets can fund P2WPKH", field="wif")

        if payload[0] not in (WIF_MAINNET_PREFIX, WIF_TESTNET_PREFIX):
            raise InvalidInput(f"Unknown WIF version byte: {payload[0]:#04x}", field="wif")

        if payload[-1] != WIF_COMPRESSED_FLAG:
            raise InvalidInput("Only compressed WIF secrets can fund P2WPKH", field="wif")

        try:
            private_key = PrivateKey(payload[1:33])
        except ValueError as e:
            raise InvalidInput("WIF secret is not a valid secp256k1 key", field="wif") from e

        return cls(private_key=private_key, network=network)

    @classmethod
    def generate(cls, network: NetworkType = NetworkType.TESTNET) -> WalletIdentity:
        return cls(private_key=PrivateKey(), network=network)

    def to_wif(self) -> str:
        prefix = WIF_MAINNET_PREFIX if self.network.is_mainnet else WIF_TESTNET_PREFIX
        payload = bytes([prefix]) + self.private_key.secret + bytes([WIF_COMPRESSED_FLAG])
        return base58.b58encode_check(payload).decode("ascii")

    @property
    def public_key(self) -> bytes:
        return self.private_key.public_key.format(compressed=True)

    @property
    def address(self) -> str:
        return pubkey_to_p2wpkh_address(self.public_key, self.network)

    @property
    def scriptpubkey(self) -> bytes:
        return pubkey_to_p2wpkh_script(self.public_key)
