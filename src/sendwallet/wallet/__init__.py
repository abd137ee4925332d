"""
Key, address and signing collaborators for a single-key P2WPKH wallet.
"""

from sendwallet.wallet.address import address_to_scriptpubkey, pubkey_to_p2wpkh_address
from sendwallet.wallet.keys import WalletIdentity
from sendwallet.wallet.signing import KeySigner, Signer

__all__ = [
    "KeySigner",
    "Signer",
    "WalletIdentity",
    "address_to_scriptpubkey",
    "pubkey_to_p2wpkh_address",
]
