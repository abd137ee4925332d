"""
Funding source implementations.

Available backends:
- EsploraBackend: Esplora REST API (blockstream.info, mempool.space, self-hosted)
"""

from sendwallet.backends.base import FundingSource
from sendwallet.backends.esplora import EsploraBackend, default_api_url

__all__ = [
    "EsploraBackend",
    "FundingSource",
    "default_api_url",
]
