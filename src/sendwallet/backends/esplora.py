"""
Esplora REST API funding source.

Works against blockstream.info, mempool.space or a self-hosted Esplora.
Requests are never retried: a failed call ends the operation.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from sendwallet.backends.base import FundingSource
from sendwallet.errors import BroadcastRejected, DataSourceFailure
from sendwallet.models import NetworkType, UnspentOutput

if TYPE_CHECKING:
    from loguru import Logger

DEFAULT_TIMEOUT = 30.0

DEFAULT_API_URLS = {
    NetworkType.MAINNET: "https://blockstream.info/api",
    NetworkType.TESTNET: "https://blockstream.info/testnet/api",
    NetworkType.SIGNET: "https://mempool.space/signet/api",
    NetworkType.REGTEST: "http://127.0.0.1:3002",
}

_TXID_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def default_api_url(network: NetworkType) -> str:
    return DEFAULT_API_URLS[network]


class EsploraBackend(FundingSource):
    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        log: Logger = logger,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.log = log.bind(component="esplora")

    async def _get_json(self, endpoint: str) -> Any:
        url = f"{self.base_url}/{endpoint}"
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            self.log.error(f"Esplora request failed: GET {endpoint} - {e}")
            raise DataSourceFailure(f"GET {endpoint} failed: {e}", endpoint=endpoint) from e

        if not response.is_success:
            raise DataSourceFailure(
                f"GET {endpoint} returned HTTP {response.status_code}: {response.text[:200]}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise DataSourceFailure(
                f"GET {endpoint} returned invalid JSON", endpoint=endpoint
            ) from e

    async def _get_list(self, endpoint: str) -> list[dict[str, Any]]:
        data = await self._get_json(endpoint)
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise DataSourceFailure(f"GET {endpoint} did not return a list", endpoint=endpoint)
        return data

    async def get_utxos(self, address: str) -> list[UnspentOutput]:
        endpoint = f"address/{address}/utxo"
        data = await self._get_list(endpoint)

        utxos: list[UnspentOutput] = []
        seen: set[tuple[str, int]] = set()
        for item in data:
            utxo = _parse_utxo(item, endpoint)
            if utxo.outpoint in seen:
                raise DataSourceFailure(
                    f"Duplicate outpoint {utxo.txid}:{utxo.vout}", endpoint=endpoint
                )
            seen.add(utxo.outpoint)
            utxos.append(utxo)

        self.log.debug(f"Fetched {len(utxos)} UTXOs for {address}")
        return utxos

    async def broadcast_transaction(self, tx_hex: str) -> str:
        endpoint = "tx"
        try:
            response = await self.client.post(f"{self.base_url}/{endpoint}", content=tx_hex)
        except httpx.HTTPError as e:
            self.log.error(f"Broadcast request failed: {e}")
            raise DataSourceFailure(f"POST {endpoint} failed: {e}", endpoint=endpoint) from e

        if not response.is_success:
            raise BroadcastRejected(response.text.strip() or "no reason given", response.status_code)

        txid = response.text.strip()
        if not _TXID_RE.match(txid):
            raise DataSourceFailure(
                f"POST {endpoint} returned an unexpected body: {txid[:100]!r}", endpoint=endpoint
            )
        return txid.lower()

    async def get_mempool_transactions(self, address: str) -> list[dict[str, Any]]:
        return await self._get_list(f"address/{address}/txs/mempool")

    async def get_chain_transactions(
        self, address: str, last_txid: str | None = None
    ) -> list[dict[str, Any]]:
        if last_txid is None:
            return await self._get_list(f"address/{address}/txs")
        return await self._get_list(f"address/{address}/txs/chain/{last_txid}")

    async def close(self) -> None:
        await self.client.aclose()


def _parse_utxo(item: dict[str, Any], endpoint: str) -> UnspentOutput:
    txid = item.get("txid")
    vout = item.get("vout")
    value = item.get("value")

    if not isinstance(txid, str) or not _TXID_RE.match(txid):
        raise DataSourceFailure(f"UTXO has an invalid txid: {txid!r}", endpoint=endpoint)
    # bool is an int subclass; reject it explicitly
    if not isinstance(vout, int) or isinstance(vout, bool) or vout < 0:
        raise DataSourceFailure(f"UTXO {txid} has an invalid vout: {vout!r}", endpoint=endpoint)
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise DataSourceFailure(f"UTXO {txid} has an invalid value: {value!r}", endpoint=endpoint)

    return UnspentOutput(txid=txid.lower(), vout=vout, value=value)
