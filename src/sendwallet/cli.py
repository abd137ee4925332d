"""
sendwallet CLI - create keys, check balances, send and list history.
"""

from __future__ import annotations

import asyncio
import sys

import typer
from loguru import logger

from sendwallet.backends.esplora import EsploraBackend
from sendwallet.config import Settings, get_settings
from sendwallet.errors import TransferError
from sendwallet.models import NetworkType
from sendwallet.transfer import TransferService
from sendwallet.wallet.keys import WalletIdentity

app = typer.Typer(
    name="sendwallet",
    help="Single-recipient P2WPKH wallet",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _resolve(
    network: str | None,
    api_url: str | None,
    log_level: str | None,
) -> tuple[Settings, NetworkType, str]:
    settings = get_settings()
    setup_logging(log_level or settings.log_level)

    try:
        net = NetworkType(network) if network else settings.network
    except ValueError:
        logger.error(f"Unknown network: {network}")
        raise typer.Exit(1)

    return settings, net, (api_url or settings.get_esplora_api_url(net))


def _require_wif(wif: str | None) -> str:
    if not wif:
        logger.error("WIF required. Use --wif or the WIF env var")
        raise typer.Exit(1)
    return wif


@app.command()
def create(
    network: str = typer.Option("testnet", "--network", "-n", help="Bitcoin network"),
) -> None:
    """Generate a new key and print its WIF and P2WPKH address."""
    setup_logging()

    try:
        identity = WalletIdentity.generate(NetworkType(network))
    except ValueError:
        logger.error(f"Unknown network: {network}")
        raise typer.Exit(1)

    typer.echo("\n" + "=" * 80)
    typer.echo("NEW KEY - KEEP THE WIF SECRET, IT CONTROLS YOUR FUNDS")
    typer.echo("=" * 80)
    typer.echo(f"Address:    {identity.address}")
    typer.echo(f"Public key: {identity.public_key.hex()}")
    typer.echo(f"WIF:        {identity.to_wif()}")
    typer.echo("=" * 80 + "\n")


@app.command()
def balance(
    wif: str = typer.Option(None, "--wif", envvar="WIF", help="Funding key (WIF)"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    api_url: str = typer.Option(None, "--api-url", help="Esplora API base URL"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show the balance and UTXO count of the key's address."""
    settings, net, url = _resolve(network, api_url, log_level)
    wif = _require_wif(wif)

    async def run() -> None:
        backend = EsploraBackend(url, timeout=settings.request_timeout)
        try:
            result = await TransferService(backend, net).get_balance(wif)
        finally:
            await backend.close()
        print(f"\nAddress: {result.address}")
        print(f"Balance: {result.balance:,} sats ({result.balance / 1e8:.8f} BTC)")
        print(f"UTXOs:   {result.total_utxos}")
        for utxo in result.utxos:
            print(f"  {utxo.txid}:{utxo.vout}  {utxo.value:>15,} sats")

    try:
        asyncio.run(run())
    except TransferError as e:
        logger.error(f"Failed to get balance: {e}")
        raise typer.Exit(1)


@app.command()
def send(
    recipient: str = typer.Argument(..., help="Destination address"),
    amount: int = typer.Argument(..., help="Amount in sats"),
    wif: str = typer.Option(None, "--wif", envvar="WIF", help="Funding key (WIF)"),
    fee_rate: int = typer.Option(None, "--fee-rate", "-f", help="Fee rate in sat/vB"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    api_url: str = typer.Option(None, "--api-url", help="Esplora API base URL"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Send AMOUNT sats to RECIPIENT, returning change to the key's address."""
    settings, net, url = _resolve(network, api_url, log_level)
    wif = _require_wif(wif)
    rate = fee_rate if fee_rate is not None else settings.fee_rate

    async def run():
        backend = EsploraBackend(url, timeout=settings.request_timeout)
        try:
            return await TransferService(backend, net, rate).send(wif, recipient, amount)
        finally:
            await backend.close()

    outcome = asyncio.run(run())
    if not outcome.success:
        typer.echo(f"Transfer failed ({outcome.failure_kind}): {outcome.failure_reason}", err=True)
        raise typer.Exit(1)

    typer.echo(f"txid:   {outcome.txid}")
    typer.echo(f"from:   {outcome.sender_address}")
    typer.echo(f"to:     {outcome.recipient_address}")
    typer.echo(f"amount: {outcome.sent_amount:,} sats")
    typer.echo(f"fee:    {outcome.fee:,} sats")


@app.command()
def history(
    address: str = typer.Argument(..., help="Address to list"),
    max_pages: int = typer.Option(None, "--max-pages", help="Confirmed page ceiling"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    api_url: str = typer.Option(None, "--api-url", help="Esplora API base URL"),
    log_level: str = typer.Option(None, "--log-level", "-l"),
) -> None:
    """List unconfirmed and confirmed transactions touching ADDRESS."""
    settings, net, url = _resolve(network, api_url, log_level)
    pages = max_pages or settings.history_max_pages

    async def run():
        backend = EsploraBackend(url, timeout=settings.request_timeout)
        try:
            return await TransferService(backend, net).get_history(address, max_pages=pages)
        finally:
            await backend.close()

    try:
        result = asyncio.run(run())
    except TransferError as e:
        logger.error(f"Failed to get history: {e}")
        raise typer.Exit(1)

    for entry in result.entries:
        where = f"block {entry.block_height}" if entry.confirmed else "mempool"
        print(f"{entry.txid}  {entry.net_amount:>+15,} sats  {where}")
    print(f"\n{len(result.entries)} transactions, net {result.net_total:+,} sats")
    if result.truncated:
        print("(stopped at the page ceiling, older history may exist)")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
