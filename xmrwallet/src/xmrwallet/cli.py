"""
Monero wallet CLI - inspect wallets, send funds and compare two backends.
"""

from __future__ import annotations

import asyncio
import sys

import typer
from loguru import logger

from xmrwallet.config import Settings
from xmrwallet.errors import VerificationError, WalletError
from xmrwallet.wallet.amount import format_xmr, from_xmr
from xmrwallet.wallet.models import TransferPriority

app = typer.Typer(
    name="xmr-wallet",
    help="Monero wallet client",
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


def _settings(rpc_url: str | None, log_level: str | None) -> Settings:
    settings = Settings()
    if rpc_url:
        settings.wallet_rpc_url = rpc_url
    setup_logging(log_level or settings.log_level)
    return settings


@app.command()
def accounts(
    rpc_url: str | None = typer.Option(None, "--rpc-url", envvar="WALLET_RPC_URL"),
    tag: str | None = typer.Option(None, "--tag", "-t", help="Only accounts with this tag"),
    subaddresses: bool = typer.Option(False, "--subaddresses", "-s", help="List subaddresses"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """List accounts with their balances."""
    settings = _settings(rpc_url, log_level)
    try:
        asyncio.run(_show_accounts(settings, tag, subaddresses))
    except WalletError as e:
        logger.error(f"Failed to list accounts: {e}")
        raise typer.Exit(1)


async def _show_accounts(settings: Settings, tag: str | None, subaddresses: bool) -> None:
    wallet = settings.create_rpc_wallet()
    try:
        for account in await wallet.get_accounts(tag=tag, include_subaddresses=subaddresses):
            label = f" [{account.tag}]" if account.tag else ""
            typer.echo(
                f"Account {account.index}{label}: {format_xmr(account.balance)} XMR "
                f"({format_xmr(account.unlocked_balance)} unlocked)"
            )
            for sub in account.subaddresses or []:
                used = "used" if sub.is_used else "unused"
                typer.echo(
                    f"  {sub.index:>4} {sub.address}  {format_xmr(sub.balance):>20} XMR  {used}"
                )
    finally:
        await wallet.close()


@app.command()
def balance(
    rpc_url: str | None = typer.Option(None, "--rpc-url", envvar="WALLET_RPC_URL"),
    account_index: int | None = typer.Option(None, "--account", "-a"),
    subaddress_index: int | None = typer.Option(None, "--subaddress"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Show the balance of the wallet, an account or a subaddress."""
    settings = _settings(rpc_url, log_level)
    try:
        total, unlocked = asyncio.run(_get_balance(settings, account_index, subaddress_index))
    except (WalletError, ValueError) as e:
        logger.error(f"Failed to get balance: {e}")
        raise typer.Exit(1)
    typer.echo(f"Balance:  {format_xmr(total)} XMR")
    typer.echo(f"Unlocked: {format_xmr(unlocked)} XMR")


async def _get_balance(
    settings: Settings, account_index: int | None, subaddress_index: int | None
) -> tuple[int, int]:
    wallet = settings.create_rpc_wallet()
    try:
        total = await wallet.get_balance(account_index, subaddress_index)
        unlocked = await wallet.get_unlocked_balance(account_index, subaddress_index)
        return total, unlocked
    finally:
        await wallet.close()


@app.command()
def send(
    destination: str = typer.Argument(..., help="Destination address"),
    amount: str = typer.Argument(..., help="Amount in XMR"),
    rpc_url: str | None = typer.Option(None, "--rpc-url", envvar="WALLET_RPC_URL"),
    account_index: int = typer.Option(0, "--account", "-a", help="Source account"),
    priority: int | None = typer.Option(None, "--priority", "-p", min=0, max=3),
    mixin: int | None = typer.Option(None, "--mixin", min=0),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Send XMR to a single destination."""
    settings = _settings(rpc_url, log_level)
    try:
        atomic = from_xmr(amount)
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    tx_priority = TransferPriority(priority) if priority is not None else settings.default_priority
    tx_mixin = mixin if mixin is not None else settings.default_mixin

    try:
        tx_hash, fee, tx_key = asyncio.run(
            _send(settings, destination, atomic, tx_priority, tx_mixin, account_index)
        )
    except WalletError as e:
        logger.error(f"Transfer failed: {e}")
        raise typer.Exit(1)

    typer.echo(f"Transaction: {tx_hash}")
    typer.echo(f"Fee:         {format_xmr(fee)} XMR")
    typer.echo(f"Tx key:      {tx_key}")


async def _send(
    settings: Settings,
    destination: str,
    amount: int,
    priority: TransferPriority,
    mixin: int | None,
    account_index: int,
) -> tuple[str, int, str]:
    wallet = settings.create_rpc_wallet()
    try:
        tx = await wallet.transfer(
            destination, amount, priority=priority, mixin=mixin, account_index=account_index
        )
        return tx.tx_hash, tx.fee, tx.tx_key
    finally:
        await wallet.close()


@app.command()
def compare(
    rpc_url_1: str = typer.Argument(..., help="Wallet RPC URL of the reference wallet"),
    rpc_url_2: str = typer.Argument(..., help="Wallet RPC URL of the wallet synced later"),
    log_level: str | None = typer.Option(None, "--log-level", "-l"),
) -> None:
    """Compare two wallets using only on-chain data."""
    settings = _settings(None, log_level)
    try:
        asyncio.run(_compare(settings, rpc_url_1, rpc_url_2))
    except VerificationError as e:
        typer.echo(f"Wallets differ: {e}")
        raise typer.Exit(2)
    except WalletError as e:
        logger.error(f"Comparison failed: {e}")
        raise typer.Exit(1)
    typer.echo("Wallets are equal on chain")


async def _compare(settings: Settings, rpc_url_1: str, rpc_url_2: str) -> None:
    from xmrwallet.verifier import assert_wallets_equal

    wallet1 = settings.create_rpc_wallet(rpc_url_1)
    wallet2 = settings.create_rpc_wallet(rpc_url_2)
    try:
        await assert_wallets_equal(wallet1, wallet2)
    finally:
        await wallet1.close()
        await wallet2.close()


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
