"""
Embedded native library backend.

Wraps an in-process wallet library (wallet2 bindings) behind the wallet
facade. Library calls are synchronous and may block for a long time, so each
one runs on a worker thread. Two wallets can then be queried concurrently,
while each snapshot is read and turned into entities by a single worker.

Bindings must provide the NativeWalletHandle surface. Errors raised by the
library are expected to carry the wallet2 error code in a `code` attribute
when one exists; they are mapped onto the wallet error taxonomy.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

from loguru import logger

from xmrwallet.backends.base import MoneroWallet
from xmrwallet.errors import (
    RPC_ERROR_TX_TOO_LARGE,
    BackendError,
    WalletError,
    error_from_code,
)
from xmrwallet.wallet.address import NetworkType
from xmrwallet.wallet.history import build_transactions
from xmrwallet.wallet.models import (
    Account,
    ConstructedTransaction,
    Payment,
    SplitTransaction,
    Subaddress,
    SweptTransaction,
    TransferPriority,
    WalletTransaction,
)

T = TypeVar("T")


@runtime_checkable
class NativeWalletHandle(Protocol):
    """Synchronous surface of an opened native wallet."""

    def height(self) -> int: ...

    def seed(self) -> str: ...

    def secret_view_key(self) -> str: ...

    def secret_spend_key(self) -> str: ...

    def address(self, account_index: int, subaddress_index: int) -> str: ...

    def account_count(self) -> int: ...

    def account_label(self, account_index: int) -> str: ...

    def account_tag(self, account_index: int) -> str: ...

    def subaddress_count(self, account_index: int) -> int: ...

    def subaddress_label(self, account_index: int, subaddress_index: int) -> str: ...

    def is_used(self, account_index: int, subaddress_index: int) -> bool: ...

    def num_unspent_outputs(self, account_index: int, subaddress_index: int) -> int: ...

    def balance(
        self, account_index: int | None = None, subaddress_index: int | None = None
    ) -> int: ...

    def unlocked_balance(
        self, account_index: int | None = None, subaddress_index: int | None = None
    ) -> int: ...

    def add_account(self, label: str) -> int: ...

    def add_subaddress(self, account_index: int, label: str) -> int: ...

    def set_account_tag(self, account_indices: Sequence[int], tag: str) -> None: ...

    def create_transactions(
        self,
        destinations: Sequence[tuple[str, int]],
        account_index: int,
        priority: int,
        ring_size: int | None,
        fee: int | None,
        split: bool,
    ) -> list[Mapping[str, Any]]:
        """
        Build, sign and relay; one mapping (tx_hash, fee, tx_key) per transaction.

        Without split the library must fail with TX_TOO_LARGE instead of
        producing more than one transaction.
        """
        ...

    def create_dust_sweep(self) -> list[str]: ...

    def transfers(self) -> Mapping[str, list[Mapping[str, Any]]]:
        """History rows keyed by category, shaped like get_transfers results."""
        ...

    def refresh(self) -> None: ...


class MoneroWalletNative(MoneroWallet):
    """Wallet facade over an embedded native wallet library."""

    def __init__(self, handle: NativeWalletHandle, network: NetworkType | None = None):
        self.handle = handle
        self.network = network

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking library call on a worker thread, mapping its errors."""
        name = getattr(func, "__name__", repr(func))
        try:
            return await asyncio.to_thread(func, *args)
        except WalletError:
            raise
        except Exception as e:
            code = getattr(e, "code", None)
            logger.debug(f"Native call {name} failed: {type(e).__name__}: {e}")
            raise error_from_code(code, str(e)) from e

    # Identity and chain state

    async def get_height(self) -> int:
        return await self._call(self.handle.height)

    async def get_mnemonic(self) -> str:
        return await self._call(self.handle.seed)

    async def get_primary_address(self) -> str:
        return await self._call(self.handle.address, 0, 0)

    async def get_private_view_key(self) -> str:
        return await self._call(self.handle.secret_view_key)

    async def get_private_spend_key(self) -> str:
        return await self._call(self.handle.secret_spend_key)

    async def sync(self) -> None:
        await self._call(self.handle.refresh)
        logger.debug("Refreshed native wallet")

    # Accounts and subaddresses

    def _read_subaddresses(self, account_index: int) -> list[Subaddress]:
        h = self.handle
        return [
            Subaddress(
                account_index=account_index,
                index=i,
                address=h.address(account_index, i),
                label=h.subaddress_label(account_index, i) or None,
                balance=h.balance(account_index, i),
                unlocked_balance=h.unlocked_balance(account_index, i),
                num_unspent_outputs=h.num_unspent_outputs(account_index, i),
                is_used=h.is_used(account_index, i),
            )
            for i in range(h.subaddress_count(account_index))
        ]

    def _read_accounts(self, include_subaddresses: bool) -> list[Account]:
        h = self.handle
        return [
            Account(
                index=i,
                primary_address=h.address(i, 0),
                label=h.account_label(i) or None,
                tag=h.account_tag(i) or None,
                balance=h.balance(i),
                unlocked_balance=h.unlocked_balance(i),
                subaddresses=self._read_subaddresses(i) if include_subaddresses else None,
            )
            for i in range(h.account_count())
        ]

    async def _fetch_accounts(self, include_subaddresses: bool) -> list[Account]:
        return await self._call(self._read_accounts, include_subaddresses)

    async def _fetch_subaddresses(self, account_index: int) -> list[Subaddress]:
        return await self._call(self._read_subaddresses, account_index)

    async def _create_account(self, label: str | None) -> Account:
        index = await self._call(self.handle.add_account, label or "")
        if label:
            await self._call(self.handle.set_account_tag, [index], label)
        accounts = await self._fetch_accounts(include_subaddresses=True)
        return accounts[index]

    async def _create_subaddress(self, account_index: int, label: str | None) -> Subaddress:
        index = await self._call(self.handle.add_subaddress, account_index, label or "")
        subaddresses = await self._fetch_subaddresses(account_index)
        return subaddresses[index]

    async def _fetch_balances(
        self, account_index: int | None, subaddress_index: int | None
    ) -> tuple[int, int]:
        balance = await self._call(self.handle.balance, account_index, subaddress_index)
        unlocked = await self._call(self.handle.unlocked_balance, account_index, subaddress_index)
        return balance, unlocked

    # Sending

    async def _create(
        self,
        payments: list[Payment],
        account_index: int,
        priority: TransferPriority,
        fee: int | None,
        mixin: int | None,
        split: bool,
    ) -> list[Mapping[str, Any]]:
        destinations = [(p.address, p.amount) for p in payments]
        ring_size = mixin + 1 if mixin is not None else None
        return await self._call(
            self.handle.create_transactions,
            destinations,
            account_index,
            int(priority),
            ring_size,
            fee,
            split,
        )

    async def _transfer(
        self,
        payments: list[Payment],
        account_index: int,
        priority: TransferPriority,
        fee: int | None,
        mixin: int | None,
    ) -> ConstructedTransaction:
        created = await self._create(payments, account_index, priority, fee, mixin, False)
        if len(created) != 1:
            raise BackendError(
                f"Transaction would need to be split into {len(created)} transactions, "
                "use transfer_split",
                RPC_ERROR_TX_TOO_LARGE,
            )
        tx = created[0]
        return ConstructedTransaction(
            tx_hash=tx["tx_hash"],
            fee=tx["fee"],
            mixin=mixin,
            tx_key=tx["tx_key"],
            payments=[p.model_copy(update={"tx_hash": tx["tx_hash"]}) for p in payments],
        )

    async def _transfer_split(
        self,
        payments: list[Payment],
        account_index: int,
        priority: TransferPriority,
        fee: int | None,
        mixin: int | None,
        new_algorithm: bool,
    ) -> list[SplitTransaction]:
        # wallet2 only implements the new splitting algorithm
        if not new_algorithm:
            logger.debug("Native backend ignores new_algorithm=False")
        created = await self._create(payments, account_index, priority, fee, mixin, True)
        return [
            SplitTransaction(tx_hash=tx["tx_hash"], fee=tx["fee"], mixin=mixin) for tx in created
        ]

    async def _sweep_dust(self) -> list[SweptTransaction]:
        hashes = await self._call(self.handle.create_dust_sweep)
        return [SweptTransaction(tx_hash=h) for h in hashes]

    # History

    async def _fetch_transactions(self) -> list[WalletTransaction]:
        rows = await self._call(self.handle.transfers)
        return build_transactions(rows)

    def __repr__(self) -> str:
        return f"MoneroWalletNative({type(self.handle).__name__})"
