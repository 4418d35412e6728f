"""
Cross-backend wallet consistency verifier.

Compares two wallet facades believed to hold the same funds using only
chain-derived data. Wallet 2 is assumed to have been synced after wallet 1,
so its height may be greater but never smaller.

Checks run in a fixed order and stop at the first divergence:

1. height ordering
2. identity (mnemonic, primary address, private view and spend keys)
3. balance, re-syncing both wallets once on mismatch
4. accounts, then each account's subaddresses, by position
5. transactions in chain order, then their transfers

Labels, tags and transaction notes are local annotations and are cleared
before comparison.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Sequence
from typing import Any

from loguru import logger
from pydantic import BaseModel

from xmrwallet.backends.base import MoneroWallet
from xmrwallet.errors import (
    BalanceMismatchError,
    DivergenceError,
    HeightMismatchError,
    IdentityMismatchError,
)
from xmrwallet.wallet.models import Account, Subaddress, WalletTransaction

# Fields that are backend-local metadata and not derivable from the chain
ACCOUNT_LOCAL_FIELDS = {"label": None, "tag": None, "subaddresses": None}
SUBADDRESS_LOCAL_FIELDS = {"label": None}
TRANSACTION_LOCAL_FIELDS = {"note": None, "incoming_transfers": [], "outgoing_transfer": None}


def fingerprint(secret: str) -> str:
    """Short, non-reversible stand-in for a secret value in error reports"""
    return "sha256:" + hashlib.sha256(secret.encode()).hexdigest()[:12]


def first_difference(left: BaseModel, right: BaseModel) -> tuple[str, Any, Any] | None:
    """First differing field of two models, in field declaration order"""
    left_data = left.model_dump()
    right_data = right.model_dump()
    for name in type(left).model_fields:
        if left_data.get(name) != right_data.get(name):
            return name, left_data.get(name), right_data.get(name)
    if type(left) is not type(right):
        return "__class__", type(left).__name__, type(right).__name__
    return None


def _assert_models_equal(left: BaseModel, right: BaseModel, path: str) -> None:
    diff = first_difference(left, right)
    if diff is not None:
        field, left_value, right_value = diff
        raise DivergenceError("values differ", path, field, left_value, right_value)


class WalletComparator:
    """
    Compares two wallets for equality using only on-chain data.

    Args:
        wallet1: Reference wallet
        wallet2: Wallet synced at the same or a later height
    """

    def __init__(self, wallet1: MoneroWallet, wallet2: MoneroWallet):
        self.wallet1 = wallet1
        self.wallet2 = wallet2

    async def _both(self, method: str, *args: Any, **kwargs: Any) -> list[Any]:
        """Call the same facade method on both wallets concurrently."""
        return await asyncio.gather(
            getattr(self.wallet1, method)(*args, **kwargs),
            getattr(self.wallet2, method)(*args, **kwargs),
        )

    async def compare(self) -> None:
        """
        Run every check.

        Raises:
            HeightMismatchError: Wallet 2 is behind wallet 1
            IdentityMismatchError: Wallets do not share keys
            BalanceMismatchError: Balances differ after one re-sync
            DivergenceError: Accounts, subaddresses or transactions differ
        """
        logger.info(f"Comparing {self.wallet1!r} with {self.wallet2!r}")
        await self.check_height()
        await self.check_identity()
        await self.check_balances()
        accounts1, accounts2 = await self._both("get_accounts", include_subaddresses=True)
        self.compare_accounts(accounts1, accounts2)
        txs1, txs2 = await self._both("get_transactions")
        self.compare_transactions(txs1, txs2)
        logger.info("Wallets are equal on chain")

    async def check_height(self) -> None:
        height1, height2 = await self._both("get_height")
        if height1 > height2:
            raise HeightMismatchError(
                "wallet 2 must be synced to at least the height of wallet 1",
                field="height",
                left=height1,
                right=height2,
            )

    async def check_identity(self) -> None:
        checks = (
            ("mnemonic", "get_mnemonic", True),
            ("primary_address", "get_primary_address", False),
            ("private_view_key", "get_private_view_key", True),
            ("private_spend_key", "get_private_spend_key", True),
        )
        for field, method, secret in checks:
            value1, value2 = await self._both(method)
            if value1 != value2:
                if secret:
                    value1, value2 = fingerprint(value1), fingerprint(value2)
                raise IdentityMismatchError(
                    "wallets are not built from the same keys",
                    field=field,
                    left=value1,
                    right=value2,
                )

    async def check_balances(self) -> None:
        balance1, balance2 = await self._both("get_balance")
        if balance1 != balance2:
            logger.warning(
                f"Balances are not equal ({balance1} != {balance2}), re-syncing one time"
            )
            await self._both("sync")
            balance1, balance2 = await self._both("get_balance")
        if balance1 != balance2:
            raise BalanceMismatchError(
                "balances differ after re-sync", field="balance", left=balance1, right=balance2
            )

        unlocked1, unlocked2 = await self._both("get_unlocked_balance")
        if unlocked1 != unlocked2:
            raise BalanceMismatchError(
                "unlocked balances differ",
                field="unlocked_balance",
                left=unlocked1,
                right=unlocked2,
            )

    def compare_accounts(self, accounts1: Sequence[Account], accounts2: Sequence[Account]) -> None:
        for i in range(min(len(accounts1), len(accounts2))):
            self.compare_account(accounts1[i], accounts2[i], f"accounts[{i}]")

        extra, side = (accounts2, 2) if len(accounts2) > len(accounts1) else (accounts1, 1)
        for i in range(min(len(accounts1), len(accounts2)), len(extra)):
            self._check_extra_account(extra[i], f"accounts[{i}]", side)

    def compare_account(self, account1: Account, account2: Account, path: str) -> None:
        _assert_models_equal(
            account1.model_copy(update=ACCOUNT_LOCAL_FIELDS),
            account2.model_copy(update=ACCOUNT_LOCAL_FIELDS),
            path,
        )
        self.compare_subaddresses(account1.subaddresses or [], account2.subaddresses or [], path)

    def compare_subaddresses(
        self, subaddresses1: Sequence[Subaddress], subaddresses2: Sequence[Subaddress], path: str
    ) -> None:
        shared = min(len(subaddresses1), len(subaddresses2))
        for i in range(shared):
            _assert_models_equal(
                subaddresses1[i].model_copy(update=SUBADDRESS_LOCAL_FIELDS),
                subaddresses2[i].model_copy(update=SUBADDRESS_LOCAL_FIELDS),
                f"{path}.subaddresses[{i}]",
            )

        extra, side = (
            (subaddresses2, 2) if len(subaddresses2) > len(subaddresses1) else (subaddresses1, 1)
        )
        for i in range(shared, len(extra)):
            self._check_extra_subaddress(extra[i], f"{path}.subaddresses[{i}]", side)

    @staticmethod
    def _extra_values(value: Any, side: int) -> tuple[Any, Any]:
        return (value, None) if side == 1 else (None, value)

    def _check_extra_account(self, account: Account, path: str, side: int) -> None:
        if account.balance != 0:
            left, right = self._extra_values(account.balance, side)
            raise DivergenceError(
                f"account only known to wallet {side} has a balance", path, "balance", left, right
            )
        for subaddress in account.subaddresses or []:
            self._check_extra_subaddress(
                subaddress, f"{path}.subaddresses[{subaddress.index}]", side
            )

    def _check_extra_subaddress(self, subaddress: Subaddress, path: str, side: int) -> None:
        if subaddress.balance != 0:
            left, right = self._extra_values(subaddress.balance, side)
            raise DivergenceError(
                f"subaddress only known to wallet {side} has a balance",
                path,
                "balance",
                left,
                right,
            )
        if subaddress.is_used:
            left, right = self._extra_values(True, side)
            raise DivergenceError(
                f"subaddress only known to wallet {side} is used", path, "is_used", left, right
            )

    def compare_transactions(
        self, txs1: Sequence[WalletTransaction], txs2: Sequence[WalletTransaction]
    ) -> None:
        if len(txs1) != len(txs2):
            raise DivergenceError(
                "transaction counts differ", "transactions", "count", len(txs1), len(txs2)
            )
        for i, (tx1, tx2) in enumerate(zip(txs1, txs2, strict=True)):
            self.compare_transaction(tx1, tx2, f"transactions[{i}]")

    def compare_transaction(
        self, tx1: WalletTransaction, tx2: WalletTransaction, path: str
    ) -> None:
        _assert_models_equal(
            tx1.model_copy(update=TRANSACTION_LOCAL_FIELDS),
            tx2.model_copy(update=TRANSACTION_LOCAL_FIELDS),
            path,
        )

        incoming1, incoming2 = tx1.incoming_transfers, tx2.incoming_transfers
        if len(incoming1) != len(incoming2):
            raise DivergenceError(
                "incoming transfer counts differ",
                path,
                "incoming_transfers",
                len(incoming1),
                len(incoming2),
            )
        for i, (transfer1, transfer2) in enumerate(zip(incoming1, incoming2, strict=True)):
            _assert_models_equal(transfer1, transfer2, f"{path}.incoming_transfers[{i}]")

        outgoing1, outgoing2 = tx1.outgoing_transfer, tx2.outgoing_transfer
        if (outgoing1 is None) != (outgoing2 is None):
            raise DivergenceError(
                "only one wallet reports an outgoing transfer",
                path,
                "outgoing_transfer",
                outgoing1 is not None,
                outgoing2 is not None,
            )
        if outgoing1 is not None and outgoing2 is not None:
            _assert_models_equal(outgoing1, outgoing2, f"{path}.outgoing_transfer")


async def assert_wallets_equal(wallet1: MoneroWallet, wallet2: MoneroWallet) -> None:
    """Compare two wallets on chain, raising at the first divergence."""
    await WalletComparator(wallet1, wallet2).compare()
