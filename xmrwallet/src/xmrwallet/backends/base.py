"""
Wallet facade interface.

Every backend variant (wallet RPC server, embedded native library) implements
MoneroWallet. Callers and the consistency verifier depend on this interface
only. Local validation shared by all variants lives here, so that errors
detectable from local state are raised before a backend is asked to do
anything.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from loguru import logger

from xmrwallet.errors import InsufficientFundsError, NotFoundError
from xmrwallet.wallet.address import NetworkType, validate_address
from xmrwallet.wallet.filters import TransactionQuery, tag as tag_filter
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


class MoneroWallet(ABC):
    """
    Abstract Monero wallet facade.

    Subclasses implement the underscore-prefixed primitives against their
    backend; the public methods add local validation and filtering on top.
    Account and subaddress indices are always assigned by the backend.
    """

    network: NetworkType | None = None

    # Identity and chain state

    @abstractmethod
    async def get_height(self) -> int:
        """Get the height the wallet is synced to"""

    @abstractmethod
    async def get_mnemonic(self) -> str:
        """Get the mnemonic seed"""

    @abstractmethod
    async def get_primary_address(self) -> str:
        """Get the primary address (account 0, subaddress 0)"""

    @abstractmethod
    async def get_private_view_key(self) -> str:
        """Get the private view key (hex)"""

    @abstractmethod
    async def get_private_spend_key(self) -> str:
        """Get the private spend key (hex)"""

    @abstractmethod
    async def sync(self) -> None:
        """Refresh the wallet against the chain. May block for a long time."""

    # Backend primitives

    @abstractmethod
    async def _fetch_accounts(self, include_subaddresses: bool) -> list[Account]:
        """All accounts in creation order"""

    @abstractmethod
    async def _fetch_subaddresses(self, account_index: int) -> list[Subaddress]:
        """Subaddresses of an existing account in index order"""

    @abstractmethod
    async def _create_account(self, label: str | None) -> Account:
        """Create an account and return it with its subaddresses"""

    @abstractmethod
    async def _create_subaddress(self, account_index: int, label: str | None) -> Subaddress:
        """Create the next subaddress of an existing account"""

    @abstractmethod
    async def _fetch_balances(
        self, account_index: int | None, subaddress_index: int | None
    ) -> tuple[int, int]:
        """(balance, unlocked_balance) for the given scope"""

    @abstractmethod
    async def _transfer(
        self,
        payments: list[Payment],
        account_index: int,
        priority: TransferPriority,
        fee: int | None,
        mixin: int | None,
    ) -> ConstructedTransaction:
        """Build and relay one transaction paying every destination"""

    @abstractmethod
    async def _transfer_split(
        self,
        payments: list[Payment],
        account_index: int,
        priority: TransferPriority,
        fee: int | None,
        mixin: int | None,
        new_algorithm: bool,
    ) -> list[SplitTransaction]:
        """Build and relay as many transactions as needed to pay every destination"""

    @abstractmethod
    async def _sweep_dust(self) -> list[SweptTransaction]:
        """Consolidate dust outputs"""

    @abstractmethod
    async def _fetch_transactions(self) -> list[WalletTransaction]:
        """Full transaction history in chain order"""

    async def close(self) -> None:
        """Release backend resources"""
        pass

    # Accounts and subaddresses

    async def get_accounts(
        self, tag: str | None = None, include_subaddresses: bool = False
    ) -> list[Account]:
        """
        Get accounts in creation order.

        Args:
            tag: None for every account, "" for untagged accounts only,
                otherwise accounts whose tag equals this value exactly
            include_subaddresses: Populate Account.subaddresses

        Returns:
            Matching accounts
        """
        accounts = await self._fetch_accounts(include_subaddresses)
        return tag_filter(tag).apply(accounts)

    async def get_account(self, account_index: int, include_subaddresses: bool = False) -> Account:
        accounts = await self._fetch_accounts(include_subaddresses)
        self._check_account_index(account_index, len(accounts))
        return accounts[account_index]

    async def create_account(self, label: str | None = None) -> Account:
        """Create an account with subaddress 0. A label also becomes the account tag."""
        account = await self._create_account(label)
        logger.info(f"Created account {account.index}" + (f" ({label})" if label else ""))
        return account

    async def get_subaddresses(self, account_index: int) -> list[Subaddress]:
        await self._require_account(account_index)
        return await self._fetch_subaddresses(account_index)

    async def get_subaddress(self, account_index: int, subaddress_index: int) -> Subaddress:
        subaddresses = await self.get_subaddresses(account_index)
        if not 0 <= subaddress_index < len(subaddresses):
            raise NotFoundError(
                f"Subaddress {subaddress_index} does not exist in account {account_index}"
            )
        return subaddresses[subaddress_index]

    async def create_subaddress(self, account_index: int, label: str | None = None) -> Subaddress:
        await self._require_account(account_index)
        subaddress = await self._create_subaddress(account_index, label)
        logger.info(f"Created subaddress {account_index}/{subaddress.index}")
        return subaddress

    # Balances

    async def get_balance(
        self, account_index: int | None = None, subaddress_index: int | None = None
    ) -> int:
        """Balance of a subaddress, an account, or the whole wallet"""
        await self._check_balance_scope(account_index, subaddress_index)
        balance, _ = await self._fetch_balances(account_index, subaddress_index)
        return balance

    async def get_unlocked_balance(
        self, account_index: int | None = None, subaddress_index: int | None = None
    ) -> int:
        """Spendable balance of a subaddress, an account, or the whole wallet"""
        await self._check_balance_scope(account_index, subaddress_index)
        _, unlocked = await self._fetch_balances(account_index, subaddress_index)
        return unlocked

    # Sending

    async def transfer(
        self,
        destination: str,
        amount: int,
        priority: TransferPriority | None = None,
        fee: int | None = None,
        mixin: int | None = None,
        account_index: int = 0,
    ) -> ConstructedTransaction:
        """Send an amount to a single destination"""
        return await self.transfer_payments(
            [Payment(address=destination, amount=amount)],
            priority=priority,
            fee=fee,
            mixin=mixin,
            account_index=account_index,
        )

    async def transfer_payments(
        self,
        payments: Sequence[Payment],
        priority: TransferPriority | None = None,
        fee: int | None = None,
        mixin: int | None = None,
        account_index: int = 0,
    ) -> ConstructedTransaction:
        """
        Send to several destinations in one transaction.

        Raises:
            InvalidAddressError: A destination is malformed
            NotFoundError: The source account does not exist
            InsufficientFundsError: The account cannot cover the payments
        """
        payments = await self._prepare_transfer(payments, account_index)
        tx = await self._transfer(
            payments, account_index, priority or TransferPriority.DEFAULT, fee, mixin
        )
        logger.info(f"Submitted transaction {tx.tx_hash} (fee {tx.fee})")
        return tx

    async def transfer_split(
        self,
        payments: Sequence[Payment],
        priority: TransferPriority | None = None,
        fee: int | None = None,
        mixin: int | None = None,
        account_index: int = 0,
        new_algorithm: bool = True,
    ) -> list[SplitTransaction]:
        """Send to several destinations, letting the backend split into multiple transactions"""
        payments = await self._prepare_transfer(payments, account_index)
        txs = await self._transfer_split(
            payments,
            account_index,
            priority or TransferPriority.DEFAULT,
            fee,
            mixin,
            new_algorithm,
        )
        logger.info(f"Submitted {len(txs)} split transaction(s)")
        return txs

    async def sweep_dust(self) -> list[SweptTransaction]:
        txs = await self._sweep_dust()
        logger.info(f"Swept dust in {len(txs)} transaction(s)")
        return txs

    # History

    async def get_transactions(
        self, query: TransactionQuery | None = None
    ) -> list[WalletTransaction]:
        transactions = await self._fetch_transactions()
        if query is None:
            return transactions
        return query.apply(transactions)

    # Local validation

    @staticmethod
    def _check_account_index(account_index: int, account_count: int) -> None:
        if not 0 <= account_index < account_count:
            raise NotFoundError(
                f"Account {account_index} does not exist ({account_count} accounts)"
            )

    async def _require_account(self, account_index: int) -> None:
        if account_index < 0:
            raise NotFoundError(f"Account {account_index} does not exist")
        accounts = await self._fetch_accounts(include_subaddresses=False)
        self._check_account_index(account_index, len(accounts))

    async def _check_balance_scope(
        self, account_index: int | None, subaddress_index: int | None
    ) -> None:
        if account_index is None:
            if subaddress_index is not None:
                raise ValueError("subaddress_index requires account_index")
            return
        if subaddress_index is None:
            await self._require_account(account_index)
        else:
            await self.get_subaddress(account_index, subaddress_index)

    async def _prepare_transfer(
        self, payments: Sequence[Payment], account_index: int
    ) -> list[Payment]:
        if not payments:
            raise ValueError("At least one payment is required")
        for payment in payments:
            validate_address(payment.address, self.network)
        await self._require_account(account_index)

        total = sum(p.amount for p in payments)
        _, unlocked = await self._fetch_balances(account_index, None)
        if unlocked < total:
            raise InsufficientFundsError(
                f"Account {account_index}: need {total}, unlocked balance is {unlocked}"
            )
        return list(payments)
