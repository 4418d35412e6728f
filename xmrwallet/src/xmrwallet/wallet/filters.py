"""
Query/filter engine over wallet entities.

Filters are pure predicates over in-memory snapshots; they never touch a
backend and never reorder their input. They compose with &, | and ~:

    f = filters.account_index(0) & filters.confirmed()
    txs = f.apply(await wallet.get_transactions())
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from pydantic import BaseModel, Field

from xmrwallet.wallet.models import (
    Account,
    BaseTransaction,
    IncomingTransfer,
    OutgoingTransfer,
    Payment,
    Subaddress,
    TxType,
    WalletTransaction,
)


class Filter:
    """Named, composable predicate"""

    def __init__(self, predicate: Callable[[Any], bool], description: str):
        self.predicate = predicate
        self.description = description

    def __call__(self, item: Any) -> bool:
        return self.predicate(item)

    def __and__(self, other: Filter) -> Filter:
        return Filter(
            lambda item: self(item) and other(item),
            f"({self.description} and {other.description})",
        )

    def __or__(self, other: Filter) -> Filter:
        return Filter(
            lambda item: self(item) or other(item),
            f"({self.description} or {other.description})",
        )

    def __invert__(self) -> Filter:
        return Filter(lambda item: not self(item), f"not {self.description}")

    def __repr__(self) -> str:
        return f"Filter({self.description})"

    def apply(self, items: Iterable[Any]) -> list[Any]:
        """Return matching items in their original order"""
        return [item for item in items if self(item)]


def select(items: Iterable[Any], *filters: Filter) -> list[Any]:
    """Keep items matching every filter, preserving order"""
    return [item for item in items if all(f(item) for f in filters)]


def match_all() -> Filter:
    return Filter(lambda item: True, "all")


def _transfers(tx: WalletTransaction) -> list[IncomingTransfer | OutgoingTransfer]:
    transfers: list[IncomingTransfer | OutgoingTransfer] = list(tx.incoming_transfers)
    if tx.outgoing_transfer is not None:
        transfers.append(tx.outgoing_transfer)
    return transfers


def account_index(index: int) -> Filter:
    """
    Match entities scoped to an account.

    Transactions match when any of their transfers touches the account.
    """

    def predicate(item: Any) -> bool:
        if isinstance(item, Account):
            return item.index == index
        if isinstance(item, Subaddress | IncomingTransfer | OutgoingTransfer):
            return item.account_index == index
        if isinstance(item, WalletTransaction):
            return any(t.account_index == index for t in _transfers(item))
        return False

    return Filter(predicate, f"account_index == {index}")


def subaddress_indices(indices: Iterable[int]) -> Filter:
    """Match subaddresses, transfers or transactions touching any of the indices"""
    wanted = frozenset(indices)

    def predicate(item: Any) -> bool:
        if isinstance(item, Subaddress):
            return item.index in wanted
        if isinstance(item, IncomingTransfer):
            return item.subaddress_index in wanted
        if isinstance(item, OutgoingTransfer):
            return not wanted.isdisjoint(item.subaddress_indices)
        if isinstance(item, WalletTransaction):
            return any(predicate(t) for t in _transfers(item))
        return False

    return Filter(predicate, f"subaddress_index in {sorted(wanted)}")


def account_subaddresses(index: int, indices: Iterable[int]) -> Filter:
    """
    Match entities touching any of the subaddresses of one account.

    A transaction matches only when a single transfer is in the account and
    in the index set; subaddress indices are scoped to their account.
    """
    in_account = account_index(index)
    in_indices = subaddress_indices(indices)

    def predicate(item: Any) -> bool:
        if isinstance(item, WalletTransaction):
            return any(in_account(t) and in_indices(t) for t in _transfers(item))
        return in_account(item) and in_indices(item)

    return Filter(predicate, f"({in_account.description} and {in_indices.description})")


def tag(value: str | None) -> Filter:
    """
    Match accounts by tag.

    None matches every account, "" matches untagged accounts only, any other
    value must equal the tag exactly.
    """
    if value is None:
        return Filter(lambda item: isinstance(item, Account), "any tag")
    if value == "":
        return Filter(lambda item: isinstance(item, Account) and not item.tag, "untagged")
    return Filter(
        lambda item: isinstance(item, Account) and item.tag == value,
        f"tag == {value!r}",
    )


def tx_type(state: TxType) -> Filter:
    return Filter(
        lambda item: isinstance(item, WalletTransaction) and item.type == state,
        f"type == {state.value}",
    )


def confirmed(is_confirmed: bool = True) -> Filter:
    if is_confirmed:
        return tx_type(TxType.CONFIRMED)
    return Filter(
        lambda item: isinstance(item, WalletTransaction) and item.type != TxType.CONFIRMED,
        "unconfirmed",
    )


def tx_hashes(hashes: Iterable[str]) -> Filter:
    """Match transactions, transfers or payments by transaction hash"""
    wanted = frozenset(hashes)

    def predicate(item: Any) -> bool:
        if isinstance(item, BaseTransaction | IncomingTransfer | OutgoingTransfer | Payment):
            return item.tx_hash in wanted
        return False

    return Filter(predicate, f"tx_hash in {len(wanted)} hashes")


class TransactionQuery(BaseModel):
    """Common transaction criteria, combined with AND"""

    account_index: int | None = Field(default=None, ge=0)
    subaddress_indices: list[int] | None = None
    tx_hashes: list[str] | None = None
    tx_type: TxType | None = None
    is_incoming: bool | None = None
    is_outgoing: bool | None = None

    def to_filter(self) -> Filter:
        result = match_all()
        if self.account_index is not None and self.subaddress_indices is not None:
            result = result & account_subaddresses(self.account_index, self.subaddress_indices)
        elif self.account_index is not None:
            result = result & account_index(self.account_index)
        elif self.subaddress_indices is not None:
            result = result & subaddress_indices(self.subaddress_indices)
        if self.tx_hashes is not None:
            result = result & tx_hashes(self.tx_hashes)
        if self.tx_type is not None:
            result = result & tx_type(self.tx_type)
        if self.is_incoming is not None:
            expected_in = self.is_incoming
            result = result & Filter(
                lambda tx: tx.is_incoming == expected_in, f"is_incoming == {expected_in}"
            )
        if self.is_outgoing is not None:
            expected_out = self.is_outgoing
            result = result & Filter(
                lambda tx: tx.is_outgoing == expected_out, f"is_outgoing == {expected_out}"
            )
        return result

    def apply(self, transactions: Iterable[WalletTransaction]) -> list[WalletTransaction]:
        return self.to_filter().apply(transactions)
