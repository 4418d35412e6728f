"""
Wallet ledger entities.

Accounts own subaddresses, transactions own their payments. A payment only
refers back to its transaction by hash, so the model has a single ownership
edge per relation.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator

from xmrwallet.wallet.amount import Amount, PositiveAmount

TX_HASH_PATTERN = r"^[0-9a-f]{64}$"

TxHash = Annotated[str, Field(pattern=TX_HASH_PATTERN)]
Index = Annotated[int, Field(ge=0)]


class TxType(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class TransferPriority(IntEnum):
    DEFAULT = 0
    UNIMPORTANT = 1
    NORMAL = 2
    ELEVATED = 3


class Subaddress(BaseModel):
    account_index: Index
    index: Index
    address: str
    label: str | None = None
    balance: Amount = 0
    unlocked_balance: Amount = 0
    num_unspent_outputs: int = Field(default=0, ge=0)
    is_used: bool = False

    @model_validator(mode="after")
    def check_unlocked(self) -> Subaddress:
        if self.unlocked_balance > self.balance:
            raise ValueError(
                f"Subaddress {self.account_index}/{self.index}: unlocked balance "
                f"{self.unlocked_balance} exceeds balance {self.balance}"
            )
        return self


class Account(BaseModel):
    """
    Top level grouping of funds.

    subaddresses is None when the account was fetched without them. When
    present, the list starts at index 0, is sequential, and its balances add
    up to the account balances.
    """

    index: Index
    primary_address: str
    label: str | None = None
    tag: str | None = None
    balance: Amount = 0
    unlocked_balance: Amount = 0
    subaddresses: list[Subaddress] | None = None

    @model_validator(mode="after")
    def check_balances(self) -> Account:
        if self.unlocked_balance > self.balance:
            raise ValueError(
                f"Account {self.index}: unlocked balance {self.unlocked_balance} "
                f"exceeds balance {self.balance}"
            )
        if self.subaddresses is None:
            return self

        if not self.subaddresses:
            raise ValueError(f"Account {self.index} has no subaddresses")
        for position, subaddress in enumerate(self.subaddresses):
            if subaddress.account_index != self.index:
                raise ValueError(
                    f"Subaddress {subaddress.index} belongs to account "
                    f"{subaddress.account_index}, not {self.index}"
                )
            if subaddress.index != position:
                raise ValueError(
                    f"Account {self.index}: subaddress at position {position} "
                    f"has index {subaddress.index}"
                )

        total = sum(s.balance for s in self.subaddresses)
        unlocked = sum(s.unlocked_balance for s in self.subaddresses)
        if total != self.balance or unlocked != self.unlocked_balance:
            raise ValueError(
                f"Account {self.index}: balances {self.balance}/{self.unlocked_balance} "
                f"do not match subaddress totals {total}/{unlocked}"
            )
        return self


class Payment(BaseModel):
    """A transaction output. tx_hash points back at the owning transaction."""

    address: str
    amount: PositiveAmount
    tx_hash: TxHash | None = None


class IncomingTransfer(BaseModel):
    account_index: Index
    subaddress_index: Index
    amount: Amount
    tx_hash: TxHash


class OutgoingTransfer(BaseModel):
    account_index: Index
    subaddress_indices: list[Index] = Field(default_factory=list)
    amount: Amount
    tx_hash: TxHash
    destinations: list[Payment] = Field(default_factory=list)


class BaseTransaction(BaseModel):
    tx_hash: TxHash

    def owns(self, payment: Payment) -> bool:
        """Check whether a payment refers back to this transaction"""
        return payment.tx_hash == self.tx_hash


class ConstructedTransaction(BaseTransaction):
    """Single transaction built and relayed by transfer()."""

    kind: Literal["constructed"] = "constructed"
    fee: PositiveAmount
    mixin: int | None = Field(default=None, ge=0)
    tx_key: str = Field(..., min_length=1)
    payments: list[Payment] = Field(..., min_length=1)

    @model_validator(mode="after")
    def stamp_payments(self) -> ConstructedTransaction:
        for i, payment in enumerate(self.payments):
            if payment.tx_hash is None:
                self.payments[i] = payment.model_copy(update={"tx_hash": self.tx_hash})
            elif payment.tx_hash != self.tx_hash:
                raise ValueError(f"Payment {i} belongs to transaction {payment.tx_hash}")
        return self

    @property
    def total_amount(self) -> int:
        return sum(p.amount for p in self.payments)


class SplitTransaction(BaseTransaction):
    """
    One of the transactions produced by transfer_split().

    Carries no tx_key and no payments: proof material and outputs cannot be
    attributed to a single transaction of the split.
    """

    kind: Literal["split"] = "split"
    fee: PositiveAmount
    mixin: int | None = Field(default=None, ge=0)


class SweptTransaction(BaseTransaction):
    """Dust consolidation transaction, identified by hash only"""

    kind: Literal["swept"] = "swept"


class WalletTransaction(BaseTransaction):
    """Transaction as reported by the wallet history."""

    kind: Literal["queried"] = "queried"
    type: TxType
    block_height: int | None = Field(default=None, ge=0)
    size: int | None = Field(default=None, ge=0)
    fee: Amount | None = None
    timestamp: int | None = None
    unlock_time: int = 0
    note: str | None = None
    incoming_transfers: list[IncomingTransfer] = Field(default_factory=list)
    outgoing_transfer: OutgoingTransfer | None = None

    @model_validator(mode="after")
    def check_state(self) -> WalletTransaction:
        if self.type == TxType.CONFIRMED and self.block_height is None:
            raise ValueError(f"Confirmed transaction {self.tx_hash} has no block height")
        if self.type != TxType.CONFIRMED and self.block_height is not None:
            raise ValueError(f"Unconfirmed transaction {self.tx_hash} has a block height")
        return self

    @property
    def is_confirmed(self) -> bool:
        return self.type == TxType.CONFIRMED

    @property
    def is_incoming(self) -> bool:
        return bool(self.incoming_transfers)

    @property
    def is_outgoing(self) -> bool:
        return self.outgoing_transfer is not None


Transaction = Annotated[
    ConstructedTransaction | SplitTransaction | SweptTransaction | WalletTransaction,
    Field(discriminator="kind"),
]
