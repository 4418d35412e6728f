"""
Transfer history assembly.

Wallet backends report history as flat rows grouped by category, in the shape
of the wallet RPC get_transfers result:

    {"in": [...], "out": [...], "pending": [...], "failed": [...], "pool": [...]}

A transaction may appear in several categories (a payment to self is both
"out" and "in"), so rows are merged per tx hash into WalletTransaction
entities and returned in chain order.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from xmrwallet.wallet.models import (
    IncomingTransfer,
    OutgoingTransfer,
    Payment,
    TxType,
    WalletTransaction,
)

OUTGOING_CATEGORIES = ("out", "pending", "failed")
INCOMING_CATEGORIES = ("in", "pool")

CATEGORY_TYPES: dict[str, TxType] = {
    "out": TxType.CONFIRMED,
    "in": TxType.CONFIRMED,
    "pending": TxType.PENDING,
    "pool": TxType.PENDING,
    "failed": TxType.FAILED,
}

# When categories disagree the most advanced state wins
_STATE_RANK = {TxType.PENDING: 0, TxType.CONFIRMED: 1, TxType.FAILED: 2}


def chain_order_key(tx: WalletTransaction) -> tuple[int, int, int, str]:
    """Confirmed transactions by height first, then unconfirmed ones by time"""
    if tx.block_height is not None:
        return (0, tx.block_height, tx.timestamp or 0, tx.tx_hash)
    return (1, 0, tx.timestamp or 0, tx.tx_hash)


def _subaddr(row: Mapping[str, Any]) -> tuple[int, int]:
    index = row.get("subaddr_index") or {}
    return int(index.get("major", 0)), int(index.get("minor", 0))


def build_transactions(
    rows_by_category: Mapping[str, Iterable[Mapping[str, Any]]],
) -> list[WalletTransaction]:
    """
    Merge categorized history rows into wallet transactions.

    Args:
        rows_by_category: History rows keyed by category (in/out/pending/failed/pool)

    Returns:
        Transactions in chain order
    """
    merged: dict[str, dict[str, Any]] = {}

    for category in OUTGOING_CATEGORIES + INCOMING_CATEGORIES:
        for row in rows_by_category.get(category) or []:
            tx_hash = row["txid"]
            state = CATEGORY_TYPES[category]
            entry = merged.setdefault(
                tx_hash,
                {
                    "tx_hash": tx_hash,
                    "type": state,
                    "fee": None,
                    "timestamp": row.get("timestamp"),
                    "unlock_time": int(row.get("unlock_time", 0)),
                    "note": row.get("note") or None,
                    "size": row.get("size"),
                    "height": None,
                    "incoming_transfers": [],
                    "outgoing_transfer": None,
                },
            )
            if _STATE_RANK[state] > _STATE_RANK[entry["type"]]:
                entry["type"] = state
            if state == TxType.CONFIRMED and row.get("height") is not None:
                entry["height"] = int(row["height"])
            if entry["fee"] is None and row.get("fee") is not None:
                entry["fee"] = int(row["fee"])

            account_index, subaddress_index = _subaddr(row)
            if category in OUTGOING_CATEGORIES:
                entry["outgoing_transfer"] = OutgoingTransfer(
                    account_index=account_index,
                    subaddress_indices=[
                        int(i.get("minor", 0)) for i in row.get("subaddr_indices") or []
                    ],
                    amount=int(row.get("amount", 0)),
                    tx_hash=tx_hash,
                    destinations=[
                        Payment(address=d["address"], amount=int(d["amount"]), tx_hash=tx_hash)
                        for d in row.get("destinations") or []
                    ],
                )
            else:
                entry["incoming_transfers"].append(
                    IncomingTransfer(
                        account_index=account_index,
                        subaddress_index=subaddress_index,
                        amount=int(row.get("amount", 0)),
                        tx_hash=tx_hash,
                    )
                )

    transactions = []
    for entry in merged.values():
        confirmed = entry["type"] == TxType.CONFIRMED
        if confirmed and entry["height"] is None:
            # Confirmed row without a height is still in the pool from our view
            entry["type"] = TxType.PENDING
            confirmed = False
        transactions.append(
            WalletTransaction(
                tx_hash=entry["tx_hash"],
                type=entry["type"],
                block_height=entry["height"] if confirmed else None,
                size=entry["size"],
                fee=entry["fee"],
                timestamp=entry["timestamp"],
                unlock_time=entry["unlock_time"],
                note=entry["note"],
                incoming_transfers=sorted(
                    entry["incoming_transfers"],
                    key=lambda t: (t.account_index, t.subaddress_index),
                ),
                outgoing_transfer=entry["outgoing_transfer"],
            )
        )

    transactions.sort(key=chain_order_key)
    logger.debug(f"Assembled {len(transactions)} transactions from transfer history")
    return transactions
