"""
Test configuration for wallet tests.

FakeLedger is an in-memory wallet that implements the native handle surface.
make_rpc_transport() serves the same ledger as a monero-wallet-rpc JSON-RPC
endpoint, so both backends can be exercised against identical state.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import AsyncGenerator, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx
import pytest
import pytest_asyncio

from xmrwallet.backends.native import MoneroWalletNative
from xmrwallet.backends.wallet_rpc import MoneroWalletRpc
from xmrwallet.wallet.address import BASE58_ALPHABET, NetworkType

XMR = 10**12

BASE_FEE = 1_000
PER_DESTINATION_FEE = 500
MAX_DESTINATIONS_PER_TX = 3
DUST_THRESHOLD = 100_000
GENESIS_TIMESTAMP = 1_700_000_000

SAMPLE_SEED = (
    "sequence atlas unveil summon pebbles tuesday beer rudely snake rockets different "
    "fuselage woven tagged bested dented vegan hover rapid fawns obvious muppet "
    "randomly seasons randomly"
)


def fake_hash(*parts: object) -> str:
    return hashlib.sha256(":".join(map(str, parts)).encode()).hexdigest()


def fake_address(prefix: str, *parts: object) -> str:
    """Deterministic 95 character base58 string with the given network prefix"""
    digest = b""
    counter = 0
    while len(digest) < 94:
        digest += hashlib.sha256(f"{parts}:{counter}".encode()).digest()
        counter += 1
    return prefix + "".join(BASE58_ALPHABET[b % 58] for b in digest[:94])


class FakeLedgerError(Exception):
    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


@dataclass
class FakeOutput:
    account_index: int
    subaddress_index: int
    amount: int
    locked: bool = False


class FakeLedger:
    """In-memory wallet implementing the NativeWalletHandle surface."""

    def __init__(self, seed: str = SAMPLE_SEED, height: int = 1000):
        self._seed = seed
        self._height = height
        self.view_key = fake_hash("view", seed)
        self.spend_key = fake_hash("spend", seed)
        self.accounts: list[dict[str, Any]] = []
        self.outputs: list[FakeOutput] = []
        self.rows: dict[str, list[dict[str, Any]]] = {
            "in": [],
            "out": [],
            "pending": [],
            "failed": [],
            "pool": [],
        }
        self.refresh_count = 0
        self.on_refresh: Callable[[], None] | None = None
        self._tx_counter = 0
        self.add_account("")

    def clone(self) -> FakeLedger:
        """Independent copy of the ledger state (without refresh hook)"""
        hook, self.on_refresh = self.on_refresh, None
        try:
            twin = copy.deepcopy(self)
        finally:
            self.on_refresh = hook
        twin.refresh_count = 0
        return twin

    # Helpers

    def _check(self, account_index: int, subaddress_index: int | None = None) -> None:
        if not 0 <= account_index < len(self.accounts):
            raise FakeLedgerError("account index is out of bound", -14)
        if subaddress_index is not None and not (
            0 <= subaddress_index < len(self.accounts[account_index]["subaddresses"])
        ):
            raise FakeLedgerError("address index is out of bound", -15)

    def _next_tx(self) -> tuple[str, int]:
        self._tx_counter += 1
        return fake_hash("tx", self._seed, self._tx_counter), (
            GENESIS_TIMESTAMP + 120 * self._tx_counter
        )

    def _lookup(self, address: str) -> tuple[int, int] | None:
        for a, account in enumerate(self.accounts):
            for m, sub in enumerate(account["subaddresses"]):
                if sub["address"] == address:
                    return a, m
        return None

    def _outputs(self, account_index: int | None, subaddress_index: int | None) -> list[FakeOutput]:
        return [
            o
            for o in self.outputs
            if (account_index is None or o.account_index == account_index)
            and (subaddress_index is None or o.subaddress_index == subaddress_index)
        ]

    def fund(
        self, account_index: int, subaddress_index: int, amount: int, locked: bool = False
    ) -> str:
        """Receive a confirmed payment"""
        self._check(account_index, subaddress_index)
        tx_hash, timestamp = self._next_tx()
        self.outputs.append(FakeOutput(account_index, subaddress_index, amount, locked))
        self.accounts[account_index]["subaddresses"][subaddress_index]["used"] = True
        self.rows["in"].append(
            {
                "txid": tx_hash,
                "amount": amount,
                "height": self._height,
                "timestamp": timestamp,
                "subaddr_index": {"major": account_index, "minor": subaddress_index},
                "unlock_time": 0,
                "note": "",
            }
        )
        return tx_hash

    def mine_block(self) -> None:
        """Confirm pending transactions and unlock every output"""
        self._height += 1
        for category, target in (("pending", "out"), ("pool", "in")):
            for row in self.rows[category]:
                row["height"] = self._height
                self.rows[target].append(row)
            self.rows[category] = []
        for output in self.outputs:
            output.locked = False

    # NativeWalletHandle

    def height(self) -> int:
        return self._height

    def seed(self) -> str:
        return self._seed

    def secret_view_key(self) -> str:
        return self.view_key

    def secret_spend_key(self) -> str:
        return self.spend_key

    def address(self, account_index: int, subaddress_index: int) -> str:
        self._check(account_index, subaddress_index)
        return self.accounts[account_index]["subaddresses"][subaddress_index]["address"]

    def account_count(self) -> int:
        return len(self.accounts)

    def account_label(self, account_index: int) -> str:
        self._check(account_index)
        return self.accounts[account_index]["label"]

    def account_tag(self, account_index: int) -> str:
        self._check(account_index)
        return self.accounts[account_index]["tag"]

    def subaddress_count(self, account_index: int) -> int:
        self._check(account_index)
        return len(self.accounts[account_index]["subaddresses"])

    def subaddress_label(self, account_index: int, subaddress_index: int) -> str:
        self._check(account_index, subaddress_index)
        return self.accounts[account_index]["subaddresses"][subaddress_index]["label"]

    def is_used(self, account_index: int, subaddress_index: int) -> bool:
        self._check(account_index, subaddress_index)
        return self.accounts[account_index]["subaddresses"][subaddress_index]["used"]

    def num_unspent_outputs(self, account_index: int, subaddress_index: int) -> int:
        return len(self._outputs(account_index, subaddress_index))

    def balance(self, account_index: int | None = None, subaddress_index: int | None = None) -> int:
        return sum(o.amount for o in self._outputs(account_index, subaddress_index))

    def unlocked_balance(
        self, account_index: int | None = None, subaddress_index: int | None = None
    ) -> int:
        return sum(o.amount for o in self._outputs(account_index, subaddress_index) if not o.locked)

    def add_account(self, label: str) -> int:
        index = len(self.accounts)
        self.accounts.append({"label": label, "tag": "", "subaddresses": []})
        self.add_subaddress(index, label)
        return index

    def add_subaddress(self, account_index: int, label: str) -> int:
        self._check(account_index)
        subaddresses = self.accounts[account_index]["subaddresses"]
        index = len(subaddresses)
        prefix = "4" if (account_index, index) == (0, 0) else "8"
        subaddresses.append(
            {
                "label": label,
                "used": False,
                "address": fake_address(prefix, self._seed, account_index, index),
            }
        )
        return index

    def set_account_tag(self, account_indices: Sequence[int], tag: str) -> None:
        for index in account_indices:
            self._check(index)
            self.accounts[index]["tag"] = tag

    def _spend(self, account_index: int, total: int) -> list[int]:
        """Consume unlocked outputs covering total, returning spent subaddress indices"""
        spent: list[FakeOutput] = []
        covered = 0
        for output in list(self.outputs):
            if covered >= total:
                break
            if output.account_index == account_index and not output.locked:
                spent.append(output)
                covered += output.amount
                self.outputs.remove(output)
        if covered > total:
            self.outputs.append(FakeOutput(account_index, 0, covered - total, locked=True))
        return sorted({o.subaddress_index for o in spent})

    def create_transactions(
        self,
        destinations: Sequence[tuple[str, int]],
        account_index: int,
        priority: int,
        ring_size: int | None,
        fee: int | None,
        split: bool,
    ) -> list[dict[str, Any]]:
        self._check(account_index)
        for address, amount in destinations:
            if len(address) != 95 or address[0] not in "48":
                raise FakeLedgerError(f"Invalid destination address: {address}", -2)
            if amount <= 0:
                raise FakeLedgerError("No destinations for this transfer", -20)

        chunks = [
            list(destinations[i : i + MAX_DESTINATIONS_PER_TX])
            for i in range(0, len(destinations), MAX_DESTINATIONS_PER_TX)
        ]
        if len(chunks) > 1 and not split:
            raise FakeLedgerError("Transaction would be too large.  try /transfer_split.", -18)

        fees = [BASE_FEE + PER_DESTINATION_FEE * len(chunk) for chunk in chunks]
        total = sum(amount for _, amount in destinations) + sum(fees)
        if total > self.unlocked_balance(account_index):
            raise FakeLedgerError("not enough money", -17)

        spent_indices = self._spend(account_index, total)
        created = []
        for chunk, chunk_fee in zip(chunks, fees, strict=True):
            tx_hash, timestamp = self._next_tx()
            self.rows["pending"].append(
                {
                    "txid": tx_hash,
                    "amount": sum(amount for _, amount in chunk),
                    "fee": chunk_fee,
                    "timestamp": timestamp,
                    "subaddr_index": {"major": account_index, "minor": 0},
                    "subaddr_indices": [
                        {"major": account_index, "minor": m} for m in spent_indices
                    ],
                    "destinations": [{"address": a, "amount": v} for a, v in chunk],
                    "unlock_time": 0,
                    "note": "",
                }
            )
            for address, amount in chunk:
                owner = self._lookup(address)
                if owner is None:
                    continue
                self.outputs.append(FakeOutput(owner[0], owner[1], amount, locked=True))
                self.accounts[owner[0]]["subaddresses"][owner[1]]["used"] = True
                self.rows["pool"].append(
                    {
                        "txid": tx_hash,
                        "amount": amount,
                        "timestamp": timestamp,
                        "subaddr_index": {"major": owner[0], "minor": owner[1]},
                        "unlock_time": 0,
                        "note": "",
                    }
                )
            created.append(
                {"tx_hash": tx_hash, "fee": chunk_fee, "tx_key": fake_hash("key", tx_hash)}
            )
        return created

    def create_dust_sweep(self) -> list[str]:
        hashes = []
        for account_index in range(len(self.accounts)):
            dust = [
                o
                for o in self.outputs
                if o.account_index == account_index
                and not o.locked
                and o.amount < DUST_THRESHOLD
            ]
            total = sum(o.amount for o in dust)
            if total <= BASE_FEE:
                continue
            for output in dust:
                self.outputs.remove(output)
            self.outputs.append(FakeOutput(account_index, 0, total - BASE_FEE, locked=True))
            tx_hash, timestamp = self._next_tx()
            self.rows["pending"].append(
                {
                    "txid": tx_hash,
                    "amount": 0,
                    "fee": BASE_FEE,
                    "timestamp": timestamp,
                    "subaddr_index": {"major": account_index, "minor": 0},
                    "subaddr_indices": [
                        {"major": account_index, "minor": m}
                        for m in sorted({o.subaddress_index for o in dust})
                    ],
                    "destinations": [],
                    "unlock_time": 0,
                    "note": "",
                }
            )
            hashes.append(tx_hash)
        return hashes

    def transfers(self) -> dict[str, list[dict[str, Any]]]:
        return copy.deepcopy(self.rows)

    def refresh(self) -> None:
        self.refresh_count += 1
        if self.on_refresh is not None:
            hook, self.on_refresh = self.on_refresh, None
            hook()


class SkewedHandle:
    """Ledger view reporting a different sync height"""

    def __init__(self, ledger: FakeLedger, height_delta: int):
        self._ledger = ledger
        self._height_delta = height_delta

    def __getattr__(self, name: str) -> Any:
        return getattr(self._ledger, name)

    def height(self) -> int:
        return self._ledger.height() + self._height_delta


def _rpc_result(ledger: FakeLedger, method: str, params: dict[str, Any]) -> Any:
    if method == "get_height":
        return {"height": ledger.height()}
    if method == "query_key":
        keys = {
            "mnemonic": ledger.seed(),
            "view_key": ledger.secret_view_key(),
            "spend_key": ledger.secret_spend_key(),
        }
        return {"key": keys[params["key_type"]]}
    if method == "get_address":
        account_index = params.get("account_index", 0)
        count = ledger.subaddress_count(account_index)
        indices = params.get("address_index") or list(range(count))
        return {
            "address": ledger.address(account_index, 0),
            "addresses": [
                {
                    "address": ledger.address(account_index, i),
                    "label": ledger.subaddress_label(account_index, i),
                    "address_index": i,
                    "used": ledger.is_used(account_index, i),
                }
                for i in indices
            ],
        }
    if method == "get_accounts":
        return {
            "subaddress_accounts": [
                {
                    "account_index": i,
                    "base_address": ledger.address(i, 0),
                    "balance": ledger.balance(i),
                    "unlocked_balance": ledger.unlocked_balance(i),
                    "label": ledger.account_label(i),
                    "tag": ledger.account_tag(i),
                }
                for i in range(ledger.account_count())
            ],
            "total_balance": ledger.balance(),
            "total_unlocked_balance": ledger.unlocked_balance(),
        }
    if method == "create_account":
        index = ledger.add_account(params.get("label", ""))
        return {"account_index": index, "address": ledger.address(index, 0)}
    if method == "tag_accounts":
        ledger.set_account_tag(params["accounts"], params["tag"])
        return {}
    if method == "create_address":
        account_index = params["account_index"]
        index = ledger.add_subaddress(account_index, params.get("label", ""))
        return {"address": ledger.address(account_index, index), "address_index": index}
    if method == "get_balance":
        account_index = params["account_index"]
        ledger._check(account_index)
        indices = params.get("address_indices") or list(
            range(ledger.subaddress_count(account_index))
        )
        return {
            "balance": ledger.balance(account_index),
            "unlocked_balance": ledger.unlocked_balance(account_index),
            "per_subaddress": [
                {
                    "address_index": i,
                    "address": ledger.address(account_index, i),
                    "balance": ledger.balance(account_index, i),
                    "unlocked_balance": ledger.unlocked_balance(account_index, i),
                    "label": ledger.subaddress_label(account_index, i),
                    "num_unspent_outputs": ledger.num_unspent_outputs(account_index, i),
                }
                for i in indices
            ],
        }
    if method in ("transfer", "transfer_split"):
        ring_size = params.get("ring_size")
        created = ledger.create_transactions(
            [(d["address"], d["amount"]) for d in params["destinations"]],
            params.get("account_index", 0),
            params.get("priority", 0),
            ring_size,
            params.get("fee"),
            method == "transfer_split",
        )
        if method == "transfer":
            tx = created[0]
            return {"tx_hash": tx["tx_hash"], "fee": tx["fee"], "tx_key": tx["tx_key"]}
        return {
            "tx_hash_list": [tx["tx_hash"] for tx in created],
            "fee_list": [tx["fee"] for tx in created],
        }
    if method == "sweep_dust":
        return {"tx_hash_list": ledger.create_dust_sweep()}
    if method == "get_transfers":
        return ledger.transfers()
    if method == "refresh":
        ledger.refresh()
        return {"blocks_fetched": 0, "received_money": False}
    raise FakeLedgerError(f"Method not found: {method}", -32601)


def make_rpc_transport(
    ledger: FakeLedger, calls: list[dict[str, Any]] | None = None
) -> httpx.MockTransport:
    """Serve a ledger as a monero-wallet-rpc JSON-RPC endpoint"""

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        if calls is not None:
            calls.append(payload)
        body: dict[str, Any] = {"jsonrpc": "2.0", "id": payload["id"]}
        try:
            body["result"] = _rpc_result(ledger, payload["method"], payload.get("params") or {})
        except FakeLedgerError as e:
            body["error"] = {"code": e.code, "message": str(e)}
        return httpx.Response(200, json=body)

    return httpx.MockTransport(handler)


def funded_ledger() -> FakeLedger:
    """
    Ledger with two accounts:

    - account 0: subaddress 0 (10 XMR + dust), subaddress 1 (2 XMR)
    - account 1 "savings": subaddress 0 (3 XMR)
    """
    ledger = FakeLedger()
    ledger.add_subaddress(0, "")
    savings = ledger.add_account("savings")
    ledger.set_account_tag([savings], "savings")
    ledger.fund(0, 0, 10 * XMR)
    ledger.fund(0, 1, 2 * XMR)
    ledger.fund(savings, 0, 3 * XMR)
    ledger.fund(0, 0, 50_000)
    return ledger


def rpc_wallet_for(
    ledger: FakeLedger, calls: list[dict[str, Any]] | None = None
) -> MoneroWalletRpc:
    return MoneroWalletRpc(
        rpc_url="http://wallet-rpc.test:18082",
        network=NetworkType.MAINNET,
        transport=make_rpc_transport(ledger, calls),
    )


def native_wallet_for(ledger: FakeLedger | SkewedHandle) -> MoneroWalletNative:
    return MoneroWalletNative(ledger, network=NetworkType.MAINNET)  # type: ignore[arg-type]


@pytest.fixture
def ledger() -> FakeLedger:
    return funded_ledger()


@pytest_asyncio.fixture(params=["rpc", "native"])
async def wallet(
    request: pytest.FixtureRequest, ledger: FakeLedger
) -> AsyncGenerator[MoneroWalletRpc | MoneroWalletNative]:
    """Each contract test runs once per backend"""
    backend = rpc_wallet_for(ledger) if request.param == "rpc" else native_wallet_for(ledger)
    yield backend
    await backend.close()
