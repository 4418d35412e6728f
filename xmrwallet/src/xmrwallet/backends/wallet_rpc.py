"""
monero-wallet-rpc backend.

Talks JSON-RPC 2.0 to a running monero-wallet-rpc instance. The wallet RPC
server holds the keys and does all cryptography; this class only maps its
results onto the ledger entities.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from xmrwallet.backends.base import MoneroWallet
from xmrwallet.errors import BackendError, error_from_code
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

# Timeout for regular RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0

# Timeout for refresh calls - a wallet far behind the chain can take minutes
REFRESH_RPC_TIMEOUT = 600.0

# Methods that submit transactions; a timeout on these leaves the outcome unknown
SUBMITTING_METHODS = frozenset({"transfer", "transfer_split", "sweep_dust"})

# Environment variable to enable sensitive logging (addresses, destinations)
# WARNING: Enabling this will log wallet addresses to the log
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


class MoneroWalletRpc(MoneroWallet):
    """
    Wallet facade backed by monero-wallet-rpc.

    Authentication uses HTTP digest auth, as configured with the server's
    --rpc-login option.
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:18082",
        rpc_user: str = "",
        rpc_password: str = "",
        network: NetworkType | None = None,
        timeout: float = DEFAULT_RPC_TIMEOUT,
        refresh_timeout: float = REFRESH_RPC_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        rpc_url = rpc_url.rstrip("/")
        if not rpc_url.endswith("/json_rpc"):
            rpc_url = f"{rpc_url}/json_rpc"
        self.rpc_url = rpc_url
        self.rpc_user = rpc_user
        self.network = network
        self.refresh_timeout = refresh_timeout

        auth = httpx.DigestAuth(rpc_user, rpc_password) if rpc_user else None
        # Client for regular RPC calls
        self.client = httpx.AsyncClient(timeout=timeout, auth=auth, transport=transport)
        # Separate client for long-running refreshes
        self._refresh_client = httpx.AsyncClient(
            timeout=refresh_timeout, auth=auth, transport=transport
        )
        self._request_id = 0

    async def _rpc_call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> Any:
        """
        Make a JSON-RPC call to the wallet server.

        Args:
            method: RPC method name
            params: Method parameters
            client: Optional httpx client (uses default client if not provided)

        Returns:
            RPC result

        Raises:
            WalletError: Mapped from the RPC error code
            BackendError: On transport errors and unmapped RPC errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or {},
        }

        use_client = client or self.client

        try:
            response = await use_client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            if method in SUBMITTING_METHODS:
                logger.error(f"RPC call timed out: {method} - outcome unknown, check history")
            else:
                logger.error(f"RPC call timed out: {method} - {e}")
            raise BackendError(f"{method} timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise BackendError(f"{method} failed: {e}") from e
        except ValueError as e:
            logger.error(f"RPC call returned invalid JSON: {method} - {e}")
            raise BackendError(f"{method} returned invalid JSON") from e

        if not isinstance(data, dict):
            raise BackendError(f"{method}: malformed response {data!r}")

        if "error" in data and data["error"]:
            error_info = data["error"]
            error_code = error_info.get("code")
            error_msg = error_info.get("message", str(error_info))
            logger.debug(f"RPC error from {method}: {error_code} {error_msg}")
            raise error_from_code(error_code, error_msg)

        return data.get("result")

    @contextmanager
    def _parsing(self, method: str) -> Iterator[None]:
        """Map a result that does not fit the entity model to BackendError"""
        try:
            yield
        except (KeyError, IndexError, TypeError, AttributeError, ValidationError) as e:
            logger.error(f"Malformed {method} result: {e}")
            raise BackendError(f"{method}: malformed result ({type(e).__name__}: {e})") from e

    # Identity and chain state

    async def get_height(self) -> int:
        result = await self._rpc_call("get_height")
        with self._parsing("get_height"):
            height = result.get("height", 0)
        logger.debug(f"Wallet height: {height}")
        return height

    async def _query_key(self, key_type: str) -> str:
        result = await self._rpc_call("query_key", {"key_type": key_type})
        with self._parsing("query_key"):
            return result["key"]

    async def get_mnemonic(self) -> str:
        return await self._query_key("mnemonic")

    async def get_private_view_key(self) -> str:
        return await self._query_key("view_key")

    async def get_private_spend_key(self) -> str:
        return await self._query_key("spend_key")

    async def get_primary_address(self) -> str:
        result = await self._rpc_call("get_address", {"account_index": 0, "address_index": [0]})
        with self._parsing("get_address"):
            return result["address"]

    async def sync(self) -> None:
        result = await self._rpc_call("refresh", client=self._refresh_client)
        with self._parsing("refresh"):
            blocks_fetched = result.get("blocks_fetched", 0)
        logger.debug(f"Refreshed wallet, {blocks_fetched} blocks fetched")

    # Accounts and subaddresses

    async def _fetch_accounts(self, include_subaddresses: bool) -> list[Account]:
        result = await self._rpc_call("get_accounts")
        with self._parsing("get_accounts"):
            entries = result.get("subaddress_accounts", [])
        accounts = []
        for entry in entries:
            with self._parsing("get_accounts"):
                index = entry["account_index"]
            subaddresses = None
            if include_subaddresses:
                subaddresses = await self._fetch_subaddresses(index)
            with self._parsing("get_accounts"):
                accounts.append(
                    Account(
                        index=index,
                        primary_address=entry["base_address"],
                        label=entry.get("label") or None,
                        tag=entry.get("tag") or None,
                        balance=entry.get("balance", 0),
                        unlocked_balance=entry.get("unlocked_balance", 0),
                        subaddresses=subaddresses,
                    )
                )
        return accounts

    async def _fetch_subaddresses(self, account_index: int) -> list[Subaddress]:
        addresses = await self._rpc_call("get_address", {"account_index": account_index})
        balances = await self._rpc_call(
            "get_balance", {"account_index": account_index, "all_accounts": False}
        )
        with self._parsing("get_address"):
            per_subaddress = {
                entry["address_index"]: entry for entry in balances.get("per_subaddress", [])
            }
            entries = sorted(addresses.get("addresses", []), key=lambda e: e["address_index"])
            subaddresses = []
            for entry in entries:
                index = entry["address_index"]
                funds = per_subaddress.get(index, {})
                subaddresses.append(
                    Subaddress(
                        account_index=account_index,
                        index=index,
                        address=entry["address"],
                        label=entry.get("label") or None,
                        balance=funds.get("balance", 0),
                        unlocked_balance=funds.get("unlocked_balance", 0),
                        num_unspent_outputs=funds.get("num_unspent_outputs", 0),
                        is_used=bool(entry.get("used", False)),
                    )
                )
        return subaddresses

    async def _create_account(self, label: str | None) -> Account:
        params = {"label": label} if label else {}
        result = await self._rpc_call("create_account", params)
        with self._parsing("create_account"):
            index = result["account_index"]
        if label:
            await self._rpc_call("tag_accounts", {"tag": label, "accounts": [index]})
        if SENSITIVE_LOGGING:
            logger.debug(f"Account {index} base address: {result.get('address')}")

        accounts = await self._fetch_accounts(include_subaddresses=False)
        subaddresses = await self._fetch_subaddresses(index)
        with self._parsing("get_accounts"):
            return accounts[index].model_copy(update={"subaddresses": subaddresses})

    async def _create_subaddress(self, account_index: int, label: str | None) -> Subaddress:
        params: dict[str, Any] = {"account_index": account_index}
        if label:
            params["label"] = label
        result = await self._rpc_call("create_address", params)
        with self._parsing("create_address"):
            return Subaddress(
                account_index=account_index,
                index=result["address_index"],
                address=result["address"],
                label=label or None,
            )

    async def _fetch_balances(
        self, account_index: int | None, subaddress_index: int | None
    ) -> tuple[int, int]:
        if account_index is None:
            result = await self._rpc_call("get_accounts")
            with self._parsing("get_accounts"):
                return result.get("total_balance", 0), result.get("total_unlocked_balance", 0)

        params: dict[str, Any] = {"account_index": account_index}
        if subaddress_index is not None:
            params["address_indices"] = [subaddress_index]
        result = await self._rpc_call("get_balance", params)
        with self._parsing("get_balance"):
            if subaddress_index is None:
                return result.get("balance", 0), result.get("unlocked_balance", 0)

            for entry in result.get("per_subaddress", []):
                if entry["address_index"] == subaddress_index:
                    return entry.get("balance", 0), entry.get("unlocked_balance", 0)
        return 0, 0

    # Sending

    @staticmethod
    def _transfer_params(
        payments: list[Payment],
        account_index: int,
        priority: TransferPriority,
        fee: int | None,
        mixin: int | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "destinations": [{"address": p.address, "amount": p.amount} for p in payments],
            "account_index": account_index,
            "priority": int(priority),
        }
        if mixin is not None:
            params["ring_size"] = mixin + 1
        if fee is not None:
            # Ignored by current servers, fees follow the priority
            params["fee"] = fee
        return params

    async def _transfer(
        self,
        payments: list[Payment],
        account_index: int,
        priority: TransferPriority,
        fee: int | None,
        mixin: int | None,
    ) -> ConstructedTransaction:
        params = self._transfer_params(payments, account_index, priority, fee, mixin)
        params["get_tx_key"] = True
        if SENSITIVE_LOGGING:
            logger.debug(f"transfer destinations: {params['destinations']}")
        result = await self._rpc_call("transfer", params)
        with self._parsing("transfer"):
            return ConstructedTransaction(
                tx_hash=result["tx_hash"],
                fee=result["fee"],
                mixin=mixin,
                tx_key=result["tx_key"],
                payments=[p.model_copy(update={"tx_hash": result["tx_hash"]}) for p in payments],
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
        params = self._transfer_params(payments, account_index, priority, fee, mixin)
        params["new_algorithm"] = new_algorithm
        result = await self._rpc_call("transfer_split", params)
        with self._parsing("transfer_split"):
            hashes = result.get("tx_hash_list", [])
            fees = result.get("fee_list", [])
        if len(hashes) != len(fees):
            raise BackendError(
                f"transfer_split returned {len(hashes)} hashes but {len(fees)} fees"
            )
        with self._parsing("transfer_split"):
            return [
                SplitTransaction(tx_hash=tx_hash, fee=tx_fee, mixin=mixin)
                for tx_hash, tx_fee in zip(hashes, fees, strict=True)
            ]

    async def _sweep_dust(self) -> list[SweptTransaction]:
        result = await self._rpc_call("sweep_dust")
        with self._parsing("sweep_dust"):
            return [SweptTransaction(tx_hash=h) for h in (result or {}).get("tx_hash_list", [])]

    # History

    async def _fetch_transactions(self) -> list[WalletTransaction]:
        result = await self._rpc_call(
            "get_transfers",
            {
                "in": True,
                "out": True,
                "pending": True,
                "failed": True,
                "pool": True,
                "all_accounts": True,
            },
        )
        with self._parsing("get_transfers"):
            return build_transactions(result or {})

    async def close(self) -> None:
        await self.client.aclose()
        await self._refresh_client.aclose()

    def __repr__(self) -> str:
        return f"MoneroWalletRpc({self.rpc_url!r})"

