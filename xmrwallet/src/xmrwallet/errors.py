"""
Wallet error taxonomy.

Validation errors that can be detected from local state are raised before the
backend is contacted. Failures reported by a backend are mapped onto the same
classes by error_from_code(), anything unrecognised becomes a BackendError.
"""

from __future__ import annotations

from typing import Any

# monero-wallet-rpc error codes (wallet_rpc_server_error_codes.h)
RPC_ERROR_UNKNOWN = -1
RPC_ERROR_WRONG_ADDRESS = -2
RPC_ERROR_DAEMON_IS_BUSY = -3
RPC_ERROR_GENERIC_TRANSFER_ERROR = -4
RPC_ERROR_WRONG_INDEX = -12
RPC_ERROR_NOT_OPEN = -13
RPC_ERROR_ACCOUNT_INDEX_OUT_OF_BOUNDS = -14
RPC_ERROR_ADDRESS_INDEX_OUT_OF_BOUNDS = -15
RPC_ERROR_TX_NOT_POSSIBLE = -16
RPC_ERROR_NOT_ENOUGH_MONEY = -17
RPC_ERROR_TX_TOO_LARGE = -18
RPC_ERROR_NOT_ENOUGH_OUTS_TO_MIX = -19
RPC_ERROR_ZERO_DESTINATION = -20
RPC_ERROR_NOT_ENOUGH_UNLOCKED_MONEY = -46


class WalletError(Exception):
    """Base class for all wallet errors"""

    pass


class NotFoundError(WalletError):
    """Unknown account or subaddress index"""

    pass


class InvalidAddressError(WalletError):
    """Malformed destination address"""

    pass


class InsufficientFundsError(WalletError):
    """Requested amount exceeds the unlocked balance in scope"""

    pass


class BackendError(WalletError):
    """Opaque failure reported by the wallet backend."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"backend error {self.code}: {self.message}"


class VerificationError(WalletError):
    """
    Raised by the consistency verifier at the first divergence found.

    Attributes:
        path: Entity location, e.g. "accounts[1].subaddresses[2]"
        field: Name of the differing field (None for structural checks)
        left: Value reported by the first wallet
        right: Value reported by the second wallet
    """

    def __init__(
        self,
        reason: str,
        path: str = "wallet",
        field: str | None = None,
        left: Any = None,
        right: Any = None,
    ):
        self.reason = reason
        self.path = path
        self.field = field
        self.left = left
        self.right = right
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.path if self.field is None else f"{self.path}.{self.field}"
        return f"{location}: {self.reason} (wallet1={self.left!r}, wallet2={self.right!r})"


class HeightMismatchError(VerificationError):
    """Second wallet is behind the first one"""

    pass


class IdentityMismatchError(VerificationError):
    """Wallets are not built from the same keys"""

    pass


class BalanceMismatchError(VerificationError):
    """Balances still differ after one re-sync"""

    pass


class DivergenceError(VerificationError):
    """Chain-derived account, subaddress or transaction state differs"""

    pass


def error_from_code(code: int | None, message: str) -> WalletError:
    """
    Map a backend error code onto the wallet error taxonomy.

    Both the JSON-RPC server and the native library report wallet2 error
    codes, so the same table serves both backends.
    """
    if code == RPC_ERROR_WRONG_ADDRESS:
        return InvalidAddressError(message)
    if code in (RPC_ERROR_ACCOUNT_INDEX_OUT_OF_BOUNDS, RPC_ERROR_ADDRESS_INDEX_OUT_OF_BOUNDS):
        return NotFoundError(message)
    if code in (RPC_ERROR_NOT_ENOUGH_MONEY, RPC_ERROR_NOT_ENOUGH_UNLOCKED_MONEY):
        return InsufficientFundsError(message)
    # Older servers report a shortfall as a generic transfer error
    if code == RPC_ERROR_GENERIC_TRANSFER_ERROR and "not enough" in message.lower():
        return InsufficientFundsError(message)
    return BackendError(message, code)
