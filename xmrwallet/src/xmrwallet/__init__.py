"""
xmrwallet - Monero wallet client

Unified account/subaddress/transaction model over the wallet RPC server and
embedded native wallet libraries, plus a cross-backend consistency verifier.
"""

__version__ = "0.1.0"

from xmrwallet.backends import MoneroWallet, MoneroWalletNative, MoneroWalletRpc
from xmrwallet.errors import (
    BackendError,
    BalanceMismatchError,
    DivergenceError,
    HeightMismatchError,
    IdentityMismatchError,
    InsufficientFundsError,
    InvalidAddressError,
    NotFoundError,
    VerificationError,
    WalletError,
)
from xmrwallet.verifier import WalletComparator, assert_wallets_equal
from xmrwallet.wallet.models import (
    Account,
    ConstructedTransaction,
    IncomingTransfer,
    OutgoingTransfer,
    Payment,
    SplitTransaction,
    Subaddress,
    SweptTransaction,
    Transaction,
    TransferPriority,
    TxType,
    WalletTransaction,
)

__all__ = [
    "Account",
    "BackendError",
    "BalanceMismatchError",
    "ConstructedTransaction",
    "DivergenceError",
    "HeightMismatchError",
    "IdentityMismatchError",
    "IncomingTransfer",
    "InsufficientFundsError",
    "InvalidAddressError",
    "MoneroWallet",
    "MoneroWalletNative",
    "MoneroWalletRpc",
    "NotFoundError",
    "OutgoingTransfer",
    "Payment",
    "SplitTransaction",
    "Subaddress",
    "SweptTransaction",
    "Transaction",
    "TransferPriority",
    "TxType",
    "VerificationError",
    "WalletComparator",
    "WalletError",
    "WalletTransaction",
    "assert_wallets_equal",
]
