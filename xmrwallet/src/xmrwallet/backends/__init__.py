"""
Wallet backend implementations.

Available backends:
- MoneroWalletRpc: monero-wallet-rpc over JSON-RPC
- MoneroWalletNative: embedded wallet library running on worker threads

Both implement the MoneroWallet facade; callers and the verifier only depend
on that interface.
"""

from xmrwallet.backends.base import MoneroWallet
from xmrwallet.backends.native import MoneroWalletNative, NativeWalletHandle
from xmrwallet.backends.wallet_rpc import MoneroWalletRpc

__all__ = [
    "MoneroWallet",
    "MoneroWalletNative",
    "MoneroWalletRpc",
    "NativeWalletHandle",
]
