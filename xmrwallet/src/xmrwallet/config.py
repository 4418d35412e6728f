"""
Configuration management for the wallet client.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from xmrwallet.backends.wallet_rpc import (
    DEFAULT_RPC_TIMEOUT,
    REFRESH_RPC_TIMEOUT,
    MoneroWalletRpc,
)
from xmrwallet.wallet.address import NetworkType
from xmrwallet.wallet.models import TransferPriority


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: NetworkType = NetworkType.MAINNET

    wallet_rpc_url: str = "http://127.0.0.1:18082"
    wallet_rpc_user: str = ""
    wallet_rpc_password: str = ""

    rpc_timeout: float = Field(default=DEFAULT_RPC_TIMEOUT, gt=0)
    refresh_timeout: float = Field(default=REFRESH_RPC_TIMEOUT, gt=0)

    default_priority: TransferPriority = TransferPriority.DEFAULT
    default_mixin: int | None = Field(default=None, ge=0)

    log_level: str = "INFO"

    def create_rpc_wallet(self, rpc_url: str | None = None) -> MoneroWalletRpc:
        """Build a wallet RPC client from these settings"""
        return MoneroWalletRpc(
            rpc_url=rpc_url or self.wallet_rpc_url,
            rpc_user=self.wallet_rpc_user,
            rpc_password=self.wallet_rpc_password,
            network=self.network,
            timeout=self.rpc_timeout,
            refresh_timeout=self.refresh_timeout,
        )


def get_settings() -> Settings:
    return Settings()
