"""
Tests for Monero address syntax checks.
"""

from __future__ import annotations

import pytest
from conftest import fake_address

from xmrwallet.errors import InvalidAddressError
from xmrwallet.wallet.address import (
    INTEGRATED_ADDRESS_LENGTH,
    AddressType,
    NetworkType,
    get_address_type,
    validate_address,
)


class TestGetAddressType:
    @pytest.mark.parametrize(
        ("prefix", "network", "expected"),
        [
            ("4", NetworkType.MAINNET, AddressType.STANDARD),
            ("8", NetworkType.MAINNET, AddressType.SUBADDRESS),
            ("9", NetworkType.TESTNET, AddressType.STANDARD),
            ("B", NetworkType.TESTNET, AddressType.SUBADDRESS),
            ("5", NetworkType.STAGENET, AddressType.STANDARD),
            ("7", NetworkType.STAGENET, AddressType.SUBADDRESS),
        ],
    )
    def test_prefixes(self, prefix: str, network: NetworkType, expected: AddressType) -> None:
        address = fake_address(prefix, "prefix-test")
        assert get_address_type(address, network) == expected
        assert get_address_type(address) == expected

    def test_integrated_address(self) -> None:
        address = fake_address("4", "integrated") + "1" * (INTEGRATED_ADDRESS_LENGTH - 95)
        assert get_address_type(address, NetworkType.MAINNET) == AddressType.INTEGRATED

    def test_wrong_network(self) -> None:
        """A stagenet address is rejected on mainnet."""
        with pytest.raises(InvalidAddressError, match="not valid for mainnet"):
            get_address_type(fake_address("5", "stagenet"), NetworkType.MAINNET)

    def test_wrong_length(self) -> None:
        with pytest.raises(InvalidAddressError, match="length"):
            get_address_type(fake_address("4", "short")[:-1])

    def test_non_base58_characters(self) -> None:
        address = "0" + fake_address("4", "zero")[1:]
        with pytest.raises(InvalidAddressError, match="non-base58"):
            get_address_type(address)

    def test_empty(self) -> None:
        with pytest.raises(InvalidAddressError):
            get_address_type("")


def test_validate_address_returns_address() -> None:
    address = fake_address("8", "subaddress")
    assert validate_address(address, NetworkType.MAINNET) == address
