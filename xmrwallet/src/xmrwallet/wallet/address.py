"""
Monero address syntax checks.

Only the textual shape is validated here (alphabet, length, network prefix).
Checksum verification needs the Keccak engine of the backend, so a
syntactically valid but corrupted address is still rejected by the backend
itself (mapped to InvalidAddressError).
"""

from __future__ import annotations

from enum import Enum

from xmrwallet.errors import InvalidAddressError

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE58_CHARS = frozenset(BASE58_ALPHABET)

# Standard addresses and subaddresses encode 69 bytes, integrated ones 77
STANDARD_ADDRESS_LENGTH = 95
INTEGRATED_ADDRESS_LENGTH = 106


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    STAGENET = "stagenet"


class AddressType(str, Enum):
    STANDARD = "standard"
    SUBADDRESS = "subaddress"
    INTEGRATED = "integrated"


# Leading base58 character for each network / address type
ADDRESS_PREFIXES: dict[NetworkType, dict[str, AddressType]] = {
    NetworkType.MAINNET: {
        "4": AddressType.STANDARD,
        "8": AddressType.SUBADDRESS,
    },
    NetworkType.TESTNET: {
        "9": AddressType.STANDARD,
        "A": AddressType.INTEGRATED,
        "B": AddressType.SUBADDRESS,
    },
    NetworkType.STAGENET: {
        "5": AddressType.STANDARD,
        "7": AddressType.SUBADDRESS,
    },
}


def get_address_type(address: str, network: NetworkType | None = None) -> AddressType:
    """
    Classify an address, validating its syntax.

    Args:
        address: Base58 Monero address
        network: Expected network, or None to accept any network

    Returns:
        The address type

    Raises:
        InvalidAddressError: If the address is malformed or for another network
    """
    if not isinstance(address, str) or not address:
        raise InvalidAddressError("Address must be a non-empty string")

    if len(address) not in (STANDARD_ADDRESS_LENGTH, INTEGRATED_ADDRESS_LENGTH):
        raise InvalidAddressError(f"Invalid address length {len(address)}: {address!r}")

    invalid = set(address) - _BASE58_CHARS
    if invalid:
        raise InvalidAddressError(f"Address contains non-base58 characters: {sorted(invalid)}")

    networks = [network] if network is not None else list(NetworkType)
    for net in networks:
        addr_type = ADDRESS_PREFIXES[net].get(address[0])
        if addr_type is None:
            continue
        # Mainnet integrated addresses share the '4' prefix but are longer
        if len(address) == INTEGRATED_ADDRESS_LENGTH:
            return AddressType.INTEGRATED
        if addr_type == AddressType.INTEGRATED:
            break
        return addr_type

    expected = network.value if network is not None else "any network"
    raise InvalidAddressError(f"Address prefix {address[0]!r} is not valid for {expected}")


def validate_address(address: str, network: NetworkType | None = None) -> str:
    """Validate an address and return it unchanged"""
    get_address_type(address, network)
    return address
