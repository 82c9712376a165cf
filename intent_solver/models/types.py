"""Shared type definitions for intent models.

Ledger view functions return u64 values as decimal strings; the models keep
them as Python ints so arithmetic never goes through floats.
"""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field

from intent_solver.safe_int import U64_MAX


def validate_u64(value: Any) -> int:
    """Validate that a value is a valid u64, accepting ints or decimal strings.

    Args:
        value: Value to validate (string or int)

    Returns:
        The value as an int

    Raises:
        ValueError: If value is not a non-negative integer within u64 range
    """
    if isinstance(value, bool):
        raise ValueError("U64 cannot be a boolean")

    if isinstance(value, str):
        try:
            value = int(value)
        except ValueError as err:
            raise ValueError(f"U64 must be a decimal integer string: '{value}'") from err

    if not isinstance(value, int):
        raise ValueError(f"U64 must be string or int, got {type(value).__name__}")

    if value < 0:
        raise ValueError(f"U64 cannot be negative: {value}")
    if value > U64_MAX:
        raise ValueError(f"U64 overflow: {value} > 2^64-1")
    return value


# Token amount in the asset's smallest unit
Amount = Annotated[
    int,
    BeforeValidator(validate_u64),
    Field(description="u64 amount in the token's smallest unit"),
]

# Unix timestamp in seconds, as stored by the ledger
Timestamp = Annotated[
    int,
    BeforeValidator(validate_u64),
    Field(description="Unix timestamp in seconds"),
]

# Account or token address (up to 32 bytes of hex)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{1,64}$")]


def normalize_address(address: str) -> str:
    """Normalize an address to lowercase, 0x-prefixed, 64 hex chars.

    Short-form addresses (e.g. "0x1") are left-padded with zeros, so two
    spellings of the same account compare equal.

    Raises:
        ValueError: If the address is not hex or longer than 32 bytes
    """
    addr = address.lower()
    if addr.startswith("0x"):
        addr = addr[2:]
    if not addr or len(addr) > 64:
        raise ValueError(f"Invalid address: {address}")
    try:
        int(addr, 16)
    except ValueError as err:
        raise ValueError(f"Invalid address: {address}") from err
    return "0x" + addr.rjust(64, "0")


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid account address."""
    if not isinstance(address, str):
        return False
    try:
        normalize_address(address)
    except ValueError:
        return False
    return True


def same_address(a: str | None, b: str | None) -> bool:
    """Compare two addresses, ignoring case and short-form padding."""
    if a is None or b is None:
        return False
    try:
        return normalize_address(a) == normalize_address(b)
    except ValueError:
        return a.lower() == b.lower()
