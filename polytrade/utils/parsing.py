# polytrade/utils/parsing.py
"""
Command-line argument parsing for on-chain values.

All parsers raise ``ValidationError`` so the CLI reports them like any
other construction failure.
"""

from decimal import Decimal, InvalidOperation

from eth_utils import is_address, to_checksum_address

from polytrade.exceptions import ValidationError

USDC_DECIMALS = 6
ZERO_BYTES32 = b"\x00" * 32


def parse_address(value: str, name: str = "address") -> str:
    """Checksummed form of a 0x-prefixed 20-byte address."""
    text = value.strip()
    if not is_address(text):
        raise ValidationError(f"Invalid {name}", {name: value})
    return to_checksum_address(text)


def parse_bytes32(value: str, name: str = "id") -> bytes:
    """Decode a 0x-prefixed 32-byte hex value such as a condition id."""
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if len(text) != 64:
        raise ValidationError(f"{name} must be 32 bytes of hex", {name: value})
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValidationError(f"{name} is not valid hex", {name: value}) from None


def usdc_to_raw(value: Decimal) -> int:
    """
    Scale a USDC amount to 6-decimal base units.

    Raises:
        ValidationError: the amount has more than 6 decimal places
    """
    raw = value * (Decimal(10) ** USDC_DECIMALS)
    if raw != raw.to_integral_value():
        raise ValidationError(
            f"Amount {value} exceeds USDC precision (max 6 decimal places)",
            {"amount": value},
        )
    return int(raw)


def _decimal(text: str) -> Decimal:
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        raise ValidationError(f"Invalid amount: {text}", {"amount": text}) from None
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {text}", {"amount": text})
    return value


def parse_usdc_amount(text: str) -> int:
    """A strictly positive USDC amount, in base units."""
    value = _decimal(text)
    if value <= 0:
        raise ValidationError("Amount must be positive", {"amount": text})
    return usdc_to_raw(value)


def parse_usdc_amounts(text: str) -> list[int]:
    """Comma-separated non-negative USDC amounts, in base units."""
    amounts = []
    for part in text.split(","):
        value = _decimal(part)
        if value < 0:
            raise ValidationError(
                f"Amount must be non-negative: {part.strip()}", {"amount": part.strip()}
            )
        amounts.append(usdc_to_raw(value))
    return amounts


def parse_int_csv(text: str) -> list[int]:
    """Comma-separated non-negative integers, e.g. index sets ``1,2``."""
    values = []
    for part in text.split(","):
        trimmed = part.strip()
        if not trimmed.isdigit():
            raise ValidationError(f"Invalid value: {trimmed}", {"value": trimmed})
        values.append(int(trimmed))
    return values
