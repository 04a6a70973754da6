"""Formatting and conversion utilities."""

from datetime import datetime, timezone
from decimal import Decimal

from inheritance_vault.constants import NATIVE_SYMBOL, WEI_PER_NATIVE
from inheritance_vault.models import PeriodUnit


def as_int(value, *, default: int = 0) -> int:
    """Convert value to int, handling various types."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.startswith("0x"):
            return int(v, 16)
        return int(v)
    return int(value)


def normalize_hex_str(value) -> str:
    """Normalize hex string to 0x-prefixed format."""
    if isinstance(value, (bytes, bytearray)):
        return f"0x{value.hex()}"
    if hasattr(value, "hex") and not isinstance(value, str):
        hex_str = value.hex()
        return hex_str if hex_str.startswith("0x") else f"0x{hex_str}"
    s = str(value).strip()
    if s.lower().startswith("0x"):
        return f"0x{s[2:]}"
    return f"0x{s}"


def short_hex(value: str, *, head: int = 10, tail: int = 6) -> str:
    """Shorten an address or hash for display."""
    if len(value) <= head + tail:
        return value
    return f"{value[:head]}...{value[-tail:]}"


def format_native(value_wei: int, *, decimals: int = 6) -> str:
    """Format wei value in the native currency."""
    amount = Decimal(value_wei) / WEI_PER_NATIVE
    s = f"{amount:.{decimals}f}".rstrip("0").rstrip(".")
    return f"{s} {NATIVE_SYMBOL}"


def allocation_percentage(allocation: int, balance: int) -> float:
    """Share of `balance` as a percentage with two decimals. Display only."""
    if balance <= 0:
        return 0.0
    return (allocation * 10000 // balance) / 100


def format_duration(seconds: int) -> str:
    """Format seconds as e.g. `2d 3h 4m`. Seconds are only shown below one day."""
    seconds = abs(int(seconds))
    if seconds == 0:
        return "Now"

    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    parts: list[str] = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 and days == 0:
        parts.append(f"{secs}s")
    return " ".join(parts) or "0s"


def format_period(count: int, unit: PeriodUnit) -> str:
    """Format a check-in period, singular when count is 1."""
    unit_str = unit.value[:-1] if count == 1 else unit.value
    return f"{count} {unit_str}"


def format_timestamp(timestamp: int) -> str:
    """Format a unix timestamp as a UTC date string."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
