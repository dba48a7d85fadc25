import datetime
import decimal
import functools
import re


def julian_to_date(value: int) -> datetime.date:
    # day 1 of the ledger's day count is 0001-01-01, same as the proleptic ordinal
    return datetime.date.fromordinal(value)


def date_to_julian(value: datetime.date) -> int:
    return value.toordinal()


def parse_amount(
    text: str,
    decimal_separator: str = ".",
    thousands_separator: str | None = None,
) -> decimal.Decimal:
    """Parse a locale formatted amount string into a Decimal.

    Handles formats like "-1.234,56" (decimal_separator=",", thousands_separator=".")
    or "1,234.56" (decimal_separator=".", thousands_separator=",").

    Raises:
        ValueError: If the amount string cannot be parsed
    """
    if text is None or not text.strip():
        raise ValueError("Empty amount string")
    value = text.strip().replace(" ", "")
    if thousands_separator:
        value = value.replace(thousands_separator, "")
    if decimal_separator != ".":
        value = value.replace(decimal_separator, ".")
    try:
        amount = decimal.Decimal(value)
    except decimal.InvalidOperation as exc:
        raise ValueError(f"Could not parse amount {text!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount {text!r}")
    return amount


def format_amount(amount: decimal.Decimal, decimal_separator: str = ".") -> str:
    value = format(amount, "f")
    if decimal_separator != ".":
        value = value.replace(".", decimal_separator)
    return value


def wildcard_pattern(name: str) -> str:
    # words of a human readable name may be separated by anything
    return name.replace(" ", ".*")


@functools.lru_cache(maxsize=512)
def compile_pattern(pattern: str, ignore_case: bool = False) -> re.Pattern:
    return re.compile(pattern, flags=re.IGNORECASE if ignore_case else 0)


def search(pattern: str, value: str | None, ignore_case: bool = False) -> bool:
    if value is None:
        return False
    return compile_pattern(pattern, ignore_case).search(value) is not None
