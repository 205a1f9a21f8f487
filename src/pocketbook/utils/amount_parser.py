"""Parsing of money amounts typed at the prompt or found in CSV files."""

from decimal import Decimal, InvalidOperation
import re

# Soles, dollars and the other symbols that show up in bank exports
_CURRENCY = re.compile(r"S/|[$€£¥]")


def parse_amount(amount_str: str) -> Decimal:
    """Read an amount such as "S/ 1,234.50", "-80" or "(80)".

    Currency symbols and thousands separators are dropped and accounting
    parentheses mean a negative value. The sign is returned as written;
    records normalize it from their movement type afterwards.

    Raises:
        ValueError: If nothing numeric remains, or the value is NaN or infinite
    """
    text = (amount_str or "").strip()
    if not text:
        raise ValueError("Empty amount string")

    negate = text[0] == "(" and text[-1] == ")"
    if negate:
        text = text[1:-1]
    text = _CURRENCY.sub("", text).replace(",", "").strip()

    try:
        amount = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{text}'") from e
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{text}'")
    return -amount if negate else amount
