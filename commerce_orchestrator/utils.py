"""Shared utilities used across the commerce orchestrator."""

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

_CENTS = Decimal("0.01")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("985 106 9717")
        '9851069717'
        >>> normalize_phone("+977 (985) 106-9717")
        '+9779851069717'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def round_money(amount: Union[int, float, Decimal]) -> float:
    """Round a monetary amount half-up to two decimal places.

    Goes through ``str`` so binary float artefacts do not flip the rounding
    direction (``round_money(2.675) == 2.68``, unlike ``round(2.675, 2)``).
    """
    return float(Decimal(str(amount)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def format_money(amount: Union[int, float, Decimal]) -> str:
    """Format an amount the way prices are quoted to customers: ``Rs. 2,500.00``."""
    return f"Rs. {round_money(amount):,.2f}"
