"""
Utility functions for the application.
"""
from typing import Any, Dict, Iterable
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Timezone-aware current time used for every stored timestamp."""
    return datetime.now(timezone.utc)


def to_money(value: Any) -> Decimal:
    """Normalize an amount to a cent-precision Decimal."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def sum_money(values: Iterable[Any]) -> Decimal:
    return sum((to_money(v) for v in values), Decimal("0.00"))


def format_error(message: str, details: Any = None) -> Dict[str, Any]:
    """Format error response."""
    response = {"error": message}
    if details:
        response["details"] = details
    return response
