"""
Area unit conversion.

1 Bigha = 5 Katha = 100 Lessa, 1 Katha = 20 Lessa.
"""

import math
from typing import Any

LESSA_PER_BIGHA = 100
LESSA_PER_KATHA = 20


def to_quantity(value: Any) -> float:
    """
    Parse one area field. None, blank, non-numeric, non-finite and negative
    input all count as 0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def normalize(bigha: Any = 0, katha: Any = 0, lessa: Any = 0) -> float:
    """Convert a bigha/katha/lessa triple to total lessa. Never raises."""
    return (to_quantity(bigha) * LESSA_PER_BIGHA
            + to_quantity(katha) * LESSA_PER_KATHA
            + to_quantity(lessa))


def is_invalid_area_text(text: Any) -> bool:
    """True when a non-empty field is not a non-negative number (for form hints)."""
    if text is None:
        return False
    if isinstance(text, str):
        if not text.strip():
            return False
        try:
            number = float(text)
        except ValueError:
            return True
        return not math.isfinite(number) or number < 0
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return not math.isfinite(text) or text < 0
    return True
