"""
Display rounding helpers.
"""

import math


def round_half_up(value: float, places: int = 0) -> float:
    """
    Round to a fixed number of decimals with halves rounded upward.

    ``round()`` uses banker's rounding (``round(0.125, 2) == 0.12``); dashboard
    figures round halves up instead (``9.25 -> 9.3``, ``-9.25 -> -9.2``).
    """
    factor = 10 ** places
    return math.floor(value * factor + 0.5) / factor
