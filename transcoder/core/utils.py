# Small numeric helpers shared across services

import math


def round_half_up(value: float) -> int:
    """Round .5 upwards (2.5 -> 3, -2.5 -> -2) instead of Python's banker's rounding"""
    return int(math.floor(value + 0.5))


def format_number(value: float) -> str:
    """Shortest text that reads back as value, integral values without a trailing .0"""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)
