"""Helpers shared by the domain gates."""

from __future__ import annotations

import math


def percentage(done: int, total: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when there is nothing to do."""
    if total == 0:
        return 0
    return math.floor(done * 100 / total + 0.5)
