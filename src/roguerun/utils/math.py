from __future__ import annotations

import time
from typing import TypeVar

N = TypeVar("N", int, float)


def clamp(value: N, min_value: N, max_value: N) -> N:
    """Clamp a number between min_value and max_value inclusive."""
    return max(min_value, min(value, max_value))


def now_ms() -> int:
    """Current Unix time in integer milliseconds."""
    return int(time.time() * 1000)
