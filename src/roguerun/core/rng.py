from __future__ import annotations

import hashlib
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

from ..errors import InternalInvariant

logger = logging.getLogger(__name__)

# Frozen as part of the save-compatibility contract: changing any of these
# breaks determinism for every in-flight run.
RNG_ALGORITHM = "blake2b-64"
RNG_VERSION = 1
_MANTISSA_BITS = 53


def _to_stable_json(value: Any) -> str:
    """Stable JSON encoding for hashing.

    Ensures consistent ordering and representation across processes and
    languages. This is critical to make draws reproducible.
    """
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def draw_at(seed: str, index: int) -> float:
    """Return the draw at ``index`` of the stream for ``seed``, in [0, 1).

    The value is the top 53 bits of BLAKE2b-64 over the canonical JSON payload
    ``{"algo":"blake2b-64","index":i,"seed":s,"version":1}``, divided by 2**53.
    Pure: no state is consulted or mutated.
    """
    if index < 0:
        raise InternalInvariant(f"RNG index must be non-negative, got {index}")
    payload = {
        "algo": RNG_ALGORITHM,
        "index": index,
        "seed": seed,
        "version": RNG_VERSION,
    }
    h = hashlib.blake2b(_to_stable_json(payload).encode("utf-8"), digest_size=8)
    bits = int.from_bytes(h.digest(), "big", signed=False) >> (64 - _MANTISSA_BITS)
    return bits / float(1 << _MANTISSA_BITS)


def new_seed() -> str:
    """Fresh random seed for a new run."""
    return secrets.token_hex(8)


@dataclass(frozen=True)
class RngCursor:
    """Immutable position in a seeded stream.

    ``index`` is the count of numbers already drawn. Every draw helper returns a
    new cursor advanced by exactly one; the old cursor stays valid, so a caller
    that discards the new cursor has consumed nothing.
    """

    seed: str
    index: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.seed, str) or not self.seed:
            raise InternalInvariant("RNG seed must be a non-empty string")
        if self.index < 0:
            raise InternalInvariant(f"RNG index must be non-negative, got {self.index}")

    def peek(self) -> float:
        return draw_at(self.seed, self.index)

    def consumed_since(self, earlier: "RngCursor") -> int:
        if earlier.seed != self.seed or earlier.index > self.index:
            raise InternalInvariant("RNG cursors do not belong to the same stream")
        return self.index - earlier.index


def draw(cursor: RngCursor) -> Tuple[float, RngCursor]:
    """One draw in [0, 1)."""
    value = cursor.peek()
    logger.debug("draw seed=%s index=%d -> %.6f", cursor.seed, cursor.index, value)
    return value, RngCursor(cursor.seed, cursor.index + 1)


def draw_int(cursor: RngCursor, max_exclusive: int) -> Tuple[int, RngCursor]:
    """One draw mapped to an integer in [0, max_exclusive)."""
    if max_exclusive < 1:
        raise InternalInvariant(f"draw_int requires max_exclusive >= 1, got {max_exclusive}")
    value, nxt = draw(cursor)
    return min(int(value * max_exclusive), max_exclusive - 1), nxt


def draw_chance(cursor: RngCursor, probability: float) -> Tuple[bool, RngCursor]:
    """One draw compared against ``probability``; True when the draw falls below it."""
    value, nxt = draw(cursor)
    return value < probability, nxt


def draw_weighted(cursor: RngCursor, weights: Sequence[float]) -> Tuple[int, RngCursor]:
    """One draw selecting an index proportionally to ``weights``.

    Zero weights are never chosen. A draw landing exactly on a cumulative
    boundary goes to the lower index.
    """
    if not weights:
        raise InternalInvariant("draw_weighted requires a non-empty weight sequence")
    total = 0.0
    for i, w in enumerate(weights):
        if w < 0:
            raise InternalInvariant(f"Weight at index {i} must be non-negative, got {w}")
        total += w
    if total <= 0:
        raise InternalInvariant("All weights are zero; cannot make a weighted draw")

    value, nxt = draw(cursor)
    r = value * total
    cumulative = 0.0
    last_positive = 0
    for i, w in enumerate(weights):
        if w == 0:
            continue
        cumulative += w
        last_positive = i
        if r < cumulative:
            return i, nxt
    # Floating point rounding on the final boundary
    return last_positive, nxt


def replay_values(seed: str, count: int) -> List[float]:
    """Draws 0..count-1 of a stream, for audits and replays."""
    return [draw_at(seed, i) for i in range(count)]


__all__ = [
    "RNG_ALGORITHM",
    "RNG_VERSION",
    "RngCursor",
    "draw",
    "draw_at",
    "draw_chance",
    "draw_int",
    "draw_weighted",
    "new_seed",
    "replay_values",
]
