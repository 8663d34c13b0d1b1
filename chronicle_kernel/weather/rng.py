"""
String-seeded linear-congruential generator.

Every stochastic decision in the weather engine opens its own stream keyed by
``"{seed}:{decision}:{time}"``, so the same inputs always replay the same
draws and unrelated decisions never share state.
"""

from typing import Callable, Dict, TypeVar

_MODULUS = 2 ** 32
_MULTIPLIER = 1664525
_INCREMENT = 1013904223

K = TypeVar("K")


def string_hash(text: str) -> int:
    """31-multiplier rolling hash over UTF-16 code units, wrapped to signed 32 bits."""
    data = text.encode("utf-16-le")
    value = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    if value >= 2 ** 31:
        value -= 2 ** 32
    return value


def seeded_random(key: str) -> Callable[[], float]:
    """Return a generator of floats in [0, 1) fully determined by ``key``."""
    state = abs(string_hash(key)) + 1

    def _next() -> float:
        nonlocal state
        state = (state * _MULTIPLIER + _INCREMENT) % _MODULUS
        return state / _MODULUS

    return _next


def pick_weighted(random: Callable[[], float], weights: Dict[K, float]) -> K:
    """Weighted draw over positive weights, in insertion order. Consumes one value."""
    entries = [(key, weight) for key, weight in weights.items() if weight > 0]
    if not entries:
        raise ValueError("pick_weighted needs at least one positive weight")
    total = sum(weight for _, weight in entries)
    target = random() * total
    cumulative = 0.0
    for key, weight in entries:
        cumulative += weight
        if target <= cumulative:
            return key
    return entries[-1][0]
