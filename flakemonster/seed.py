"""
Deterministic delay derivation.

Every injection point gets its own sub-seed derived from the run seed and a
context string of the form ``"<file>:<container>:<index>"``. All arithmetic is
pinned to 32-bit wraparound so the same seed reproduces the same delays in
every process, on every platform, and in the bundled JavaScript runtime.
"""

import random
from typing import Callable

MASK32 = 0xFFFFFFFF

DJB2_START = 5381
MULBERRY_INCREMENT = 0x6D2B79F5


def to_int32(value: int) -> int:
    """Wrap an arbitrary integer into the signed 32-bit range."""
    value &= MASK32
    return value - 0x100000000 if value & 0x80000000 else value


def hash_string(text: str) -> int:
    """
    DJB2 hash of a string, returned as an unsigned 32-bit integer.

    The hash runs over UTF-16 code units rather than code points, matching
    how the JavaScript runtime walks a string with ``charCodeAt``.
    """
    data = text.encode("utf-16-le", errors="surrogatepass")
    h = DJB2_START
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = ((h << 5) + h + unit) & MASK32
    return h


def derive_seed(base_seed: int, context: str) -> int:
    """Combine a base seed with a context string into a signed int32 sub-seed."""
    return to_int32(base_seed + hash_string(context))


def create_rng(seed: int) -> Callable[[], float]:
    """Return a Mulberry32 generator producing floats in [0, 1)."""
    state = seed & MASK32

    def next_float() -> float:
        nonlocal state
        state = (state + MULBERRY_INCREMENT) & MASK32
        t = ((state ^ (state >> 15)) * (1 | state)) & MASK32
        t = ((t + (((t ^ (t >> 7)) * (61 | t)) & MASK32)) & MASK32) ^ t
        return ((t ^ (t >> 14)) & MASK32) / 4294967296

    return next_float


def compute_delay_ms(
    seed: int,
    file_path: str,
    container: str,
    index: int,
    min_ms: int = 0,
    max_ms: int = 50,
) -> int:
    """
    Compute the delay in milliseconds for one injection point.

    Args:
        seed: The run's base seed.
        file_path: Path of the file relative to the project root.
        container: Name of the enclosing function, or a synthetic name.
        index: 0-based injection index within the container.
        min_ms: Lower bound of the delay range.
        max_ms: Upper bound of the delay range.

    Returns:
        An integer in [min_ms, max_ms], rounded half up.
    """
    context = f"{file_path}:{container}:{index}"
    rng = create_rng(derive_seed(seed, context))
    value = min_ms + rng() * (max_ms - min_ms)
    # Round half up; Python's round() would use banker's rounding.
    return int(value + 0.5)


def random_seed() -> int:
    """Pick a fresh non-negative int32 seed for ``--seed auto``."""
    return random.randint(0, 0x7FFFFFFF)


def parse_seed(value: str | int) -> int:
    """
    Parse a seed from CLI or config input.

    Accepts ``"auto"`` or anything ``int()`` understands. The result is
    wrapped to a signed int32.
    """
    if value == "auto":
        return random_seed()
    try:
        return to_int32(int(value))
    except (TypeError, ValueError):
        raise ValueError(f"Invalid seed: {value!r}") from None
