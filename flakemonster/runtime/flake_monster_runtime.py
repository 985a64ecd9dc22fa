"""
flake_monster_runtime.py

Injected by flakemonster. DO NOT edit manually.
This file is removed during restore.
"""

import asyncio

_MASK32 = 0xFFFFFFFF

_defaults = {"min_ms": 0, "max_ms": 50}


def _hash_string(text):
    data = text.encode("utf-16-le", errors="surrogatepass")
    h = 5381
    for i in range(0, len(data), 2):
        h = ((h << 5) + h + (data[i] | (data[i + 1] << 8))) & _MASK32
    return h


def _mulberry32_first(seed):
    state = (seed + 0x6D2B79F5) & _MASK32
    t = ((state ^ (state >> 15)) * (1 | state)) & _MASK32
    t = ((t + (((t ^ (t >> 7)) * (61 | t)) & _MASK32)) & _MASK32) ^ t
    return ((t ^ (t >> 14)) & _MASK32) / 4294967296


def resolve_delay(seed, file, fn, n, min_ms=None, max_ms=None):
    """Derive the delay for (seed, file, fn, n) the same way injection does."""
    lo = _defaults["min_ms"] if min_ms is None else min_ms
    hi = _defaults["max_ms"] if max_ms is None else max_ms
    context_seed = (seed + _hash_string(f"{file}:{fn}:{n}")) & _MASK32
    return int(lo + _mulberry32_first(context_seed) * (hi - lo) + 0.5)


def configure(min_ms=None, max_ms=None):
    """Override the default delay range used for derived delays."""
    if min_ms is not None:
        _defaults["min_ms"] = min_ms
    if max_ms is not None:
        _defaults["max_ms"] = max_ms


async def __FlakeMonster__(delay_ms=None, *, seed=0, file="", fn="", n=0, min_ms=None, max_ms=None):
    """Suspend for a literal delay, or one derived from the injection context."""
    if delay_ms is None:
        delay_ms = resolve_delay(seed, file, fn, n, min_ms, max_ms)
    await asyncio.sleep(delay_ms / 1000)
