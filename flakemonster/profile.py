"""
Injection density policy and the profile that carries it.

The policy decides, statement by statement, whether a suspend point goes in
front of it. The profile bundles the user's mode and delay range and turns
them into per-file ``InjectOptions`` for the adapters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NamedTuple

MODE_LIGHT = "light"
MODE_MEDIUM = "medium"
MODE_HARDCORE = "hardcore"
VALID_MODES = (MODE_LIGHT, MODE_MEDIUM, MODE_HARDCORE)

# Normalized statement kinds reported by the source locators.
KIND_RETURN = "return"
KIND_THROW = "throw"
KIND_STATEMENT = "statement"


def should_inject(mode: str, statement_kind: str, position_index: int) -> bool:
    """Decide whether a delay goes in front of a statement."""
    if mode == MODE_LIGHT:
        return position_index == 0
    if mode == MODE_MEDIUM:
        return statement_kind not in (KIND_RETURN, KIND_THROW)
    if mode == MODE_HARDCORE:
        return True
    return False


class DelayRange(NamedTuple):
    min_ms: int = 0
    max_ms: int = 50


@dataclass(frozen=True)
class InjectOptions:
    """Per-file options handed to a language adapter."""

    file_path: str
    mode: str = MODE_MEDIUM
    seed: int = 0
    delay_range: DelayRange = DelayRange()
    skip_generators: bool = True


@dataclass
class FlakeProfile:
    """Resolved mode and delay settings for an injection run."""

    mode: str = MODE_MEDIUM
    min_delay_ms: int = 0
    max_delay_ms: int = 50
    skip_generators: bool = True

    def __post_init__(self) -> None:
        if self.mode not in VALID_MODES:
            raise ValueError(f'Invalid mode "{self.mode}". Must be one of: {", ".join(VALID_MODES)}')
        if self.min_delay_ms < 0:
            raise ValueError("min_delay_ms must be >= 0")
        if self.max_delay_ms < self.min_delay_ms:
            raise ValueError("max_delay_ms must be >= min_delay_ms")

    def to_inject_options(self, file_path: str, seed: int) -> InjectOptions:
        return InjectOptions(
            file_path=file_path,
            mode=self.mode,
            seed=seed,
            delay_range=DelayRange(self.min_delay_ms, self.max_delay_ms),
            skip_generators=self.skip_generators,
        )

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> FlakeProfile:
        """Build a profile from a merged config dict, ignoring unrelated keys."""
        return cls(
            mode=config.get("mode") or MODE_MEDIUM,
            min_delay_ms=int(config.get("min_delay_ms", 0)),
            max_delay_ms=int(config.get("max_delay_ms", 50)),
            skip_generators=bool(config.get("skip_generators", True)),
        )
