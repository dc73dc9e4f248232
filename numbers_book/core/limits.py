"""Per-number exposure limits ("brakes").

A :class:`LimitPolicy` is an explicit value owned by one phase and passed
into every exposure and excess computation.  It is never module-level state.

Typical usage::

    from numbers_book.core.limits import LimitPolicy

    policy = LimitPolicy(global_limit=5000)
    policy.set_override("777", 2000)
    policy.resolve("777")   # 2000
    policy.resolve("123")   # 5000
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

from numbers_book.core.errors import InvalidLimit
from numbers_book.core.records import is_grid_number


def _check_value(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidLimit(f"Limit must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidLimit(f"Limit must be positive, got {value}")
    return value


def _check_number(number: object) -> str:
    if not is_grid_number(number):
        raise InvalidLimit(f"Invalid number {number!r}: expected 3 digits")
    return number  # type: ignore[return-value]


@dataclass
class LimitPolicy:
    """Global limit plus sparse per-number overrides."""

    global_limit: int
    overrides: Dict[str, int] = field(default_factory=dict)

    def __post_init__(self):
        _check_value(self.global_limit)
        for number, value in self.overrides.items():
            _check_number(number)
            _check_value(value)
        self.overrides = dict(self.overrides)

    def resolve(self, number: str) -> int:
        """Effective limit for ``number``: its override, else the global limit."""
        return self.overrides.get(number, self.global_limit)

    def set_global(self, value: int) -> None:
        self.global_limit = _check_value(value)

    def set_override(self, number: str, value: int) -> None:
        self.overrides[_check_number(number)] = _check_value(value)

    def set_overrides(self, limits: Mapping[str, int]) -> None:
        """Apply many overrides at once; nothing changes if any pair is invalid."""
        checked = {_check_number(n): _check_value(v) for n, v in limits.items()}
        self.overrides.update(checked)

    def remove_override(self, number: str) -> None:
        """Drop the override for ``number``.  Removing a missing one is a no-op."""
        self.overrides.pop(_check_number(number), None)

    def copy(self) -> "LimitPolicy":
        return LimitPolicy(self.global_limit, dict(self.overrides))
