"""Book-level configuration: every money constant in one place.

Nowhere else in the codebase should the payout odds, the provisional margin
or the default brake be hard-coded.

:class:`BookConfig` is a frozen dataclass.  :meth:`BookConfig.from_env`
builds one from environment variables (a ``.env`` file is honoured), and
services receive the instance explicitly.

Typical usage::

    from numbers_book.core.book_config import BookConfig

    cfg = BookConfig.from_env()

    # Override a single constant for a house running different odds:
    from dataclasses import replace
    custom_cfg = replace(cfg, payout_multiplier=85)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from dotenv import load_dotenv

#: Fixed odds paid on a winning number, per unit staked.
DEFAULT_PAYOUT_MULTIPLIER: Final[int] = 80

#: Blended payout ratio used for a provisional estimate before the draw.
DEFAULT_HOUSE_MARGIN_ESTIMATE: Final[float] = 0.72

#: Global brake applied to every number without an override.
DEFAULT_GLOBAL_LIMIT: Final[int] = 5000


@dataclass(frozen=True)
class BookConfig:
    """Immutable money constants for one book.

    Attributes:
        payout_multiplier: Odds paid on the winning number in a final
            settlement.  ``total_out = winning stakes × payout_multiplier``.
        house_margin_estimate: Fraction of gross stakes assumed paid out in
            a provisional estimate.  Informational only.
        default_global_limit: Global brake for a newly opened phase.
    """

    payout_multiplier: int = DEFAULT_PAYOUT_MULTIPLIER
    house_margin_estimate: float = DEFAULT_HOUSE_MARGIN_ESTIMATE
    default_global_limit: int = DEFAULT_GLOBAL_LIMIT

    def __post_init__(self):
        if self.payout_multiplier <= 0:
            raise ValueError(f"payout_multiplier must be positive, got {self.payout_multiplier}")
        if not 0.0 <= self.house_margin_estimate <= 1.0:
            raise ValueError(
                f"house_margin_estimate must be within [0, 1], got {self.house_margin_estimate}"
            )
        if self.default_global_limit <= 0:
            raise ValueError(
                f"default_global_limit must be positive, got {self.default_global_limit}"
            )

    @classmethod
    def from_env(cls) -> "BookConfig":
        """Read ``BOOK_PAYOUT_MULTIPLIER``, ``BOOK_HOUSE_MARGIN`` and ``BOOK_GLOBAL_LIMIT``."""
        load_dotenv()
        return cls(
            payout_multiplier=int(os.getenv("BOOK_PAYOUT_MULTIPLIER", str(DEFAULT_PAYOUT_MULTIPLIER))),
            house_margin_estimate=float(
                os.getenv("BOOK_HOUSE_MARGIN", str(DEFAULT_HOUSE_MARGIN_ESTIMATE))
            ),
            default_global_limit=int(os.getenv("BOOK_GLOBAL_LIMIT", str(DEFAULT_GLOBAL_LIMIT))),
        )
