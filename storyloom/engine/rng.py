"""Random source used for probability conditions and bucket tie-breaks.

The ``random`` module satisfies :class:`RandomSource`, so it is the default
everywhere. Tests pass ``random.Random(seed)`` or a stub with a fixed
``random()`` to make draws deterministic. Errors raised by the source are
not caught.
"""

from __future__ import annotations

import math
import random
from typing import Protocol


class RandomSource(Protocol):
    def random(self) -> float:
        """Return the next float in [0.0, 1.0)."""
        ...


def resolve(rng: RandomSource | None) -> RandomSource:
    return random if rng is None else rng


def pick_index(rng: RandomSource | None, length: int) -> int:
    """Uniform index in ``range(length)``; ``length`` must be positive."""
    return math.floor(resolve(rng).random() * length)
