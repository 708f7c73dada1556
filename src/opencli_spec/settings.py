"""Process-wide settings: the map ordering mode.

The ordering mode decides how every ``Map`` in a document iterates and
serializes its keys:

- ``sorted`` (default): keys sorted lexicographically
- ``insertion``: keys kept in first-insertion order

It is read once per process from ``OPENCLI_SPEC_ORDERING`` and injected into
each ``Map`` constructor that does not receive an explicit ``ordering=``.
"""

from __future__ import annotations

import functools
import logging
import os
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

ORDERING_ENV_VAR = "OPENCLI_SPEC_ORDERING"


class OrderingMode(str, Enum):
    SORTED = "sorted"
    INSERTION = "insertion"


@dataclass(frozen=True)
class SpecSettings:
    """Library configuration.

    Attributes:
        ordering: Key ordering used by every ``Map`` built without an
            explicit ordering.
    """

    ordering: OrderingMode = OrderingMode.SORTED

    @classmethod
    def from_env(cls) -> SpecSettings:
        raw = os.environ.get(ORDERING_ENV_VAR, "").strip().lower()
        if not raw:
            return cls()
        try:
            return cls(ordering=OrderingMode(raw))
        except ValueError:
            logger.warning(
                "Unknown %s value %r, defaulting to %r",
                ORDERING_ENV_VAR,
                raw,
                OrderingMode.SORTED.value,
            )
            return cls()


@functools.lru_cache(maxsize=1)
def get_settings() -> SpecSettings:
    return SpecSettings.from_env()


def reset_settings() -> None:
    """Forget the cached settings so the next read sees the environment again."""
    get_settings.cache_clear()
