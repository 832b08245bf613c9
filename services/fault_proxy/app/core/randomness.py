from __future__ import annotations

import random
from typing import Protocol


class RandomSource(Protocol):
    """Every random draw in the proxy goes through one of these."""

    def random(self) -> float: ...

    def randint(self, a: int, b: int) -> int: ...


# process-wide default; random.Random already satisfies the protocol
_default_source = random.Random()


def default_source() -> RandomSource:
    return _default_source
