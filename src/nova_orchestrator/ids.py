"""ID allocators.

Runs take an allocator instead of sharing module-level counters, so that two
concurrent runs never observe each other's sequence.
"""

from __future__ import annotations

import itertools
import uuid
from typing import Protocol


class IdAllocator(Protocol):
    def next_id(self) -> str: ...


class UuidAllocator:
    """Random UUID4 identifiers, optionally prefixed."""

    def __init__(self, prefix: str = "") -> None:
        self.prefix = prefix

    def next_id(self) -> str:
        return f"{self.prefix}{uuid.uuid4()}"


class CounterAllocator:
    """Sequential identifiers: ``<prefix>1``, ``<prefix>2``, ..."""

    def __init__(self, prefix: str = "", start: int = 1) -> None:
        self.prefix = prefix
        self._counter = itertools.count(start)

    def next_id(self) -> str:
        return f"{self.prefix}{next(self._counter)}"
