"""Helper functions for chunking sequences."""
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> list[Sequence[T]]:
    """Split items into contiguous chunks of at most ``size`` elements."""
    if size < 1:
        raise ValueError("Chunk size must be at least 1")
    return [items[start : start + size] for start in range(0, len(items), size)]
