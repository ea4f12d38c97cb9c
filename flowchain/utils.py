"""Utility functions."""

from collections.abc import Iterable, Mapping, Sequence
from operator import index


def merge_shapes(shapes: Sequence[tuple[int, ...] | None]) -> tuple[int, ...] | None:
    """Merges a sequence of shapes, where None denotes an unconstrained shape.

    Raises a ``ValueError`` if the non-None shapes disagree. Returns the common
    non-None shape, or None if all shapes are None.
    """
    known = {s for s in shapes if s is not None}
    if len(known) > 1:
        raise ValueError(
            f"Expected all shapes to match (or be None), but got {list(shapes)}."
        )
    return known.pop() if known else None


def as_indices(indices: Iterable[int], err_name: str) -> tuple[int, ...]:
    """Convert an iterable of integers (including integer arrays) to a tuple of ints."""
    try:
        return tuple(index(i) for i in indices)
    except TypeError as e:
        raise TypeError(f"{err_name} must be an iterable of integers.") from e


def check_fields(record: Mapping, names: Iterable[str]):
    """Check that every name in ``names`` is a field of ``record``."""
    missing = [name for name in names if name not in record]
    if missing:
        raise ValueError(
            f"Record is missing fields {missing}; got fields {list(record)}."
        )
