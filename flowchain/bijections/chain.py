"""Chain of bijections, applied in sequence."""

from collections.abc import Sequence

import equinox as eqx

from flowchain.bijections.bijection import AbstractBijection
from flowchain.utils import merge_shapes


def chain_transform_and_log_det(bijections: Sequence, x):
    """Apply ``bijections`` in order, accumulating the log determinants by addition."""
    x, log_det = bijections[0].transform_and_log_det(x)
    for bijection in bijections[1:]:
        x, log_det_i = bijection.transform_and_log_det(x)
        log_det = log_det + log_det_i
    return x, log_det


def chain_inverse_and_log_det(bijections: Sequence, y):
    """Invert ``bijections`` in reverse order, accumulating the log determinants."""
    y, log_det = bijections[-1].inverse_and_log_det(y)
    for bijection in reversed(bijections[:-1]):
        y, log_det_i = bijection.inverse_and_log_det(y)
        log_det = log_det + log_det_i
    return y, log_det


def chain_log_det(bijections: Sequence, x):
    """Log determinant of a chain, without applying the final bijection."""
    if len(bijections) == 1:
        return bijections[0].log_det(x)
    x, log_det = chain_transform_and_log_det(bijections[:-1], x)
    return log_det + bijections[-1].log_det(x)


def bijections_equal(first: Sequence, second: Sequence) -> bool:
    """Same length, with pairwise equal elements in order."""
    return len(first) == len(second) and all(
        bool(eqx.tree_equal(b1, b2)) for b1, b2 in zip(first, second, strict=True)
    )


class Chain(AbstractBijection):
    """Chain together bijections, applied from left to right.

    ``Chain((b1, b2)).transform(x)`` is ``b2.transform(b1.transform(x))``. Note this
    is the reverse of mathematical composition, see
    :func:`~flowchain.bijections.compose` and :func:`~flowchain.bijections.composer`.

    The bijections can be stored in a tuple or in a list. Tuples are the default
    (e.g. from :func:`~flowchain.bijections.composel`), and composing tuple chains
    flattens them. Lists suit chains built at runtime of arbitrary length, and
    composing with a list chain appends to a copy of the list. The two storage
    types cannot be mixed when composing.

    Args:
        bijections: Non-empty tuple or list of bijections with compatible shapes.
            Other iterables are converted to a tuple.
    """

    bijections: tuple[AbstractBijection, ...] | list[AbstractBijection]
    shape: tuple[int, ...] | None

    def __init__(
        self,
        bijections: tuple[AbstractBijection, ...] | list[AbstractBijection],
    ):
        container = list if isinstance(bijections, list) else tuple
        bijections = container(bijections)
        if len(bijections) == 0:
            raise ValueError("Chain requires at least one bijection.")
        for bijection in bijections:
            if not isinstance(bijection, AbstractBijection):
                raise TypeError(
                    f"Expected bijections to be AbstractBijection, got {type(bijection)}."
                )
        self.shape = merge_shapes([b.shape for b in bijections])
        self.bijections = bijections

    @property
    def is_dynamic(self) -> bool:
        """Whether the bijections are stored in a list (rather than a tuple)."""
        return isinstance(self.bijections, list)

    def transform(self, x):
        for bijection in self.bijections:
            x = bijection.transform(x)
        return x

    def inverse(self, y):
        for bijection in reversed(self.bijections):
            y = bijection.inverse(y)
        return y

    def log_det(self, x):
        return chain_log_det(self.bijections, x)

    def transform_and_log_det(self, x):
        return chain_transform_and_log_det(self.bijections, x)

    def inverse_and_log_det(self, y):
        return chain_inverse_and_log_det(self.bijections, y)

    def invert(self):
        container = type(self.bijections)
        return Chain(container(b.invert() for b in reversed(self.bijections)))

    @property
    def is_closed_form(self):
        return all(b.is_closed_form for b in self.bijections)

    def __eq__(self, other):
        if not isinstance(other, Chain):
            return False
        return bijections_equal(self.bijections, other.bijections)

    __hash__ = eqx.Module.__hash__
