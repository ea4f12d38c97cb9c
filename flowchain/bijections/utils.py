"""Utility bijections, including the identity and numerical inverses."""

from collections.abc import Callable

import jax.numpy as jnp
from jaxtyping import Array

from flowchain.bijections.bijection import AbstractBijection


class Identity(AbstractBijection):
    """The identity bijection.

    Composing with the identity returns the other bijection unchanged.

    Args:
        shape: The shape of the bijection. Defaults to None, in which case the
            identity acts on inputs of any shape.
    """

    shape: tuple[int, ...] | None = None

    def transform(self, x):
        return x

    def inverse(self, y):
        return y

    def log_det(self, x):
        return jnp.zeros(())

    def invert(self):
        return self


class NumericalInverse(AbstractBijection):
    """Bijection wrapper to provide a numerical inverse.

    The forward methods delegate to the wrapped bijection. The inverse is computed
    with ``inverter``, and the log determinant of the inverse is the negated forward
    log determinant at the recovered point. As the inverse is iterative,
    ``is_closed_form`` is False.

    Args:
        bijection: Bijection to wrap.
        inverter: Callable with signature ``inverter(bijection, y) -> x``, e.g.
            from :func:`~flowchain.root_finding.bisection_inverter`.
    """

    bijection: AbstractBijection
    inverter: Callable[[AbstractBijection, Array], Array]
    shape: tuple[int, ...] | None

    def __init__(
        self,
        bijection: AbstractBijection,
        inverter: Callable[[AbstractBijection, Array], Array],
    ):
        self.bijection = bijection
        self.inverter = inverter
        self.shape = bijection.shape

    def transform(self, x):
        return self.bijection.transform(x)

    def log_det(self, x):
        return self.bijection.log_det(x)

    def transform_and_log_det(self, x):
        return self.bijection.transform_and_log_det(x)

    def inverse(self, y):
        return self.inverter(self.bijection, y)

    @property
    def is_closed_form(self):
        return False
