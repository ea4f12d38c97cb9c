"""Exponential bijection."""

import jax.numpy as jnp

from flowchain.bijections.bijection import AbstractBijection


class Exp(AbstractBijection):
    """Elementwise exponential transform (forward) and log transform (inverse).

    Inversion uses the default :class:`~flowchain.bijections.Invert` wrapper.

    Args:
        shape: Shape of the bijection. Defaults to ().
    """

    shape: tuple[int, ...] = ()

    def transform(self, x):
        return jnp.exp(x)

    def inverse(self, y):
        return jnp.log(y)

    def log_det(self, x):
        return jnp.sum(x)

    def transform_and_log_det(self, x):
        return jnp.exp(x), jnp.sum(x)
