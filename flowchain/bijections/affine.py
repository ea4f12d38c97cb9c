"""Shift and scale bijections."""

import jax.numpy as jnp
from jaxtyping import Array, ArrayLike
from paramax import AbstractUnwrappable, unwrap

from flowchain.bijections.bijection import AbstractBijection


def _as_parameter(param: ArrayLike | AbstractUnwrappable[Array]):
    if isinstance(param, AbstractUnwrappable):
        return param
    return jnp.asarray(param, dtype=float)


class Shift(AbstractBijection):
    """Shift (translation) transformation ``y = x + shift``.

    The log determinant is zero. Inverting returns a :class:`Shift` by ``-shift``.

    Args:
        shift: The shift parameter. The shape of the bijection is ``shift.shape``.
            May be wrapped with a :class:`paramax.AbstractUnwrappable`, e.g. to mark
            it as non-trainable.
    """

    shift: Array | AbstractUnwrappable[Array]
    shape: tuple[int, ...]

    def __init__(self, shift: ArrayLike | AbstractUnwrappable[Array]):
        self.shift = _as_parameter(shift)
        self.shape = jnp.shape(unwrap(self.shift))

    def transform(self, x):
        return x + unwrap(self.shift)

    def inverse(self, y):
        return y - unwrap(self.shift)

    def log_det(self, x):
        return jnp.zeros(())

    def invert(self):
        return Shift(-unwrap(self.shift))


class Scale(AbstractBijection):
    """Elementwise scaling transformation ``y = x * scale``.

    The scale must be nonzero, and is stored as given (negative scales are
    allowed, with log determinant ``sum(log|scale|)``). Inverting returns a
    :class:`Scale` by ``1 / scale``.

    Args:
        scale: The scale parameter. The shape of the bijection is ``scale.shape``.
            May be wrapped with a :class:`paramax.AbstractUnwrappable`, e.g.
            ``Parameterize(softplus, inv_softplus(scale))`` to constrain it to
            be positive.
    """

    scale: Array | AbstractUnwrappable[Array]
    shape: tuple[int, ...]

    def __init__(self, scale: ArrayLike | AbstractUnwrappable[Array]):
        self.scale = _as_parameter(scale)
        self.shape = jnp.shape(unwrap(self.scale))

    def transform(self, x):
        return x * unwrap(self.scale)

    def inverse(self, y):
        return y / unwrap(self.scale)

    def log_det(self, x):
        return jnp.log(jnp.abs(unwrap(self.scale))).sum()

    def transform_and_log_det(self, x):
        scale = unwrap(self.scale)
        return x * scale, jnp.log(jnp.abs(scale)).sum()

    def invert(self):
        return Scale(1 / unwrap(self.scale))
