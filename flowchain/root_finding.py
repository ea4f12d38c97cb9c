"""Bisection root finding, used to build iterative (non-closed-form) inverses.

The bijections passed to these functions are assumed to act elementwise and to be
monotonically increasing in each element, such that each element of the root can
be bracketed independently.
"""

from collections.abc import Callable

import jax
import jax.numpy as jnp
from jaxtyping import Array, ArrayLike

from flowchain.bijections.bijection import AbstractBijection


def bisection_search(
    fn: Callable[[Array], Array],
    lower: ArrayLike,
    upper: ArrayLike,
    *,
    atol: float = 1e-5,
    max_iter: int = 100,
) -> Array:
    """Elementwise bisection search for the root of an increasing function.

    Args:
        fn: Elementwise monotonically increasing function, with a root bracketed
            by ``lower`` and ``upper`` in each element.
        lower: Lower bracket. Broadcast against ``upper``.
        upper: Upper bracket. Broadcast against ``lower``.
        atol: Absolute tolerance on the root. Defaults to 1e-5.
        max_iter: Maximum number of bisection steps. Defaults to 100.

    Returns:
        The midpoint of the final bracket.
    """
    lower, upper = jnp.broadcast_arrays(
        jnp.asarray(lower, dtype=float), jnp.asarray(upper, dtype=float)
    )

    def cond_fn(state):
        lower, upper, step = state
        return (jnp.max(upper - lower) > 2 * atol) & (step < max_iter)

    def body_fn(state):
        lower, upper, step = state
        midpoint = (lower + upper) / 2
        too_high = fn(midpoint) > 0
        lower = jnp.where(too_high, lower, midpoint)
        upper = jnp.where(too_high, midpoint, upper)
        return lower, upper, step + 1

    lower, upper, _ = jax.lax.while_loop(cond_fn, body_fn, (lower, upper, 0))
    return (lower + upper) / 2


def bisection_inverter(
    *,
    lower: ArrayLike,
    upper: ArrayLike,
    atol: float = 1e-5,
    max_iter: int = 100,
) -> Callable[[AbstractBijection, Array], Array]:
    """Returns an inverter for use with :class:`~flowchain.bijections.NumericalInverse`.

    The bracket is broadcast to the shape of the point being inverted.
    """

    def inverter(bijection: AbstractBijection, y: Array) -> Array:
        y = jnp.asarray(y, dtype=float)
        return bisection_search(
            lambda x: bijection.transform(x) - y,
            jnp.broadcast_to(lower, y.shape),
            jnp.broadcast_to(upper, y.shape),
            atol=atol,
            max_iter=max_iter,
        )

    return inverter
