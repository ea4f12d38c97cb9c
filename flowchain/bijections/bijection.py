"""Abstract bijection class, and the lazy inverse wrapper."""

from abc import abstractmethod

import equinox as eqx
from equinox import AbstractVar
from jaxtyping import Array, ArrayLike


class AbstractBijection(eqx.Module):
    """Bijection abstract class.

    Bijections are registered as JAX PyTrees (as they are equinox modules), and as
    such they are compatible with normal JAX operations. They act on a single
    unbatched input of shape ``bijection.shape``; use ``jax.vmap`` for batches.

    Concrete subclasses can be implemented as follows:

    - Inherit from :class:`AbstractBijection`.
    - Define the abstract attribute ``shape``. This is the shape of the input the
      bijection acts on, or ``None`` if the bijection acts on inputs of any shape.
    - Define the abstract methods ``transform``, ``inverse`` and ``log_det``.
    - Optionally override ``transform_and_log_det`` and ``inverse_and_log_det`` if
      the value and the log determinant share computation, and ``invert`` if a
      closed form inverse bijection is available.

    Bijections are composed with :func:`~flowchain.bijections.compose`, or
    equivalently with the ``@`` operator, such that ``(b1 @ b2).transform(x)`` is
    ``b1.transform(b2.transform(x))``.

    Attributes:
        shape: Shape of the input (and output) of the bijection, or None if
            unconstrained.
    """

    shape: AbstractVar[tuple[int, ...] | None]

    @abstractmethod
    def transform(self, x: ArrayLike) -> Array:
        """Apply the forward transformation."""

    @abstractmethod
    def inverse(self, y: ArrayLike) -> Array:
        """Apply the inverse transformation."""

    @abstractmethod
    def log_det(self, x: ArrayLike) -> Array:
        """Log absolute determinant of the Jacobian of the forward transformation at x."""

    def transform_and_log_det(self, x: ArrayLike) -> tuple[Array, Array]:
        """Apply the forward transformation and compute the log absolute Jacobian.

        Must be consistent with ``transform`` and ``log_det``.
        """
        return self.transform(x), self.log_det(x)

    def inverse_and_log_det(self, y: ArrayLike) -> tuple[Array, Array]:
        """Apply the inverse transformation, and compute the log absolute Jacobian
        of the inverse transformation at y."""
        x = self.inverse(y)
        return x, -self.log_det(x)

    def invert(self) -> "AbstractBijection":
        """The inverse bijection.

        Defaults to wrapping the bijection with :class:`Invert`.
        """
        return Invert(self)

    @property
    def is_closed_form(self) -> bool:
        """Whether the inverse and Jacobian are available in closed form."""
        return True

    def __matmul__(self, other):
        from flowchain.bijections.composition import compose

        return compose(self, other)


class Invert(AbstractBijection):
    """Invert a bijection.

    This wraps a bijection, such that the transform methods become the inverse
    methods and vice versa. The log determinant of the inverse at ``y`` is the
    negated log determinant of the wrapped bijection at ``bijection.inverse(y)``.
    Inverting an :class:`Invert` returns the original bijection.

    Args:
        bijection: Bijection to invert.
    """

    bijection: AbstractBijection
    shape: tuple[int, ...] | None

    def __init__(self, bijection: AbstractBijection):
        self.bijection = bijection
        self.shape = bijection.shape

    def transform(self, x):
        return self.bijection.inverse(x)

    def inverse(self, y):
        return self.bijection.transform(y)

    def log_det(self, x):
        return -self.bijection.log_det(self.bijection.inverse(x))

    def transform_and_log_det(self, x):
        return self.bijection.inverse_and_log_det(x)

    def inverse_and_log_det(self, y):
        return self.bijection.transform_and_log_det(y)

    def invert(self):
        return self.bijection

    @property
    def is_closed_form(self):
        return self.bijection.is_closed_form
