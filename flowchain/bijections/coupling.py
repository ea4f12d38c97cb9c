"""Coupling layers, transforming a block of the input conditioned on another block.

Refs:
    - https://arxiv.org/abs/1410.8516 (NICE)
    - https://arxiv.org/abs/1605.08803 (RealNVP)
"""

from collections.abc import Callable, Iterable

import equinox as eqx
import jax.numpy as jnp
from jaxtyping import Array, ArrayLike

from flowchain.bijections.bijection import AbstractBijection
from flowchain.utils import as_indices


class PartitionMask(eqx.Module):
    """Partition of the indices ``range(dim)`` into three disjoint blocks.

    The target block is transformed by a coupling layer, the conditioning block
    parameterizes the transformation, and the passthrough block is left unchanged.
    Indices are zero-based, and each block is gathered in the order given (which
    need not be ascending). The three blocks must cover ``range(dim)`` exactly.

    Args:
        dim: Length of the vectors being partitioned.
        target: Indices of the target block.
        conditioning: Indices of the conditioning block. Defaults to all indices not
            in ``target``.
        passthrough: Indices of the passthrough block. Defaults to all indices not
            in ``target`` or ``conditioning``.

    Example:
        >>> mask = PartitionMask(3, target=[0], conditioning=[1])
        >>> mask.passthrough
        (2,)
    """

    dim: int = eqx.field(static=True)
    target: tuple[int, ...] = eqx.field(static=True)
    conditioning: tuple[int, ...] = eqx.field(static=True)
    passthrough: tuple[int, ...] = eqx.field(static=True)

    def __init__(
        self,
        dim: int,
        target: Iterable[int],
        conditioning: Iterable[int] | None = None,
        passthrough: Iterable[int] | None = None,
    ):
        target = as_indices(target, "target")
        if conditioning is None:
            conditioning = [i for i in range(dim) if i not in target]
        conditioning = as_indices(conditioning, "conditioning")
        if passthrough is None:
            used = set(target) | set(conditioning)
            passthrough = [i for i in range(dim) if i not in used]

        self.dim = dim
        self.target = target
        self.conditioning = conditioning
        self.passthrough = as_indices(passthrough, "passthrough")

    def __check_init__(self):
        blocks = {
            "target": self.target,
            "conditioning": self.conditioning,
            "passthrough": self.passthrough,
        }
        for name, block in blocks.items():
            if len(set(block)) != len(block):
                raise ValueError(f"Indices in {name} must be unique, got {block}.")
            if any(i < 0 or i >= self.dim for i in block):
                raise ValueError(
                    f"Indices in {name} must lie in range({self.dim}), got {block}."
                )
        indices = [*self.target, *self.conditioning, *self.passthrough]
        if len(set(indices)) != len(indices):
            raise ValueError("The target, conditioning and passthrough blocks overlap.")
        if len(indices) != self.dim:
            missing = sorted(set(range(self.dim)) - set(indices))
            raise ValueError(
                f"The target, conditioning and passthrough blocks must cover "
                f"range({self.dim}); indices {missing} are not covered."
            )


def partition(mask: PartitionMask, x: ArrayLike) -> tuple[Array, Array, Array]:
    """Split x into its (target, conditioning, passthrough) blocks."""
    x = jnp.asarray(x)
    if x.shape != (mask.dim,):
        raise ValueError(f"Expected x with shape {(mask.dim,)}, got {x.shape}.")
    return tuple(
        x[jnp.array(block, dtype=int)]
        for block in (mask.target, mask.conditioning, mask.passthrough)
    )


def combine(mask: PartitionMask, x1: ArrayLike, x2: ArrayLike, x3: ArrayLike) -> Array:
    """Reassemble the (target, conditioning, passthrough) blocks into a vector.

    The inverse of :func:`partition`.
    """
    blocks = [jnp.asarray(block) for block in (x1, x2, x3)]
    x = jnp.zeros(mask.dim, dtype=jnp.result_type(*blocks))
    for indices, block in zip(
        (mask.target, mask.conditioning, mask.passthrough), blocks, strict=True
    ):
        if block.shape != (len(indices),):
            raise ValueError(
                f"Expected block with shape {(len(indices),)}, got {block.shape}."
            )
        x = x.at[jnp.array(indices, dtype=int)].set(block)
    return x


class Coupling(AbstractBijection):
    """Coupling layer.

    The input is split with a :class:`PartitionMask`. A bijection for the target
    block is constructed by ``coupling_fn`` from the conditioning block, and applied
    to the target block. The conditioning and passthrough blocks are returned
    unchanged, so the log determinant is that of the constructed bijection on the
    target block. The bijection is reconstructed on each call, so ``coupling_fn``
    should be a pure function.

    Args:
        coupling_fn: Callable mapping the conditioning block to a bijection with
            shape ``(len(mask.target),)`` (or None). For a target block of length
            one, a bijection with shape ``()`` is also accepted, and applied to the
            single target element.
        mask: The partition of the input.

    Example:
        >>> mask = PartitionMask(3, target=[0], conditioning=[1])
        >>> coupling = Coupling(lambda theta: Shift(theta[0]), mask)
        >>> coupling.transform(jnp.array([1.0, 2.0, 3.0]))
        Array([3., 2., 3.], dtype=float32)
    """

    coupling_fn: Callable[[Array], AbstractBijection]
    mask: PartitionMask
    shape: tuple[int, ...]

    def __init__(
        self,
        coupling_fn: Callable[[Array], AbstractBijection],
        mask: PartitionMask,
    ):
        self.coupling_fn = coupling_fn
        self.mask = mask
        self.shape = (mask.dim,)

    def couple(self, x: ArrayLike) -> AbstractBijection:
        """The bijection applied to the target block, constructed from x."""
        _, x_cond, _ = partition(self.mask, x)
        return self._construct(x_cond)

    def _construct(self, x_cond: Array) -> AbstractBijection:
        bijection = self.coupling_fn(x_cond)
        if not isinstance(bijection, AbstractBijection):
            raise TypeError(
                f"coupling_fn must return an AbstractBijection, got {type(bijection)}."
            )
        expected = (len(self.mask.target),)
        if bijection.shape == () and expected == (1,):
            return bijection
        if bijection.shape is not None and bijection.shape != expected:
            raise ValueError(
                f"coupling_fn returned a bijection with shape {bijection.shape}, but "
                f"the target block has shape {expected}."
            )
        return bijection

    def transform(self, x):
        x_target, x_cond, x_pass = partition(self.mask, x)
        bijection = self._construct(x_cond)
        y_target = bijection.transform(_to_bijection_shape(bijection, x_target))
        return combine(self.mask, y_target.reshape(x_target.shape), x_cond, x_pass)

    def inverse(self, y):
        y_target, y_cond, y_pass = partition(self.mask, y)
        bijection = self._construct(y_cond)
        x_target = bijection.inverse(_to_bijection_shape(bijection, y_target))
        return combine(self.mask, x_target.reshape(y_target.shape), y_cond, y_pass)

    def log_det(self, x):
        x_target, x_cond, _ = partition(self.mask, x)
        bijection = self._construct(x_cond)
        return bijection.log_det(_to_bijection_shape(bijection, x_target))

    def transform_and_log_det(self, x):
        x_target, x_cond, x_pass = partition(self.mask, x)
        bijection = self._construct(x_cond)
        y_target, log_det = bijection.transform_and_log_det(
            _to_bijection_shape(bijection, x_target)
        )
        y = combine(self.mask, y_target.reshape(x_target.shape), x_cond, x_pass)
        return y, log_det

    def inverse_and_log_det(self, y):
        y_target, y_cond, y_pass = partition(self.mask, y)
        bijection = self._construct(y_cond)
        x_target, log_det = bijection.inverse_and_log_det(
            _to_bijection_shape(bijection, y_target)
        )
        x = combine(self.mask, x_target.reshape(y_target.shape), y_cond, y_pass)
        return x, log_det


def _to_bijection_shape(bijection: AbstractBijection, block: Array) -> Array:
    # A scalar bijection acts on a length one target block as a scalar.
    if bijection.shape == ():
        return block.reshape(())
    return block
