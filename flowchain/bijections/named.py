"""Bijections acting on named records.

A record is a mapping from field names to values (e.g. a ``dict`` of arrays, which
is a JAX PyTree). Named bijections transform some fields of a record, and return a
new ``dict`` with the same fields, in the same order, leaving all other fields
unchanged.
"""

from abc import abstractmethod
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import equinox as eqx
import jax.numpy as jnp
from jaxtyping import Array

from flowchain.bijections.bijection import AbstractBijection
from flowchain.bijections.chain import (
    bijections_equal,
    chain_inverse_and_log_det,
    chain_log_det,
    chain_transform_and_log_det,
)
from flowchain.utils import check_fields

Record = Mapping[str, Any]


class AbstractNamedBijection(eqx.Module):
    """Abstract class for bijections acting on named records.

    Concrete subclasses define ``field_names``, the record fields read by the
    bijection, along with ``transform``, ``inverse`` and ``log_det``. Applying a
    named bijection to a record missing any of ``field_names`` raises a
    ``ValueError``.
    """

    @property
    @abstractmethod
    def field_names(self) -> tuple[str, ...]:
        """The record fields the bijection reads."""

    @abstractmethod
    def transform(self, x: Record) -> dict[str, Any]:
        """Apply the forward transformation."""

    @abstractmethod
    def inverse(self, y: Record) -> dict[str, Any]:
        """Apply the inverse transformation."""

    @abstractmethod
    def log_det(self, x: Record) -> Array:
        """Log absolute determinant of the Jacobian of the forward transformation at x."""

    def transform_and_log_det(self, x: Record) -> tuple[dict[str, Any], Array]:
        return self.transform(x), self.log_det(x)

    def inverse_and_log_det(self, y: Record) -> tuple[dict[str, Any], Array]:
        x = self.inverse(y)
        return x, -self.log_det(x)

    def invert(self) -> "AbstractNamedBijection":
        """The inverse bijection. Defaults to wrapping with :class:`NamedInvert`."""
        return NamedInvert(self)

    @property
    def is_closed_form(self) -> bool:
        return True

    def __matmul__(self, other):
        from flowchain.bijections.composition import compose

        return compose(self, other)


class NamedBijection(AbstractNamedBijection):
    """Apply bijections to the fields of a record, by name.

    Fields without a bijection are passed through unchanged. The log determinant is
    the sum of the log determinants of the bijections on their fields.

    Args:
        bijections: Mapping from field names to bijections.

    Example:
        >>> bijection = NamedBijection({"a": Scale(2.0), "b": Exp()})
        >>> bijection.transform({"a": 1.0, "b": 0.0, "c": 42.0})
        {'a': Array(2., dtype=float32), 'b': Array(1., dtype=float32), 'c': 42.0}
    """

    bijections: dict[str, AbstractBijection]

    def __init__(self, bijections: Mapping[str, AbstractBijection]):
        for name, bijection in bijections.items():
            if not isinstance(bijection, AbstractBijection):
                raise TypeError(
                    f"Expected an AbstractBijection for field {name!r}, got "
                    f"{type(bijection)}."
                )
        self.bijections = dict(bijections)

    @property
    def field_names(self):
        return tuple(self.bijections)

    def transform(self, x):
        check_fields(x, self.bijections)
        return {
            name: self.bijections[name].transform(value)
            if name in self.bijections
            else value
            for name, value in x.items()
        }

    def inverse(self, y):
        check_fields(y, self.bijections)
        return {
            name: self.bijections[name].inverse(value)
            if name in self.bijections
            else value
            for name, value in y.items()
        }

    def log_det(self, x):
        check_fields(x, self.bijections)
        log_dets = [b.log_det(x[name]) for name, b in self.bijections.items()]
        return sum(log_dets, jnp.zeros(()))

    def transform_and_log_det(self, x):
        check_fields(x, self.bijections)
        y = dict(x)
        log_det = jnp.zeros(())
        for name, bijection in self.bijections.items():
            y[name], log_det_i = bijection.transform_and_log_det(x[name])
            log_det = log_det + log_det_i
        return y, log_det

    def invert(self):
        return NamedBijection({name: b.invert() for name, b in self.bijections.items()})

    @property
    def is_closed_form(self):
        return all(b.is_closed_form for b in self.bijections.values())


class NamedInvert(AbstractNamedBijection):
    """Invert a named bijection, analogously to :class:`~flowchain.bijections.Invert`.

    Args:
        bijection: Named bijection to invert.
    """

    bijection: AbstractNamedBijection

    @property
    def field_names(self):
        return self.bijection.field_names

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


class NamedChain(AbstractNamedBijection):
    """Chain together named bijections, applied from left to right.

    The named analog of :class:`~flowchain.bijections.Chain`, with the same ordering
    and storage (tuple or list) semantics. The fields read by all the bijections are
    checked against the input record once, before any bijection is applied.

    As for :class:`~flowchain.bijections.Chain`, composing with ``@`` flattens
    tuple-backed chains rather than nesting them, and appends to a copy of a
    list-backed chain. Use :func:`~flowchain.bijections.composel` to keep a chain
    as a single nested element.

    Args:
        bijections: Non-empty tuple or list of named bijections.
    """

    bijections: tuple[AbstractNamedBijection, ...] | list[AbstractNamedBijection]

    def __init__(
        self,
        bijections: tuple[AbstractNamedBijection, ...] | list[AbstractNamedBijection],
    ):
        container = list if isinstance(bijections, list) else tuple
        bijections = container(bijections)
        if len(bijections) == 0:
            raise ValueError("NamedChain requires at least one bijection.")
        for bijection in bijections:
            if not isinstance(bijection, AbstractNamedBijection):
                raise TypeError(
                    "Expected bijections to be AbstractNamedBijection, got "
                    f"{type(bijection)}."
                )
        self.bijections = bijections

    @property
    def is_dynamic(self) -> bool:
        return isinstance(self.bijections, list)

    @property
    def field_names(self):
        names = (name for b in self.bijections for name in b.field_names)
        return tuple(dict.fromkeys(names))

    def transform(self, x):
        check_fields(x, self.field_names)
        for bijection in self.bijections:
            x = bijection.transform(x)
        return x

    def inverse(self, y):
        check_fields(y, self.field_names)
        for bijection in reversed(self.bijections):
            y = bijection.inverse(y)
        return y

    def log_det(self, x):
        check_fields(x, self.field_names)
        return chain_log_det(self.bijections, x)

    def transform_and_log_det(self, x):
        check_fields(x, self.field_names)
        return chain_transform_and_log_det(self.bijections, x)

    def inverse_and_log_det(self, y):
        check_fields(y, self.field_names)
        return chain_inverse_and_log_det(self.bijections, y)

    def invert(self):
        container = type(self.bijections)
        return NamedChain(container(b.invert() for b in reversed(self.bijections)))

    @property
    def is_closed_form(self):
        return all(b.is_closed_form for b in self.bijections)

    def __eq__(self, other):
        if not isinstance(other, NamedChain):
            return False
        return bijections_equal(self.bijections, other.bijections)

    __hash__ = eqx.Module.__hash__


class NamedCoupling(AbstractNamedBijection):
    """Coupling layer for named records.

    The bijection for the ``target`` field is constructed as
    ``coupling_fn(*[x[d] for d in deps])``, and applied to the ``target`` field. All
    other fields, including ``deps``, are returned unchanged, so the inverse can
    reconstruct the same bijection from the transformed record. Inverting returns a
    :class:`NamedInvert`.

    Args:
        target: Name of the field to transform.
        deps: Names of the fields passed (positionally, in order) to ``coupling_fn``.
            Must not include ``target``.
        coupling_fn: Callable mapping the ``deps`` values to a bijection.

    Example:
        >>> coupling = NamedCoupling("b", ("a", "c"), lambda a, c: Scale(a + c))
        >>> coupling.transform({"a": 1.0, "b": 2.0, "c": 3.0})
        {'a': 1.0, 'b': Array(8., dtype=float32), 'c': 3.0}
    """

    target: str = eqx.field(static=True)
    deps: tuple[str, ...] = eqx.field(static=True)
    coupling_fn: Callable[..., AbstractBijection]

    def __init__(
        self,
        target: str,
        deps: Iterable[str],
        coupling_fn: Callable[..., AbstractBijection],
    ):
        self.target = target
        self.deps = tuple(deps)
        self.coupling_fn = coupling_fn

    def __check_init__(self):
        if self.target in self.deps:
            raise ValueError(
                f"The target field {self.target!r} cannot be one of its own deps."
            )

    @property
    def field_names(self):
        return (self.target, *self.deps)

    def couple(self, x: Record) -> AbstractBijection:
        """The bijection applied to the target field, constructed from x."""
        check_fields(x, self.deps)
        bijection = self.coupling_fn(*(x[name] for name in self.deps))
        if not isinstance(bijection, AbstractBijection):
            raise TypeError(
                f"coupling_fn must return an AbstractBijection, got {type(bijection)}."
            )
        return bijection

    def transform(self, x):
        check_fields(x, self.field_names)
        y_target = self.couple(x).transform(x[self.target])
        return {**x, self.target: y_target}

    def inverse(self, y):
        check_fields(y, self.field_names)
        x_target = self.couple(y).inverse(y[self.target])
        return {**y, self.target: x_target}

    def log_det(self, x):
        check_fields(x, self.field_names)
        return self.couple(x).log_det(x[self.target])

    def transform_and_log_det(self, x):
        check_fields(x, self.field_names)
        y_target, log_det = self.couple(x).transform_and_log_det(x[self.target])
        return {**x, self.target: y_target}, log_det

    def inverse_and_log_det(self, y):
        check_fields(y, self.field_names)
        x_target, log_det = self.couple(y).inverse_and_log_det(y[self.target])
        return {**y, self.target: x_target}, log_det
