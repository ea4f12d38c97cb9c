"""Construction of chains by composition.

Three conventions are supported:

- :func:`compose` (or the ``@`` operator) is mathematical composition, such that
  ``compose(b1, b2).transform(x) == b1.transform(b2.transform(x))``. Composing
  tuple-backed chains flattens them, and composing with the identity returns the
  other bijection.
- :func:`composel` applies its arguments from left to right, preserving nesting.
- :func:`composer` applies its arguments from right to left, preserving nesting.

Each accepts either vector bijections (building a
:class:`~flowchain.bijections.Chain`) or named bijections (building a
:class:`~flowchain.bijections.NamedChain`), but not a mixture of the two.
"""

from flowchain.bijections.bijection import AbstractBijection
from flowchain.bijections.chain import Chain
from flowchain.bijections.named import AbstractNamedBijection, NamedChain
from flowchain.bijections.utils import Identity
from flowchain.utils import merge_shapes


def _chain_type(*bijections) -> type[Chain] | type[NamedChain]:
    if all(isinstance(b, AbstractBijection) for b in bijections):
        return Chain
    if all(isinstance(b, AbstractNamedBijection) for b in bijections):
        return NamedChain
    raise TypeError(
        "Can only compose bijections that are all AbstractBijection or all "
        f"AbstractNamedBijection, got {[type(b).__name__ for b in bijections]}."
    )


def composel(*bijections):
    """Chain bijections, applied from left to right.

    Chains passed as arguments are kept as (nested) elements of the result.
    """
    return _chain_type(*bijections)(bijections)


def composer(*bijections):
    """Chain bijections, applied from right to left.

    Chains passed as arguments are kept as (nested) elements of the result.
    """
    return _chain_type(*bijections)(bijections[::-1])


def compose(outer, inner):
    """Mathematical composition ``outer ∘ inner``, i.e. ``inner`` is applied first.

    - Composing with an :class:`~flowchain.bijections.Identity` returns the other
      bijection (after checking the shapes are compatible).
    - Tuple-backed chains are flattened, e.g. composing two chains of length two
      gives a chain of length four.
    - Composing with a list-backed chain appends to a copy of its list.
    - Composing a tuple-backed chain with a list-backed chain raises a
      ``TypeError``.

    Args:
        outer: The bijection applied second.
        inner: The bijection applied first.
    """
    chain_type = _chain_type(outer, inner)

    if isinstance(outer, Identity) or isinstance(inner, Identity):
        shape = merge_shapes([outer.shape, inner.shape])
        if isinstance(outer, Identity) and isinstance(inner, Identity):
            return Identity(shape)
        return inner if isinstance(outer, Identity) else outer

    outer_is_chain = isinstance(outer, chain_type)
    inner_is_chain = isinstance(inner, chain_type)

    if outer_is_chain and inner_is_chain:
        if outer.is_dynamic != inner.is_dynamic:
            raise TypeError(
                "Cannot compose a chain stored in a tuple with a chain stored in a "
                "list."
            )
        return chain_type(inner.bijections + outer.bijections)
    if outer_is_chain:
        container = type(outer.bijections)
        return chain_type(container([inner, *outer.bijections]))
    if inner_is_chain:
        container = type(inner.bijections)
        return chain_type(container([*inner.bijections, outer]))
    return chain_type((inner, outer))
