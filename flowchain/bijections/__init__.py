"""Bijections from ``flowchain.bijections``."""

from .affine import Scale, Shift
from .bijection import AbstractBijection, Invert
from .chain import Chain
from .composition import compose, composel, composer
from .coupling import Coupling, PartitionMask, combine, partition
from .exp import Exp
from .named import (
    AbstractNamedBijection,
    NamedBijection,
    NamedChain,
    NamedCoupling,
    NamedInvert,
)
from .utils import Identity, NumericalInverse

__all__ = [
    "AbstractBijection",
    "AbstractNamedBijection",
    "Chain",
    "Coupling",
    "Exp",
    "Identity",
    "Invert",
    "NamedBijection",
    "NamedChain",
    "NamedCoupling",
    "NamedInvert",
    "NumericalInverse",
    "PartitionMask",
    "Scale",
    "Shift",
    "combine",
    "compose",
    "composel",
    "composer",
    "partition",
]
