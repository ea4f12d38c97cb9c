"""Tests for bisection root finding."""

import jax
import jax.numpy as jnp
import pytest

from flowchain.bijections import Exp
from flowchain.root_finding import bisection_inverter, bisection_search


def test_bisection_search():
    root = bisection_search(lambda x: x**3 - 2, lower=0.0, upper=2.0, atol=1e-6)
    assert jnp.allclose(root, 2 ** (1 / 3), atol=1e-5)


def test_bisection_search_elementwise():
    targets = jnp.array([-1.0, 0.5, 3.0])
    root = bisection_search(lambda x: x - targets, lower=-5.0, upper=jnp.full(3, 5.0))
    assert root.shape == (3,)
    assert jnp.allclose(root, targets, atol=1e-4)


def test_bisection_search_max_iter():
    root = bisection_search(lambda x: x - 0.3, lower=0.0, upper=1.0, max_iter=1)
    assert jnp.allclose(root, 0.25)


@pytest.mark.parametrize("y", [jnp.array(0.3), jnp.array([0.1, 1.0, 5.0])])
def test_bisection_inverter(y):
    inverter = bisection_inverter(lower=-10, upper=10)
    x = jax.jit(lambda y: inverter(Exp(jnp.shape(y)), y))(y)
    assert x.shape == y.shape
    assert jnp.allclose(x, jnp.log(y), atol=1e-4)
