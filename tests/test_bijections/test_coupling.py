"""Tests for partition masks and coupling layers."""

import equinox as eqx
import jax
import jax.numpy as jnp
import pytest

from flowchain.bijections import (
    Coupling,
    Exp,
    Invert,
    PartitionMask,
    Scale,
    Shift,
    combine,
    composel,
    partition,
)


class TestPartitionMask:
    """Tests for PartitionMask, partition and combine."""

    def test_default_blocks(self):
        inferred = PartitionMask(3, [0], [1])
        explicit = PartitionMask(3, [0], [1], [2])
        assert inferred.target == explicit.target == (0,)
        assert inferred.conditioning == explicit.conditioning == (1,)
        assert inferred.passthrough == explicit.passthrough == (2,)

        conditioning_only = PartitionMask(4, [2, 0])
        assert conditioning_only.conditioning == (1, 3)
        assert conditioning_only.passthrough == ()

    def test_partition_combine(self):
        mask = PartitionMask(3, [0], [1])
        x = jnp.array([1.0, 2.0, 3.0])
        x1, x2, x3 = partition(mask, x)

        assert jnp.array_equal(x1, jnp.array([1.0]))
        assert jnp.array_equal(x2, jnp.array([2.0]))
        assert jnp.array_equal(x3, jnp.array([3.0]))
        assert jnp.array_equal(combine(mask, x1, x2, x3), x)

    def test_unordered_indices(self):
        mask = PartitionMask(5, target=[4, 1], conditioning=[0, 3], passthrough=[2])
        x = jnp.arange(5.0)
        x1, x2, x3 = partition(mask, x)

        assert jnp.array_equal(x1, jnp.array([4.0, 1.0]))
        assert jnp.array_equal(x2, jnp.array([0.0, 3.0]))
        assert jnp.array_equal(x3, jnp.array([2.0]))
        assert jnp.array_equal(combine(mask, x1, x2, x3), x)

    @pytest.mark.parametrize(
        ("args", "match"),
        [
            ((3, [0, 0], [1], [2]), "unique"),
            ((3, [0], [0, 1], [2]), "overlap"),
            ((3, [0], [1], [3]), "range"),
            ((3, [-1], [1], [2]), "range"),
            ((3, [0], [1], []), "cover"),
        ],
    )
    def test_invalid_masks(self, args, match):
        with pytest.raises(ValueError, match=match):
            PartitionMask(*args)

    def test_non_integer_indices(self):
        with pytest.raises(TypeError, match="integers"):
            PartitionMask(3, [0.5], [1])

    def test_partition_wrong_shape(self):
        mask = PartitionMask(3, [0], [1])
        with pytest.raises(ValueError, match="shape"):
            partition(mask, jnp.ones(4))

    def test_combine_wrong_block_shape(self):
        mask = PartitionMask(3, [0], [1])
        with pytest.raises(ValueError, match="shape"):
            combine(mask, jnp.ones(2), jnp.ones(1), jnp.ones(1))


class TestCoupling:
    """Tests for the Coupling layer."""

    def test_shift_coupling(self):
        mask = PartitionMask(3, [0], [1])
        coupling = Coupling(lambda theta: Shift(theta), mask)
        x = jnp.array([1.0, 2.0, 3.0])

        y = coupling.transform(x)
        assert jnp.array_equal(y, jnp.array([3.0, 2.0, 3.0]))
        assert jnp.array_equal(coupling.invert().transform(y), x)
        assert jnp.array_equal(coupling.inverse(y), x)

        expected = Shift(x[1:2]).log_det(x[0:1])
        assert coupling.log_det(x) == expected == 0

        y2, log_det = coupling.transform_and_log_det(x)
        assert jnp.array_equal(y2, y)
        assert log_det == coupling.log_det(x)

        x_rec, inv_log_det = coupling.invert().transform_and_log_det(y)
        assert jnp.array_equal(x_rec, x)
        assert inv_log_det == -coupling.log_det(x)

    def test_invert_is_lazy_wrapper(self):
        coupling = Coupling(lambda theta: Shift(theta), PartitionMask(3, [0], [1]))
        assert isinstance(coupling.invert(), Invert)
        assert coupling.invert().invert() is coupling

    def test_scale_coupling(self):
        mask = PartitionMask(4, target=[0, 2], conditioning=[3])
        coupling = Coupling(lambda theta: Scale(jnp.exp(theta) * jnp.ones(2)), mask)
        x = jnp.array([1.0, -2.0, 3.0, 0.5])

        y, log_det = coupling.transform_and_log_det(x)
        factor = jnp.exp(0.5)
        assert jnp.allclose(y, jnp.array([factor, -2.0, 3 * factor, 0.5]))
        assert jnp.allclose(log_det, 2 * 0.5)

        # conditioning and passthrough blocks are unchanged
        assert jnp.array_equal(y[jnp.array([1, 3])], x[jnp.array([1, 3])])

        x_rec, inv_log_det = coupling.inverse_and_log_det(y)
        assert jnp.allclose(x_rec, x)
        assert jnp.allclose(inv_log_det, -log_det)
        assert jnp.allclose(coupling.invert().log_det(y), -log_det)

    def test_couple(self):
        coupling = Coupling(lambda theta: Shift(theta), PartitionMask(3, [0], [1]))
        bijection = coupling.couple(jnp.array([1.0, 5.0, 3.0]))
        assert bijection == Shift(jnp.array([5.0]))

    def test_scalar_bijection_on_single_target(self):
        """A scalar bijection acts on a target block of length one."""
        mask = PartitionMask(3, [0], [1])
        coupling = Coupling(lambda theta: Shift(theta[0]), mask)
        x = jnp.array([1.0, 2.0, 3.0])

        y = coupling.transform(x)
        assert jnp.array_equal(y, jnp.array([3.0, 2.0, 3.0]))
        assert jnp.array_equal(coupling.inverse(y), x)
        assert jnp.array_equal(coupling.invert().transform(y), x)
        assert coupling.log_det(x) == 0

        y2, log_det = coupling.transform_and_log_det(x)
        assert jnp.array_equal(y2, y)
        assert log_det == 0

        x_rec, inv_log_det = coupling.inverse_and_log_det(y)
        assert jnp.array_equal(x_rec, x)
        assert inv_log_det == 0

    def test_scalar_scale_on_single_target(self):
        coupling = Coupling(lambda theta: Scale(theta[0]), PartitionMask(3, [2], [0]))
        x = jnp.array([2.0, -1.0, 1.5])

        y, log_det = coupling.transform_and_log_det(x)
        assert jnp.allclose(y, jnp.array([2.0, -1.0, 3.0]))
        assert jnp.allclose(log_det, jnp.log(2.0))
        assert jnp.allclose(coupling.inverse(y), x)

    def test_constructed_shape_mismatch(self):
        mask = PartitionMask(3, [0], [1])
        coupling = Coupling(lambda theta: Shift(jnp.ones(2)), mask)
        with pytest.raises(ValueError, match="target block"):
            coupling.transform(jnp.array([1.0, 2.0, 3.0]))

    def test_scalar_bijection_on_longer_target(self):
        mask = PartitionMask(3, [0, 2], [1])
        coupling = Coupling(lambda theta: Shift(theta[0]), mask)
        with pytest.raises(ValueError, match="target block"):
            coupling.transform(jnp.array([1.0, 2.0, 3.0]))

    def test_constructed_non_bijection(self):
        coupling = Coupling(lambda theta: theta, PartitionMask(3, [0], [1]))
        with pytest.raises(TypeError, match="AbstractBijection"):
            coupling.transform(jnp.array([1.0, 2.0, 3.0]))

    def test_coupling_fn_errors_propagate(self):
        def coupling_fn(theta):
            raise RuntimeError("bad conditioner")

        coupling = Coupling(coupling_fn, PartitionMask(3, [0], [1]))
        with pytest.raises(RuntimeError, match="bad conditioner"):
            coupling.log_det(jnp.array([1.0, 2.0, 3.0]))

    def test_chained_couplings(self):
        """Alternating couplings in a chain, as in a coupling flow."""
        dim = 4
        first = Coupling(
            lambda theta: Scale(jnp.exp(theta)), PartitionMask(dim, [0, 1], [2, 3])
        )
        second = Coupling(
            lambda theta: Shift(jnp.sin(theta)), PartitionMask(dim, [2, 3], [0, 1])
        )
        flow = composel(first, second, Exp((dim,)))
        x = jnp.array([0.1, -0.4, 0.3, 0.2])

        y, log_det = flow.transform_and_log_det(x)
        x_rec, inv_log_det = flow.inverse_and_log_det(y)
        assert jnp.allclose(x_rec, x, atol=1e-6)
        assert jnp.allclose(inv_log_det, -log_det, atol=1e-6)
        assert jnp.allclose(flow.log_det(x), log_det)

        # Compare with the log determinant of the Jacobian
        jac = jax.jacobian(flow.transform)(x)
        assert jnp.allclose(log_det, jnp.linalg.slogdet(jac)[1], atol=1e-5)

    def test_jit_and_vmap(self):
        coupling = Coupling(lambda theta: Shift(theta), PartitionMask(3, [0], [1]))
        x = jnp.array([[1.0, 2.0, 3.0], [0.0, -1.0, 4.0]])

        @eqx.filter_jit
        def transform(bijection, x):
            return jax.vmap(bijection.transform)(x)

        y = transform(coupling, x)
        assert jnp.allclose(y, jnp.array([[3.0, 2.0, 3.0], [-1.0, -1.0, 4.0]]))
