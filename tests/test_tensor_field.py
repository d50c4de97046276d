"""
Tests for design elements, tensors, eigen-decomposition and field evaluation.
"""

import numpy as np
import pytest

from streetfield.elements import GridElement, RadialElement, element_from_dict, pack_elements
from streetfield.tensor_field import (
    DEGENERACY_THRESHOLD,
    Tensor,
    TensorField,
    eigenvectors,
    smoothing_kernel,
)


class TestElements:
    """Tests for design element construction and packing."""

    def test_grid_rejects_non_positive_length(self):
        with pytest.raises(ValueError):
            GridElement((0.0, 0.0), length=0.0)

    def test_center_shape_checked(self):
        with pytest.raises(ValueError):
            RadialElement((1.0, 2.0, 3.0))

    def test_dict_round_trip(self):
        element = GridElement((1.0, 2.0), angle=0.5, length=30.0)
        assert element_from_dict(element.to_dict()) == element

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            element_from_dict({"kind": "spiral", "center": [0.0, 0.0]})

    def test_pack(self):
        kinds, cx, cy, cos2, sin2, lengths = pack_elements(
            [GridElement((1.0, 2.0), angle=0.0, length=5.0), RadialElement((3.0, 4.0))]
        )
        assert kinds.tolist() == [0, 1]
        assert cx.tolist() == [1.0, 3.0]
        assert cy.tolist() == [2.0, 4.0]
        assert cos2[0] == pytest.approx(1.0)
        assert sin2[0] == pytest.approx(0.0)
        assert lengths.tolist() == [5.0, 0.0]


class TestTensor:
    """Tests for the tensor value type and its eigenvectors."""

    def test_matrix_is_symmetric_traceless(self):
        m = Tensor(0.3, -0.7).matrix
        assert np.allclose(m, m.T)
        assert np.trace(m) == pytest.approx(0.0)

    def test_norm(self):
        assert Tensor(1.0, 0.0).norm() == pytest.approx(np.sqrt(2.0))
        assert Tensor(0.0, 0.0).norm() == 0.0

    def test_arithmetic(self):
        t = Tensor(1.0, 2.0) + 2.0 * Tensor(0.5, -1.0)
        assert (t.a, t.b) == (2.0, 0.0)

    def test_eigenvectors_orthonormal(self):
        """Test eigenvectors are orthogonal unit vectors for non-degenerate tensors."""
        rng = np.random.default_rng(7)
        for a, b in rng.uniform(-3.0, 3.0, size=(200, 2)):
            tensor = Tensor(a, b)
            if tensor.norm() <= DEGENERACY_THRESHOLD:
                continue
            eig = eigenvectors(tensor)
            assert np.linalg.norm(eig.major) == pytest.approx(1.0)
            assert np.linalg.norm(eig.minor) == pytest.approx(1.0)
            assert np.dot(eig.major, eig.minor) == pytest.approx(0.0, abs=1e-12)

    def test_major_is_eigenvector_of_larger_eigenvalue(self):
        tensor = Tensor(0.4, 0.9)
        eig = tensor.eigenvectors()
        m = tensor.matrix
        lam_major = eig.major @ m @ eig.major
        lam_minor = eig.minor @ m @ eig.minor
        assert np.allclose(m @ eig.major, lam_major * eig.major)
        assert lam_major > lam_minor

    def test_zero_tensor(self):
        """Test a zero tensor gives finite directions flagged as degenerate."""
        eig = eigenvectors(Tensor(0.0, 0.0))
        assert eig.degenerate
        assert np.all(np.isfinite(eig.major))
        assert np.all(np.isfinite(eig.minor))

    def test_direction_selects_family(self):
        eig = Tensor(1.0, 0.0).eigenvectors()
        assert np.allclose(eig.direction(True), [1.0, 0.0])
        assert np.allclose(eig.direction(False), [0.0, 1.0])


class TestTensorField:
    """Tests for field evaluation."""

    def test_symmetric_and_non_negative_norm(self, mixed_field):
        """Test evaluate is symmetric with non-negative norm everywhere."""
        rng = np.random.default_rng(3)
        for point in rng.uniform(0.0, 512.0, size=(100, 2)):
            tensor = mixed_field.evaluate(point)
            assert np.allclose(tensor.matrix, tensor.matrix.T)
            assert tensor.norm() >= 0.0

    def test_grid_element_direction(self):
        field = TensorField([GridElement((50.0, 50.0), angle=np.pi / 6, length=100.0)], decay=0.0)
        eig = field.eigenvectors_at((60.0, 40.0), smoothed=False)
        assert np.allclose(np.abs(eig.major), [np.cos(np.pi / 6), np.sin(np.pi / 6)])

    def test_grid_element_cut_off_beyond_length(self):
        field = TensorField([GridElement((0.0, 0.0), length=10.0)], decay=0.0)
        assert field.evaluate((5.0, 5.0)).norm() > 0.0
        assert field.evaluate((20.0, 0.0)).norm() == 0.0

    def test_decay_weight(self):
        field = TensorField([GridElement((0.0, 0.0), length=100.0)], decay=0.01)
        tensor = field.evaluate((10.0, 0.0))
        assert tensor.a == pytest.approx(np.exp(-1.0))

    def test_radial_element_circles_center(self, radial_field):
        """Test major eigenvectors circle the radial center, minor ones radiate."""
        eig = radial_field.eigenvectors_at((210.0, 200.0), smoothed=False)
        assert np.allclose(np.abs(eig.major), [0.0, 1.0], atol=1e-12)
        assert np.allclose(np.abs(eig.minor), [1.0, 0.0], atol=1e-12)

    def test_radial_center_is_degenerate(self, radial_field):
        assert radial_field.evaluate((200.0, 200.0)).norm() == 0.0
        assert radial_field.is_degenerate((200.0, 200.0))
        assert not radial_field.is_degenerate((230.0, 200.0))

    def test_smoothing_kernel(self):
        kernel = smoothing_kernel(2.0)
        assert kernel.shape == (5, 2)
        assert np.allclose(kernel.sum(axis=0), 0.0)

    def test_smoothed_uniform_field_unchanged(self, uniform_field):
        raw = uniform_field.evaluate((100.0, 100.0))
        smooth = uniform_field.evaluate_smoothed((100.0, 100.0))
        assert smooth.a == pytest.approx(raw.a)
        assert smooth.b == pytest.approx(raw.b)

    def test_evaluation_is_deterministic(self, mixed_field):
        p = (123.4, 321.0)
        assert mixed_field.evaluate(p) == mixed_field.evaluate(p)

    def test_grid_matches_points(self, mixed_field):
        x_vec = np.array([10.0, 150.0, 300.0])
        y_vec = np.array([20.0, 400.0])
        A, B = mixed_field.evaluate_grid(x_vec, y_vec)
        assert A.shape == (2, 3)
        for iy, y in enumerate(y_vec):
            for ix, x in enumerate(x_vec):
                tensor = mixed_field.evaluate((x, y))
                assert A[iy, ix] == pytest.approx(tensor.a)
                assert B[iy, ix] == pytest.approx(tensor.b)

    def test_unknown_backend(self):
        field = TensorField([RadialElement((0.0, 0.0))], backend="cuda")
        with pytest.raises(ValueError):
            field.evaluate((1.0, 1.0))


class TestBackendParity:
    """Tests that the Numba kernels agree with NumPy."""

    def test_grid_and_point(self, mixed_field):
        numba_field = TensorField(mixed_field.elements, decay=mixed_field.decay, backend="numba")
        x_vec = np.linspace(0.0, 511.0, 17)
        y_vec = np.linspace(0.0, 511.0, 13)

        for smoothed in (False, True):
            A_np, B_np = mixed_field.evaluate_grid(x_vec, y_vec, smoothed=smoothed)
            A_nb, B_nb = numba_field.evaluate_grid(x_vec, y_vec, smoothed=smoothed)
            assert np.allclose(A_np, A_nb, atol=1e-9)
            assert np.allclose(B_np, B_nb, atol=1e-9)

        p = (250.5, 100.25)
        t_np = mixed_field.evaluate_smoothed(p)
        t_nb = numba_field.evaluate_smoothed(p)
        assert t_nb.a == pytest.approx(t_np.a, abs=1e-9)
        assert t_nb.b == pytest.approx(t_np.b, abs=1e-9)

    def test_cloud(self, mixed_field):
        numba_field = TensorField(mixed_field.elements, decay=mixed_field.decay, backend="numba")
        rng = np.random.default_rng(11)
        pts = rng.uniform(0.0, 512.0, size=(50, 2))
        A_np, B_np = mixed_field.methods.compute_cloud(pts[:, 0], pts[:, 1])
        A_nb, B_nb = numba_field.methods.compute_cloud(pts[:, 0], pts[:, 1])
        assert np.allclose(A_np, A_nb, atol=1e-9)
        assert np.allclose(B_np, B_nb, atol=1e-9)

    def test_nearest_segment(self):
        from streetfield.backends import numba_backend, numpy_backend

        sx0 = np.array([0.0, 10.0]); sy0 = np.array([0.0, 0.0])
        sx1 = np.array([10.0, 10.0]); sy1 = np.array([0.0, 10.0])
        for module in (numpy_backend, numba_backend):
            d2, idx, t = module.nearest_segment(12.0, 5.0, sx0, sy0, sx1, sy1)
            assert d2 == pytest.approx(4.0)
            assert idx == 1
            assert t == pytest.approx(0.5)
            cloud = module.nearest_distance_cloud(np.array([5.0, 12.0]), np.array([-3.0, 5.0]),
                                                  sx0, sy0, sx1, sy1)
            assert np.allclose(cloud, [9.0, 4.0])
