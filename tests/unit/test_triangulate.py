"""
Unit tests for linear and iterative triangulation
"""

import numpy as np
import pytest

from epigeo.dataset.synthetic import make_two_view_scene
from epigeo.modules.triangulate import (
    iterative_linear_ls_triangulation,
    linear_ls_triangulation,
    reprojection_errors,
    triangulate_points,
)


def _h(p):
    return np.array([p[0], p[1], 1.0])


class TestSinglePoint:

    def test_linear_exact(self, clean_scene):
        P1, P2 = clean_scene.projection_matrices()
        for i in range(10):
            X = linear_ls_triangulation(_h(clean_scene.pts1[i]), P1, _h(clean_scene.pts2[i]), P2)
            assert X.shape == (3,)
            np.testing.assert_allclose(X, clean_scene.points_3d[i], rtol=1e-6, atol=1e-6)

    def test_iterative_exact(self, clean_scene):
        P1, P2 = clean_scene.projection_matrices()
        for i in range(10):
            X = iterative_linear_ls_triangulation(_h(clean_scene.pts1[i]), P1, _h(clean_scene.pts2[i]), P2)
            assert X.shape == (4,)
            assert X[3] == 1.0
            np.testing.assert_allclose(X[:3], clean_scene.points_3d[i], rtol=1e-6, atol=1e-6)

    def test_iterative_does_not_increase_error(self):
        # far second camera: depths differ between views so the plain DLT is biased
        scene = make_two_view_scene(
            40,
            rvec=np.array([0.0, 0.3, 0.0]),
            t=np.array([-2.0, 0.0, 3.0]),
            depth_range=(2.0, 6.0),
            noise_px=1.0,
            seed=5,
        )
        P1, P2 = scene.projection_matrices()
        X_lin = np.array([
            linear_ls_triangulation(_h(a), P1, _h(b), P2) for a, b in zip(scene.pts1, scene.pts2)
        ])
        X_it = np.array([
            iterative_linear_ls_triangulation(_h(a), P1, _h(b), P2)[:3] for a, b in zip(scene.pts1, scene.pts2)
        ])

        def sq_err(X):
            e1 = reprojection_errors(X, scene.pts1, P1)
            e2 = reprojection_errors(X, scene.pts2, P2)
            return float(np.sum(e1 ** 2 + e2 ** 2))

        assert sq_err(X_it) <= sq_err(X_lin) * (1.0 + 1e-6) + 1e-9

    def test_accepts_column_vectors(self, clean_scene):
        P1, P2 = clean_scene.projection_matrices()
        u = _h(clean_scene.pts1[0]).reshape(3, 1)
        u1 = _h(clean_scene.pts2[0]).reshape(3, 1)
        np.testing.assert_allclose(linear_ls_triangulation(u, P1, u1, P2),
                                   linear_ls_triangulation(u.ravel(), P1, u1.ravel(), P2))

    def test_bad_camera_shape(self):
        with pytest.raises(ValueError):
            linear_ls_triangulation(np.ones(3), np.eye(3), np.ones(3), np.eye(3))


class TestBatch:

    def test_clean_scene(self, clean_scene):
        P1, P2 = clean_scene.projection_matrices()
        cloud, errors, mean_err = triangulate_points(clean_scene.pts1, clean_scene.pts2, P1, P2)

        assert cloud.shape == clean_scene.points_3d.shape
        assert errors.shape == (clean_scene.pts1.shape[0],)
        np.testing.assert_allclose(cloud, clean_scene.points_3d, rtol=1e-6, atol=1e-6)
        assert mean_err < 1e-6
        assert mean_err == pytest.approx(float(np.mean(errors)))

    def test_error_is_measured_in_second_view(self, clean_scene):
        P1, P2 = clean_scene.projection_matrices()
        pts2 = clean_scene.pts2.copy()
        cloud, errors, _ = triangulate_points(clean_scene.pts1, pts2, P1, P2)
        np.testing.assert_allclose(errors, reprojection_errors(cloud, pts2, P2))

    def test_noisy_scene(self):
        scene = make_two_view_scene(100, noise_px=0.5, seed=9)
        P1, P2 = scene.projection_matrices()
        cloud, errors, mean_err = triangulate_points(scene.pts1, scene.pts2, P1, P2)
        assert np.all(np.isfinite(cloud))
        assert 0.0 < mean_err < 2.0
        assert np.median(np.linalg.norm(cloud - scene.points_3d, axis=1) / scene.points_3d[:, 2]) < 0.05

    def test_empty(self):
        P = np.hstack([np.eye(3), np.zeros((3, 1))])
        cloud, errors, mean_err = triangulate_points(np.zeros((0, 2)), np.zeros((0, 2)), P, P)
        assert cloud.shape == (0, 3)
        assert errors.shape == (0,)
        assert mean_err == 0.0

    def test_length_mismatch(self):
        P = np.hstack([np.eye(3), np.zeros((3, 1))])
        with pytest.raises(ValueError):
            triangulate_points(np.zeros((3, 2)), np.zeros((2, 2)), P, P)
