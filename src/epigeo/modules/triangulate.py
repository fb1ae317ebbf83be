# src/epigeo/modules/triangulate.py
from __future__ import annotations
import numpy as np
import cv2

from ..logger import get_logger

logger = get_logger("triangulate")

MAX_ITERATIONS = 10   # Hartley suggests 10 iterations at most
WEIGHT_EPSILON = 1e-4


def _dlt_system(u, P, u1, P1, wi: float = 1.0, wi1: float = 1.0):
    # Two rows per camera from x*(P3.X) - P1.X = 0 and y*(P3.X) - P2.X = 0,
    # with X = (x,y,z,1) moved to an A.X = B form (A 4x3, B 4x1).
    A = np.array([
        [u[0]*P[2, 0] - P[0, 0],    u[0]*P[2, 1] - P[0, 1],    u[0]*P[2, 2] - P[0, 2]],
        [u[1]*P[2, 0] - P[1, 0],    u[1]*P[2, 1] - P[1, 1],    u[1]*P[2, 2] - P[1, 2]],
        [u1[0]*P1[2, 0] - P1[0, 0], u1[0]*P1[2, 1] - P1[0, 1], u1[0]*P1[2, 2] - P1[0, 2]],
        [u1[1]*P1[2, 0] - P1[1, 0], u1[1]*P1[2, 1] - P1[1, 1], u1[1]*P1[2, 2] - P1[1, 2]],
    ], dtype=np.float64)
    B = np.array([
        [-(u[0]*P[2, 3] - P[0, 3])],
        [-(u[1]*P[2, 3] - P[1, 3])],
        [-(u1[0]*P1[2, 3] - P1[0, 3])],
        [-(u1[1]*P1[2, 3] - P1[1, 3])],
    ], dtype=np.float64)
    A[:2] /= wi
    B[:2] /= wi
    A[2:] /= wi1
    B[2:] /= wi1
    return A, B


def _as_camera(P) -> np.ndarray:
    P = np.asarray(P, dtype=np.float64)
    if P.shape != (3, 4):
        raise ValueError(f"Projection matrix must be 3x4, got {P.shape}")
    return P


def linear_ls_triangulation(u, P, u1, P1) -> np.ndarray:
    """
    Linear least-squares (DLT) triangulation of one correspondence.

    Hartley & Sturm, "Triangulation", CVIU 1997. Ignores the homogeneous
    weight of each equation, so it is not optimal under perspective projection.

    Args:
        u: homogeneous image point (x, y, 1) in the first camera.
        P: (3,4) first camera.
        u1: homogeneous image point in the second camera.
        P1: (3,4) second camera.

    Returns:
        X: (3,) inhomogeneous 3D point.
    """
    P = _as_camera(P)
    P1 = _as_camera(P1)
    A, B = _dlt_system(np.asarray(u, dtype=np.float64).reshape(-1),
                       P,
                       np.asarray(u1, dtype=np.float64).reshape(-1),
                       P1)
    _, X = cv2.solve(A, B, flags=cv2.DECOMP_SVD)
    return X.reshape(3)


def iterative_linear_ls_triangulation(u, P, u1, P1) -> np.ndarray:
    """
    Iteratively reweighted linear LS triangulation (Hartley & Sturm).

    Each pass reweights both equations of a camera by 1/w, w being the depth
    row of P.X at the current estimate, and stops once neither weight moves
    by more than WEIGHT_EPSILON. After MAX_ITERATIONS the last estimate is
    returned as is.

    Returns:
        X: (4,) homogeneous 3D point with X[3] == 1.
    """
    P = _as_camera(P)
    P1 = _as_camera(P1)
    u = np.asarray(u, dtype=np.float64).reshape(-1)
    u1 = np.asarray(u1, dtype=np.float64).reshape(-1)

    wi, wi1 = 1.0, 1.0
    X = np.ones((4,), dtype=np.float64)
    X[:3] = linear_ls_triangulation(u, P, u1, P1)

    for _ in range(MAX_ITERATIONS):
        p2x = float(P[2] @ X)
        p2x1 = float(P1[2] @ X)

        if abs(wi - p2x) <= WEIGHT_EPSILON and abs(wi1 - p2x1) <= WEIGHT_EPSILON:
            break

        wi, wi1 = p2x, p2x1

        A, B = _dlt_system(u, P, u1, P1, wi, wi1)
        _, X_ = cv2.solve(A, B, flags=cv2.DECOMP_SVD)
        X[:3] = X_.reshape(3)

    return X


def reprojection_errors(points_3d: np.ndarray, pts: np.ndarray, P: np.ndarray) -> np.ndarray:
    """Pixel distance between pts (N,2) and points_3d (N,3) projected through P."""
    P = _as_camera(P)
    X = np.asarray(points_3d, dtype=np.float64).reshape(-1, 3)
    if X.shape[0] == 0:
        return np.zeros((0,), np.float64)
    x = (P @ np.hstack([X, np.ones((X.shape[0], 1))]).T).T
    x = x[:, :2] / x[:, 2:3]
    return np.linalg.norm(x - np.asarray(pts, dtype=np.float64).reshape(-1, 2), axis=1)


def triangulate_points(
    pts1: np.ndarray,   # (N,2) pixels, first camera
    pts2: np.ndarray,   # (N,2) pixels, second camera
    P: np.ndarray,      # (3,4)
    P1: np.ndarray,     # (3,4)
) -> tuple[np.ndarray, np.ndarray, float]:
    """
    Returns:
      cloud: (N,3) triangulated points
      reproj_err_px: (N,) reprojection error of each point in the second camera
      mean_err_px: mean of reproj_err_px (0.0 for no points)
    """
    p0 = np.asarray(pts1, dtype=np.float64).reshape(-1, 2)
    p1 = np.asarray(pts2, dtype=np.float64).reshape(-1, 2)
    if p0.shape[0] != p1.shape[0]:
        raise ValueError(f"Point sets differ in length: {p0.shape[0]} != {p1.shape[0]}")
    P = _as_camera(P)
    P1 = _as_camera(P1)

    n = p0.shape[0]
    cloud = np.zeros((n, 3), np.float64)
    if n == 0:
        return cloud, np.zeros((0,), np.float64), 0.0

    for i in range(n):
        u = (p0[i, 0], p0[i, 1], 1.0)
        u1 = (p1[i, 0], p1[i, 1], 1.0)
        cloud[i] = iterative_linear_ls_triangulation(u, P, u1, P1)[:3]

    errors = reprojection_errors(cloud, p1, P1)
    mean_err = float(np.mean(errors))
    logger.debug("Triangulated %d points, mean reprojection error %.4f px", n, mean_err)
    return cloud, errors, mean_err
