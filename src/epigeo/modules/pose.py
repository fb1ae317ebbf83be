# src/epigeo/modules/pose.py
from __future__ import annotations

from typing import List, NamedTuple, Optional, Tuple

import cv2
import numpy as np

from ..logger import get_logger

logger = get_logger("pose")

# Reference camera, P0 = [I | 0]
P0 = np.hstack([np.eye(3), np.zeros((3, 1))])

W = np.array([[0.0, -1.0, 0.0],
              [1.0, 0.0, 0.0],
              [0.0, 0.0, 1.0]], dtype=np.float64)


class PoseCandidate(NamedTuple):
    case: int
    R: np.ndarray
    t: np.ndarray

    @property
    def P(self) -> np.ndarray:
        return np.hstack([self.R, self.t.reshape(3, 1)])


def _check_fundamental(F: np.ndarray, what: str) -> bool:
    F = np.asarray(F)
    if F.shape != (3, 3):
        logger.error("%s: expected a 3x3 matrix, got shape %s", what, F.shape)
        return False
    if F.dtype != np.float64:
        logger.error("%s: expected float64, got %s", what, F.dtype)
        return False
    return True


def find_epipoles_from_F(F: np.ndarray) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Epipoles of both views from the null spaces of F.

    Returns:
        (e1, e2): homogeneous (3,) epipoles of image 1 (right null vector, last
        column of V) and image 2 (last column of U). None if F is not a 3x3
        float64 matrix.
    """
    if not _check_fundamental(F, "find_epipoles_from_F"):
        return None

    U, _s, Vt = np.linalg.svd(F)
    e1 = Vt[2, :].copy()
    e2 = U[:, 2].copy()
    return e1, e2


def _first_column(x: np.ndarray) -> np.ndarray:
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 2:
        x = x[:, 0]
    return x.reshape(-1)


def _depths(P: np.ndarray, x1: np.ndarray, x2: np.ndarray) -> Tuple[float, float]:
    """Depth of the triangulated pair in the reference camera and in P."""
    # cv2.triangulatePoints expects 2xN
    x4d = cv2.triangulatePoints(P0, P, x1[:2].reshape(2, 1), x2[:2].reshape(2, 1))
    X = x4d[:, 0] / x4d[3, 0]
    return float((P0 @ X)[2]), float((P @ X)[2])


def _in_front_of_both(candidate: PoseCandidate, x1: np.ndarray, x2: np.ndarray) -> bool:
    z0, z1 = _depths(candidate.P, x1, x2)
    return not (z0 < 0 or z1 < 0)


def pose_candidates(F: np.ndarray) -> List[PoseCandidate]:
    """
    The four (R, t) decompositions of F, in evaluation order:
    [UWV' e], [UWV' -e], [UW'V' e], [UW'V' -e], with e the last column of U.
    """
    U, _s, Vt = np.linalg.svd(F)
    # F is defined up to sign; flipping U or V keeps both candidate rotations proper.
    if np.linalg.det(U) < 0:
        U = -U
    if np.linalg.det(Vt) < 0:
        Vt = -Vt

    e = U[:, 2]
    R1 = U @ W @ Vt
    R2 = U @ W.T @ Vt
    return [
        PoseCandidate(1, R1, e.copy()),
        PoseCandidate(2, R1, -e),
        PoseCandidate(3, R2, e.copy()),
        PoseCandidate(4, R2, -e),
    ]


def find_P_from_F(F: np.ndarray, x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    """
    Camera matrix of the second view, the first one being P0 = [I | 0].

    Of the four decompositions of F, only one puts a correspondence in front
    of both cameras. Candidates are tried in order with the pair (x1, x2) and
    the first one with non-negative depth in both cameras is kept. When none
    passes, the fourth candidate is returned without further check.
    Case numbers follow pose_candidates, i.e. the SVD with U and V' flipped
    to determinant +1, so they can differ from an unnormalised SVD.

    Args:
        F: (3,3) float64 fundamental (or essential) matrix.
        x1, x2: homogeneous points (3,) or column sets (3,N); only the first
            column is used.

    Returns:
        P: (3,4) camera matrix, or an empty (0,4) array if F is not a 3x3 float64.
    """
    if not _check_fundamental(F, "find_P_from_F"):
        return np.zeros((0, 4), np.float64)

    x1 = _first_column(x1)
    x2 = _first_column(x2)

    candidates = pose_candidates(F)
    for candidate in candidates:
        if _in_front_of_both(candidate, x1, x2):
            logger.debug("Case %d", candidate.case)
            return candidate.P

    logger.debug("Case %d (no candidate in front of both cameras)", candidates[-1].case)
    return candidates[-1].P


def find_Rt_from_P(P: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Rotation and translation from a 3x4 camera matrix: R = -inv(P[:, :3]),
    t = R @ P[:, 3].
    """
    P = np.asarray(P, dtype=np.float64)
    if P.shape != (3, 4):
        raise ValueError(f"find_Rt_from_P expects a 3x4 matrix, got {P.shape}")
    R = -np.linalg.inv(P[:, :3])
    t = R @ P[:, 3]
    return R, t


def compose_P_from_Rt(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Inverse of find_Rt_from_P: [-inv(R) | inv(R) t] ([-R' | R' t] for a rotation)."""
    R_inv = np.linalg.inv(np.asarray(R, dtype=np.float64).reshape(3, 3))
    t = np.asarray(t, dtype=np.float64).reshape(3)
    return np.hstack([-R_inv, (R_inv @ t).reshape(3, 1)])
