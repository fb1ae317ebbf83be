# src/epigeo/system/reconstruction.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from ..logger import get_logger
from ..modules.correspondence import Correspondence, pairs_to_points
from ..modules.fmat import is_valid_fundamental
from ..modules.pose import P0, find_P_from_F, find_Rt_from_P
from ..modules.triangulate import triangulate_points

logger = get_logger("reconstruction")


@dataclass
class TwoViewReconstruction:
    P: np.ndarray = field(default_factory=lambda: np.zeros((0, 4)))
    R: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    t: np.ndarray = field(default_factory=lambda: np.zeros((0,)))
    points_3d: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    reproj_errors: np.ndarray = field(default_factory=lambda: np.zeros((0,)))
    mean_reproj_error: float = 0.0
    inlier_idx: np.ndarray = field(default_factory=lambda: np.zeros((0,), np.int32))
    valid: bool = False
    reason: str = ""


def reconstruct_two_view(
    pairs: Sequence[Correspondence],
    F: np.ndarray,
    status: np.ndarray | None = None,
    K: np.ndarray | None = None,
) -> TwoViewReconstruction:
    """
    Second camera and sparse structure from verified pairs.

    Steps:
      1) keep RANSAC inliers (all pairs when status is None)
      2) with K, move to normalized coordinates: E = K' F K, x = K^-1 u
      3) pick P among the four decompositions of F with the first inlier pair
      4) extract R, t from P
      5) triangulate every inlier with P0 = [I|0] and P (K[I|0] and K.P with K,
         so that reprojection errors stay in pixels)

    Returns:
        TwoViewReconstruction; valid=False with a REJECT_* reason when F is not
        usable, no pair is an inlier, or P could not be recovered.
    """
    if not is_valid_fundamental(F):
        return TwoViewReconstruction(reason="REJECT_RECON_INVALID_F")

    F = np.asarray(F, dtype=np.float64)
    n = len(pairs)
    mask = np.ones((n,), bool) if status is None else np.asarray(status, dtype=bool).reshape(-1)
    if mask.shape[0] != n:
        raise ValueError(f"status length {mask.shape[0]} does not match {n} pairs")

    inlier_idx = np.nonzero(mask)[0].astype(np.int32)
    if inlier_idx.size == 0:
        return TwoViewReconstruction(reason="REJECT_RECON_NO_INLIERS")

    pts_a, pts_b = pairs_to_points([pairs[i] for i in inlier_idx])
    pts_a = pts_a.astype(np.float64)
    pts_b = pts_b.astype(np.float64)

    if K is not None:
        K = np.asarray(K, dtype=np.float64)
        K_inv = np.linalg.inv(K)
        F = K.T @ F @ K
        F = F / np.linalg.norm(F)
        x1 = K_inv @ np.array([pts_a[0, 0], pts_a[0, 1], 1.0])
        x2 = K_inv @ np.array([pts_b[0, 0], pts_b[0, 1], 1.0])
    else:
        x1 = np.array([pts_a[0, 0], pts_a[0, 1], 1.0], dtype=np.float64)
        x2 = np.array([pts_b[0, 0], pts_b[0, 1], 1.0], dtype=np.float64)

    P = find_P_from_F(F, x1, x2)
    if P.size == 0:
        return TwoViewReconstruction(inlier_idx=inlier_idx, reason="REJECT_RECON_NO_P")

    R, t = find_Rt_from_P(P)
    if K is not None:
        cloud, errors, mean_err = triangulate_points(pts_a, pts_b, K @ P0, K @ P)
    else:
        cloud, errors, mean_err = triangulate_points(pts_a, pts_b, P0, P)
    logger.info("Reconstructed %d points, mean reprojection error %.3f px", cloud.shape[0], mean_err)

    return TwoViewReconstruction(
        P=P,
        R=R,
        t=t,
        points_3d=cloud,
        reproj_errors=errors,
        mean_reproj_error=mean_err,
        inlier_idx=inlier_idx,
        valid=True,
        reason="RECON_OK",
    )
