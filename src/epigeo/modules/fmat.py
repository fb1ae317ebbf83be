# src/epigeo/modules/fmat.py
from __future__ import annotations

import time
from typing import Sequence, Tuple

import cv2
import numpy as np

from .correspondence import Correspondence, pairs_to_points
from ..logger import get_logger

logger = get_logger("fmat")

# smallest sample the 7-point solver accepts
MIN_PAIRS_FOR_F = 7


def is_valid_fundamental(F: np.ndarray | None) -> bool:
    """3x3 and not identically zero."""
    if F is None:
        return False
    F = np.asarray(F)
    return F.shape == (3, 3) and bool(np.any(F != 0.0))


def estimate_fundamental(
    pairs: Sequence[Correspondence],
    ransac_thresh_px: float = 3.0,
    ransac_prob: float = 0.99,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Robustly fit a fundamental matrix to word correspondences (RANSAC).

    Args:
        pairs: correspondences, pt_a in view 1 and pt_b in view 2.
        ransac_thresh_px: max distance in pixels from a point to its epipolar line
            for the pair to be counted as an inlier.
        ransac_prob: RANSAC confidence.

    Returns:
        F: (3,3) float64 with p_b^T F p_a ~ 0. All zeros when no model was found.
        status: (N,) bool inlier flags aligned with pairs. All False on failure.
    """
    n = len(pairs)
    F_zero = np.zeros((3, 3), dtype=np.float64)
    status = np.zeros((n,), dtype=bool)

    if n < MIN_PAIRS_FOR_F:
        logger.debug("Not enough pairs to estimate F (%d < %d)", n, MIN_PAIRS_FOR_F)
        return F_zero, status

    pts_a, pts_b = pairs_to_points(pairs)
    p0 = np.asarray(pts_a, dtype=np.float64)
    p1 = np.asarray(pts_b, dtype=np.float64)

    t0 = time.perf_counter()
    try:
        F, mask = cv2.findFundamentalMat(p0, p1, cv2.FM_RANSAC, ransac_thresh_px, ransac_prob)
    except cv2.error as ex:
        logger.warning("findFundamentalMat failed on %d pairs: %s", n, ex)
        return F_zero, status
    logger.debug("Find fundamental matrix (OpenCV) time = %fs", time.perf_counter() - t0)

    if F is None or F.ndim != 2 or F.shape[0] < 3 or F.shape[1] < 3:
        logger.debug("No fundamental matrix found")
        return F_zero, status

    # The 7-point solver can return up to three stacked 3x3 solutions; keep the first.
    if F.shape[0] > 3 or F.shape[1] > 3:
        F = F[:3, :3]
    F = np.asarray(F, dtype=np.float64)

    if not is_valid_fundamental(F):
        logger.debug("Degenerate fundamental matrix")
        return F_zero, status

    if mask is not None:
        status = mask.reshape(-1).astype(bool)

    logger.debug("F = %s", np.array2string(F, precision=6).replace("\n", ""))
    return F, status
