# src/epigeo/modules/stereo.py
from __future__ import annotations

from typing import Mapping

import numpy as np

from ..geom.se3 import skew


def find_F_from_calibrated_stereo(
    fx: float,
    fy: float,
    cx: float,
    cy: float,
    Tx: float,
    Ty: float,
) -> np.ndarray:
    """
    Closed-form fundamental matrix of a rectified stereo pair (R = I).

    Tx, Ty are the baseline terms of the right projection matrix
    (Tx = -fx * baseline), as found in a rectified camera info.

    Returns:
        F: (3,3) float64, F = K^-T [B]x K^-1 with B = (Tx/-fx, Ty/-fy, 0).
    """
    Bx = Tx / -fx
    By = Ty / -fy

    R = np.eye(3, dtype=np.float64)
    E = skew(np.array([Bx, By, 0.0])) @ R

    K = np.array([[fx, 0.0, cx],
                  [0.0, fy, cy],
                  [0.0, 0.0, 1.0]], dtype=np.float64)
    K_inv = np.linalg.inv(K)
    return K_inv.T @ E @ K_inv


def stereo_F_from_camera(camera_cfg: Mapping) -> np.ndarray:
    """Same as find_F_from_calibrated_stereo with values read from a camera config section."""
    return find_F_from_calibrated_stereo(
        float(camera_cfg["fx"]),
        float(camera_cfg["fy"]),
        float(camera_cfg["cx"]),
        float(camera_cfg["cy"]),
        float(camera_cfg.get("Tx", 0.0)),
        float(camera_cfg.get("Ty", 0.0)),
    )
