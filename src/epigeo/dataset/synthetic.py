from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

import cv2
import numpy as np

from ..geom.se3 import Rt_to_T, inv_T, skew
from ..modules.correspondence import words_from_observations
from ..system.signature import Signature


@dataclass
class TwoViewScene:
    K: np.ndarray           # (3,3)
    R: np.ndarray           # (3,3) view 1 -> view 2
    t: np.ndarray           # (3,)  view 1 -> view 2
    points_3d: np.ndarray   # (N,3) in view 1 frame
    pts1: np.ndarray        # (N,2) pixels, view 1
    pts2: np.ndarray        # (N,2) pixels, view 2
    ids1: np.ndarray        # (N,) word ids, view 1
    ids2: np.ndarray        # (N,) word ids, view 2
    outlier_mask: np.ndarray  # (N,) True where pts2 was replaced by a random pixel

    @property
    def T_2_1(self) -> np.ndarray:
        return Rt_to_T(self.R, self.t)

    @property
    def camera2_center(self) -> np.ndarray:
        return inv_T(self.T_2_1)[:3, 3]

    def essential(self) -> np.ndarray:
        return skew(self.t) @ self.R

    def fundamental(self) -> np.ndarray:
        K_inv = np.linalg.inv(self.K)
        return K_inv.T @ self.essential() @ K_inv

    def projection_matrices(self) -> Tuple[np.ndarray, np.ndarray]:
        """K[I|0] and K[R|t]."""
        P1 = self.K @ np.hstack([np.eye(3), np.zeros((3, 1))])
        P2 = self.K @ np.hstack([self.R, self.t.reshape(3, 1)])
        return P1, P2

    def normalized(self) -> Tuple[np.ndarray, np.ndarray]:
        """pts1, pts2 in normalized camera coordinates (K^-1 applied)."""
        K_inv = np.linalg.inv(self.K)
        h1 = np.hstack([self.pts1, np.ones((self.pts1.shape[0], 1))]) @ K_inv.T
        h2 = np.hstack([self.pts2, np.ones((self.pts2.shape[0], 1))]) @ K_inv.T
        return h1[:, :2], h2[:, :2]

    def words(self) -> Tuple[Dict[int, List[Tuple[float, float]]], Dict[int, List[Tuple[float, float]]]]:
        return words_from_observations(self.ids1, self.pts1), words_from_observations(self.ids2, self.pts2)

    def signatures(self, id_a: int = 1, id_b: int = 2) -> Tuple[Signature, Signature]:
        return (Signature.from_observations(id_a, self.ids1, self.pts1),
                Signature.from_observations(id_b, self.ids2, self.pts2))


def _project(K: np.ndarray, R: np.ndarray, t: np.ndarray, X: np.ndarray) -> np.ndarray:
    x = (K @ (R @ X.T + t.reshape(3, 1))).T
    return x[:, :2] / x[:, 2:3]


def make_two_view_scene(
    n_points: int = 200,
    *,
    K: np.ndarray | None = None,
    rvec: np.ndarray | None = None,
    t: np.ndarray | None = None,
    depth_range: Tuple[float, float] = (4.0, 12.0),
    noise_px: float = 0.0,
    outlier_ratio: float = 0.0,
    duplicate_ratio: float = 0.0,
    image_size: Tuple[int, int] = (640, 480),
    seed: int | None = None,
) -> TwoViewScene:
    """
    Random points seen by two cameras, labelled with shared word ids.

    Args:
        n_points: number of 3D points, all in front of both cameras.
        K: (3,3) intrinsics, a 640x480 pinhole by default.
        rvec: axis-angle rotation view 1 -> view 2 (default small yaw).
        t: translation view 1 -> view 2 (default sideways baseline).
        depth_range: depth of the points in view 1.
        noise_px: std of Gaussian pixel noise added to both views.
        outlier_ratio: fraction of view-2 observations replaced by random pixels.
        duplicate_ratio: fraction of points whose word id is reused by another
            point, making those words ambiguous.
        image_size: (width, height) used to draw points and outliers.
        seed: RNG seed.
    """
    rng = np.random.default_rng(seed)
    w, h = image_size
    if K is None:
        K = np.array([[525.0, 0.0, w / 2.0], [0.0, 525.0, h / 2.0], [0.0, 0.0, 1.0]], dtype=np.float64)
    K = np.asarray(K, dtype=np.float64)
    if rvec is None:
        rvec = np.array([0.0, 0.05, 0.0])
    if t is None:
        t = np.array([-0.5, 0.0, 0.05])
    R, _ = cv2.Rodrigues(np.asarray(rvec, dtype=np.float64).reshape(3, 1))
    t = np.asarray(t, dtype=np.float64).reshape(3)

    # Sample in view 1 pixels + depth, keep those also in front of view 2.
    X_list = []
    while len(X_list) < n_points:
        u = rng.uniform(0.0, w)
        v = rng.uniform(0.0, h)
        z = rng.uniform(*depth_range)
        X = z * (np.linalg.inv(K) @ np.array([u, v, 1.0]))
        if (R @ X + t)[2] > 1e-3:
            X_list.append(X)
    X = np.array(X_list, dtype=np.float64)

    pts1 = _project(K, np.eye(3), np.zeros(3), X)
    pts2 = _project(K, R, t, X)
    if noise_px > 0.0:
        pts1 = pts1 + rng.normal(0.0, noise_px, pts1.shape)
        pts2 = pts2 + rng.normal(0.0, noise_px, pts2.shape)

    outlier_mask = np.zeros((n_points,), bool)
    n_out = int(round(outlier_ratio * n_points))
    if n_out > 0:
        idx = rng.choice(n_points, size=n_out, replace=False)
        outlier_mask[idx] = True
        pts2[idx] = np.column_stack([rng.uniform(0.0, w, n_out), rng.uniform(0.0, h, n_out)])

    ids = np.arange(n_points, dtype=np.int64)
    n_dup = int(round(duplicate_ratio * n_points)) // 2
    if n_dup > 0:
        idx = rng.choice(n_points, size=2 * n_dup, replace=False)
        ids[idx[n_dup:]] = ids[idx[:n_dup]]

    return TwoViewScene(
        K=K,
        R=R,
        t=t,
        points_3d=X,
        pts1=pts1,
        pts2=pts2,
        ids1=ids.copy(),
        ids2=ids.copy(),
        outlier_mask=outlier_mask,
    )


def scene_from_cfg(cfg: Mapping, seed: int | None = None) -> TwoViewScene:
    """Build a scene from the ``camera`` and ``scene`` sections of a config dict."""
    cam = cfg.get("camera", {}) or {}
    sc = cfg.get("scene", {}) or {}
    K = None
    if cam:
        K = np.array([[float(cam["fx"]), 0.0, float(cam["cx"])],
                      [0.0, float(cam["fy"]), float(cam["cy"])],
                      [0.0, 0.0, 1.0]], dtype=np.float64)
    return make_two_view_scene(
        int(sc.get("n_points", 200)),
        K=K,
        rvec=np.asarray(sc.get("rvec", [0.0, 0.05, 0.0]), dtype=np.float64),
        t=np.asarray(sc.get("t", [-0.5, 0.0, 0.05]), dtype=np.float64),
        depth_range=tuple(sc.get("depth_range", (4.0, 12.0))),
        noise_px=float(sc.get("noise_px", 0.5)),
        outlier_ratio=float(sc.get("outlier_ratio", 0.2)),
        duplicate_ratio=float(sc.get("duplicate_ratio", 0.05)),
        image_size=tuple(int(v) for v in sc.get("image_size", (640, 480))),
        seed=seed if seed is not None else sc.get("seed"),
    )
