from __future__ import annotations

import argparse
import json
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
import yaml

from epigeo.dataset.synthetic import scene_from_cfg
from epigeo.logger import setup_logger, get_logger
from epigeo.modules.stereo import stereo_F_from_camera
from epigeo.system.reconstruction import reconstruct_two_view
from epigeo.system.telemetry import Telemetry
from epigeo.system.verifier import EpipolarVerifier

logger = get_logger("run_two_view")

DEFAULT_CONFIG = Path(__file__).resolve().parents[3] / "configs" / "default.yaml"


class CloudVisualizer:
    def __init__(self):
        self.fig = plt.figure(figsize=(12, 5))
        self.ax1 = self.fig.add_subplot(121, projection='3d')
        self.ax2 = self.fig.add_subplot(122)

    def show(self, points_gt: np.ndarray, points_rec: np.ndarray, errors: np.ndarray):
        self.ax1.set_xlabel('X')
        self.ax1.set_ylabel('Y')
        self.ax1.set_zlabel('Z')
        self.ax1.set_title(f'Triangulated cloud ({points_rec.shape[0]} points, up to scale)')
        if points_rec.shape[0] > 0:
            self.ax1.scatter(points_rec[:, 0], points_rec[:, 1], points_rec[:, 2], c='b', s=4, label='Reconstructed')
        self.ax1.legend()

        self.ax2.set_xlabel('Reprojection error (px)')
        self.ax2.set_ylabel('Points')
        self.ax2.set_title(f'Ground truth has {points_gt.shape[0]} points')
        if errors.shape[0] > 0:
            self.ax2.hist(errors, bins=30, color='b', alpha=0.7)
        self.ax2.grid(True)
        plt.show()


def _load_cfg(path: str | None) -> dict:
    cfg_path = Path(path) if path else DEFAULT_CONFIG
    if not cfg_path.is_file():
        logger.warning("Config not found: %s, using built-in defaults", cfg_path)
        return {}
    logger.info("Loading config: %s", cfg_path)
    with open(cfg_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _rotation_angle_deg(R_a: np.ndarray, R_b: np.ndarray) -> float:
    c = (np.trace(R_a.T @ R_b) - 1.0) / 2.0
    return float(np.degrees(np.arccos(np.clip(c, -1.0, 1.0))))


def _epipolar_distance_px(F: np.ndarray, pts1: np.ndarray, pts2: np.ndarray) -> np.ndarray:
    # distance of each pts2 to the epipolar line F.x1
    x1 = np.hstack([pts1, np.ones((pts1.shape[0], 1))])
    x2 = np.hstack([pts2, np.ones((pts2.shape[0], 1))])
    lines = x1 @ F.T
    return np.abs(np.sum(x2 * lines, axis=1)) / (np.linalg.norm(lines[:, :2], axis=1) + 1e-12)


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Verify and reconstruct a synthetic two-view scene.")
    ap.add_argument("--config", type=str, default=None, help="YAML config (configs/default.yaml by default)")
    ap.add_argument("--out_dir", type=str, default=None, help="Write metrics.json and config_used.yaml here")
    ap.add_argument("--seed", type=int, default=None, help="Override scene.seed")
    ap.add_argument("--visualize", action="store_true", help="Plot the triangulated cloud")
    ap.add_argument("--log_level", type=str, default="INFO")
    args = ap.parse_args(argv)

    setup_logger(level=args.log_level, force=True)
    cfg = _load_cfg(args.config)

    scene = scene_from_cfg(cfg, seed=args.seed)
    logger.info("Scene: %d points, %d outliers", scene.pts1.shape[0], int(scene.outlier_mask.sum()))

    stereo_residual = None
    cam = cfg.get("camera", {}) or {}
    if cam and (float(cam.get("Tx", 0.0)) != 0.0 or float(cam.get("Ty", 0.0)) != 0.0):
        F_stereo = stereo_F_from_camera(cam)
        inliers = ~scene.outlier_mask
        dist = _epipolar_distance_px(F_stereo, scene.pts1[inliers], scene.pts2[inliers])
        stereo_residual = float(np.median(dist)) if dist.size else 0.0
        logger.info("Calibrated stereo F: median epipolar distance %.4f px", stereo_residual)

    verifier = EpipolarVerifier.from_cfg(cfg, telemetry=Telemetry())
    sig_a, sig_b = scene.signatures()
    verdict = verifier.check(sig_a, sig_b)
    ev = verdict.evidence
    logger.info(
        "Verdict: %s (%s) matches=%d pairs=%d inliers=%d ratio=%.3f",
        "ACCEPT" if verdict.valid else "REJECT", verdict.reason,
        ev.num_matches, ev.num_pairs, ev.num_inliers, ev.inlier_ratio,
    )

    recon = None
    if verdict.valid:
        recon = reconstruct_two_view(verdict.pairs, verdict.F, verdict.status, K=scene.K)
        if recon.valid:
            logger.info(
                "Recovered pose: rotation error %.3f deg, mean reprojection error %.4f px",
                _rotation_angle_deg(recon.P[:, :3], scene.R), recon.mean_reproj_error,
            )
        else:
            logger.warning("Reconstruction failed: %s", recon.reason)

    if args.out_dir:
        out_dir = Path(args.out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        metrics_path = out_dir / "metrics.json"
        cfg_path = out_dir / "config_used.yaml"
        metrics = {
            "summary": verifier.telemetry.summary(),
            "checks": verifier.telemetry.records,
            "reconstruction": None if recon is None else {
                "valid": bool(recon.valid),
                "reason": recon.reason,
                "num_points": int(recon.points_3d.shape[0]),
                "mean_reproj_error": float(recon.mean_reproj_error),
            },
            "stereo_epipolar_distance_px": stereo_residual,
        }
        with open(metrics_path, "w", encoding="utf-8") as f:
            json.dump(metrics, f, indent=2)
        with open(cfg_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(cfg, f, sort_keys=False)
        logger.info("[OK] wrote: %s", metrics_path)
        logger.info("[OK] wrote: %s", cfg_path)

    if args.visualize and recon is not None and recon.valid:
        CloudVisualizer().show(scene.points_3d, recon.points_3d, recon.reproj_errors)

    return 0 if verdict.valid else 1


if __name__ == "__main__":
    raise SystemExit(main())
