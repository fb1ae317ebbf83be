# src/epigeo/system/verifier.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Sequence, Tuple

import numpy as np

from .signature import Signature
from .telemetry import Telemetry
from .verdict import Evidence, Verdict
from ..logger import get_logger
from ..modules.correspondence import Correspondence, Words, find_pairs_unique
from ..modules.fmat import estimate_fundamental, is_valid_fundamental

logger = get_logger("verifier")

EstimatorFn = Callable[[Sequence[Correspondence], float, float], Tuple[np.ndarray, np.ndarray]]

# flat parameter keys -> VerifierParams fields
PARAMETER_KEYS = {
    "VhEp/MatchCountMin": "min_match_count",
    "VhEp/RansacParam1": "ransac_thresh_px",
    "VhEp/RansacParam2": "ransac_prob",
}


@dataclass
class VerifierParams:
    min_match_count: int = 8        # floor for both raw pairs and RANSAC inliers
    ransac_thresh_px: float = 3.0   # max distance to the epipolar line for an inlier
    ransac_prob: float = 0.99       # RANSAC confidence

    def __post_init__(self):
        self.min_match_count = int(self.min_match_count)
        self.ransac_thresh_px = float(self.ransac_thresh_px)
        self.ransac_prob = float(self.ransac_prob)
        self.validate()

    def validate(self) -> None:
        if self.min_match_count < 0:
            raise ValueError(f"min_match_count must be >= 0, got {self.min_match_count}")
        if not self.ransac_thresh_px > 0.0:
            raise ValueError(f"ransac_thresh_px must be > 0, got {self.ransac_thresh_px}")
        if not 0.0 < self.ransac_prob < 1.0:
            raise ValueError(f"ransac_prob must be in (0, 1), got {self.ransac_prob}")

    @classmethod
    def from_cfg(cls, cfg: Mapping) -> "VerifierParams":
        """Read the ``epipolar`` section of a config dict, defaults for missing keys."""
        ep = cfg.get("epipolar", {}) or {}
        return cls(
            min_match_count=int(ep.get("min_match_count", 8)),
            ransac_thresh_px=float(ep.get("ransac_thresh_px", 3.0)),
            ransac_prob=float(ep.get("ransac_prob", 0.99)),
        )


class EpipolarVerifier:
    """
    Accepts a pair of views when enough unique word matches agree with one
    fundamental matrix.

    Args:
        params: thresholds, defaults to VerifierParams().
        estimator: RANSAC fit with the signature of fmat.estimate_fundamental.
        telemetry: where verdict records are appended. None keeps the verifier
            stateless across calls.
    """

    name = "epipolar"

    def __init__(
        self,
        params: Optional[VerifierParams] = None,
        estimator: EstimatorFn = estimate_fundamental,
        telemetry: Optional[Telemetry] = None,
    ):
        self.params = params if params is not None else VerifierParams()
        self.estimator = estimator
        self.telemetry = telemetry

    @classmethod
    def from_cfg(cls, cfg: Mapping, **kwargs) -> "EpipolarVerifier":
        return cls(VerifierParams.from_cfg(cfg), **kwargs)

    def parse_parameters(self, parameters: Mapping) -> None:
        """Update thresholds from a flat parameter map ("VhEp/MatchCountMin", ...)."""
        values = {
            "min_match_count": self.params.min_match_count,
            "ransac_thresh_px": self.params.ransac_thresh_px,
            "ransac_prob": self.params.ransac_prob,
        }
        for key, field_name in PARAMETER_KEYS.items():
            if key in parameters:
                raw = parameters[key]
                values[field_name] = int(float(raw)) if field_name == "min_match_count" else float(raw)
        self.params = VerifierParams(**values)

    def verify(self, words_a: Words, words_b: Words) -> bool:
        """True when the two views are geometrically consistent."""
        return self.check(Signature(id=0, words=dict(words_a)),
                          Signature(id=0, words=dict(words_b))).valid

    def check(self, sig_a: Optional[Signature], sig_b: Optional[Signature]) -> Verdict:
        """
        Unique word pairs -> RANSAC fundamental matrix -> inlier count test.

        Returns:
            Verdict named "epipolar"; valid=False with a REJECT_* reason when
            either view is missing, too few pairs match, or too few pairs are
            RANSAC inliers.
        """
        ev = Evidence()
        min_count = self.params.min_match_count

        if sig_a is None or sig_b is None:
            return self._record(sig_a, sig_b, Verdict(self.name, ev, valid=False, reason="REJECT_EPI_NO_SIGNATURE"))

        logger.debug("id(%d,%d)", sig_a.id, sig_b.id)

        count, pairs = find_pairs_unique(sig_a.words, sig_b.words)
        ev.num_matches = count
        ev.num_pairs = len(pairs)

        if len(pairs) < min_count:
            return self._record(
                sig_a,
                sig_b,
                Verdict(self.name, ev, valid=False, reason=f"REJECT_EPI_TOO_FEW_MATCHES:{len(pairs)}", pairs=pairs),
            )

        F, status = self.estimator(pairs, self.params.ransac_thresh_px, self.params.ransac_prob)
        status = np.asarray(status, dtype=bool).reshape(-1)
        inliers = int(np.count_nonzero(status))
        ev.num_inliers = inliers
        ev.inlier_ratio = float(inliers) / float(len(pairs) + 1e-9)

        if inliers < min_count:
            logger.debug(
                "Epipolar constraint failed: not enough inliers (%d/%d), min is %d",
                inliers, len(pairs), min_count,
            )
            reason = f"REJECT_EPI_TOO_FEW_INLIERS:{inliers}" if is_valid_fundamental(F) else "REJECT_EPI_NO_F"
            return self._record(sig_a, sig_b, Verdict(self.name, ev, valid=False, reason=reason, F=F, pairs=pairs, status=status))

        logger.debug("inliers = %d/%d", inliers, len(pairs))
        return self._record(sig_a, sig_b, Verdict(self.name, ev, valid=True, reason="EPI_OK", F=F, pairs=pairs, status=status))

    def _record(self, sig_a: Optional[Signature], sig_b: Optional[Signature], verdict: Verdict) -> Verdict:
        if self.telemetry is None:
            return verdict
        self.telemetry.log_record({
            "ids": [None if sig_a is None else int(sig_a.id), None if sig_b is None else int(sig_b.id)],
            "valid": bool(verdict.valid),
            "reason": str(verdict.reason),
            "num_matches": int(verdict.evidence.num_matches),
            "num_pairs": int(verdict.evidence.num_pairs),
            "num_inliers": int(verdict.evidence.num_inliers),
            "inlier_ratio": float(verdict.evidence.inlier_ratio),
        })
        return verdict
