from dataclasses import dataclass, field
from typing import List
import numpy as np

from ..modules.correspondence import Correspondence

@dataclass
class Evidence:
    num_matches: int = 0    # matcher count, ambiguous words included
    num_pairs: int = 0      # pairs handed to RANSAC
    num_inliers: int = 0
    inlier_ratio: float = 0.0

@dataclass
class Verdict:
    name: str
    evidence: Evidence
    valid: bool = True
    reason: str = ""
    F: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    pairs: List[Correspondence] = field(default_factory=list)
    status: np.ndarray = field(default_factory=lambda: np.zeros((0,), bool))

    def __bool__(self) -> bool:
        return self.valid
