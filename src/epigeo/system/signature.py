from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import numpy as np

from ..modules.correspondence import words_from_observations


@dataclass
class Signature:
    """One view of the map: a node id and its visual-word observations."""
    id: int
    words: Dict[int, List[Tuple[float, float]]] = field(default_factory=dict)

    @classmethod
    def from_observations(cls, sig_id: int, ids, points: np.ndarray) -> "Signature":
        return cls(id=sig_id, words=words_from_observations(ids, points))
