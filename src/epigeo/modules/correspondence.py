# src/epigeo/modules/correspondence.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np

Point2 = Tuple[float, float]
Words = Mapping[int, Sequence[Point2]]


@dataclass(frozen=True)
class Correspondence:
    word_id: int
    pt_a: Point2
    pt_b: Point2


def words_from_observations(ids: Iterable[int], points: np.ndarray) -> Dict[int, List[Point2]]:
    """
    Group flat observations of one view by visual-word id.

    Args:
        ids: (N,) word ids, repeated ids allowed.
        points: (N,2) pixel coordinates aligned with ids.

    Returns:
        dict id -> list of (x, y), occurrences kept in input order.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    ids = [int(i) for i in ids]
    if len(ids) != pts.shape[0]:
        raise ValueError(f"ids/points length mismatch: {len(ids)} != {pts.shape[0]}")

    words: Dict[int, List[Point2]] = {}
    for word_id, (x, y) in zip(ids, pts):
        words.setdefault(word_id, []).append((float(x), float(y)))
    return words


def _shared_ids(words_a: Words, words_b: Words) -> List[int]:
    # ascending id order, only ids seen in both views
    return [i for i in sorted(words_a) if i in words_b]


def find_pairs_all(words_a: Words, words_b: Words) -> Tuple[int, List[Correspondence]]:
    """
    Cross-product of the occurrences of every shared id.

    a=[1 2 3 4 6 6], b=[1 1 2 4 5 6 6] gives
    (1,1a) (1,1b) (2,2) (4,4) (6a,6a) (6a,6b) (6b,6a) (6b,6b), count 5.
    """
    pairs: List[Correspondence] = []
    count = 0
    for word_id in _shared_ids(words_a, words_b):
        pts_a = words_a[word_id]
        pts_b = words_b[word_id]
        count += min(len(pts_a), len(pts_b))
        for pa in pts_a:
            for pb in pts_b:
                pairs.append(Correspondence(word_id, tuple(pa), tuple(pb)))
    return count, pairs


def find_pairs_unique(words_a: Words, words_b: Words) -> Tuple[int, List[Correspondence]]:
    """
    Only ids seen exactly once in each view produce a pair.

    Ambiguous ids are still counted with min(|A|, |B|), so the count can be
    larger than the number of pairs:
    a=[1 2 3 4 6 6], b=[1 1 2 4 5 6 6] gives (2,2) (4,4), count 5.
    """
    pairs: List[Correspondence] = []
    count = 0
    for word_id in _shared_ids(words_a, words_b):
        pts_a = words_a[word_id]
        pts_b = words_b[word_id]
        if len(pts_a) == 1 and len(pts_b) == 1:
            pairs.append(Correspondence(word_id, tuple(pts_a[0]), tuple(pts_b[0])))
            count += 1
        else:
            # one-vs-many ids are counted too, not only ids repeated in both views
            count += min(len(pts_a), len(pts_b))
    return count, pairs


def find_pairs_ordered(words_a: Words, words_b: Words) -> Tuple[int, List[Correspondence]]:
    """
    Same-position occurrences are paired until one side runs out.

    a=[1 2 3 4 6 6], b=[1 1 2 4 5 6 6] gives
    (1,1a) (2,2) (4,4) (6a,6a) (6b,6b), count 5.
    """
    pairs: List[Correspondence] = []
    for word_id in _shared_ids(words_a, words_b):
        for pa, pb in zip(words_a[word_id], words_b[word_id]):
            pairs.append(Correspondence(word_id, tuple(pa), tuple(pb)))
    return len(pairs), pairs


MATCHERS: Dict[str, Callable[[Words, Words], Tuple[int, List[Correspondence]]]] = {
    "all": find_pairs_all,
    "unique": find_pairs_unique,
    "ordered": find_pairs_ordered,
}


def find_pairs(words_a: Words, words_b: Words, policy: str = "unique") -> Tuple[int, List[Correspondence]]:
    try:
        matcher = MATCHERS[policy]
    except KeyError:
        raise ValueError(f"Unsupported pairing policy: {policy}") from None
    return matcher(words_a, words_b)


def pairs_to_points(pairs: Sequence[Correspondence]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Returns:
        pts_a: (N,2) float32 pixel coords in view A
        pts_b: (N,2) float32 pixel coords in view B
    """
    if len(pairs) == 0:
        return np.zeros((0, 2), np.float32), np.zeros((0, 2), np.float32)
    pts_a = np.array([p.pt_a for p in pairs], dtype=np.float32)
    pts_b = np.array([p.pt_b for p in pairs], dtype=np.float32)
    return pts_a, pts_b
