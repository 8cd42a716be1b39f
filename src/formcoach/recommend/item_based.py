# src/formcoach/recommend/item_based.py
from __future__ import annotations
from typing import Dict, List, Sequence

import numpy as np  # vector math for cosine similarity

from ..config import RECOMMEND_TOP_K
from ..io.storage import Rating, RatingStore


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    # Dot product over the overlapping prefix, magnitudes over each full vector; 0 when either is empty/zero
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    n = min(va.size, vb.size)
    dot = float(np.dot(va[:n], vb[:n]))
    mag_a = float(np.linalg.norm(va))
    mag_b = float(np.linalg.norm(vb))
    if mag_a > 0 and mag_b > 0:
        return dot / (mag_a * mag_b)
    return 0.0


def rating_vectors(ratings: Sequence[Rating]) -> Dict[str, List[float]]:
    # workout id → ratings in insertion order; dict keeps first-seen item order
    by_item: Dict[str, List[float]] = {}
    for r in ratings:
        by_item.setdefault(r.workout_id, []).append(float(r.rating))
    return by_item


class ItemBasedRecommender:
    """Ranks other rated items by cosine similarity to the most recently rated one."""
    def __init__(self, ratings: RatingStore):
        self.ratings = ratings

    def recommend(self, k: int = RECOMMEND_TOP_K) -> List[str]:
        if k <= 0:
            raise ValueError("k must be > 0")
        ratings = self.ratings.all()
        by_item = rating_vectors(ratings)
        if len(by_item) < 2:
            return []
        last = ratings[-1].workout_id
        target = by_item[last]
        scored = [(item, cosine(target, vec)) for item, vec in by_item.items() if item != last]
        scored.sort(key=lambda p: p[1], reverse=True)  # stable: ties keep insertion order
        return [item for item, _ in scored[:k]]
