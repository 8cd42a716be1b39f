# src/formcoach/geometry/angles.py
from __future__ import annotations
from dataclasses import dataclass  # immutable landmark record
from typing import Any, Dict, List, Optional, Sequence, Tuple  # type hints for structured data
import math  # trigonometry

from ..config import KP_CONF_THRESH

# BlazePose 33-point anatomical index scheme (only the joints the coach reads)
NOSE = 0
LEFT_SHOULDER, RIGHT_SHOULDER = 11, 12
LEFT_ELBOW, RIGHT_ELBOW = 13, 14
LEFT_WRIST, RIGHT_WRIST = 15, 16
LEFT_HIP, RIGHT_HIP = 23, 24
LEFT_KNEE, RIGHT_KNEE = 25, 26
LEFT_ANKLE, RIGHT_ANKLE = 27, 28
LEFT_FOOT_INDEX, RIGHT_FOOT_INDEX = 31, 32  # toes

# side → (shoulder, elbow, wrist, hip, knee, ankle, toe)
SIDES: Dict[str, Tuple[int, ...]] = {
    "left": (LEFT_SHOULDER, LEFT_ELBOW, LEFT_WRIST, LEFT_HIP, LEFT_KNEE, LEFT_ANKLE, LEFT_FOOT_INDEX),
    "right": (RIGHT_SHOULDER, RIGHT_ELBOW, RIGHT_WRIST, RIGHT_HIP, RIGHT_KNEE, RIGHT_ANKLE, RIGHT_FOOT_INDEX),
}


@dataclass(frozen=True)
class Landmark:
    # Normalized image coordinates (y grows downward); z defaults to 0 for 2D detectors
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None  # None → detector gave no score, treated as confident


PoseFrame = Sequence[Landmark]  # index-addressed, up to 33 entries


def is_confident(lm: Optional[Landmark], thresh: float = KP_CONF_THRESH) -> bool:
    # A landmark is usable when present and either unscored or scored >= thresh
    if lm is None:
        return False
    return lm.visibility is None or lm.visibility >= thresh


def landmark_at(frame: PoseFrame, idx: int) -> Optional[Landmark]:
    # Safe index access for partial detections
    if 0 <= idx < len(frame):
        return frame[idx]
    return None


def angle_at(a: Landmark, b: Landmark, c: Landmark) -> float:
    """Angle in degrees at vertex ``b`` between rays b→a and b→c, in [0, 180].

    Coincident points fall through ``atan2(0, 0) == 0`` and give 0.
    """
    radians = math.atan2(c.y - b.y, c.x - b.x) - math.atan2(a.y - b.y, a.x - b.x)
    angle = abs(math.degrees(radians))
    if angle > 180.0:
        angle = 360.0 - angle  # reflect into [0, 180]
    return angle


def angle_with_vertical(p1: Landmark, p2: Landmark) -> float:
    """Angle in degrees between p1→p2 and the image-up reference (0, -1), folded into [0, 180]."""
    dx = p2.x - p1.x
    dy = p2.y - p1.y
    angle = math.degrees(math.atan2(dx, -dy))
    if angle < 0:
        angle += 180.0
    return angle


def vertical_deviation(p1: Landmark, p2: Landmark) -> float:
    # Distance of p1→p2 from the vertical line in [0, 90], mirror-invariant so left/right limbs compare
    v = angle_with_vertical(p1, p2)
    return min(v, 180.0 - v)


def mean_of(values: List[float]) -> Optional[float]:
    # Average of the visible-side readings, None when nothing was visible
    if not values:
        return None
    return sum(values) / len(values)


def to_landmarks(points: Sequence[Any]) -> List[Landmark]:
    """Convert detector output into Landmarks.

    Accepts ``Landmark`` objects, dicts with ``x``/``y`` (optional ``z``,
    ``visibility``) or plain ``(x, y[, z])`` tuples.
    """
    out: List[Landmark] = []
    for p in points:
        if isinstance(p, Landmark):
            out.append(p)
        elif isinstance(p, dict):
            out.append(Landmark(float(p["x"]), float(p["y"]), float(p.get("z") or 0.0), p.get("visibility")))
        else:
            vals = tuple(p)
            out.append(Landmark(float(vals[0]), float(vals[1]), float(vals[2]) if len(vals) > 2 else 0.0))
    return out
