# tests/conftest.py
# Synthetic pose builders: 33 landmarks of an upright, front-facing person (normalized coords, y down)
import math
from typing import List, Optional

import pytest

from formcoach.geometry.angles import Landmark
from formcoach.geometry import angles as idx

SEG = 0.15  # limb segment length


def _dir(deg: float, mirror: bool = False):
    # unit vector rotated ``deg`` away from straight up (0, -1); mirror flips x for the right side
    r = math.radians(deg)
    dx = math.sin(r)
    return (-dx if mirror else dx, -math.cos(r))


def base_frame() -> List[Landmark]:
    pts = [Landmark(0.5, 0.5) for _ in range(33)]
    pts[idx.NOSE] = Landmark(0.5, 0.1)
    for side, x, m in (("left", 0.45, -1), ("right", 0.55, 1)):
        sh, el, wr, hip, kn, an, toe = idx.SIDES[side]
        pts[sh] = Landmark(x, 0.30)
        pts[el] = Landmark(x, 0.45)
        pts[wr] = Landmark(x, 0.60)
        pts[hip] = Landmark(x, 0.60)
        pts[kn] = Landmark(x, 0.80)
        pts[an] = Landmark(x, 0.95)
        pts[toe] = Landmark(x - m * 0.02, 0.97)
    return pts


def bicep_frame(left: float, right: Optional[float] = None, elbow_drift: float = 0.0) -> List[Landmark]:
    """Elbow flexion ``left``/``right`` degrees; ``elbow_drift`` pushes elbows sideways (normalized units)."""
    right = left if right is None else right
    pts = base_frame()
    for side, ang, mirror in (("left", left, False), ("right", right, True)):
        sh, el, wr = idx.SIDES[side][:3]
        s = pts[sh]
        drift = -elbow_drift if side == "left" else elbow_drift
        e = Landmark(s.x + drift, s.y + SEG)
        pts[el] = e
        # the forearm sits ``ang`` degrees from the upper arm (which points up from the elbow)
        dx, dy = _dir(ang, mirror)
        pts[wr] = Landmark(e.x + SEG * dx, e.y + SEG * dy)
    return pts


def squat_frame(knee: float, back: float = 180.0) -> List[Landmark]:
    """Both knees at ``knee`` degrees; shoulder-hip-knee line at ``back`` degrees."""
    pts = base_frame()
    for side, mirror in (("left", False), ("right", True)):
        sh, _, _, hip, kn, an, toe = idx.SIDES[side]
        h = Landmark(pts[hip].x, 0.50)
        k = Landmark(h.x, 0.70)
        dx, dy = _dir(knee, mirror)
        a = Landmark(k.x + 0.2 * dx, k.y + 0.2 * dy)
        # shoulder placed ``back`` degrees from the hip→knee (downward) ray
        r = math.radians(back)
        sx = math.sin(r) * (-1 if mirror else 1)
        s = Landmark(h.x + 0.2 * sx, h.y + 0.2 * math.cos(r))
        pts[hip], pts[kn], pts[an], pts[sh] = h, k, a, s
        pts[toe] = Landmark(a.x + (-0.02 if mirror else 0.02), a.y + 0.02)
    return pts


def lateral_raise_frame(left: float, right: Optional[float] = None, left_lift: float = 0.0) -> List[Landmark]:
    """Shoulder abduction per arm with straight elbows; ``left_lift`` raises the left elbow (y units)."""
    right = left if right is None else right
    pts = base_frame()
    for side, ang, outward in (("left", left, -1), ("right", right, 1)):
        sh, el, wr, hip = idx.SIDES[side][:4]
        s = pts[sh]
        r = math.radians(ang)
        d = (outward * math.sin(r), math.cos(r))  # 0° = hanging down
        e = Landmark(s.x + SEG * d[0], s.y + SEG * d[1] - (left_lift if side == "left" else 0.0))
        pts[el] = e
        pts[wr] = Landmark(e.x + SEG * d[0], e.y + SEG * d[1])
    return pts


def press_frame(left: float, right: Optional[float] = None, lean: float = 0.0) -> List[Landmark]:
    """Elbow extension per arm with the upper arm horizontal; ``lean`` moves shoulders behind the hips."""
    right = left if right is None else right
    pts = base_frame()
    for side, ang, outward in (("left", left, -1), ("right", right, 1)):
        sh, el, wr = idx.SIDES[side][:3]
        s = Landmark(pts[sh].x - lean, pts[sh].y)
        e = Landmark(s.x + outward * 0.12, s.y)
        r = math.radians(ang)
        # forearm ``ang`` degrees from the elbow→shoulder ray, bending upward
        w = Landmark(e.x - outward * 0.12 * math.cos(r), e.y - 0.12 * math.sin(r))
        pts[sh], pts[el], pts[wr] = s, e, w
    return pts


def lunge_frame(knee: float, rear_knee: Optional[float] = None) -> List[Landmark]:
    """Left leg forward (higher ankle); both knees bend, rear thigh stays vertical under the torso."""
    rear_knee = knee if rear_knee is None else rear_knee
    pts = base_frame()
    for side, ang, mirror, hip_y in (("left", knee, False, 0.50), ("right", rear_knee, True, 0.53)):
        sh, _, _, hip, kn, an, toe = idx.SIDES[side]
        h = Landmark(pts[hip].x, hip_y)
        k = Landmark(h.x, hip_y + 0.2)
        dx, dy = _dir(ang, mirror)
        a = Landmark(k.x + 0.2 * dx, k.y + 0.2 * dy)
        pts[hip], pts[kn], pts[an] = h, k, a
        pts[sh] = Landmark(h.x, hip_y - 0.25)
        pts[toe] = Landmark(a.x, a.y + 0.02)
    return pts


def sweep(*points: float, step: float = 20.0) -> List[float]:
    """Piecewise-linear angle path through ``points`` in ``step``-degree increments."""
    out: List[float] = [points[0]]
    for a, b in zip(points, points[1:]):
        n = max(1, int(math.ceil(abs(b - a) / step)))
        out.extend(a + (b - a) * i / n for i in range(1, n + 1))
    return out


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.t = start

    def __call__(self) -> float:
        return self.t

    def advance(self, dt: float) -> float:
        self.t += dt
        return self.t


@pytest.fixture
def clock():
    return FakeClock()

