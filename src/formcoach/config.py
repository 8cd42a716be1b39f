# src/formcoach/config.py
"""Shared constants and tunable settings for rep counting and difficulty control."""
from __future__ import annotations
import json
from dataclasses import dataclass, fields, asdict
from typing import Any, Dict

# ── Landmarks ────────────────────────────────────────────────────────────────
NUM_LANDMARKS = 33          # full pose frame (BlazePose index scheme)
KP_CONF_THRESH = 0.5        # min visibility for a landmark to be trusted

# ── Rep cycle / noise rejection ──────────────────────────────────────────────
MIN_MOVEMENT_DEG = 15.0             # single-angle cycle: frame-to-frame change needed to leave WAITING
ANGLE_CHANGE_THRESHOLD_DEG = 5.0    # movement detector uses 2x this over the history window
ANGLE_HISTORY_SIZE = 5              # samples kept by the movement detector
MOVEMENT_TIMEOUT_S = 1.0            # stillness needed before isMoving drops back to False
SIDE_COMPLETION_WINDOW_S = 1.5      # both limbs must finish a phase inside this window
MIN_TIME_BETWEEN_REPS_S = 1.5       # cooldown between two counted reps
ALERT_DURATION_MS = 300             # bad-form flash/beep length
PERFECT_FORM_STREAK = 3             # consecutive good reps before "Perfect Form!"

# ── Form rule tolerances ─────────────────────────────────────────────────────
LIMB_DRIFT_DEG = 30.0               # elbow drifting away from torso
POSITION_TOLERANCE = 0.05           # normalized coordinate offset (knee past toe, lean, height mismatch)
STRAIGHT_LINE_TOLERANCE_DEG = 25.0  # deviation of a 3-point line from 180
ELBOW_BENT_MIN_DEG = 150.0          # lateral raise: elbow angle below this is too bent
PRESS_SYMMETRY_DEG = 15.0           # shoulder press: left/right vertical deviation mismatch
LUNGE_DEPTH_CHECK_DEG = 80.0        # lunges: knee-over-toe only checked below this knee angle

# ── Adaptive difficulty (tabular Q-learning) ─────────────────────────────────
RL_ALPHA = 0.1
RL_GAMMA = 0.9
RL_EPSILON = 0.1
RL_ACTIONS = (-1, 0, 1)
RL_BATCH = 5
RL_TARGET_ANGLE = 45.0
RL_TARGET_TOLERANCE = 5.0
MIN_DIFFICULTY = 1
Q_TABLE_KEY = "q_table"

# ── Recommender ──────────────────────────────────────────────────────────────
RECOMMEND_TOP_K = 3
MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class CoachSettings:
    """Tunable thresholds grouped so a host can override them from a JSON file."""
    min_movement_deg: float = MIN_MOVEMENT_DEG
    angle_change_threshold_deg: float = ANGLE_CHANGE_THRESHOLD_DEG
    angle_history_size: int = ANGLE_HISTORY_SIZE
    movement_timeout_s: float = MOVEMENT_TIMEOUT_S
    side_completion_window_s: float = SIDE_COMPLETION_WINDOW_S
    min_time_between_reps_s: float = MIN_TIME_BETWEEN_REPS_S
    alert_duration_ms: int = ALERT_DURATION_MS
    kp_conf_thresh: float = KP_CONF_THRESH
    rl_batch: int = RL_BATCH
    rl_epsilon: float = RL_EPSILON

    def __post_init__(self) -> None:
        if self.angle_history_size < 3:  # movement detection compares oldest/newest of >= 3
            raise ValueError("angle_history_size must be >= 3")
        if self.rl_batch <= 0:
            raise ValueError("rl_batch must be > 0")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoachSettings":
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(unknown)}")
        values = {}
        for k, v in data.items():
            caster = int if known[k].type in ("int", int) else float
            values[k] = caster(v)
        return cls(**values)

    @classmethod
    def from_json(cls, path: str) -> "CoachSettings":
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_dict(json.load(f))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
