# src/formcoach/analysis/rep_detector.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from ..activities.exercise_defs import ExerciseParams
from ..config import CoachSettings, MIN_MOVEMENT_DEG, SIDE_COMPLETION_WINDOW_S, MIN_TIME_BETWEEN_REPS_S
from .form_rules import FormError

logger = logging.getLogger(__name__)


class RepStage(Enum):
    WAITING = "waiting"  # before the first rep starts
    DOWN = "down"        # start threshold crossed, working toward completion
    UP = "up"            # rep completed, waiting for the next start


STAGE_LABELS: Dict[RepStage, str] = {
    RepStage.WAITING: "READY",
    RepStage.DOWN: "DOWN",
    RepStage.UP: "UP",
}


@dataclass
class CycleParams:
    # Noise-rejection and timing knobs shared by both cycle variants (seconds / degrees)
    min_movement_deg: float = MIN_MOVEMENT_DEG          # single-angle: change needed to act while WAITING
    side_window_s: float = SIDE_COMPLETION_WINDOW_S     # bilateral: both sides must finish within this window
    min_rep_interval_s: float = MIN_TIME_BETWEEN_REPS_S  # cooldown between counted reps

    @classmethod
    def from_settings(cls, s: CoachSettings) -> "CycleParams":
        return cls(
            min_movement_deg=s.min_movement_deg,
            side_window_s=s.side_completion_window_s,
            min_rep_interval_s=s.min_time_between_reps_s,
        )


@dataclass(frozen=True)
class RepEvent:
    t: float                          # time the rep was counted
    rep_count: int                    # total after this rep
    angle: float                      # tracked angle at completion
    errors: Tuple[FormError, ...]     # form errors of the completing frame
    consecutive_good_reps: int

    @property
    def good(self) -> bool:
        return not self.errors


class _RepCycle:
    """Shared counters and the single counting gate used by both variants."""
    def __init__(self, exercise: ExerciseParams, params: Optional[CycleParams] = None) -> None:
        self.exercise = exercise
        self.p = params or CycleParams()
        self.reset()

    def reset(self) -> None:
        self.stage = RepStage.WAITING
        self.rep_count = 0
        self.consecutive_good_reps = 0
        self.last_rep_t: Optional[float] = None

    def count_rep(self, t: float, is_moving: bool, angle: float,
                  errors: Tuple[FormError, ...]) -> Optional[RepEvent]:
        """
        Final anti-double-count gate: a rep is only credited while the subject is
        moving and at least ``min_rep_interval_s`` after the previous counted rep.
        Returns the RepEvent when counted, else None (caller keeps its stage).
        """
        if not is_moving:
            return None
        if self.last_rep_t is not None and (t - self.last_rep_t) < self.p.min_rep_interval_s:
            return None

        self.rep_count += 1
        self.last_rep_t = t
        if errors:
            self.consecutive_good_reps = 0
        else:
            self.consecutive_good_reps += 1
        logger.info("rep %d counted (angle=%.1f, errors=%s)", self.rep_count, angle,
                    [e.name for e in errors] or "none")
        return RepEvent(t=t, rep_count=self.rep_count, angle=float(angle),
                        errors=tuple(errors), consecutive_good_reps=self.consecutive_good_reps)


class SingleAngleRepCycle(_RepCycle):
    """
    WAITING → DOWN → UP cycle driven by one averaged angle (used for squats).

    While WAITING, frames whose angle moved less than ``min_movement_deg`` since
    the previous frame are ignored; once a rep is under way every frame is
    considered so a slow bottom position does not stall the cycle.
    """
    def reset(self) -> None:
        super().reset()
        self.last_angle = 0.0

    def update(self, t: float, angle: float, is_moving: bool,
               errors: Tuple[FormError, ...] = ()) -> Optional[RepEvent]:
        change = abs(angle - self.last_angle)
        self.last_angle = angle
        if change <= self.p.min_movement_deg and self.stage == RepStage.WAITING:
            return None

        ex = self.exercise
        if self.stage in (RepStage.WAITING, RepStage.UP):
            if angle <= ex.rep_start_threshold:
                self.stage = RepStage.DOWN
        elif self.stage == RepStage.DOWN:
            if angle >= ex.rep_completion_threshold:
                event = self.count_rep(t, is_moving, angle, errors)
                if event is not None:
                    self.stage = RepStage.UP
                return event
        return None


class BilateralRepCycle(_RepCycle):
    """
    Two-limb variant: each side must reach the threshold for the current phase
    (start threshold while WAITING/UP, completion threshold while DOWN) and both
    must do so within ``side_window_s`` before the stage advances.

    Logic sequence:
      WAITING --both down--> DOWN --both up (+1 rep)--> UP --both down--> DOWN ...

    A half-finished phase (one side only) is dropped once the window lapses.
    """
    def reset(self) -> None:
        super().reset()
        self.left_complete = False
        self.right_complete = False
        self.last_side_change_t: Optional[float] = None  # last time either side reached its threshold

    def check_side(self, side: str, angle: float, t: float) -> None:
        ex = self.exercise
        if self.stage in (RepStage.WAITING, RepStage.UP):
            reached = angle <= ex.rep_start_threshold
        else:
            reached = angle >= ex.rep_completion_threshold
        if not reached:
            return
        if side == "left":
            self.left_complete = True
        else:
            self.right_complete = True
        self.last_side_change_t = t

    def check_completion(self, t: float, is_moving: bool, angle: float,
                         errors: Tuple[FormError, ...] = ()) -> Optional[RepEvent]:
        within = self.last_side_change_t is not None and (t - self.last_side_change_t) < self.p.side_window_s
        event = None
        if is_moving and self.left_complete and self.right_complete and within:
            if self.stage == RepStage.DOWN:
                event = self.count_rep(t, is_moving, angle, errors)
                if event is not None:
                    self.stage = RepStage.UP
            else:  # WAITING or UP: both limbs are down, next cycle begins
                self.stage = RepStage.DOWN
            self.left_complete = False
            self.right_complete = False
        elif not within:
            self.left_complete = False
            self.right_complete = False
        return event

    def update(self, t: float, left: Optional[float], right: Optional[float], is_moving: bool,
               angle: float, errors: Tuple[FormError, ...] = ()) -> Optional[RepEvent]:
        # Sides that were not visible this frame keep whatever flag they already had
        if left is not None:
            self.check_side("left", left, t)
        if right is not None:
            self.check_side("right", right, t)
        return self.check_completion(t, is_moving, angle, errors)
