# src/formcoach/analysis/tracker.py
from __future__ import annotations
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Tuple

from PySide6 import QtCore  # signals for rep / alert / frame events

from ..activities.exercise_defs import ExerciseType, BILATERAL, REQUIRED_LANDMARKS, params_for
from ..config import CoachSettings
from ..geometry.angles import to_landmarks
from .form_rules import FormError, FormReading, feedback_text, read_pose
from .movement import MovementDetector
from .rep_detector import (
    BilateralRepCycle, CycleParams, RepEvent, RepStage, SingleAngleRepCycle, STAGE_LABELS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameResult:
    t: float
    exercise: ExerciseType
    angle: float                     # tracked angle (degrees)
    stage: RepStage
    errors: Tuple[FormError, ...]    # this frame's errors, possibly empty
    rep_count: int
    consecutive_good_reps: int
    is_moving: bool
    distance: Optional[float] = None
    rep: Optional[RepEvent] = None   # set on the frame that completed a rep

    @property
    def stage_label(self) -> str:
        return STAGE_LABELS[self.stage]

    @property
    def feedback(self) -> str:
        return feedback_text(self.errors, self.consecutive_good_reps)


class ExerciseTracker(QtCore.QObject):
    """
    Per-workout rep counter and form checker fed one pose frame at a time.

    Frames with too few landmarks (or no confidently visible working limb) are
    skipped without touching any state. Hosts subscribe to:

    - ``rep_completed(RepEvent)`` on every counted rep,
    - ``alert_raised(int)`` when a rep is counted with bad form (flash duration in ms),
    - ``frame_processed(FrameResult)`` after every frame that was read.
    """
    rep_completed = QtCore.Signal(object)
    alert_raised = QtCore.Signal(int)
    frame_processed = QtCore.Signal(object)

    def __init__(self, exercise: "ExerciseType | str" = ExerciseType.BICEP,
                 settings: Optional[CoachSettings] = None,
                 clock: Callable[[], float] = time.monotonic,
                 parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)
        self.settings = settings or CoachSettings()
        self._clock = clock
        self._exercise = ExerciseType.parse(exercise)
        self.reset()

    # ---------------- configuration ----------------
    @property
    def exercise(self) -> ExerciseType:
        return self._exercise

    @exercise.setter
    def exercise(self, value: "ExerciseType | str") -> None:
        # switching exercise always starts a fresh cycle
        self._exercise = ExerciseType.parse(value)
        self.reset()

    @property
    def primary_tip(self) -> str:
        return params_for(self._exercise).primary_tip

    def reset(self) -> None:
        s = self.settings
        cp = CycleParams.from_settings(s)
        if self._exercise in BILATERAL:
            self.cycle = BilateralRepCycle(params_for(self._exercise), cp)
        else:
            self.cycle = SingleAngleRepCycle(params_for(self._exercise), cp)
        self.movement = MovementDetector(s.angle_history_size, s.angle_change_threshold_deg, s.movement_timeout_s)
        self.current_angle = 0.0
        self.current_errors: Tuple[FormError, ...] = ()
        self.distance: Optional[float] = None
        self.rep_just_completed = False

    # ---------------- state accessors ----------------
    @property
    def rep_count(self) -> int:
        return self.cycle.rep_count

    @property
    def stage(self) -> RepStage:
        return self.cycle.stage

    @property
    def consecutive_good_reps(self) -> int:
        return self.cycle.consecutive_good_reps

    @property
    def is_moving(self) -> bool:
        return self.movement.is_moving

    # ---------------- frame processing ----------------
    def _read(self, landmarks: Sequence[Any]) -> Optional[FormReading]:
        if len(landmarks) < REQUIRED_LANDMARKS[self._exercise]:
            logger.debug("skip frame: %d landmarks, %s needs %d", len(landmarks),
                         self._exercise.name, REQUIRED_LANDMARKS[self._exercise])
            return None
        try:
            reading = read_pose(self._exercise, to_landmarks(landmarks), self.settings.kp_conf_thresh)
        except (KeyError, TypeError, ValueError, IndexError) as exc:  # malformed detector output
            logger.warning("skip frame: unreadable landmarks (%s)", exc)
            return None
        if reading is None:
            logger.debug("skip frame: working limbs not visible")
            return None
        if not math.isfinite(reading.angle):
            logger.debug("skip frame: non-finite angle")
            return None
        return reading

    def process_frame(self, landmarks: Sequence[Any], distance: Optional[float] = None,
                      t: Optional[float] = None) -> Optional[FrameResult]:
        """
        Feed one pose frame (index-addressed landmarks) at time ``t`` (seconds,
        defaults to the tracker clock). Returns None for skipped frames.
        """
        reading = self._read(landmarks)
        if reading is None:
            return None
        t = self._clock() if t is None else t

        self.distance = distance
        self.current_angle = reading.angle
        self.current_errors = reading.errors

        moving = self.movement.update(t, reading.angle)
        if isinstance(self.cycle, BilateralRepCycle):
            event = self.cycle.update(t, reading.left, reading.right, moving, reading.angle, reading.errors)
        else:
            event = self.cycle.update(t, reading.angle, moving, reading.errors)
        self.rep_just_completed = event is not None

        result = FrameResult(
            t=t, exercise=self._exercise, angle=reading.angle, stage=self.cycle.stage,
            errors=reading.errors, rep_count=self.cycle.rep_count,
            consecutive_good_reps=self.cycle.consecutive_good_reps,
            is_moving=moving, distance=distance, rep=event,
        )
        if event is not None:
            self.rep_completed.emit(event)
            if not event.good:
                self.alert_raised.emit(self.settings.alert_duration_ms)
        self.frame_processed.emit(result)
        return result
