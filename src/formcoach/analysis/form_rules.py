# src/formcoach/analysis/form_rules.py
from __future__ import annotations
from dataclasses import dataclass, field  # lightweight result containers
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple  # type hints

from ..activities.exercise_defs import ExerciseType
from ..config import (
    KP_CONF_THRESH, LIMB_DRIFT_DEG, POSITION_TOLERANCE, STRAIGHT_LINE_TOLERANCE_DEG,
    ELBOW_BENT_MIN_DEG, PRESS_SYMMETRY_DEG, LUNGE_DEPTH_CHECK_DEG, PERFECT_FORM_STREAK,
)
from ..geometry.angles import (
    Landmark, PoseFrame, SIDES, LEFT_ANKLE, RIGHT_ANKLE,
    angle_at, is_confident, landmark_at, mean_of, vertical_deviation,
)


class FormError(Enum):
    ELBOW_AWAY_FROM_BODY = "elbow_away_from_body"
    KNEES_OVER_TOES = "knees_over_toes"
    BACK_NOT_STRAIGHT = "back_not_straight"
    ASYMMETRIC_MOVEMENT = "asymmetric_movement"
    ELBOWS_TOO_BENT = "elbows_too_bent"
    BACK_ARCHING = "back_arching"


FORM_ERROR_MESSAGES: Dict[FormError, str] = {
    FormError.ELBOW_AWAY_FROM_BODY: "Keep elbows close to body",
    FormError.KNEES_OVER_TOES: "Knees going past toes",
    FormError.BACK_NOT_STRAIGHT: "Straighten your back",
    FormError.ASYMMETRIC_MOVEMENT: "Keep movement even",
    FormError.ELBOWS_TOO_BENT: "Straighten elbows slightly",
    FormError.BACK_ARCHING: "Avoid arching your back",
}


def feedback_text(errors: Tuple[FormError, ...], consecutive_good_reps: int) -> str:
    # The UI shows only the first error; the full tuple stays on the reading
    if errors:
        return FORM_ERROR_MESSAGES[errors[0]]
    return "Perfect Form!" if consecutive_good_reps >= PERFECT_FORM_STREAK else "Good Form"


@dataclass(frozen=True)
class FormReading:
    """Everything one frame says about the exercise.

    ``angle`` is the tracked (display / single-angle cycle) value,
    ``left`` / ``right`` are the per-limb signals for bilateral cycles
    (None when that side was not confidently visible).
    """
    angle: float
    left: Optional[float] = None
    right: Optional[float] = None
    errors: Tuple[FormError, ...] = field(default_factory=tuple)


class _Errors:
    # Ordered, de-duplicated error collector for a single frame
    def __init__(self) -> None:
        self.items: List[FormError] = []

    def add(self, err: FormError) -> None:
        if err not in self.items:
            self.items.append(err)

    def freeze(self) -> Tuple[FormError, ...]:
        return tuple(self.items)


def _side(frame: PoseFrame, side: str) -> Dict[str, Optional[Landmark]]:
    names = ("shoulder", "elbow", "wrist", "hip", "knee", "ankle", "toe")
    return {n: landmark_at(frame, i) for n, i in zip(names, SIDES[side])}


def _ok(*lms: Optional[Landmark], thresh: float = KP_CONF_THRESH) -> bool:
    return all(is_confident(lm, thresh) for lm in lms)


def _not_straight(a: Landmark, b: Landmark, c: Landmark) -> bool:
    # Three points that should form a line (shoulder-hip-knee) bent beyond tolerance
    return abs(angle_at(a, b, c) - 180.0) > STRAIGHT_LINE_TOLERANCE_DEG


# ---------------------------------------------------------------------
# Bicep curl: elbow flexion per arm, elbow must stay tucked to torso
# ---------------------------------------------------------------------
def evaluate_bicep(frame: PoseFrame, thresh: float = KP_CONF_THRESH) -> Optional[FormReading]:
    errs = _Errors()
    per_side: Dict[str, Optional[float]] = {"left": None, "right": None}
    for side in ("left", "right"):
        s = _side(frame, side)
        if not _ok(s["shoulder"], s["elbow"], s["wrist"], thresh=thresh):
            continue
        per_side[side] = angle_at(s["shoulder"], s["elbow"], s["wrist"])
        if _ok(s["hip"], thresh=thresh):
            if angle_at(s["shoulder"], s["hip"], s["elbow"]) > LIMB_DRIFT_DEG:
                errs.add(FormError.ELBOW_AWAY_FROM_BODY)
    dominant = mean_of([a for a in per_side.values() if a is not None])
    if dominant is None:
        return None
    return FormReading(dominant, per_side["left"], per_side["right"], errs.freeze())


# ---------------------------------------------------------------------
# Squat: averaged knee flexion, knees behind toes, straight back line
# ---------------------------------------------------------------------
def evaluate_squat(frame: PoseFrame, thresh: float = KP_CONF_THRESH) -> Optional[FormReading]:
    L, R = _side(frame, "left"), _side(frame, "right")
    knees: Dict[str, Optional[float]] = {"left": None, "right": None}
    for side, s in (("left", L), ("right", R)):
        if _ok(s["hip"], s["knee"], s["ankle"], thresh=thresh):
            knees[side] = angle_at(s["hip"], s["knee"], s["ankle"])
    knee_angle = mean_of([a for a in knees.values() if a is not None])
    if knee_angle is None:
        return None  # no reliable knee

    errs = _Errors()
    # toes are optional (partial 29-point detections stop at the ankles)
    if _ok(L["knee"], L["toe"], thresh=thresh):
        if L["knee"].x > L["toe"].x + POSITION_TOLERANCE:
            errs.add(FormError.KNEES_OVER_TOES)
    elif _ok(R["knee"], R["toe"], thresh=thresh):
        if R["knee"].x < R["toe"].x - POSITION_TOLERANCE:  # mirrored for the right side
            errs.add(FormError.KNEES_OVER_TOES)

    for s in (L, R):  # left side first, right as fallback
        if _ok(s["shoulder"], s["hip"], s["knee"], thresh=thresh):
            if _not_straight(s["shoulder"], s["hip"], s["knee"]):
                errs.add(FormError.BACK_NOT_STRAIGHT)
            break
    return FormReading(knee_angle, knees["left"], knees["right"], errs.freeze())


# ---------------------------------------------------------------------
# Lateral raise: shoulder abduction (hip-shoulder-elbow), even arms, soft elbows
# ---------------------------------------------------------------------
def evaluate_lateral_raise(frame: PoseFrame, thresh: float = KP_CONF_THRESH) -> Optional[FormReading]:
    L, R = _side(frame, "left"), _side(frame, "right")
    arms: Dict[str, Optional[float]] = {"left": None, "right": None}
    for side, s in (("left", L), ("right", R)):
        if _ok(s["hip"], s["shoulder"], s["elbow"], thresh=thresh):
            arms[side] = angle_at(s["hip"], s["shoulder"], s["elbow"])
    arm_angle = mean_of([a for a in arms.values() if a is not None])
    if arm_angle is None:
        return None

    errs = _Errors()
    if _ok(L["elbow"], R["elbow"], thresh=thresh):
        if abs(L["elbow"].y - R["elbow"].y) > POSITION_TOLERANCE:
            errs.add(FormError.ASYMMETRIC_MOVEMENT)
    for s in (L, R):
        if _ok(s["shoulder"], s["elbow"], s["wrist"], thresh=thresh):
            if angle_at(s["shoulder"], s["elbow"], s["wrist"]) < ELBOW_BENT_MIN_DEG:
                errs.add(FormError.ELBOWS_TOO_BENT)
    return FormReading(arm_angle, arms["left"], arms["right"], errs.freeze())


# ---------------------------------------------------------------------
# Lunges: both knees tracked; the front leg (higher ankle on screen) drives display + checks
# ---------------------------------------------------------------------
def front_side(frame: PoseFrame) -> str:
    la, ra = landmark_at(frame, LEFT_ANKLE), landmark_at(frame, RIGHT_ANKLE)
    if la is None or ra is None:
        return "left"
    return "left" if la.y < ra.y else "right"


def evaluate_lunges(frame: PoseFrame, thresh: float = KP_CONF_THRESH) -> Optional[FormReading]:
    front = front_side(frame)
    rear = "right" if front == "left" else "left"
    F, B = _side(frame, front), _side(frame, rear)
    if not _ok(F["hip"], F["knee"], F["ankle"], thresh=thresh):
        return None

    knees: Dict[str, Optional[float]] = {"left": None, "right": None}
    knees[front] = angle_at(F["hip"], F["knee"], F["ankle"])
    if _ok(B["hip"], B["knee"], B["ankle"], thresh=thresh):
        knees[rear] = angle_at(B["hip"], B["knee"], B["ankle"])
    front_angle = knees[front]

    errs = _Errors()
    if front_angle < LUNGE_DEPTH_CHECK_DEG:
        if front == "left":
            past = F["knee"].x > F["ankle"].x + POSITION_TOLERANCE
        else:
            past = F["knee"].x < F["ankle"].x - POSITION_TOLERANCE
        if past:
            errs.add(FormError.KNEES_OVER_TOES)
    # torso line is read through the rear thigh, which stays near vertical when upright
    if _ok(B["shoulder"], B["hip"], B["knee"], thresh=thresh):
        if _not_straight(B["shoulder"], B["hip"], B["knee"]):
            errs.add(FormError.BACK_NOT_STRAIGHT)
    return FormReading(front_angle, knees["left"], knees["right"], errs.freeze())


# ---------------------------------------------------------------------
# Shoulder press: elbow extension per arm, even arm paths, no backward lean
# ---------------------------------------------------------------------
def evaluate_shoulder_press(frame: PoseFrame, thresh: float = KP_CONF_THRESH) -> Optional[FormReading]:
    L, R = _side(frame, "left"), _side(frame, "right")
    arms: Dict[str, Optional[float]] = {"left": None, "right": None}
    tilt: Dict[str, Optional[float]] = {"left": None, "right": None}
    for side, s in (("left", L), ("right", R)):
        if _ok(s["shoulder"], s["wrist"], thresh=thresh):
            tilt[side] = vertical_deviation(s["shoulder"], s["wrist"])
            if _ok(s["elbow"], thresh=thresh):
                arms[side] = angle_at(s["shoulder"], s["elbow"], s["wrist"])
    press_angle = mean_of([a for a in arms.values() if a is not None])
    if press_angle is None:
        return None

    errs = _Errors()
    if tilt["left"] is not None and tilt["right"] is not None:
        if abs(tilt["left"] - tilt["right"]) > PRESS_SYMMETRY_DEG:
            errs.add(FormError.ASYMMETRIC_MOVEMENT)
    if _ok(L["hip"], L["shoulder"], thresh=thresh):
        if L["shoulder"].x < L["hip"].x - POSITION_TOLERANCE:  # shoulders behind hips → arching
            errs.add(FormError.BACK_ARCHING)
    return FormReading(press_angle, arms["left"], arms["right"], errs.freeze())


EVALUATORS: Dict[ExerciseType, Callable[..., Optional[FormReading]]] = {
    ExerciseType.BICEP: evaluate_bicep,
    ExerciseType.SQUAT: evaluate_squat,
    ExerciseType.LATERAL_RAISE: evaluate_lateral_raise,
    ExerciseType.LUNGES: evaluate_lunges,
    ExerciseType.SHOULDER_PRESS: evaluate_shoulder_press,
}


def read_pose(exercise: ExerciseType, frame: PoseFrame, thresh: float = KP_CONF_THRESH) -> Optional[FormReading]:
    """Run the exercise's angle extraction and form rules on one frame (None when unreadable)."""
    return EVALUATORS[exercise](frame, thresh=thresh)


def evaluate_form(exercise: ExerciseType, frame: PoseFrame, thresh: float = KP_CONF_THRESH) -> Tuple[FormError, ...]:
    reading = read_pose(exercise, frame, thresh)
    return reading.errors if reading is not None else ()
