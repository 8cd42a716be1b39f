# src/formcoach/activities/exercise_defs.py
# Static per-exercise thresholds and coaching text consumed by the rep cycle and form rules
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class ExerciseType(Enum):
    BICEP = "bicep"
    SQUAT = "squat"
    LATERAL_RAISE = "lateral_raise"
    LUNGES = "lunges"
    SHOULDER_PRESS = "shoulder_press"

    @classmethod
    def parse(cls, value: "str | ExerciseType") -> "ExerciseType":
        # Boundary validation: accepts enum members, values ("lateral_raise") or names ("LATERAL_RAISE")
        if isinstance(value, cls):
            return value
        key = str(value).strip()
        for member in cls:
            if key.lower() == member.value or key.upper() == member.name:
                return member
        raise ValueError(f"Unknown exercise type: {value!r}")


@dataclass(frozen=True)
class ExerciseParams:
    min_angle: float
    max_angle: float
    perfect_form_min_angle: float
    perfect_form_max_angle: float
    rep_completion_threshold: float  # angle >= this closes the DOWN phase
    rep_start_threshold: float       # angle <= this opens the DOWN phase
    primary_tip: str


EXERCISE_PARAMS: Dict[ExerciseType, ExerciseParams] = {
    ExerciseType.BICEP: ExerciseParams(
        min_angle=30.0, max_angle=160.0,
        perfect_form_min_angle=45.0, perfect_form_max_angle=150.0,
        rep_completion_threshold=140.0, rep_start_threshold=60.0,
        primary_tip="Keep elbows close to body",
    ),
    ExerciseType.SQUAT: ExerciseParams(
        min_angle=70.0, max_angle=170.0,
        perfect_form_min_angle=80.0, perfect_form_max_angle=160.0,
        rep_completion_threshold=150.0, rep_start_threshold=90.0,
        primary_tip="Keep knees aligned with toes",
    ),
    ExerciseType.LATERAL_RAISE: ExerciseParams(
        min_angle=10.0, max_angle=100.0,
        perfect_form_min_angle=20.0, perfect_form_max_angle=90.0,
        rep_completion_threshold=80.0, rep_start_threshold=30.0,
        primary_tip="Keep slight bend in elbows",
    ),
    ExerciseType.LUNGES: ExerciseParams(
        min_angle=70.0, max_angle=170.0,
        perfect_form_min_angle=90.0, perfect_form_max_angle=160.0,
        rep_completion_threshold=150.0, rep_start_threshold=100.0,
        primary_tip="Front knee should not extend past toes",
    ),
    ExerciseType.SHOULDER_PRESS: ExerciseParams(
        min_angle=10.0, max_angle=170.0,
        perfect_form_min_angle=20.0, perfect_form_max_angle=160.0,
        rep_completion_threshold=150.0, rep_start_threshold=60.0,
        primary_tip="Keep core engaged and avoid arching back",
    ),
}

# Exercises whose reps need both limbs to finish each phase
BILATERAL = frozenset({
    ExerciseType.BICEP, ExerciseType.LATERAL_RAISE, ExerciseType.LUNGES, ExerciseType.SHOULDER_PRESS,
})

# Minimum landmarks in a frame before an exercise is processed (highest index read + 1)
REQUIRED_LANDMARKS: Dict[ExerciseType, int] = {
    ExerciseType.BICEP: 17,
    ExerciseType.SQUAT: 29,
    ExerciseType.LATERAL_RAISE: 25,
    ExerciseType.LUNGES: 29,
    ExerciseType.SHOULDER_PRESS: 24,
}

# Angle the post-workout analysis grades against
ANALYSIS_TARGET_ANGLE: Dict[ExerciseType, float] = {
    ExerciseType.BICEP: 45.0,            # elbow at top of curl
    ExerciseType.SQUAT: 90.0,            # knee at bottom
    ExerciseType.LATERAL_RAISE: 90.0,    # shoulder abduction
    ExerciseType.LUNGES: 90.0,           # front knee
    ExerciseType.SHOULDER_PRESS: 175.0,  # arm extension
}

DISPLAY_NAMES: Dict[ExerciseType, str] = {
    ExerciseType.BICEP: "Bicep Curl",
    ExerciseType.SQUAT: "Squat",
    ExerciseType.LATERAL_RAISE: "Lateral Raise",
    ExerciseType.LUNGES: "Lunges",
    ExerciseType.SHOULDER_PRESS: "Shoulder Press",
}

COACHING_RECOMMENDATIONS: Dict[ExerciseType, Tuple[str, str, str]] = {
    ExerciseType.BICEP: (
        "Focus on maintaining your elbow position close to your torso throughout the entire movement to maximize bicep activation.",
        "Try slowing down the eccentric (lowering) phase to 3-4 seconds per rep for increased time under tension.",
        "Consider increasing resistance by 5-10% in your next workout while maintaining proper form.",
    ),
    ExerciseType.SQUAT: (
        "Keep your weight centered over the middle of your foot - avoid shifting too far forward onto your toes.",
        "Work on maintaining consistent depth on each repetition, especially as fatigue increases.",
        "Try adding a brief 1-second pause at the bottom of each rep to improve stability and form awareness.",
    ),
    ExerciseType.LATERAL_RAISE: (
        "Maintain a slight bend in your elbows throughout the movement to reduce stress on the joint.",
        "Focus on raising both arms at exactly the same height to avoid muscular imbalances.",
        "Consider using a lighter weight and focusing on perfect form for your next session.",
    ),
    ExerciseType.LUNGES: (
        "Focus on keeping your front knee directly above your ankle, not extending past your toes.",
        "Maintain an upright torso position throughout the movement to properly engage your core.",
        "Try adding alternating legs to improve balance and coordination.",
    ),
    ExerciseType.SHOULDER_PRESS: (
        "Engage your core throughout the movement to prevent excessive arching in your lower back.",
        "Ensure you're achieving full extension at the top of each rep for maximum muscle activation.",
        "Consider incorporating unilateral (one-arm) shoulder presses in your next workout to address any imbalances.",
    ),
}


def params_for(exercise: ExerciseType) -> ExerciseParams:
    return EXERCISE_PARAMS[exercise]
