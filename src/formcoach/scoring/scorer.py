# src/formcoach/scoring/scorer.py
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np  # numerical operations

from ..activities.exercise_defs import ExerciseType, ANALYSIS_TARGET_ANGLE, COACHING_RECOMMENDATIONS

QUALITY_BANDS = ("Perfect", "Good", "Fair", "Needs Work")


def quality_band(error_count: int) -> str:
    if error_count <= 0: return "Perfect"  # clean rep
    if error_count == 1: return "Good"     # one fault
    if error_count == 2: return "Fair"
    return "Needs Work"


def quality_distribution(error_counts: Sequence[int]) -> Dict[str, float]:
    # Percent of reps per band, all bands present (0.0 when no reps)
    out = {b: 0.0 for b in QUALITY_BANDS}
    if not error_counts:
        return out
    for n in error_counts:
        out[quality_band(n)] += 1
    total = float(len(error_counts))
    return {b: round(100.0 * c / total, 1) for b, c in out.items()}


def angle_accuracy(angles: Sequence[float], target: float, tolerance: float = 45.0) -> float:
    # 1.0 when the mean rep angle hits target, linearly down to 0 at ``tolerance`` degrees off
    arr = np.array([a for a in angles if a is not None and np.isfinite(a)], dtype=float)
    if arr.size == 0:
        return 0.0
    d = abs(float(np.mean(arr)) - float(target))
    return float(np.clip(1.0 - d / tolerance, 0.0, 1.0))


def final_score(perfect_ratio: float, accuracy: float) -> float:
    score = 0.7 * float(perfect_ratio) + 0.3 * float(accuracy)  # weighted blend
    return round(100.0 * score, 1)  # 0–100


def grade(score: float) -> str:
    if score >= 90: return "A"
    if score >= 80: return "B"
    if score >= 70: return "C"
    if score >= 60: return "D"
    return "F"


@dataclass
class WorkoutSummary:
    workout_id: str
    exercise: ExerciseType
    total_reps: int
    perfect_reps: int
    avg_angle: float
    difficulty: int
    duration_s: float
    perfect_percent: float = 0.0
    distribution: Dict[str, float] = field(default_factory=dict)
    score: float = 0.0
    grade: str = "F"
    recommendations: Tuple[str, ...] = ()


def summarize(workout_id: str, exercise: ExerciseType, rep_angles: List[float], rep_error_counts: List[int],
              difficulty: int, duration_s: float) -> WorkoutSummary:
    """Build the post-workout report from per-rep angles and error counts."""
    total = len(rep_angles)
    perfect = sum(1 for n in rep_error_counts if n == 0)
    ratio = perfect / total if total else 0.0
    avg = float(np.mean(rep_angles)) if rep_angles else 0.0
    score = final_score(ratio, angle_accuracy(rep_angles, ANALYSIS_TARGET_ANGLE[exercise])) if total else 0.0
    return WorkoutSummary(
        workout_id=workout_id, exercise=exercise, total_reps=total, perfect_reps=perfect,
        avg_angle=avg, difficulty=difficulty, duration_s=float(duration_s),
        perfect_percent=round(100.0 * ratio, 1),
        distribution=quality_distribution(rep_error_counts),
        score=score, grade=grade(score),
        recommendations=COACHING_RECOMMENDATIONS[exercise],
    )
