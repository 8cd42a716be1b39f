# src/formcoach/__init__.py
"""Rep counting, form checking and adaptive difficulty for pose-driven workouts."""
from .activities.exercise_defs import ExerciseType, ExerciseParams, EXERCISE_PARAMS
from .analysis.form_rules import FormError, evaluate_form
from .analysis.rep_detector import RepStage, RepEvent
from .analysis.tracker import ExerciseTracker, FrameResult
from .config import CoachSettings
from .geometry.angles import Landmark, angle_at, angle_with_vertical
from .recommend.item_based import ItemBasedRecommender
from .rl.difficulty import DifficultyController
from .rl.q_learning import QLearningAgent, QState
from .session.workout import WorkoutSession

__version__ = "0.1.0"
