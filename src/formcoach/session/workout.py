# src/formcoach/session/workout.py
from __future__ import annotations
import logging
import threading
import time
import uuid
from concurrent.futures import Executor, Future
from typing import Callable, List, Optional

from PySide6 import QtCore  # session-level signals for the presentation layer

from ..analysis.rep_detector import RepEvent
from ..analysis.tracker import ExerciseTracker
from ..config import CoachSettings, MIN_RATING, MAX_RATING, RECOMMEND_TOP_K
from ..io.storage import Rating, RatingStore, Sample, SampleStore, STORAGE_ERRORS
from ..recommend.item_based import ItemBasedRecommender
from ..rl.difficulty import DifficultyController
from ..rl.q_learning import QLearningAgent
from ..scoring.scorer import WorkoutSummary, summarize

logger = logging.getLogger(__name__)


class WorkoutSession(QtCore.QObject):
    """
    One workout: records every rep the tracker counts, feeds batches to the
    difficulty controller, keeps recommendations fresh and stops itself when a
    rep target is met.

    Storage problems never interrupt the workout; they are logged and surfaced
    through ``storage_error``.

    With an ``executor`` the recommendation refresh after each rep or rating
    runs there instead of on the frame thread, and ``recommendations_changed``
    is emitted from that worker (Qt hosts connect it queued).
    """
    rep_recorded = QtCore.Signal(object)          # RepEvent
    difficulty_changed = QtCore.Signal(int)
    recommendations_changed = QtCore.Signal(object)  # list of workout ids
    target_reached = QtCore.Signal(int)
    storage_error = QtCore.Signal(str)

    def __init__(self, tracker: ExerciseTracker, samples: SampleStore, ratings: RatingStore,
                 agent: QLearningAgent, settings: Optional[CoachSettings] = None,
                 clock: Callable[[], float] = time.monotonic,
                 wall_clock: Callable[[], float] = time.time,
                 executor: Optional[Executor] = None,
                 parent: Optional[QtCore.QObject] = None):
        super().__init__(parent)
        self.settings = settings or tracker.settings
        self.tracker = tracker
        self.samples = samples
        self.ratings = ratings
        self.controller = DifficultyController(agent, samples, batch_size=self.settings.rl_batch)
        self.recommender = ItemBasedRecommender(ratings)
        self._clock = clock
        self._wall_clock = wall_clock
        self.executor = executor
        self._lock = threading.Lock()

        self.workout_id = str(uuid.uuid4())
        self.active = False
        self.target_reps = 0
        self.started_t: Optional[float] = None
        self.stopped_t: Optional[float] = None
        self._recommendations: List[str] = []
        self._reset_stats()
        tracker.rep_completed.connect(self.record_rep)

    # ---------------- stats ----------------
    def _reset_stats(self) -> None:
        self.total_reps = 0
        self.perfect_reps = 0
        self._total_angle = 0.0
        self.rep_angles: List[float] = []
        self.rep_error_counts: List[int] = []

    @property
    def avg_angle(self) -> float:
        return self._total_angle / self.total_reps if self.total_reps else 0.0

    @property
    def difficulty(self) -> int:
        return self.controller.level

    @property
    def recommendations(self) -> List[str]:
        with self._lock:
            return list(self._recommendations)

    # ---------------- lifecycle ----------------
    def set_target_reps(self, target: int) -> None:
        if int(target) <= 0:
            raise ValueError("target reps must be > 0")
        self.target_reps = int(target)

    def start(self, target_reps: int = 0) -> None:
        # 0 → open-ended workout
        if int(target_reps) < 0:
            raise ValueError("target reps must be >= 0")
        if self.active:
            return
        self.target_reps = int(target_reps)
        self.tracker.reset()
        self.controller.reset()
        self._reset_stats()
        self.started_t = self._clock()
        self.stopped_t = None
        self.active = True
        logger.info("workout %s started (%s, target=%d)", self.workout_id,
                    self.tracker.exercise.name, self.target_reps)

    def stop(self) -> WorkoutSummary:
        if self.active:
            self.active = False
            self.stopped_t = self._clock()
            logger.info("workout %s stopped after %d reps", self.workout_id, self.total_reps)
        return self.summary()

    def summary(self) -> WorkoutSummary:
        end = self.stopped_t if self.stopped_t is not None else self._clock()
        duration = (end - self.started_t) if self.started_t is not None else 0.0
        return summarize(self.workout_id, self.tracker.exercise, self.rep_angles,
                         self.rep_error_counts, self.difficulty, duration)

    # ---------------- reps ----------------
    def record_rep(self, event: RepEvent) -> None:
        """Store one counted rep, then update difficulty and recommendations."""
        if not self.active:
            logger.debug("rep ignored: workout not active")
            return
        self.total_reps += 1
        if event.good:
            self.perfect_reps += 1
        self._total_angle += event.angle
        self.rep_angles.append(event.angle)
        self.rep_error_counts.append(len(event.errors))

        sample = Sample(timestamp=self._wall_clock(), reps=1, avg_angle=event.angle,
                        errors=tuple(e.name for e in event.errors))
        stored = True
        try:
            self.samples.insert(sample)
        except STORAGE_ERRORS as exc:
            stored = False
            self._report_storage(f"sample insert failed: {exc}")
        self.rep_recorded.emit(event)

        if stored:
            before = self.controller.level
            try:
                outcome = self.controller.on_rep_recorded()
            except STORAGE_ERRORS as exc:  # batch read-back failed; this batch is skipped
                outcome = None
                self._report_storage(f"sample read failed: {exc}")
            if outcome is not None:
                if not outcome.saved:
                    self._report_storage("Q-table save failed")
                if outcome.difficulty != before:
                    self.difficulty_changed.emit(outcome.difficulty)

        self._schedule_refresh()

        if self.target_reps > 0 and self.total_reps >= self.target_reps:
            self.target_reached.emit(self.total_reps)
            self.stop()

    # ---------------- ratings / recommendations ----------------
    def submit_rating(self, rating: int, workout_id: Optional[str] = None) -> None:
        if not (MIN_RATING <= int(rating) <= MAX_RATING):
            raise ValueError(f"rating must be between {MIN_RATING} and {MAX_RATING}")
        try:
            self.ratings.insert(Rating(workout_id or self.workout_id, int(rating)))
        except STORAGE_ERRORS as exc:
            self._report_storage(f"rating insert failed: {exc}")
            return
        self._schedule_refresh()

    def refresh_recommendations(self, k: int = RECOMMEND_TOP_K) -> List[str]:
        if k <= 0:  # a ValueError past this point means unreadable storage
            raise ValueError("k must be > 0")
        try:
            recs = self.recommender.recommend(k)
        except STORAGE_ERRORS as exc:
            self._report_storage(f"rating read failed: {exc}")
            return self.recommendations
        with self._lock:
            changed = recs != self._recommendations
            self._recommendations = list(recs)
        if changed:
            self.recommendations_changed.emit(list(recs))
        return list(recs)

    def refresh_recommendations_async(self, executor: Executor, k: int = RECOMMEND_TOP_K) -> "Future[List[str]]":
        # Read-only aggregation, run off the frame thread
        return executor.submit(self.refresh_recommendations, k)

    def _schedule_refresh(self) -> None:
        if self.executor is None:
            self.refresh_recommendations()
            return
        future = self.refresh_recommendations_async(self.executor)
        future.add_done_callback(_log_refresh_failure)

    def _report_storage(self, msg: str) -> None:
        logger.error(msg)
        self.storage_error.emit(msg)


def _log_refresh_failure(future: "Future[List[str]]") -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("background recommendation refresh failed: %s", exc)
