# src/formcoach/rl/difficulty.py
from __future__ import annotations
import logging
import math
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..config import RL_BATCH, RL_TARGET_ANGLE, RL_TARGET_TOLERANCE, MIN_DIFFICULTY
from ..io.storage import Sample, SampleStore
from .q_learning import QLearningAgent, QState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchOutcome:
    state: QState
    action: int
    reward: float
    difficulty: int
    saved: bool


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def batch_state(samples: Sequence[Sample]) -> QState:
    # Discretise a batch: rounded mean angle + total number of form errors
    avg = float(np.mean([s.avg_angle for s in samples]))
    errs = int(sum(len(s.errors) for s in samples))
    return QState(round_half_up(avg), errs)


def batch_reward(state: QState, target: float = RL_TARGET_ANGLE, tolerance: float = RL_TARGET_TOLERANCE) -> float:
    return 1.0 if abs(state.avg_angle_bucket - target) < tolerance and state.error_count == 0 else -1.0


class DifficultyController:
    """
    Adjusts an integer difficulty level (>= 1) once per completed batch of reps.

    ``on_rep_recorded`` is called after each sample has been stored; on every
    ``batch_size``-th rep the most recent ``batch_size`` samples are read back,
    an action is chosen for their state and the agent is updated with the
    batch reward. Batches never overlap.
    """
    def __init__(self, agent: QLearningAgent, samples: SampleStore, batch_size: int = RL_BATCH,
                 target_angle: float = RL_TARGET_ANGLE, level: int = MIN_DIFFICULTY):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.agent = agent
        self.samples = samples
        self.batch_size = int(batch_size)
        self.target_angle = float(target_angle)
        self.level = max(MIN_DIFFICULTY, int(level))
        self.reps_seen = 0
        self._lock = threading.Lock()

    def reset(self) -> None:
        with self._lock:
            self.reps_seen = 0

    def on_rep_recorded(self) -> Optional[BatchOutcome]:
        with self._lock:
            self.reps_seen += 1
            if self.reps_seen % self.batch_size:
                return None
            recents = self.samples.recent(self.batch_size)
            if len(recents) < self.batch_size:
                return None
            return self._learn(recents)

    def _learn(self, recents: Sequence[Sample]) -> BatchOutcome:
        state = batch_state(recents)
        action = self.agent.select_action(state)
        self.level = max(MIN_DIFFICULTY, self.level + action)
        reward = batch_reward(state, self.target_angle)
        saved = self.agent.update(state, action, reward, state)
        logger.info("difficulty batch: state=%s action=%+d reward=%+.0f level=%d",
                    state, action, reward, self.level)
        return BatchOutcome(state, action, reward, self.level, saved)
