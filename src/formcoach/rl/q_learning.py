# src/formcoach/rl/q_learning.py
from __future__ import annotations
import json
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np  # random source for the epsilon-greedy policy

from ..config import RL_ALPHA, RL_GAMMA, RL_EPSILON, RL_ACTIONS, Q_TABLE_KEY
from ..io.storage import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QState:
    avg_angle_bucket: int  # rounded mean angle of the batch
    error_count: int       # total form errors in the batch

    def key(self) -> str:
        return f"{self.avg_angle_bucket}|{self.error_count}"

    @classmethod
    def from_key(cls, key: str) -> "QState":
        a, e = key.split("|")
        return cls(int(a), int(e))


QTable = Dict[QState, Dict[int, float]]


def encode_table(table: QTable) -> str:
    return json.dumps({s.key(): {str(a): v for a, v in row.items()} for s, row in table.items()}, sort_keys=True)


def decode_table(raw: str) -> QTable:
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("Q-table must be a JSON object")
    table: QTable = {}
    for k, row in data.items():
        if not isinstance(row, dict):
            raise ValueError(f"Q-table row {k!r} is not an object")
        table[QState.from_key(k)] = {int(a): float(v) for a, v in row.items()}
    return table


class QLearningAgent:
    """
    Tabular Q-learning over difficulty adjustments.

    The table is loaded from ``store`` on construction and written back after
    every update. A missing entry loads as an empty table; an unreadable one is
    replaced by an empty table which is saved straight away so the next start is
    clean. Save failures are logged and reported by ``update``'s return value;
    the in-memory table is kept either way.

    All table access goes through one lock, so ``select_action`` and ``update``
    see a consistent snapshot even when sessions share an agent.
    """
    def __init__(self, store: KeyValueStore, alpha: float = RL_ALPHA, gamma: float = RL_GAMMA,
                 epsilon: float = RL_EPSILON, actions: Sequence[int] = RL_ACTIONS,
                 rng: Optional[np.random.Generator] = None, key: str = Q_TABLE_KEY):
        self.store = store
        self.alpha = float(alpha)
        self.gamma = float(gamma)
        self.epsilon = float(epsilon)
        self.actions = tuple(actions)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.key = key
        self._lock = threading.RLock()
        self.table: QTable = {}
        self.last_save_ok = True
        self.load()

    # ---------------- persistence ----------------
    def load(self) -> None:
        with self._lock:
            try:
                raw = self.store.get(self.key)
                self.table = decode_table(raw) if raw else {}
            except (ValueError, KeyError, TypeError, OSError) as exc:
                logger.warning("Q-table unreadable, starting fresh: %s", exc)
                self.table = {}
                self.save()  # overwrite the corrupt entry

    def save(self) -> bool:
        with self._lock:
            try:
                self.store.set(self.key, encode_table(self.table))
                self.last_save_ok = True
            except (OSError, ValueError, TypeError) as exc:
                logger.error("Failed to save Q-table: %s", exc)
                self.last_save_ok = False
            return self.last_save_ok

    # ---------------- policy / learning ----------------
    def _row(self, state: QState) -> Dict[int, float]:
        return self.table.setdefault(state, {a: 0.0 for a in self.actions})

    def q_value(self, state: QState, action: int) -> float:
        with self._lock:
            return self.table.get(state, {}).get(action, 0.0)

    def select_action(self, state: QState) -> int:
        # epsilon-greedy; ties go to the first action in ``self.actions`` order
        with self._lock:
            row = self._row(state)
            if self.rng.random() < self.epsilon:
                return self.actions[int(self.rng.integers(len(self.actions)))]
            best = self.actions[0]
            for a in self.actions:
                if row.get(a, 0.0) > row.get(best, 0.0):
                    best = a
            return best

    def update(self, state: QState, action: int, reward: float, next_state: QState) -> bool:
        """One-step update Q(s,a) += alpha * (r + gamma * max_a' Q(s',a') - Q(s,a)); returns save success."""
        with self._lock:
            row = self._row(state)
            qsa = row.get(action, 0.0)
            nxt = self.table.get(next_state)
            max_next = max(nxt.values()) if nxt else 0.0
            row[action] = qsa + self.alpha * (reward + self.gamma * max_next - qsa)
            return self.save()
