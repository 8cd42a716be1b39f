# src/formcoach/analysis/movement.py
from typing import Optional  # type hints
import collections  # bounded angle history (deque)

from ..config import ANGLE_HISTORY_SIZE, ANGLE_CHANGE_THRESHOLD_DEG, MOVEMENT_TIMEOUT_S


class MovementDetector:
    """
    Motion-presence gate for rep counting.

    Keeps the last few tracked angles. Movement is flagged when the oldest and
    newest of >= 3 samples differ by more than 2x ``change_threshold``; the flag
    only drops after ``timeout_s`` passes without such a change, so a brief
    pause at the top or bottom of a rep does not count as standing still.
    """
    def __init__(self, history_size: int = ANGLE_HISTORY_SIZE,
                 change_threshold: float = ANGLE_CHANGE_THRESHOLD_DEG,
                 timeout_s: float = MOVEMENT_TIMEOUT_S):
        self.history = collections.deque(maxlen=history_size)  # recent angles, oldest first
        self.change_threshold = float(change_threshold)
        self.timeout_s = float(timeout_s)
        self.is_moving = False
        self.last_movement_t: Optional[float] = None  # when movement was last confirmed

    def reset(self) -> None:
        self.history.clear()
        self.is_moving = False
        self.last_movement_t = None

    def update(self, t: float, angle: float) -> bool:
        # Push the newest angle and re-evaluate the moving flag
        self.history.append(float(angle))
        if len(self.history) < 3:
            return self.is_moving

        change = abs(self.history[-1] - self.history[0])
        if change > self.change_threshold * 2:
            self.is_moving = True
            self.last_movement_t = t
        elif self.last_movement_t is None or (t - self.last_movement_t) > self.timeout_s:
            self.is_moving = False
        return self.is_moving
