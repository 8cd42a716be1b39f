# tests/test_config.py
import json

import pytest

from formcoach.activities.exercise_defs import ExerciseType
from formcoach.config import CoachSettings


def test_defaults():
    s = CoachSettings()
    assert s.min_time_between_reps_s == 1.5
    assert s.angle_history_size == 5
    assert s.to_dict()["rl_batch"] == 5


def test_from_json(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"angle_history_size": "7", "movement_timeout_s": 2}), encoding="utf-8")
    s = CoachSettings.from_json(str(path))
    assert s.angle_history_size == 7 and isinstance(s.angle_history_size, int)
    assert s.movement_timeout_s == 2.0


@pytest.mark.parametrize("data", [{"nope": 1}, {"angle_history_size": 2}, {"rl_batch": 0}])
def test_invalid_settings(data):
    with pytest.raises(ValueError):
        CoachSettings.from_dict(data)


def test_exercise_parse():
    assert ExerciseType.parse("lateral_raise") is ExerciseType.LATERAL_RAISE
    assert ExerciseType.parse("SHOULDER_PRESS") is ExerciseType.SHOULDER_PRESS
    assert ExerciseType.parse(ExerciseType.SQUAT) is ExerciseType.SQUAT
    with pytest.raises(ValueError):
        ExerciseType.parse("plank")


@pytest.mark.parametrize("kwargs", [{"angle_history_size": 2}, {"rl_batch": 0}])
def test_direct_construction_is_validated(kwargs):
    with pytest.raises(ValueError):
        CoachSettings(**kwargs)
