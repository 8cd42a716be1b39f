# tests/test_rep_detector.py
from formcoach.activities.exercise_defs import ExerciseType, params_for
from formcoach.analysis.form_rules import FormError
from formcoach.analysis.movement import MovementDetector
from formcoach.analysis.rep_detector import BilateralRepCycle, CycleParams, RepStage, SingleAngleRepCycle


# ---------------- movement detector ----------------
def test_movement_needs_three_samples():
    md = MovementDetector(5, 5.0, 1.0)
    assert md.update(0.0, 100.0) is False
    assert md.update(0.1, 150.0) is False  # only two samples so far
    assert md.update(0.2, 150.0) is True


def test_movement_flag_holds_until_timeout():
    md = MovementDetector(5, 5.0, 1.0)
    for i, a in enumerate([100, 100, 111, 111, 111, 111, 111]):
        md.update(i * 0.1, a)
    assert md.is_moving  # last change confirmed at t=0.5
    assert md.update(1.4, 111) is True
    assert md.update(1.6, 111) is False


def test_jitter_is_not_movement():
    md = MovementDetector(5, 5.0, 1.0)
    for i in range(20):
        assert md.update(i * 0.1, 98.0 if i % 2 else 102.0) is False


def test_movement_reset():
    md = MovementDetector()
    for i, a in enumerate([10, 40, 80]):
        md.update(i * 0.1, a)
    assert md.is_moving
    md.reset()
    assert not md.is_moving and len(md.history) == 0 and md.last_movement_t is None


# ---------------- single-angle cycle ----------------
def _squat_cycle():
    return SingleAngleRepCycle(params_for(ExerciseType.SQUAT), CycleParams())


def test_single_angle_full_rep():
    c = _squat_cycle()
    assert c.update(0.0, 170.0, True) is None
    assert c.update(0.5, 85.0, True) is None
    assert c.stage == RepStage.DOWN
    ev = c.update(1.0, 165.0, True)
    assert ev is not None and ev.rep_count == 1 and ev.good
    assert c.stage == RepStage.UP


def test_single_angle_ignores_small_changes_while_waiting():
    c = _squat_cycle()
    c.update(0.0, 95.0, True)
    c.update(0.1, 88.0, True)  # crosses start but moved only 7 degrees
    assert c.stage == RepStage.WAITING


def test_jitter_near_completion_counts_once():
    c = _squat_cycle()
    c.update(0.0, 170.0, True)
    c.update(0.3, 85.0, True)
    t, reps = 0.6, 0
    for a in [148, 152, 148, 152, 149, 151, 148, 152] * 3:
        if c.update(t, float(a), True) is not None:
            reps += 1
        t += 0.1
    assert reps == 1 and c.rep_count == 1


def test_no_count_without_movement():
    c = _squat_cycle()
    c.update(0.0, 170.0, True)
    c.update(0.5, 85.0, True)
    for i in range(10):
        assert c.update(1.0 + i * 0.1, 165.0, False) is None
    assert c.rep_count == 0
    assert c.stage == RepStage.DOWN  # refused rep keeps the stage


def test_cooldown_between_counted_reps():
    c = _squat_cycle()
    times = []
    t = 0.0
    for i in range(60):
        ev = c.update(t, 80.0 if i % 2 else 170.0, True)
        if ev is not None:
            times.append(ev.t)
        t += 0.2
    assert len(times) > 1
    assert all(b - a >= 1.5 - 1e-9 for a, b in zip(times, times[1:]))


def test_consecutive_good_reps_reset_on_error():
    c = _squat_cycle()
    seq = [(170, ()), (85, ()), (165, ()), (85, ()), (165, (FormError.BACK_NOT_STRAIGHT,)),
           (85, ()), (165, ())]
    got = []
    for i, (a, errs) in enumerate(seq):
        ev = c.update(i * 2.0, float(a), True, errs)
        if ev is not None:
            got.append(ev.consecutive_good_reps)
    assert got == [1, 0, 1]


# ---------------- bilateral cycle ----------------
def _bicep_cycle():
    return BilateralRepCycle(params_for(ExerciseType.BICEP), CycleParams())


def test_bilateral_full_rep():
    c = _bicep_cycle()
    assert c.update(0.0, 50.0, 50.0, True, 50.0) is None
    assert c.stage == RepStage.DOWN
    ev = c.update(0.8, 150.0, 150.0, True, 150.0)
    assert ev is not None and ev.rep_count == 1
    assert c.stage == RepStage.UP


def test_bilateral_sides_within_window():
    c = _bicep_cycle()
    c.update(0.0, 50.0, 120.0, True, 85.0)
    assert c.left_complete and not c.right_complete
    c.update(1.0, 50.0, 50.0, True, 50.0)
    assert c.stage == RepStage.DOWN
    assert not c.left_complete and not c.right_complete


def test_bilateral_half_rep_lapses():
    c = _bicep_cycle()
    c.update(0.0, 50.0, 160.0, True, 105.0)
    assert c.left_complete
    c.update(1.6, 90.0, 160.0, True, 125.0)  # window lapsed
    assert not c.left_complete
    c.update(1.8, 90.0, 50.0, True, 70.0)  # right alone cannot advance
    assert c.stage == RepStage.WAITING
    assert c.rep_count == 0


def test_bilateral_missing_side_keeps_flag():
    c = _bicep_cycle()
    c.update(0.0, 50.0, None, True, 50.0)
    c.update(0.2, None, 50.0, True, 50.0)
    assert c.stage == RepStage.DOWN


def test_bilateral_cooldown_keeps_down_stage():
    c = _bicep_cycle()
    c.update(0.0, 50.0, 50.0, True, 50.0)
    c.update(0.5, 150.0, 150.0, True, 150.0)
    c.update(0.8, 50.0, 50.0, True, 50.0)
    assert c.stage == RepStage.DOWN
    assert c.update(1.2, 150.0, 150.0, True, 150.0) is None  # 0.7 s after the first rep
    assert c.stage == RepStage.DOWN and c.rep_count == 1
    assert c.update(2.1, 150.0, 150.0, True, 150.0) is not None
    assert c.rep_count == 2


def test_reset_clears_everything():
    c = _bicep_cycle()
    c.update(0.0, 50.0, 50.0, True, 50.0)
    c.update(0.5, 150.0, 150.0, True, 150.0)
    c.reset()
    assert (c.stage, c.rep_count, c.consecutive_good_reps, c.last_rep_t) == (RepStage.WAITING, 0, 0, None)
