# tests/test_rl.py
import json

import pytest

from formcoach.io.storage import JsonFileStore, MemoryKeyValueStore, MemorySampleStore, Sample
from formcoach.rl.difficulty import DifficultyController, batch_reward, batch_state, round_half_up
from formcoach.rl.q_learning import QLearningAgent, QState, decode_table, encode_table


class StubRng:
    """Deterministic stand-in for numpy's Generator (random / integers)."""
    def __init__(self, draw=0.99, pick=0):
        self.draw = draw
        self.pick = pick

    def random(self):
        return self.draw

    def integers(self, n):
        return self.pick % n


class BrokenStore(MemoryKeyValueStore):
    def set(self, key, value):
        raise OSError("read-only")


S = QState(45, 0)


def _agent(store=None, **kw):
    kw.setdefault("rng", StubRng())
    return QLearningAgent(store if store is not None else MemoryKeyValueStore(), **kw)


# ---------------- table codec / persistence ----------------
def test_table_codec():
    table = {S: {-1: 0.5, 0: 0.0, 1: -0.25}, QState(80, 3): {0: 1.0}}
    assert decode_table(encode_table(table)) == table
    assert QState.from_key(S.key()) == S


def test_missing_table_loads_empty():
    store = MemoryKeyValueStore()
    agent = _agent(store)
    assert agent.table == {}
    assert store.get("q_table") is None


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"45|0": 3}', '{"bad": {"0": 1}}'])
def test_corrupt_table_heals(raw):
    store = MemoryKeyValueStore({"q_table": raw})
    agent = _agent(store)
    assert agent.table == {}
    assert json.loads(store.get("q_table")) == {}


def test_corrupt_file_heals(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("garbage", encoding="utf-8")
    agent = _agent(JsonFileStore(str(path)))
    assert agent.table == {}
    assert json.loads(path.read_text(encoding="utf-8")) == {"q_table": "{}"}


def test_table_survives_restart(tmp_path):
    store = JsonFileStore(str(tmp_path / "state.json"))
    a = _agent(store)
    assert a.update(S, 1, 1.0, S)
    b = _agent(JsonFileStore(str(tmp_path / "state.json")))
    assert b.q_value(S, 1) == pytest.approx(0.1)


def test_save_failure_keeps_memory_table():
    agent = _agent(BrokenStore())
    assert agent.update(S, 0, 1.0, S) is False
    assert agent.last_save_ok is False
    assert agent.q_value(S, 0) == pytest.approx(0.1)


# ---------------- policy ----------------
def test_greedy_ties_pick_first_action():
    agent = _agent(epsilon=0.0)
    assert agent.select_action(S) == -1


def test_greedy_picks_best():
    agent = _agent(epsilon=0.0)
    agent.table[S] = {-1: 0.0, 0: 0.5, 1: 0.2}
    assert agent.select_action(S) == 0


def test_exploration_uses_rng():
    agent = _agent(epsilon=0.1, rng=StubRng(draw=0.05, pick=2))
    agent.table[S] = {-1: 9.0, 0: 0.0, 1: 0.0}
    assert agent.select_action(S) == 1


def test_numpy_rng_default():
    agent = QLearningAgent(MemoryKeyValueStore(), epsilon=1.0)
    assert agent.select_action(S) in (-1, 0, 1)


# ---------------- update rule ----------------
def test_update_formula():
    agent = _agent()
    nxt = QState(90, 2)
    agent.table[nxt] = {-1: 2.0, 0: -1.0, 1: 0.5}
    agent.update(S, 1, 1.0, nxt)
    assert agent.q_value(S, 1) == pytest.approx(0.1 * (1.0 + 0.9 * 2.0))


def test_update_step_is_bounded():
    agent = _agent()
    agent.table[S] = {-1: 0.3, 0: -0.7, 1: 0.1}
    before = agent.q_value(S, 0)
    agent.update(S, 0, -1.0, S)
    after = agent.q_value(S, 0)
    bound = 0.1 * (1.0 + 0.9 * 0.7 + 0.7)
    assert abs(after - before) <= bound + 1e-12


# ---------------- difficulty controller ----------------
def test_batch_helpers():
    assert round_half_up(44.5) == 45
    assert round_half_up(45.49) == 45
    st = batch_state([Sample(0, 1, 44.0), Sample(1, 1, 46.0, ("BACK_NOT_STRAIGHT",))])
    assert st == QState(45, 1)
    assert batch_reward(QState(47, 0)) == 1.0
    assert batch_reward(QState(50, 0)) == -1.0  # tolerance is strict
    assert batch_reward(QState(45, 1)) == -1.0


def _feed(ctrl, samples, angles, start=0):
    out = []
    for i, a in enumerate(angles):
        samples.insert(Sample(float(start + i), 1, float(a)))
        out.append(ctrl.on_rep_recorded())
    return out


def test_controller_runs_every_batch():
    samples = MemorySampleStore()
    agent = _agent(epsilon=0.0)
    ctrl = DifficultyController(agent, samples)
    outs = _feed(ctrl, samples, [44, 45, 46, 45, 45, 45, 45, 45, 45, 45, 45])
    done = [o for o in outs if o is not None]
    assert [i for i, o in enumerate(outs) if o is not None] == [4, 9]
    first = done[0]
    assert first.state == QState(45, 0)
    assert first.reward == 1.0
    assert first.saved


def test_difficulty_never_below_one():
    samples = MemorySampleStore()
    agent = _agent(epsilon=0.0)  # all-zero rows pick -1
    ctrl = DifficultyController(agent, samples)
    outs = _feed(ctrl, samples, [90] * 10)
    assert all(o.difficulty == 1 for o in outs if o is not None)
    assert ctrl.level == 1


def test_difficulty_goes_up_when_learned():
    samples = MemorySampleStore()
    agent = _agent(epsilon=0.0)
    agent.table[S] = {-1: 0.0, 0: 0.0, 1: 1.0}
    ctrl = DifficultyController(agent, samples)
    outs = _feed(ctrl, samples, [45] * 5)
    assert outs[-1].action == 1 and outs[-1].difficulty == 2
    assert agent.q_value(S, 1) == pytest.approx(1.0 + 0.1 * (1.0 + 0.9 * 1.0 - 1.0))


def test_controller_rejects_bad_batch():
    with pytest.raises(ValueError):
        DifficultyController(_agent(), MemorySampleStore(), batch_size=0)
