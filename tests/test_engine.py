"""
Tests for the rotation engine (selection order, skip list, commit, force reassign)
"""

import random
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from support_rotation.engine import (
    calculate_fairness_metrics,
    force_reassign,
    get_next_engineers,
    shuffle_in_place,
    skip_user,
    update_rotation,
)
from support_rotation.state import RotationState


ROSTER = ["A", "B", "C", "D"]


@pytest.fixture
def state():
    return RotationState(rotation_order=list(ROSTER))


class TestGetNextEngineers:
    """Selection walks the rotation order from the last engineer on duty"""

    def test_starts_at_beginning_without_current(self, state):
        assert get_next_engineers(state, ROSTER, 2) == ["A", "B"]

    def test_continues_after_last_current(self, state):
        state.current_engineers = ["A", "B"]
        assert get_next_engineers(state, ROSTER, 2) == ["C", "D"]

    def test_wraparound(self, state):
        state.current_engineers = ["B", "C"]
        assert get_next_engineers(state, ROSTER, 2) == ["D", "A"]

    def test_wraparound_single_current(self, state):
        state.current_engineers = ["C"]
        assert get_next_engineers(state, ROSTER, 2) == ["D", "A"]

    def test_skipped_engineer_passed_over(self, state):
        state.current_engineers = ["C"]
        state.skip_list = ["D"]
        assert get_next_engineers(state, ROSTER, 2) == ["A", "B"]

    def test_skip_list_excluded(self, state):
        state.current_engineers = ["C", "D"]
        state.skip_list = ["C"]
        assert get_next_engineers(state, ROSTER, 2) == ["A", "B"]

    def test_last_current_unavailable_restarts_at_zero(self, state):
        state.current_engineers = ["A", "D"]
        assert get_next_engineers(state, ["A", "B", "C"], 2) == ["A", "B"]

    def test_roster_order_irrelevant(self, state):
        """Traversal follows rotation order, not roster order"""
        state.current_engineers = ["A"]
        assert get_next_engineers(state, ["D", "C", "B", "A"], 2) == ["B", "C"]

    def test_only_roster_members_selected(self, state):
        state.rotation_order = ["A", "X", "B", "C"]
        assert get_next_engineers(state, ["A", "B", "C"], 3) == ["A", "B", "C"]

    def test_no_duplicates_when_count_equals_eligible(self, state):
        state.current_engineers = ["B"]
        selected = get_next_engineers(state, ROSTER, 4)
        assert selected == ["C", "D", "A", "B"]
        assert len(set(selected)) == 4

    def test_fewer_eligible_than_count(self, state):
        state.skip_list = ["A", "B", "C"]
        assert get_next_engineers(state, ROSTER, 2) == ["D"]

    def test_starvation_guard_uses_roster_order(self, state):
        state.skip_list = list(ROSTER)
        assert get_next_engineers(state, ["C", "A", "B", "D"], 2) == ["C", "A"]

    def test_starvation_guard_distinct(self, state):
        state.skip_list = list(ROSTER)
        assert get_next_engineers(state, ["B", "B", "C"], 2) == ["B", "C"]

    def test_empty_roster(self, state):
        assert get_next_engineers(state, [], 2) == []

    def test_does_not_mutate_existing_state(self, state):
        state.current_engineers = ["A", "B"]
        state.skip_list = ["C"]
        before = state.to_dict()
        get_next_engineers(state, ROSTER, 2)
        assert state.to_dict() == before

    def test_deterministic(self, state):
        state.current_engineers = ["D"]
        first = get_next_engineers(state, ROSTER, 2)
        second = get_next_engineers(state, ROSTER, 2)
        assert first == second == ["A", "B"]


class TestBootstrap:
    """Empty rotation order is initialised with a shuffle of the roster"""

    def test_bootstrap_is_permutation(self):
        state = RotationState()
        get_next_engineers(state, ROSTER, 2, rng=random.Random(7))
        assert sorted(state.rotation_order) == ROSTER

    def test_bootstrap_reproducible_with_seed(self):
        s1, s2 = RotationState(), RotationState()
        pick1 = get_next_engineers(s1, ROSTER, 2, rng=random.Random(42))
        pick2 = get_next_engineers(s2, ROSTER, 2, rng=random.Random(42))
        assert s1.rotation_order == s2.rotation_order
        assert pick1 == pick2 == s1.rotation_order[:2]

    def test_bootstrap_does_not_touch_roster(self):
        roster = list(ROSTER)
        get_next_engineers(RotationState(), roster, 2, rng=random.Random(1))
        assert roster == ROSTER

    def test_bootstrap_drops_duplicate_ids(self):
        state = RotationState()
        selected = get_next_engineers(state, ["A", "A", "B"], 2, rng=random.Random(5))
        assert sorted(state.rotation_order) == ["A", "B"]
        assert sorted(selected) == ["A", "B"]

    def test_shuffle_single_item(self):
        assert shuffle_in_place(["A"], random.Random(0)) == ["A"]


class TestUpdateRotation:
    """Commit replaces current engineers, records history, clears skips"""

    NOW = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)

    def test_commit_fields(self, state):
        update_rotation(state, ["A", "B"], now=self.NOW)
        assert state.current_engineers == ["A", "B"]
        assert state.last_rotation_date == self.NOW.isoformat()
        assert state.history == [{"date": self.NOW.isoformat(), "engineers": ["A", "B"]}]

    def test_copies_input(self, state):
        picked = ["A", "B"]
        update_rotation(state, picked, now=self.NOW)
        picked.append("C")
        assert state.current_engineers == ["A", "B"]
        assert state.history[-1]["engineers"] == ["A", "B"]

    def test_served_engineers_leave_skip_list(self, state):
        state.skip_list = ["A", "C"]
        update_rotation(state, ["A", "B"], now=self.NOW)
        assert state.skip_list == ["C"]

    def test_history_capped_at_30(self, state):
        for i in range(35):
            update_rotation(state, [ROSTER[i % 4]], now=self.NOW)
        assert len(state.history) == 30
        assert state.history[0]["engineers"] == [ROSTER[5 % 4]]
        assert state.history[-1]["engineers"] == [ROSTER[34 % 4]]

    def test_repeat_commit_adds_history(self, state):
        update_rotation(state, ["A"], now=self.NOW)
        update_rotation(state, ["A"], now=self.NOW)
        assert len(state.history) == 2

    def test_default_timestamp_is_utc(self, state):
        update_rotation(state, ["A"])
        assert datetime.fromisoformat(state.last_rotation_date).utcoffset().total_seconds() == 0


class TestSkipUser:
    def test_skip_then_next_pick(self, state):
        state.current_engineers = ["D"]
        skip_user(state, "A")
        assert get_next_engineers(state, ROSTER, 2) == ["B", "C"]

    def test_skip_idempotent(self, state):
        skip_user(state, "A")
        skip_user(state, "A")
        assert state.skip_list == ["A"]

    def test_skip_is_one_shot(self, state):
        skip_user(state, "A")
        update_rotation(state, get_next_engineers(state, ROSTER, 2))
        assert state.current_engineers == ["B", "C"]
        assert state.skip_list == ["A"]
        update_rotation(state, get_next_engineers(state, ROSTER, 2))
        # A stays on the skip list until it serves
        assert state.current_engineers == ["D", "B"]


class TestForceReassign:
    def test_prefers_different_set(self, state):
        state.current_engineers = ["C", "D"]
        state.rotation_order = ["C", "D", "A", "B"]
        # Wraparound from D lands on A, B which already differs
        selected = force_reassign(state, ROSTER, 2, rng=random.Random(3))
        assert set(selected) != {"C", "D"}

    def test_reshuffles_order_when_possible(self, state):
        rng = random.Random(11)
        force_reassign(state, ROSTER, 2, rng=rng)
        assert sorted(state.rotation_order) == ROSTER

    def test_no_reshuffle_when_roster_equals_count(self, state):
        state.current_engineers = ["A", "B"]
        selected = force_reassign(state, ["A", "B"], 2, rng=random.Random(0))
        assert selected == ["A", "B"]
        assert state.rotation_order == ROSTER

    def test_gives_up_after_max_attempts(self, state):
        # Three engineers, two skipped: every pick is ["C"] and matches current
        state.current_engineers = ["C"]
        state.skip_list = ["A", "B"]
        selected = force_reassign(state, ["A", "B", "C"], 1, rng=random.Random(5), max_attempts=3)
        assert selected == ["C"]


class TestFairnessMetrics:
    def test_counts_and_spread(self):
        history = [
            {"date": "2024-03-01T09:00:00+00:00", "engineers": ["A", "B"]},
            {"date": "2024-03-05T09:00:00+00:00", "engineers": ["C", "A"]},
        ]
        metrics = calculate_fairness_metrics(history, ["A", "B", "C", "D"])
        assert metrics["counts"] == {"A": 2, "B": 1, "C": 1, "D": 0}
        assert metrics["mean"] == 1.0
        assert metrics["min"] == 0
        assert metrics["max"] == 2
        assert metrics["rotations"] == 2
        assert metrics["last_served"]["A"] == "2024-03-05T09:00:00+00:00"
        assert metrics["last_served"]["D"] is None
        assert metrics["cv"] == pytest.approx(70.71, abs=0.01)

    def test_engineers_outside_list_counted_as_other(self):
        history = [{"date": "d", "engineers": ["A", "Z"]}]
        metrics = calculate_fairness_metrics(history, ["A"])
        assert metrics["counts"] == {"A": 1}
        assert metrics["other"] == 1

    def test_empty_history(self):
        metrics = calculate_fairness_metrics([])
        assert metrics["mean"] == 0.0
        assert metrics["cv"] == 0.0
        assert metrics["counts"] == {}
