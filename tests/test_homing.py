"""
Test Homing State Machine

Drives HomingSequence directly, one advance per tick, and checks the
stage order, clamping and completion behaviour.
"""

import pytest

from core.types import Position2D
from motion.base import MotionState
from motion.homing import HomingPhase, HomingSequence, HomingStage, build_stages


X_BOUND = -580.0
Y_BOUND = 300.0
STEP = 120.0 * 1.0 * 0.2


def run_to_completion(sequence: HomingSequence, state: MotionState, max_ticks: int = 1000):
    trace = []
    ticks = 0
    while not sequence.finished:
        assert ticks < max_ticks
        sequence.advance(state)
        trace.append(state.position.copy())
        ticks += 1
    return ticks, trace


class TestHomingStage:

    def test_decreasing_stage_reached_at_or_below_limit(self):
        stage = HomingStage('x', -1, -80.0)
        assert not stage.reached(-79.9)
        assert stage.reached(-80.0)
        assert stage.reached(-96.0)

    def test_increasing_stage_reached_at_or_above_limit(self):
        stage = HomingStage('y', +1, 300.0)
        assert not stage.reached(299.0)
        assert stage.reached(300.0)

    def test_build_stages_order(self):
        stages = build_stages(X_BOUND, Y_BOUND)
        assert [(s.axis, s.direction, s.limit) for s in stages] == [
            ('x', -1, X_BOUND),
            ('x', +1, 0.0),
            ('x', -1, -80.0),
            ('y', +1, Y_BOUND),
            ('y', -1, 0.0),
        ]


class TestHomingSequence:

    @pytest.fixture
    def sequence(self):
        return HomingSequence(build_stages(X_BOUND, Y_BOUND), STEP)

    def test_rejects_non_positive_step(self):
        with pytest.raises(ValueError):
            HomingSequence(build_stages(X_BOUND, Y_BOUND), 0.0)

    def test_from_origin_takes_expected_ticks(self, sequence):
        state = MotionState()
        ticks, _ = run_to_completion(sequence, state)

        # 25 + 25 + 4 + 13 + 13 steps of 24 units
        assert ticks == 80
        assert sequence.phase is HomingPhase.SUCCEEDED

    def test_visits_extremes_in_order(self, sequence):
        state = MotionState(position=Position2D(-200, 150), goal=Position2D(-200, 150))
        run_to_completion(sequence, state)

        assert sequence.visited == [
            ('x', X_BOUND), ('x', 0.0), ('x', -80.0), ('y', Y_BOUND), ('y', 0.0)
        ]

    def test_trace_clamps_exactly_onto_extremes(self, sequence):
        state = MotionState()
        _, trace = run_to_completion(sequence, state)

        xs = [p.x for p in trace]
        ys = [p.y for p in trace]
        assert min(xs) == X_BOUND
        assert max(ys) == Y_BOUND
        assert X_BOUND in xs and 0.0 in xs and -80.0 in xs

        # x sweeps finish before y moves at all
        first_y_move = next(i for i, p in enumerate(trace) if p.y != 0.0)
        assert all(p.x == -80.0 for p in trace[first_y_move:])

    @pytest.mark.parametrize("start", [(0, 0), (-200, 150), (500, -500), (-700, 400), (-80, 0)])
    def test_completion_resets_goal_and_ends_on_reference(self, start):
        sequence = HomingSequence(build_stages(X_BOUND, Y_BOUND), STEP)
        state = MotionState(position=Position2D(*start), goal=Position2D(123, 456))
        state.reported = True

        run_to_completion(sequence, state)

        assert state.goal == Position2D(0.0, 0.0)
        assert state.position == Position2D(-80.0, 0.0)
        assert state.reported is False

    def test_stage_already_satisfied_clamps_without_stepping(self):
        sequence = HomingSequence(build_stages(X_BOUND, Y_BOUND), STEP)
        state = MotionState(position=Position2D(-700, 0))

        sequence.advance(state)

        assert state.position.x == X_BOUND
        assert sequence.stage_index == 1
        assert sequence.steps_taken == 0

    def test_abort_stops_sequence(self, sequence):
        state = MotionState(goal=Position2D(5.0, 5.0))
        sequence.advance(state)
        sequence.abort("test")

        assert sequence.phase is HomingPhase.ABORTED
        assert sequence.finished
        position = state.position.copy()
        assert not sequence.advance(state)
        assert state.position == position
        assert state.goal == Position2D(5.0, 5.0)
