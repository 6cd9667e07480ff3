"""Movement helpers: time scaling, jitter suppression, boundary reflection."""

import pytest

from agentfield.agents.agent import Vec2
from agentfield.sim.movement import RESTITUTION, reflect, reflect_axis, suppress_jitter, time_scale


class TestTimeScale:
    def test_nominal_frame_is_unit_scale(self):
        assert time_scale(16.667, 16.667, 2.0) == pytest.approx(1.0)

    def test_capped_after_stall(self):
        assert time_scale(5000.0, 16.667, 2.0) == 2.0

    def test_negative_delta_never_runs_backwards(self):
        assert time_scale(-5.0, 16.667, 2.0) == 0.0


class TestSuppressJitter:
    def test_small_components_zeroed_independently(self):
        velocity = suppress_jitter(Vec2(0.00005, -0.003))
        assert velocity.x == 0.0
        assert velocity.y == -0.003


class TestReflect:
    def test_inside_bounds_untouched(self):
        assert reflect_axis(3.0, 0.2, 10.0) == (3.0, 0.2)

    def test_overshoot_pulls_back_inside_and_flips_velocity(self):
        position, velocity = reflect_axis(10.4, 0.5, 10.0)
        assert position == pytest.approx(9.8)
        assert velocity == pytest.approx(-0.5 * RESTITUTION)

    def test_negative_edge(self):
        position, velocity = reflect_axis(-6.2, -0.3, 6.0)
        assert position == pytest.approx(-5.9)
        assert velocity > 0

    def test_huge_overshoot_still_inside(self):
        position, _ = reflect_axis(100.0, 50.0, 10.0)
        assert -10.0 <= position <= 10.0

    def test_axes_handled_independently(self):
        position, velocity = reflect(Vec2(10.2, 1.0), Vec2(0.3, 0.1), 10.0, 6.0)
        assert position.y == 1.0
        assert velocity.y == 0.1
        assert velocity.x < 0
