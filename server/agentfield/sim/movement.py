from __future__ import annotations

import math

from agentfield.agents.agent import Vec2


DAMPING = 0.98
MIN_MOVEMENT_THRESHOLD = 0.0001
RESTITUTION = 0.5
OVERSHOOT_RATIO = 0.5


def time_scale(delta_ms: float, nominal_frame_ms: float, cap: float) -> float:
    return max(0.0, min(delta_ms / nominal_frame_ms, cap))


def accelerate(velocity: Vec2, accel_x: float, accel_y: float, scale: float, damping: float = DAMPING) -> Vec2:
    return Vec2(
        x=(velocity.x + accel_x * scale) * damping,
        y=(velocity.y + accel_y * scale) * damping,
    )


def suppress_jitter(velocity: Vec2, threshold: float = MIN_MOVEMENT_THRESHOLD) -> Vec2:
    return Vec2(
        x=0.0 if abs(velocity.x) < threshold else velocity.x,
        y=0.0 if abs(velocity.y) < threshold else velocity.y,
    )


def reflect_axis(position: float, velocity: float, half_extent: float) -> tuple[float, float]:
    """Bounce one axis off the world edge.

    The position is pulled back inside by a fraction of the overshoot
    instead of being clamped to the edge.
    """
    if abs(position) <= half_extent:
        return position, velocity

    overshoot = abs(position) - half_extent
    inner = max(half_extent - overshoot * OVERSHOOT_RATIO, -half_extent)
    return math.copysign(inner, position), -velocity * RESTITUTION


def reflect(position: Vec2, velocity: Vec2, half_width: float, half_height: float) -> tuple[Vec2, Vec2]:
    x, vx = reflect_axis(position.x, velocity.x, half_width)
    y, vy = reflect_axis(position.y, velocity.y, half_height)
    return Vec2(x, y), Vec2(vx, vy)
