from __future__ import annotations

import math
from typing import Iterable, Sequence

from pygame.math import Vector3

FORWARD = Vector3(0.0, 0.0, 1.0)


def _length(vector: Vector3) -> float:
    # no squared terms, so large components do not overflow
    return math.hypot(vector.x, vector.y, vector.z)


def _safe_normalize(vector: Vector3) -> Vector3:
    magnitude = _length(vector)
    if magnitude == 0.0:
        return Vector3()
    return Vector3(vector.x / magnitude, vector.y / magnitude, vector.z / magnitude)


def _clamp_length(vector: Vector3, max_length: float) -> Vector3:
    if max_length <= 0:
        return Vector3()
    magnitude = _length(vector)
    if magnitude <= max_length:
        return Vector3(vector)
    inv = max_length / magnitude
    return Vector3(vector.x * inv, vector.y * inv, vector.z * inv)


def _angle_between(a: Vector3, b: Vector3) -> float:
    """Unsigned angle in radians; pi/2 when either vector has zero length."""
    denominator = math.sqrt(a.length_squared() * b.length_squared())
    if denominator == 0.0:
        return math.pi / 2
    cosine = a.dot(b) / denominator
    return math.acos(_clamp_value(cosine, -1.0, 1.0))


def _mean_of(vectors: Sequence[Vector3], indices: Iterable[int]) -> Vector3:
    total_x = 0.0
    total_y = 0.0
    total_z = 0.0
    count = 0
    for index in indices:
        vector = vectors[index]
        total_x += vector.x
        total_y += vector.y
        total_z += vector.z
        count += 1
    if count == 0:
        return Vector3()
    return Vector3(total_x / count, total_y / count, total_z / count)


def _is_finite(vector: Vector3) -> bool:
    return math.isfinite(vector.x) and math.isfinite(vector.y) and math.isfinite(vector.z)


def _orientation_angles(forward: Vector3) -> tuple[float, float]:
    # yaw about +y, pitch about +x, for a model whose nose points down +z
    horizontal = math.hypot(forward.x, forward.z)
    if horizontal < 1e-12 and abs(forward.y) < 1e-12:
        return 0.0, 0.0
    yaw = math.atan2(forward.x, forward.z)
    pitch = math.atan2(-forward.y, horizontal)
    return yaw, pitch


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))
