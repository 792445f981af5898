from __future__ import annotations

import math
import random

from pygame.math import Vector3


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_unit_sphere(self) -> Vector3:
        # uniform over the sphere: z uniform in [-1, 1], azimuth uniform
        z = self._random.uniform(-1.0, 1.0)
        azimuth = self._random.uniform(0, 360.0)
        vector = Vector3()
        vector.from_spherical((1, math.degrees(math.acos(z)), azimuth))
        return vector

    def next_in_box(self, x_limit: float, y_limit: float, z_limit: float) -> Vector3:
        return Vector3(
            self.next_range(-x_limit, x_limit),
            self.next_range(-y_limit, y_limit),
            self.next_range(-z_limit, z_limit),
        )
