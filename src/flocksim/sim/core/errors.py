from __future__ import annotations


class FlockError(Exception):
    """Base class for every error raised by the simulator."""


class ConfigError(FlockError, ValueError):
    """A configuration value is out of range or not recognized."""


class NumericAnomaly(FlockError, ArithmeticError):
    """A velocity or position component became non-finite during a step."""

    def __init__(self, agent_id: int, quantity: str, value: tuple[float, float, float]):
        self.agent_id = agent_id
        self.quantity = quantity
        self.value = value
        super().__init__(f"agent {agent_id} produced non-finite {quantity} {value}")
