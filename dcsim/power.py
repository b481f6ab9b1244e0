from dataclasses import dataclass, field
from typing import Sequence
import numpy as np


def _check_utilization(u: float) -> float:
    u = float(u)
    if u < 0.0 or u > 1.0:
        raise ValueError(f"Utilization value must be between 0 and 1, got {u}")
    return u


@dataclass
class PowerModelLinear:
    """P(u) = P_static + (P_max - P_static) * u, with P_static = static_fraction * P_max  (Watts)"""
    max_power: float
    static_fraction: float = 0.7

    @property
    def static_power(self) -> float:
        return self.static_fraction * self.max_power

    def _dynamic(self, u: float) -> float:
        return u

    def power(self, u: float) -> float:
        u = _check_utilization(u)
        if u == 0.0:
            return 0.0
        return self.static_power + (self.max_power - self.static_power) * self._dynamic(u)


@dataclass
class PowerModelSquare(PowerModelLinear):
    """Dynamic part grows with u^2."""

    def _dynamic(self, u: float) -> float:
        return u ** 2


@dataclass
class PowerModelCubic(PowerModelLinear):
    """Dynamic part grows with u^3."""

    def _dynamic(self, u: float) -> float:
        return u ** 3


@dataclass
class PowerModelSpecPower:
    """
    Power from SPECpower-style readings taken at 0%, 10%, ..., 100% load.
    Values between readings are linearly interpolated.
    """
    samples: Sequence[float]
    _grid: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        if len(self.samples) != 11:
            raise ValueError(f"Expected 11 power readings (0%..100%), got {len(self.samples)}")
        self.samples = [float(s) for s in self.samples]
        self._grid = np.linspace(0.0, 1.0, 11)

    @property
    def max_power(self) -> float:
        return self.samples[-1]

    def power(self, u: float) -> float:
        u = _check_utilization(u)
        return float(np.interp(u, self._grid, self.samples))
