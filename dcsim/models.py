import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
import numpy as np

EPS_MI = 1e-6


class UtilizationModelFull:
    """Cloudlet luôn dùng 100% mips của VM."""

    def get(self, t: float) -> float:
        return 1.0


@dataclass
class UtilizationModelStochastic:
    """
    Utilization drawn uniformly in [low, high] once per time slot.
    Values are cached so the same slot always reports the same utilization.
    """
    seed: Optional[int] = None
    slot: float = 300.0
    low: float = 0.1
    high: float = 1.0
    _rng: Any = field(init=False, repr=False)
    _history: Dict[int, float] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self._rng = np.random.default_rng(self.seed)

    def get(self, t: float) -> float:
        k = int(t // self.slot)
        if k not in self._history:
            self._history[k] = float(self._rng.uniform(self.low, self.high))
        return self._history[k]


@dataclass
class Cloudlet:
    cid: int
    vm_id: int
    length: float  # MI
    utilization: Any = field(default_factory=UtilizationModelFull)
    submit_time: float = 0.0
    finish_time: Optional[float] = None
    done: float = 0.0  # MI đã xử lý

    @property
    def remaining(self) -> float:
        return max(0.0, self.length - self.done)

    @property
    def finished(self) -> bool:
        return self.remaining <= EPS_MI


@dataclass(eq=False)
class Vm:
    vid: int
    mips: float
    ram: float  # MB
    bw: float  # Kbps
    host: Optional[Any] = None
    in_migration: bool = False
    cloudlets: List[Cloudlet] = field(default_factory=list)
    last_update: float = 0.0

    def __post_init__(self):
        if self.mips <= 0 or self.ram <= 0 or self.bw <= 0:
            raise ValueError(f"VM #{self.vid}: mips, ram and bw must be positive")

    @property
    def uid(self) -> str:
        return f"vm-{self.vid}"

    def submit_cloudlet(self, cl: Cloudlet, now: float) -> None:
        cl.submit_time = now
        self.cloudlets.append(cl)

    def running_cloudlets(self, now: float) -> List[Cloudlet]:
        return [c for c in self.cloudlets if not c.finished and c.submit_time <= now]

    def current_requested_mips(self, now: float) -> float:
        demand = sum(self.mips * c.utilization.get(now) for c in self.running_cloudlets(now))
        return min(demand, self.mips)

    def _shares(self, t: float, allocated_mips: float, running: List[Cloudlet]) -> List[float]:
        demands = [c.utilization.get(t) for c in running]
        total = sum(demands)
        if total <= 0.0 or allocated_mips <= 0.0:
            return [0.0] * len(running)
        return [allocated_mips * d / total for d in demands]

    def update_processing(self, now: float, allocated_mips: float) -> None:
        """Tiến độ hoá các cloudlet từ last_update tới now với mips đã cấp."""
        running = self.running_cloudlets(now)
        for c, rate in zip(running, self._shares(self.last_update, allocated_mips, running)):
            dt = max(0.0, now - max(self.last_update, c.submit_time))
            c.done = min(c.length, c.done + rate * dt)
            if c.finished:
                c.done = c.length
                c.finish_time = now
        self.last_update = now

    def next_finish_time(self, now: float, allocated_mips: float) -> float:
        running = self.running_cloudlets(now)
        best = math.inf
        for c, rate in zip(running, self._shares(now, allocated_mips, running)):
            if rate > 0.0:
                best = min(best, now + c.remaining / rate)
        return best

    def is_completed(self) -> bool:
        return (not self.in_migration) and bool(self.cloudlets) and all(c.finished for c in self.cloudlets)

    def __repr__(self) -> str:
        host = getattr(self.host, "hid", None)
        return f"Vm(vid={self.vid}, host={host}, in_migration={self.in_migration})"


@dataclass(frozen=True)
class MigrationOrder:
    vm: Vm
    host: Any
