import heapq, itertools, math
from dataclasses import dataclass, field
from typing import Any, List, Optional

CLOUDLET_SUBMIT = 'cloudlet_submit'
TICK = 'tick'
VM_MIGRATE = 'vm_migrate'
LOG = 'log'


@dataclass(order=True)
class SimEvent:
    time: float
    seq: int
    dst: str = field(compare=False)
    tag: str = field(compare=False)
    payload: Any = field(default=None, compare=False)


class EventQueue:
    """
    Pending events kept as a heap on (time, seq).
    - schedule() takes an absolute time; there is no global clock.
    - cancel_all() drops every pending event of one entity with a given tag.
    """

    def __init__(self, start: float = 0.0):
        self._q: List[SimEvent] = []
        self._seq = itertools.count()
        self._now = start

    @property
    def now(self) -> float:
        return self._now

    def schedule(self, dst: str, t: float, tag: str, payload: Any = None) -> Optional[SimEvent]:
        if t == math.inf:
            return None
        if t < self._now:
            raise ValueError(f"Cannot schedule '{tag}' for {dst} at {t:.3f} < now {self._now:.3f}")
        ev = SimEvent(t, next(self._seq), dst, tag, payload)
        heapq.heappush(self._q, ev)
        return ev

    def cancel_all(self, dst: str, tag: str) -> int:
        keep = [ev for ev in self._q if not (ev.dst == dst and ev.tag == tag)]
        removed = len(self._q) - len(keep)
        if removed:
            heapq.heapify(keep)
            self._q = keep
        return removed

    def pending(self, dst: str, tag: Optional[str] = None) -> int:
        return sum(1 for ev in self._q if ev.dst == dst and (tag is None or ev.tag == tag))

    def peek_time(self) -> float:
        return self._q[0].time if self._q else math.inf

    def pop(self) -> Optional[SimEvent]:
        if not self._q:
            return None
        ev = heapq.heappop(self._q)
        self._now = ev.time
        return ev

    def __len__(self) -> int:
        return len(self._q)
