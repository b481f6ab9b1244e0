import math
import pytest
from dcsim.events import EventQueue
from dcsim.datacenter import DatacenterConfig, PowerDatacenter


class FakeHost:
    """Host with scripted readings; records every update it receives."""

    def __init__(self, hid, util=0.0, power=0.0, next_time=math.inf, fail=False):
        self.hid = hid
        self.util = util
        self._power = power
        self.next_time = next_time
        self.fail = fail
        self.vms = []
        self.vms_migrating_in = []
        self.completed = []
        self.shortfall = {}
        self.updates = []

    def cpu_utilization(self):
        return self.util

    def power(self):
        if self.fail:
            raise RuntimeError("power meter unavailable")
        return self._power

    def update_vms_processing(self, now):
        self.updates.append(now)
        return self.next_time

    def completed_vms(self):
        return list(self.completed)

    def add_migrating_in_vm(self, vm):
        self.vms_migrating_in.append(vm)

    def under_allocated_mips(self):
        return self.shortfall


class FakePolicy:
    """Returns a fixed plan and keeps the order of calls."""

    def __init__(self, plan=None):
        self.plan = plan or []
        self.calls = []
        self.rosters = []

    def optimize_allocation(self, vms):
        self.calls.append("optimize")
        self.rosters.append(list(vms))
        return list(self.plan)

    def deallocate_host_for_vm(self, vm):
        self.calls.append(("release", vm.vid))
        for h in [vm.host] if vm.host is not None else []:
            h.completed = [v for v in h.completed if v is not vm]
        vm.host = None

    def allocate_host_for_vm(self, vm, host=None):
        return True


@pytest.fixture
def make_dc():
    def _make(hosts, vms=None, policy=None, **cfg):
        cfg.setdefault("scheduling_interval", 300.0)
        return PowerDatacenter("dc-test", hosts, vms if vms is not None else [], policy or FakePolicy(),
                               EventQueue(), config=DatacenterConfig(**cfg))
    return _make
