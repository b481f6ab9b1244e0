import logging, math
import pytest
from conftest import FakeHost, FakePolicy
from dcsim.datacenter import DatacenterConfig, PowerDatacenter, NEVER, migration_delay
from dcsim.events import EventQueue, SimEvent, TICK, VM_MIGRATE, CLOUDLET_SUBMIT
from dcsim.host import PowerHost
from dcsim.models import Cloudlet, Vm, MigrationOrder
from dcsim.policy import PlacementPolicy
from dcsim.power import PowerModelLinear


def _vm(vid, ram=1024, bw=8000):
    return Vm(vid, mips=100, ram=ram, bw=bw)


def _submit(dc, vm, t):
    assert dc.submit_cloudlet(Cloudlet(cid=vm.vid, vm_id=vm.vid, length=1000), t)


def _pop_tag(dc, tag):
    while len(dc.events):
        ev = dc.events.pop()
        if ev.tag == tag:
            return ev
    raise AssertionError(f"no pending {tag} event")


def test_noop_without_submission(make_dc):
    host = FakeHost(0, util=0.5, power=100.0, next_time=50.0)
    dc = make_dc([host], scheduling_interval=60.0)
    dc.events.schedule(dc.name, 10.0, TICK)

    dc.process_event(dc.events.pop())

    assert dc.power == 0.0
    assert dc.cloudlet_submitted == NEVER
    assert host.updates == []
    assert dc.events.pending(dc.name, TICK) == 1
    assert dc.events.peek_time() == pytest.approx(70.0)


def test_two_host_energy_scenario(make_dc):
    a = FakeHost(0, util=0.5, power=100.0, next_time=100.0)
    b = FakeHost(1, util=0.0, power=50.0, next_time=100.0)
    vm = _vm(1)
    dc = make_dc([a, b], vms=[vm])
    _submit(dc, vm, 0.0)

    dc.update_cloudlet_processing(10.0)

    assert dc.power == pytest.approx(1000.0)
    assert dc.last_process_time == 10.0
    assert a.updates == [10.0] and b.updates == [10.0]


def test_same_instant_submission_skips_accounting(make_dc):
    a = FakeHost(0, util=1.0, power=100.0, next_time=100.0)
    vm = _vm(1)
    dc = make_dc([a], vms=[vm], scheduling_interval=5.0)
    _submit(dc, vm, 0.0)
    _submit(dc, vm, 10.0)
    power, updates = dc.power, list(a.updates)

    dc.update_cloudlet_processing(10.0)

    assert dc.power == power
    assert a.updates == updates
    assert dc.cloudlet_submitted == 10.0
    assert dc.events.pending(dc.name, TICK) == 1
    assert dc.events.peek_time() == pytest.approx(15.0)


def test_redundant_tick_is_accounted_once(make_dc):
    a = FakeHost(0, util=0.5, power=100.0, next_time=100.0)
    vm = _vm(1)
    dc = make_dc([a], vms=[vm])
    _submit(dc, vm, 0.0)

    dc.process_event(SimEvent(10.0, 0, dc.name, TICK))
    dc.process_event(SimEvent(10.0, 1, dc.name, TICK))

    assert dc.power == pytest.approx(1000.0)
    assert a.updates == [10.0]


def test_energy_is_monotonic(make_dc):
    a = FakeHost(0, util=0.5, power=100.0, next_time=1e9)
    vm = _vm(1)
    dc = make_dc([a], vms=[vm])
    _submit(dc, vm, 0.0)

    readings = []
    for t, (util, power) in zip([10.0, 20.0, 35.0, 40.0], [(0.5, 100.0), (0.0, 80.0), (0.9, 10.0), (0.2, 0.0)]):
        a.util, a._power = util, power
        dc.update_cloudlet_processing(t)
        readings.append(dc.power)

    assert readings == sorted(readings)
    assert readings[-1] == pytest.approx(100.0 * 10 + 10.0 * 15)


def test_single_pending_tick(make_dc):
    a = FakeHost(0, util=0.5, power=100.0, next_time=1e9)
    vm = _vm(1)
    dc = make_dc([a], vms=[vm], scheduling_interval=30.0)
    for t in (1.0, 2.0, 3.0):
        dc.events.schedule(dc.name, t, TICK)
    _submit(dc, vm, 0.0)
    assert dc.events.pending(dc.name, TICK) == 1

    for t in (5.0, 6.0, 7.0):
        dc.events.schedule(dc.name, t, TICK)
    dc.update_cloudlet_processing(10.0)

    assert dc.events.pending(dc.name, TICK) == 1
    assert dc.events.peek_time() == pytest.approx(40.0)


def test_no_tick_when_every_host_is_idle(make_dc):
    a = FakeHost(0, util=0.0, next_time=math.inf)
    vm = _vm(1)
    dc = make_dc([a], vms=[vm])
    _submit(dc, vm, 0.0)
    dc.events.cancel_all(dc.name, TICK)

    dc.update_cloudlet_processing(10.0)

    assert dc.events.pending(dc.name, TICK) == 0
    assert dc.last_process_time == 10.0


def test_host_power_fault_counts_zero(make_dc, caplog):
    bad = FakeHost(0, util=0.7, power=500.0, next_time=100.0, fail=True)
    good = FakeHost(1, util=0.5, power=100.0, next_time=100.0)
    vm = _vm(1)
    dc = make_dc([bad, good], vms=[vm])
    _submit(dc, vm, 0.0)

    with caplog.at_level(logging.ERROR, logger="DCSIM"):
        dc.update_cloudlet_processing(10.0)

    assert dc.power == pytest.approx(1000.0)
    assert "host #0" in caplog.text
    assert bad.updates == [10.0]
    assert dc.events.pending(dc.name, TICK) == 1


def test_finished_vms_are_removed_before_planning(make_dc):
    host = FakeHost(0, util=0.5, power=10.0, next_time=100.0)
    target = FakeHost(1)
    done, alive = _vm(1), _vm(2)
    done.host, alive.host = host, host
    host.vms = [done, alive]
    host.completed = [done]
    policy = FakePolicy()
    vms = [done, alive]
    dc = make_dc([host, target], vms=vms, policy=policy)
    _submit(dc, alive, 0.0)

    dc.update_cloudlet_processing(10.0)

    assert policy.calls == [("release", 1), "optimize"]
    assert done not in policy.rosters[0]
    assert alive in policy.rosters[0]
    assert vms == [alive]


def test_migration_start(make_dc):
    src, target = FakeHost(0, util=0.5, power=10.0, next_time=100.0), FakeHost(1)
    vm = _vm(7, ram=1024, bw=8000)
    vm.host = src
    policy = FakePolicy(plan=[MigrationOrder(vm=vm, host=target)])
    dc = make_dc([src, target], vms=[vm], policy=policy)
    _submit(dc, vm, 0.0)

    dc.update_cloudlet_processing(10.0)

    assert vm.in_migration
    assert dc.migration_count == 1
    assert target.vms_migrating_in == [vm]
    assert dc.is_in_migration()
    assert dc.events.pending(dc.name, VM_MIGRATE) == 1
    ev = _pop_tag(dc, VM_MIGRATE)
    assert ev.time == pytest.approx(10.0 + 1024.0)
    assert ev.payload == MigrationOrder(vm=vm, host=target)


def test_migration_overhead_is_added(make_dc):
    src, target = FakeHost(0, util=0.5, power=10.0, next_time=100.0), FakeHost(1)
    vm = _vm(7, ram=1024, bw=8000)
    policy = FakePolicy(plan=[MigrationOrder(vm=vm, host=target)])
    dc = make_dc([src, target], vms=[vm], policy=policy, migration_overhead=10.0)
    _submit(dc, vm, 0.0)

    dc.update_cloudlet_processing(10.0)

    assert _pop_tag(dc, VM_MIGRATE).time == pytest.approx(1044.0)


def test_capacity_overrun_is_reported_but_proceeds(make_dc, caplog):
    src, target = FakeHost(0, util=0.5, power=10.0, next_time=100.0), FakeHost(1)
    target.vms = [_vm(90)]
    vm = _vm(7)
    policy = FakePolicy(plan=[MigrationOrder(vm=vm, host=target)])
    dc = make_dc([src, target], vms=[vm], policy=policy, max_vms_per_host=1)
    _submit(dc, vm, 0.0)

    with caplog.at_level(logging.WARNING, logger="DCSIM"):
        dc.update_cloudlet_processing(10.0)

    assert "limit 1" in caplog.text
    assert vm in target.vms_migrating_in
    assert dc.migration_count == 1
    assert dc.events.pending(dc.name, VM_MIGRATE) == 1


def test_disabled_migrations_never_ask_policy(make_dc):
    host = FakeHost(0, util=0.5, power=10.0, next_time=100.0)
    vm = _vm(1)
    policy = FakePolicy(plan=[MigrationOrder(vm=vm, host=FakeHost(1))])
    dc = make_dc([host], vms=[vm], policy=policy, disable_migrations=True)
    _submit(dc, vm, 0.0)

    dc.update_cloudlet_processing(10.0)

    assert "optimize" not in policy.calls
    assert dc.migration_count == 0


def test_submit_to_unknown_vm(make_dc, caplog):
    dc = make_dc([FakeHost(0)], vms=[_vm(1)])
    with caplog.at_level(logging.WARNING, logger="DCSIM"):
        ok = dc.submit_cloudlet(Cloudlet(cid=5, vm_id=42, length=10), 3.0)
    assert not ok
    assert dc.cloudlet_submitted == NEVER
    assert "VM #42" in caplog.text


def test_submit_event_goes_through_process_event(make_dc):
    vm = _vm(1)
    dc = make_dc([FakeHost(0)], vms=[vm])
    cl = Cloudlet(cid=1, vm_id=1, length=10)
    dc.process_event(SimEvent(4.0, 0, dc.name, CLOUDLET_SUBMIT, cl))
    assert vm.cloudlets == [cl]
    assert cl.submit_time == 4.0
    assert dc.cloudlet_submitted == 4.0


def test_unknown_event_tag(make_dc):
    dc = make_dc([FakeHost(0)])
    with pytest.raises(RuntimeError):
        dc.process_event(SimEvent(1.0, 0, dc.name, "bogus"))


def test_under_allocated_mips_is_merged(make_dc):
    a, b = FakeHost(0), FakeHost(1)
    a.shortfall = {"vm-1": [[0.0, 10.0]], "vm-2": [[5.0, 1.0]]}
    b.shortfall = {"vm-1": [[300.0, 4.0]]}
    dc = make_dc([a, b])

    merged = dc.under_allocated_mips()

    assert merged == {"vm-1": [[0.0, 10.0], [300.0, 4.0]], "vm-2": [[5.0, 1.0]]}
    assert a.shortfall == {"vm-1": [[0.0, 10.0]], "vm-2": [[5.0, 1.0]]}


def test_migration_completion_moves_vm():
    src = PowerHost(0, mips=1000, ram=4096, bw=100_000, power_model=PowerModelLinear(200))
    dst = PowerHost(1, mips=1000, ram=4096, bw=100_000, power_model=PowerModelLinear(200))
    policy = PlacementPolicy([src, dst])
    vm = Vm(3, mips=400, ram=512, bw=8000)
    assert policy.allocate_host_for_vm(vm, src)
    dc = PowerDatacenter("dc", [src, dst], [vm], policy, EventQueue())
    dst.add_migrating_in_vm(vm)
    vm.in_migration = True

    assert dc.process_vm_migrate(MigrationOrder(vm=vm, host=dst), 600.0)

    assert vm.host is dst
    assert src.vms == [] and dst.vms == [vm]
    assert dst.vms_migrating_in == []
    assert not vm.in_migration
    assert dc.completed_migrations == 1
    assert not dc.is_in_migration()


def test_migration_delay_formula():
    assert migration_delay(_vm(1, ram=1024, bw=8000)) == pytest.approx(1024.0)
    assert migration_delay(_vm(1, ram=870, bw=100_000)) == pytest.approx(69.6)
    assert migration_delay(_vm(1, ram=1024, bw=8000), overhead=10.0) == pytest.approx(1034.0)


@pytest.mark.parametrize("kwargs", [
    {"scheduling_interval": 0.0},
    {"scheduling_interval": -5.0},
    {"max_vms_per_host": 0},
    {"migration_overhead": -1.0},
])
def test_invalid_config(kwargs):
    with pytest.raises(ValueError):
        DatacenterConfig(**kwargs)


def test_submission_after_idle_arms_a_tick(make_dc):
    a = FakeHost(0, util=0.0, next_time=math.inf)
    vm = _vm(1)
    dc = make_dc([a], vms=[vm], scheduling_interval=10.0)
    _submit(dc, vm, 0.0)
    dc.events.cancel_all(dc.name, TICK)
    dc.update_cloudlet_processing(20.0)
    assert dc.events.pending(dc.name, TICK) == 0

    _submit(dc, vm, 50.0)

    assert dc.events.pending(dc.name, TICK) == 1
    assert dc.events.peek_time() == pytest.approx(60.0)


def test_completed_migration_arms_a_tick_when_idle():
    src = PowerHost(0, mips=1000, ram=4096, bw=100_000, power_model=PowerModelLinear(200))
    dst = PowerHost(1, mips=1000, ram=4096, bw=100_000, power_model=PowerModelLinear(200))
    policy = PlacementPolicy([src, dst])
    vm = Vm(3, mips=400, ram=512, bw=8000)
    assert policy.allocate_host_for_vm(vm, src)
    dc = PowerDatacenter("dc", [src, dst], [vm], policy, EventQueue(),
                         config=DatacenterConfig(scheduling_interval=30.0))
    dst.add_migrating_in_vm(vm)
    vm.in_migration = True

    dc.process_vm_migrate(MigrationOrder(vm=vm, host=dst), 600.0)

    assert dc.events.pending(dc.name, TICK) == 1
    assert dc.events.peek_time() == pytest.approx(630.0)
