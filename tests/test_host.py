import math
import pytest
from dcsim.host import PowerHost
from dcsim.models import Cloudlet, Vm, UtilizationModelStochastic
from dcsim.power import PowerModelLinear


def _host(hid=0, mips=1000, oversub=1.0):
    return PowerHost(hid, mips=mips, ram=4096, bw=100_000, power_model=PowerModelLinear(200.0),
                     cpu_oversub=oversub)


def test_vm_create_respects_capacity():
    h = _host(mips=1000)
    a, b = Vm(1, mips=800, ram=512, bw=1000), Vm(2, mips=800, ram=512, bw=1000)
    assert h.vm_create(a)
    assert a.host is h
    assert not h.vm_create(b)
    assert b.host is None


def test_migrating_in_vm_reserves_capacity():
    h = _host(mips=1000)
    h.add_migrating_in_vm(Vm(1, mips=800, ram=512, bw=1000))
    assert not h.is_suitable_for_vm(Vm(2, mips=300, ram=512, bw=1000))


def test_processing_finishes_cloudlet():
    h = _host(mips=1000)
    vm = Vm(1, mips=500, ram=512, bw=1000)
    h.vm_create(vm)
    cl = Cloudlet(cid=1, vm_id=1, length=1000)
    vm.submit_cloudlet(cl, 0.0)

    assert h.update_vms_processing(0.0) == pytest.approx(2.0)
    assert h.cpu_utilization() == pytest.approx(0.5)
    assert h.power() == pytest.approx(140.0 + 30.0)
    assert h.completed_vms() == []

    assert h.update_vms_processing(2.0) == math.inf
    assert cl.finished and cl.finish_time == 2.0
    assert h.completed_vms() == [vm]
    assert h.cpu_utilization() == 0.0


def test_vm_in_migration_is_never_completed():
    h = _host()
    vm = Vm(1, mips=500, ram=512, bw=1000)
    h.vm_create(vm)
    vm.submit_cloudlet(Cloudlet(cid=1, vm_id=1, length=10, done=10), 0.0)
    vm.in_migration = True
    assert h.completed_vms() == []


def test_overload_records_shortfall():
    h = _host(mips=1000, oversub=2.0)
    vms = [Vm(i, mips=800, ram=512, bw=1000) for i in (1, 2)]
    for vm in vms:
        assert h.vm_create(vm)
        vm.submit_cloudlet(Cloudlet(cid=vm.vid, vm_id=vm.vid, length=1e6), 0.0)

    h.update_vms_processing(0.0)

    assert h.cpu_utilization() == pytest.approx(1.0)
    assert h.allocated_mips(vms[0]) == pytest.approx(500.0)
    assert h.under_allocated_mips() == {"vm-1": [[0.0, 300.0]], "vm-2": [[0.0, 300.0]]}


def test_stochastic_utilization_is_stable_per_slot():
    m = UtilizationModelStochastic(seed=7, slot=300.0)
    assert m.get(10.0) == m.get(299.0)
    assert 0.1 <= m.get(600.0) <= 1.0


def test_cloudlet_submitted_later_is_not_credited_earlier_time():
    h = _host(mips=1000)
    vm = Vm(1, mips=500, ram=512, bw=1000)
    h.vm_create(vm)
    first = Cloudlet(cid=1, vm_id=1, length=10_000)
    vm.submit_cloudlet(first, 0.0)
    h.update_vms_processing(0.0)

    late = Cloudlet(cid=2, vm_id=1, length=10_000)
    vm.submit_cloudlet(late, 8.0)
    h.update_vms_processing(10.0)

    # late only runs from its own submit time
    assert first.done > late.done
    assert late.done == pytest.approx(250.0 * 2)
