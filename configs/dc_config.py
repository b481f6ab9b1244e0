import random
from dataclasses import dataclass
from typing import List, Sequence
from dcsim.models import Vm, Cloudlet, UtilizationModelFull, UtilizationModelStochastic
from dcsim.host import PowerHost
from dcsim.power import PowerModelSpecPower
from dcsim.arrivals import ArrivalConfig, sample_cloudlet_length
from dcsim.policy import PolicyConfig, build_policy as _build_policy
from dcsim.datacenter import DatacenterConfig, PowerDatacenter
from dcsim.events import EventQueue


@dataclass(frozen=True)
class HostType:
    name: str
    mips: float  # tổng mips (cores * mips/core)
    ram: float  # MB
    bw: float  # Kbps
    power_samples: Sequence[float]  # W tại 0%, 10%, ..., 100%


@dataclass(frozen=True)
class VmType:
    name: str
    mips: float
    ram: float
    bw: float


def build_host_types() -> List[HostType]:
    # SPECpower readings, HP ProLiant ML110 G4 / G5
    return [
        HostType("HP-ML110-G4", mips=2 * 1860, ram=4096, bw=1_000_000,
                 power_samples=(86, 89.4, 92.6, 96, 99.5, 102, 106, 108, 112, 114, 117)),
        HostType("HP-ML110-G5", mips=2 * 2660, ram=4096, bw=1_000_000,
                 power_samples=(93.7, 97, 101, 105, 110, 116, 121, 125, 129, 133, 135)),
    ]


def build_vm_types() -> List[VmType]:
    return [
        VmType("high-cpu-medium", mips=2500, ram=870, bw=100_000),
        VmType("extra-large", mips=2000, ram=1740, bw=100_000),
        VmType("small", mips=1000, ram=1740, bw=100_000),
        VmType("micro", mips=500, ram=613, bw=100_000),
    ]


def build_hosts(n: int, cpu_oversub: float = 1.0) -> List[PowerHost]:
    types = build_host_types()
    hosts = []
    for i in range(n):
        ht = types[i % len(types)]
        hosts.append(PowerHost(i, mips=ht.mips, ram=ht.ram, bw=ht.bw,
                               power_model=PowerModelSpecPower(ht.power_samples), cpu_oversub=cpu_oversub))
    return hosts


def build_vms(n: int, rng=random) -> List[Vm]:
    types = build_vm_types()
    vms = []
    for i in range(n):
        vt = types[rng.randint(0, len(types) - 1)]
        vms.append(Vm(i, mips=vt.mips, ram=vt.ram, bw=vt.bw))
    return vms


def build_workload(vms: Sequence[Vm], arrival: ArrivalConfig, seed: int = 42,
                   stochastic: bool = True, util_slot: float = 300.0) -> List[Cloudlet]:
    """Mỗi VM nhận một cloudlet; thời điểm submit theo ArrivalConfig."""
    rng = random.Random(seed)
    cloudlets, t = [], 0.0
    for i, vm in enumerate(vms):
        if i > 0:
            t += arrival.next_interarrival(t, rng)
        if t == float('inf'):
            break
        util = UtilizationModelStochastic(seed=seed + i, slot=util_slot) if stochastic else UtilizationModelFull()
        cloudlets.append(Cloudlet(cid=i, vm_id=vm.vid, length=sample_cloudlet_length(rng),
                                  utilization=util, submit_time=t))
    return cloudlets


def build_arrival(mode='burst', rate=0.01) -> ArrivalConfig:
    return ArrivalConfig(mode=mode, rate=rate)


def build_policy(hosts, name='threshold', utilization_threshold=0.9, logger=None):
    return _build_policy(hosts, PolicyConfig(name=name, utilization_threshold=utilization_threshold), logger=logger)


def build_datacenter_config(scheduling_interval=300.0, disable_migrations=False,
                            max_vms_per_host=16, migration_overhead=0.0) -> DatacenterConfig:
    return DatacenterConfig(scheduling_interval=scheduling_interval, disable_migrations=disable_migrations,
                            max_vms_per_host=max_vms_per_host, migration_overhead=migration_overhead)


def build_datacenter(hosts: List[PowerHost], vms: List[Vm], policy, config: DatacenterConfig,
                     name: str = "dc-0", logger=None) -> PowerDatacenter:
    """Initial placement through the policy; VMs that do not fit are left out of the roster."""
    placed = [vm for vm in vms if policy.allocate_host_for_vm(vm)]
    return PowerDatacenter(name, hosts, placed, policy, EventQueue(), config=config, logger=logger)
