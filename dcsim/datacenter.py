import logging, math
from dataclasses import dataclass
from typing import Dict, List, Sequence
from .events import EventQueue, SimEvent, CLOUDLET_SUBMIT, TICK, VM_MIGRATE
from .models import Cloudlet, Vm, MigrationOrder
from .logger_config import LOGGER_NAME

NEVER = -1.0  # cloudlet_submitted before the first submission


@dataclass
class DatacenterConfig:
    scheduling_interval: float = 300.0  # s, tick cadence
    disable_migrations: bool = False
    max_vms_per_host: int = 16  # resident + migrating-in
    migration_overhead: float = 0.0  # s, added to every migration delay
    bw_divisor: float = 8000.0  # bw units -> effective transfer rate

    def __post_init__(self):
        if self.scheduling_interval <= 0:
            raise ValueError(f"scheduling_interval must be > 0, got {self.scheduling_interval}")
        if self.max_vms_per_host <= 0:
            raise ValueError(f"max_vms_per_host must be > 0, got {self.max_vms_per_host}")
        if self.bw_divisor <= 0:
            raise ValueError(f"bw_divisor must be > 0, got {self.bw_divisor}")
        if self.migration_overhead < 0:
            raise ValueError(f"migration_overhead must be >= 0, got {self.migration_overhead}")


def migration_delay(vm: Vm, bw_divisor: float = 8000.0, overhead: float = 0.0) -> float:
    """delay = RAM / (BW / divisor) + overhead"""
    return vm.ram / (vm.bw / bw_divisor) + overhead


class PowerDatacenter:
    """
    Periodic coordinator of a power-aware datacenter.

    Hosts and VMs are plain objects, not event targets, so their processing is
    brought up to date from here on every TICK. Each tick integrates host power
    over the elapsed interval, advances the hosts, drops finished VMs, starts
    the migrations planned by the policy and re-arms exactly one TICK.

    All times come in through the events being handled; `power` is in W*s.
    """

    def __init__(self, name: str, hosts: Sequence, vms: List[Vm], policy, events: EventQueue,
                 config: DatacenterConfig = None, logger=None):
        self.name = name
        self.hosts = hosts
        self.vms = vms
        self.policy = policy
        self.events = events
        self.config = config or DatacenterConfig()
        self.logger = logger or logging.getLogger(LOGGER_NAME)

        self.power = 0.0
        self.disable_migrations = self.config.disable_migrations
        self.cloudlet_submitted = NEVER
        self.last_process_time = 0.0
        self.migration_count = 0
        self.completed_migrations = 0

    @property
    def scheduling_interval(self) -> float:
        return self.config.scheduling_interval

    @property
    def energy_kwh(self) -> float:
        return self.power / 3.6e6

    # --- tick ---
    def _rearm_tick(self, now: float) -> None:
        self.events.cancel_all(self.name, TICK)
        self.events.schedule(self.name, now + self.scheduling_interval, TICK)

    def _ensure_tick(self, now: float) -> None:
        # an idle datacenter has no tick left to pick up new work
        if not self.events.pending(self.name, TICK):
            self._rearm_tick(now)

    def update_cloudlet_processing(self, now: float) -> None:
        if self.cloudlet_submitted == NEVER or self.cloudlet_submitted == now:
            self._rearm_tick(now)
            return

        if now <= self.last_process_time:
            return

        elapsed = now - self.last_process_time
        self.power += self._timeframe_energy(now, elapsed)

        next_time = math.inf
        for host in self.hosts:
            t = host.update_vms_processing(now)
            next_time = min(next_time, t)
            self.logger.debug(f"{now:.2f}: Host #{host.hid} utilization is {host.cpu_utilization() * 100:.2f}%")

        # finished VMs must be gone before the policy sees the roster
        self._remove_completed_vms(now)

        if not self.disable_migrations:
            self._start_migrations(now)

        # fixed cadence; next_time only tells whether anything is still running
        if next_time != math.inf:
            self._rearm_tick(now)

        self.last_process_time = now

    def _timeframe_energy(self, now: float, elapsed: float) -> float:
        timeframe = 0.0
        for host in self.hosts:
            host_energy = 0.0
            try:
                util = host.cpu_utilization()
                if util > 0:
                    host_energy = host.power() * elapsed
            except Exception:
                self.logger.exception(f"{now:.2f}: Could not read power of host #{host.hid}; counting 0 W")
                continue
            timeframe += host_energy
            self.logger.debug(f"{now:.2f}: Host #{host.hid} energy is {host_energy:.2f} W*sec")
        self.logger.debug(f"{now:.2f}: Consumed energy is {timeframe:.2f} W*sec")
        return timeframe

    def _remove_completed_vms(self, now: float) -> None:
        for host in self.hosts:
            for vm in list(host.completed_vms()):
                self.policy.deallocate_host_for_vm(vm)
                if vm in self.vms:
                    self.vms.remove(vm)
                self.logger.info(f"{now:.2f}: VM #{vm.vid} has been deallocated from host #{host.hid}")

    def _start_migrations(self, now: float) -> None:
        for order in self.policy.optimize_allocation(self.vms):
            vm, target = order.vm, order.host
            old_host = vm.host

            target.add_migrating_in_vm(vm)
            load = len(target.vms) + len(target.vms_migrating_in)
            if load > self.config.max_vms_per_host:
                self.logger.warning(f"{now:.2f}: Host #{target.hid} has {load} VMs incl. migrating-in "
                                    f"(limit {self.config.max_vms_per_host})")

            if old_host is None:
                self.logger.info(f"{now:.2f}: Migration of VM #{vm.vid} to Host #{target.hid} is started")
            else:
                self.logger.info(f"{now:.2f}: Migration of VM #{vm.vid} from Host #{old_host.hid} "
                                 f"to Host #{target.hid} is started")

            self.migration_count += 1
            vm.in_migration = True
            delay = migration_delay(vm, self.config.bw_divisor, self.config.migration_overhead)
            self.events.schedule(self.name, now + delay, VM_MIGRATE, order)

    # --- other events ---
    def submit_cloudlet(self, cloudlet: Cloudlet, now: float) -> bool:
        self.update_cloudlet_processing(now)
        vm = next((v for v in self.vms if v.vid == cloudlet.vm_id), None)
        if vm is None:
            self.logger.warning(f"{now:.2f}: Cloudlet #{cloudlet.cid} dropped, VM #{cloudlet.vm_id} is not running")
            return False
        vm.submit_cloudlet(cloudlet, now)
        self.cloudlet_submitted = now
        self._ensure_tick(now)
        return True

    def process_vm_migrate(self, order: MigrationOrder, now: float) -> bool:
        vm, target = order.vm, order.host
        src = vm.host
        if src is not None:
            vm.update_processing(now, src.allocated_mips(vm))
            self.policy.deallocate_host_for_vm(vm)
        target.remove_migrating_in_vm(vm)
        vm.in_migration = False

        if self.policy.allocate_host_for_vm(vm, target):
            self.completed_migrations += 1
            self._ensure_tick(now)
            self.logger.info(f"{now:.2f}: Migration of VM #{vm.vid} to Host #{target.hid} is completed")
            return True

        self.logger.error(f"{now:.2f}: Allocation of VM #{vm.vid} to destination host #{target.hid} failed")
        if src is not None and not src.vm_create(vm):
            self.logger.error(f"{now:.2f}: VM #{vm.vid} could not return to host #{src.hid}")
        return False

    def process_event(self, ev: SimEvent) -> None:
        if ev.tag == TICK:
            self.update_cloudlet_processing(ev.time)
        elif ev.tag == VM_MIGRATE:
            self.process_vm_migrate(ev.payload, ev.time)
        elif ev.tag == CLOUDLET_SUBMIT:
            self.submit_cloudlet(ev.payload, ev.time)
        else:
            raise RuntimeError(f"Unknown event {ev.tag}")

    # --- queries ---
    def is_in_migration(self) -> bool:
        return any(vm.in_migration for vm in self.vms)

    def under_allocated_mips(self) -> Dict[str, List[List[float]]]:
        merged: Dict[str, List[List[float]]] = {}
        for host in self.hosts:
            for key, series in host.under_allocated_mips().items():
                merged.setdefault(key, []).extend(series)
        return merged
