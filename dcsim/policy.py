import logging, math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
from .models import Vm, MigrationOrder
from .logger_config import LOGGER_NAME


@dataclass
class PolicyConfig:
    name: str = 'threshold'  # 'simple' or 'threshold'
    utilization_threshold: float = 0.9


class PlacementPolicy:
    """First-fit placement, never migrates. Subclasses override optimize_allocation()."""

    def __init__(self, hosts: Sequence, logger=None):
        self.hosts = hosts
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    def allocate_host_for_vm(self, vm: Vm, host=None) -> bool:
        candidates = [host] if host is not None else self.hosts
        for h in candidates:
            if h.vm_create(vm):
                self.logger.debug(f"VM #{vm.vid} allocated to host #{h.hid}")
                return True
        self.logger.warning(f"No host can fit VM #{vm.vid} (mips={vm.mips}, ram={vm.ram}, bw={vm.bw})")
        return False

    def deallocate_host_for_vm(self, vm: Vm) -> None:
        host = vm.host
        if host is not None:
            host.vm_destroy(vm)

    def optimize_allocation(self, vms: Sequence[Vm]) -> List[MigrationOrder]:
        return []


class SimplePlacementPolicy(PlacementPolicy):
    pass


class ThresholdMigrationPolicy(PlacementPolicy):
    """
    Static utilization threshold.
      - Hosts above the threshold give up stationary VMs, smallest RAM first
        (shortest migration), until their estimated load is back under the threshold.
      - Each selected VM goes to the host whose power grows the least while staying
        under the threshold. Demand already planned onto a host counts.
    """

    def __init__(self, hosts: Sequence, utilization_threshold: float = 0.9, logger=None):
        super().__init__(hosts, logger)
        if not (0.0 < utilization_threshold <= 1.0):
            raise ValueError(f"utilization_threshold must be in (0, 1], got {utilization_threshold}")
        self.utilization_threshold = utilization_threshold

    def _fits(self, host, vm: Vm, reserved: Tuple[float, float, float]) -> bool:
        r_mips, r_ram, r_bw = reserved
        return (host.free_mips - r_mips >= vm.mips and
                host.free_ram - r_ram >= vm.ram and
                host.free_bw - r_bw >= vm.bw)

    def _power_increase(self, host, used_before: float, used_after: float) -> Optional[float]:
        try:
            return host.power_model.power(used_after / host.mips) - host.power_model.power(used_before / host.mips)
        except ValueError:
            return None

    def optimize_allocation(self, vms: Sequence[Vm]) -> List[MigrationOrder]:
        thr = self.utilization_threshold
        roster = {id(vm) for vm in vms}
        used: Dict[int, float] = {h.hid: h.cpu_utilization() * h.mips for h in self.hosts}
        over = [h for h in self.hosts if used[h.hid] / h.mips > thr]
        if not over:
            return []

        # 1) chọn VM cần di chuyển
        selected: List[Tuple[Vm, object, float]] = []
        for h in over:
            for vm in sorted((v for v in h.vms if not v.in_migration and id(v) in roster), key=lambda v: v.ram):
                if used[h.hid] / h.mips <= thr:
                    break
                demand = h.allocated_mips(vm)
                used[h.hid] -= demand
                selected.append((vm, h, demand))

        # 2) đặt VM: lớn trước
        reserved: Dict[int, Tuple[float, float, float]] = {h.hid: (0.0, 0.0, 0.0) for h in self.hosts}
        orders: List[MigrationOrder] = []
        for vm, src, demand in sorted(selected, key=lambda x: x[2], reverse=True):
            best, best_dp = None, math.inf
            for h in self.hosts:
                if h is src or h in over or not self._fits(h, vm, reserved[h.hid]):
                    continue
                after = used[h.hid] + demand
                if after / h.mips > thr:
                    continue
                dp = self._power_increase(h, used[h.hid], after)
                if dp is not None and dp < best_dp:
                    best, best_dp = h, dp
            if best is None:
                used[src.hid] += demand
                self.logger.debug(f"No target for VM #{vm.vid} leaving overloaded host #{src.hid}")
                continue
            used[best.hid] += demand
            r_mips, r_ram, r_bw = reserved[best.hid]
            reserved[best.hid] = (r_mips + vm.mips, r_ram + vm.ram, r_bw + vm.bw)
            orders.append(MigrationOrder(vm=vm, host=best))
        return orders


def build_policy(hosts: Sequence, cfg: PolicyConfig, logger=None) -> PlacementPolicy:
    if cfg.name == 'simple':
        return SimplePlacementPolicy(hosts, logger=logger)
    elif cfg.name == 'threshold':
        return ThresholdMigrationPolicy(hosts, utilization_threshold=cfg.utilization_threshold, logger=logger)
    raise ValueError("Unknown policy name")
