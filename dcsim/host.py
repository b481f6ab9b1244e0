import math
from typing import Dict, List, Tuple
from .models import Vm

SHORTFALL_EPS = 1e-9


class PowerHost:
    """
    Physical machine with a power model.

    Resident VMs are advanced lazily: update_vms_processing(now) first moves each VM
    forward with the mips it was granted at the previous update, then re-divides the
    host's mips according to current demand. Demand that does not fit is scaled down
    proportionally and the shortfall is recorded per VM.
    """

    def __init__(self, hid: int, mips: float, ram: float, bw: float, power_model, cpu_oversub: float = 1.0):
        self.hid = hid
        self.mips = mips
        self.cpu_oversub = cpu_oversub  # >1 lets placed VM mips exceed capacity
        self.ram = ram
        self.bw = bw
        self.power_model = power_model
        self.vms: List[Vm] = []
        self.vms_migrating_in: List[Vm] = []
        self.utilization_history: List[Tuple[float, float]] = []
        self._allocated: Dict[int, float] = {}  # vid -> mips
        self._under_allocated: Dict[str, List[List[float]]] = {}

    # --- capacity ---
    def _provisioned(self, attr: str) -> float:
        return sum(getattr(vm, attr) for vm in self.vms + self.vms_migrating_in)

    @property
    def free_mips(self) -> float:
        return self.mips * self.cpu_oversub - self._provisioned("mips")

    @property
    def free_ram(self) -> float:
        return self.ram - self._provisioned("ram")

    @property
    def free_bw(self) -> float:
        return self.bw - self._provisioned("bw")

    def is_suitable_for_vm(self, vm: Vm) -> bool:
        return self.free_mips >= vm.mips and self.free_ram >= vm.ram and self.free_bw >= vm.bw

    # --- residency ---
    def vm_create(self, vm: Vm) -> bool:
        if not self.is_suitable_for_vm(vm):
            return False
        self.vms.append(vm)
        self._allocated[vm.vid] = 0.0
        vm.host = self
        return True

    def vm_destroy(self, vm: Vm) -> None:
        if vm in self.vms:
            self.vms.remove(vm)
        self._allocated.pop(vm.vid, None)
        if vm.host is self:
            vm.host = None

    def add_migrating_in_vm(self, vm: Vm) -> None:
        if vm not in self.vms_migrating_in:
            self.vms_migrating_in.append(vm)

    def remove_migrating_in_vm(self, vm: Vm) -> None:
        if vm in self.vms_migrating_in:
            self.vms_migrating_in.remove(vm)

    # --- processing ---
    def update_vms_processing(self, now: float) -> float:
        for vm in self.vms:
            vm.update_processing(now, self._allocated.get(vm.vid, 0.0))

        requested = {vm.vid: vm.current_requested_mips(now) for vm in self.vms}
        total = sum(requested.values())
        scale = 1.0 if total <= self.mips else self.mips / total

        self._allocated = {}
        for vm in self.vms:
            req = requested[vm.vid]
            alloc = req * scale
            self._allocated[vm.vid] = alloc
            if req - alloc > SHORTFALL_EPS:
                self._under_allocated.setdefault(vm.uid, []).append([now, req - alloc])

        self.utilization_history.append((now, self.cpu_utilization()))
        return min((vm.next_finish_time(now, self._allocated[vm.vid]) for vm in self.vms),
                   default=math.inf)

    def completed_vms(self) -> List[Vm]:
        return [vm for vm in self.vms if vm.is_completed()]

    def allocated_mips(self, vm: Vm) -> float:
        return self._allocated.get(vm.vid, 0.0)

    def cpu_utilization(self) -> float:
        return min(1.0, sum(self._allocated.values()) / self.mips)

    def power(self) -> float:
        return self.power_model.power(self.cpu_utilization())

    def under_allocated_mips(self) -> Dict[str, List[List[float]]]:
        return self._under_allocated

    def __repr__(self) -> str:
        return f"PowerHost(hid={self.hid}, vms={len(self.vms)}, migrating_in={len(self.vms_migrating_in)})"
