from typing import Iterable, List, Sequence


def validate_hosts(hosts: Iterable, strict: bool = False) -> List[str]:
    """
    Return a list of warnings. With strict=True any warning raises ValueError.
    Checks:
      - non-positive mips / ram / bw
      - duplicated host ids
      - power model reporting more power idle than at full load
    """
    msgs: List[str] = []
    seen = set()

    for h in hosts:
        prefix = f"[Host:{h.hid}]"
        if h.hid in seen:
            msgs.append(f"{prefix} Duplicated host id.")
        seen.add(h.hid)

        if h.mips <= 0 or h.ram <= 0 or h.bw <= 0:
            msgs.append(f"{prefix} Non-positive capacity (mips={h.mips}, ram={h.ram}, bw={h.bw}).")

        try:
            p_idle, p_full = h.power_model.power(0.0), h.power_model.power(1.0)
        except ValueError as e:
            msgs.append(f"{prefix} Power model rejected 0/1 utilization: {e}")
            continue
        if p_idle > p_full + 1e-6:
            msgs.append(f"{prefix} power(0)={p_idle:.1f} W > power(1)={p_full:.1f} W.")

    if strict and msgs:
        raise ValueError("Host config validation failed:\n" + "\n".join(msgs))
    return msgs


def validate_vms(vms: Iterable, hosts: Sequence, strict: bool = False) -> List[str]:
    """Warnings for duplicated ids, non-positive bandwidth and VMs no host could ever fit."""
    msgs: List[str] = []
    seen = set()

    for vm in vms:
        prefix = f"[VM:{vm.vid}]"
        if vm.vid in seen:
            msgs.append(f"{prefix} Duplicated VM id.")
        seen.add(vm.vid)

        if vm.bw <= 0:
            msgs.append(f"{prefix} Bandwidth {vm.bw} <= 0; migration delay is undefined.")

        if hosts and not any(vm.mips <= h.mips and vm.ram <= h.ram and vm.bw <= h.bw for h in hosts):
            msgs.append(f"{prefix} Larger than every host (mips={vm.mips}, ram={vm.ram}, bw={vm.bw}).")

    if strict and msgs:
        raise ValueError("VM config validation failed:\n" + "\n".join(msgs))
    return msgs
