import csv, logging, os
from typing import Dict, List, Optional
from tqdm.auto import tqdm
from .events import EventQueue, SimEvent, CLOUDLET_SUBMIT, LOG
from .datacenter import PowerDatacenter
from .models import Cloudlet
from .logger_config import LOGGER_NAME


class Simulator:
    """
    Event loop around one PowerDatacenter.
    - Cloudlets enter through CLOUDLET_SUBMIT events addressed to the datacenter.
    - Every log_interval a row per host goes to host_log.csv and one row to dc_log.csv.
    - cloudlet_log.csv is written once the run ends.
    """
    name = "simulator"

    def __init__(self, datacenter: PowerDatacenter,
                 sim_duration: float = 86400.0,
                 log_interval: float = 300.0,
                 log_path: Optional[str] = None,
                 show_progress: bool = False,
                 logger=None):
        self.dc = datacenter
        self.events: EventQueue = datacenter.events
        self.end_time = sim_duration
        self.log_interval = log_interval
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.cloudlets: List[Cloudlet] = []

        self.host_log_path = "host_log.csv"
        self.dc_log_path = "dc_log.csv"
        self.cloudlet_log_path = "cloudlet_log.csv"
        if log_path:
            os.makedirs(log_path, exist_ok=True)
            self.host_log_path = os.path.join(log_path, "host_log.csv")
            self.dc_log_path = os.path.join(log_path, "dc_log.csv")
            self.cloudlet_log_path = os.path.join(log_path, "cloudlet_log.csv")

        self.show_progress = bool(show_progress)
        self._pbar = None
        self._pbar_last_t = 0.0
        if self.show_progress:
            self._pbar = tqdm(total=self.end_time, desc="Sim time", unit="s",
                              dynamic_ncols=True, mininterval=0.2)

        self._schedule_log(self.events.now + log_interval)

    @property
    def now(self) -> float:
        return self.events.now

    def _schedule_log(self, t: float):
        if t > self.end_time + 1e-9:
            return
        self.events.schedule(self.name, t, LOG)

    def submit(self, cloudlet: Cloudlet):
        self.cloudlets.append(cloudlet)
        self.events.schedule(self.dc.name, cloudlet.submit_time, CLOUDLET_SUBMIT, cloudlet)

    # --- run loop ---
    def run(self) -> Dict[str, float]:
        with open(self.host_log_path, 'w', newline='') as f:
            csv.writer(f).writerow(["time_s", "host", "util", "power_W", "vms", "migrating_in"])
        with open(self.dc_log_path, 'w', newline='') as f:
            csv.writer(f).writerow(["time_s", "vms", "migrations", "in_migration", "energy_kJ"])

        while self.events:
            if self.events.peek_time() > self.end_time:
                break
            ev = self.events.pop()
            self._advance_progress(ev.time)
            self._dispatch(ev)

        self._handle_log(reschedule=False)
        self._write_cloudlet_log()

        if self._pbar is not None:
            if self._pbar.n < self._pbar.total:
                self._pbar.update(self._pbar.total - self._pbar.n)
            self._pbar.close()

        summary = self.summary()
        self.logger.info(f"Simulation finished: {summary}")
        return summary

    def _dispatch(self, ev: SimEvent):
        if ev.dst == self.name and ev.tag == LOG:
            self._handle_log()
        elif ev.dst == self.dc.name:
            self.dc.process_event(ev)
        else:
            raise RuntimeError(f"Unknown event {ev.tag} for {ev.dst}")

    def _advance_progress(self, t: float):
        if self._pbar is None:
            return
        delta = max(0.0, t - self._pbar_last_t)
        if delta > 0.0:
            self._pbar.update(delta)
            self._pbar_last_t = t

    def _host_power(self, host) -> float:
        try:
            return host.power()
        except Exception:
            self.logger.exception(f"{self.now:.2f}: Could not read power of host #{host.hid}")
            return 0.0

    def _handle_log(self, reschedule: bool = True):
        with open(self.host_log_path, 'a', newline='') as f:
            w = csv.writer(f)
            for host in self.dc.hosts:
                w.writerow([f"{self.now:.3f}", host.hid, f"{host.cpu_utilization():.4f}",
                            f"{self._host_power(host):.2f}", len(host.vms), len(host.vms_migrating_in)])
        with open(self.dc_log_path, 'a', newline='') as f:
            csv.writer(f).writerow([f"{self.now:.3f}", len(self.dc.vms), self.dc.migration_count,
                                    sum(1 for vm in self.dc.vms if vm.in_migration),
                                    f"{self.dc.power / 1000.0:.4f}"])
        if reschedule:
            self._schedule_log(self.now + self.log_interval)

    def _write_cloudlet_log(self):
        with open(self.cloudlet_log_path, 'w', newline='') as f:
            w = csv.writer(f)
            w.writerow(["cid", "vm", "length", "submit_s", "finish_s", "latency_s"])
            for cl in self.cloudlets:
                if cl.finish_time is None:
                    continue
                w.writerow([cl.cid, cl.vm_id, f"{cl.length:.1f}", f"{cl.submit_time:.3f}",
                            f"{cl.finish_time:.3f}", f"{(cl.finish_time - cl.submit_time):.3f}"])

    def summary(self) -> Dict[str, float]:
        return {
            "sim_time_s": self.now,
            "energy_kwh": round(self.dc.energy_kwh, 6),
            "migrations": self.dc.migration_count,
            "completed_migrations": self.dc.completed_migrations,
            "cloudlets_total": len(self.cloudlets),
            "cloudlets_finished": sum(1 for cl in self.cloudlets if cl.finish_time is not None),
            "vms_remaining": len(self.dc.vms),
        }
