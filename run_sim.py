import argparse, os, random
from dcsim.simulator import Simulator
from configs.dc_config import (
    build_hosts, build_vms, build_workload, build_arrival, build_policy,
    build_datacenter_config, build_datacenter
)
from dcsim.validators import validate_hosts, validate_vms
from dcsim.logger_config import get_logger


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Power-aware datacenter simulator (periodic ticks + VM migration)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # --- Core ---
    p.add_argument("--duration", type=float, default=86400.0,
                   help="Total simulated time (s). 86400 = one day.")
    p.add_argument("--interval", type=float, default=300.0,
                   help="Scheduling interval (s): cadence of datacenter ticks.")
    p.add_argument("--log-interval", type=float, default=300.0,
                   help="Period (s) of host_log.csv / dc_log.csv rows.")
    p.add_argument("--log-path", type=str, default=None, help="Output directory for CSV logs and project.log.")
    p.add_argument("--seed", type=int, default=123, help="Random seed.")
    p.add_argument("--no-progress", action="store_true", help="Hide the tqdm progress bar.")

    # --- Datacenter ---
    p.add_argument("--hosts", type=int, default=50, help="Number of hosts (HP ML110 G4/G5 alternating).")
    p.add_argument("--vms", type=int, default=50, help="Number of VMs; each receives one cloudlet.")
    p.add_argument("--policy", type=str, default="threshold", choices=["simple", "threshold"],
                   help="simple = first-fit without migration; threshold = migrate off hosts above --threshold.")
    p.add_argument("--cpu-oversub", type=float, default=1.0,
                   help="CPU oversubscription: placed VM mips may reach host mips * this factor.")
    p.add_argument("--threshold", type=float, default=0.9, help="Utilization threshold for the threshold policy.")
    p.add_argument("--disable-migrations", action="store_true", help="Never ask the policy for a migration plan.")
    p.add_argument("--max-vms-per-host", type=int, default=16,
                   help="Resident + migrating-in VMs above this per host are reported.")
    p.add_argument("--migration-overhead", type=float, default=0.0,
                   help="Constant seconds added to every migration delay (RAM / (BW / 8000) + C).")

    # --- Workload ---
    p.add_argument("--arrival-mode", type=str, default="burst", choices=["burst", "poisson", "off"],
                   help="burst = every cloudlet at t=0; poisson = exponential inter-arrivals.")
    p.add_argument("--arrival-rate", type=float, default=0.01, help="Poisson rate (cloudlets/s).")
    p.add_argument("--full-utilization", action="store_true",
                   help="Cloudlets use 100%% of their VM instead of a stochastic utilization.")

    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    rng = random.Random(args.seed)
    out_dir = os.path.normpath(args.log_path) if args.log_path else os.getcwd()
    logger = get_logger(log_dir=out_dir)

    hosts = build_hosts(args.hosts, cpu_oversub=args.cpu_oversub)
    vms = build_vms(args.vms, rng=rng)
    for m in validate_hosts(hosts) + validate_vms(vms, hosts):
        print("[CONFIG VALIDATION]", m)

    policy = build_policy(hosts, name=args.policy, utilization_threshold=args.threshold, logger=logger)
    config = build_datacenter_config(scheduling_interval=args.interval,
                                     disable_migrations=args.disable_migrations,
                                     max_vms_per_host=args.max_vms_per_host,
                                     migration_overhead=args.migration_overhead)
    dc = build_datacenter(hosts, vms, policy, config, logger=logger)

    sim = Simulator(dc, sim_duration=args.duration, log_interval=args.log_interval,
                    log_path=out_dir, show_progress=not args.no_progress, logger=logger)
    for cl in build_workload(dc.vms, build_arrival(args.arrival_mode, args.arrival_rate), seed=args.seed,
                             stochastic=not args.full_utilization, util_slot=args.interval):
        sim.submit(cl)

    summary = sim.run()
    for k, v in summary.items():
        print(f"{k:>22}: {v}")
    print(f"Done. ({args.policy}) Logs: {out_dir}")
    return summary


if __name__ == "__main__":
    main()
