import os
import argparse
from typing import Dict, Tuple
import pandas as pd
import numpy as np
import seaborn as sns
import matplotlib.pyplot as plt


def load_run(dir_path: str, scaledown: int = 1) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Load host_log.csv, dc_log.csv and cloudlet_log.csv from dir_path."""
    paths = {name: os.path.join(dir_path, f"{name}.csv") for name in ("host_log", "dc_log", "cloudlet_log")}
    for name, path in paths.items():
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Missing {name}.csv in {dir_path}")
    hl = pd.read_csv(paths["host_log"])
    dl = pd.read_csv(paths["dc_log"])
    cl = pd.read_csv(paths["cloudlet_log"])

    if scaledown > 1:
        hl = hl.iloc[::scaledown, :].reset_index(drop=True)
        dl = dl.iloc[::scaledown, :].reset_index(drop=True)

    return hl, dl, cl


def aggregate_hosts(hl: pd.DataFrame) -> pd.DataFrame:
    """Aggregate host log to system-level by time.
       - total_power_W: sum power_W across hosts
       - util_mean: mean utilization of hosts that run at least one VM
       - active_hosts: hosts with at least one resident VM
    """
    df = hl.copy()
    for col in ["time_s", "util", "power_W", "vms", "migrating_in"]:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    df["active"] = (df["vms"] > 0).astype(int)
    df["util_active"] = df["util"].where(df["vms"] > 0)
    g = df.groupby("time_s", as_index=False).agg(
        total_power_W=("power_W", "sum"),
        util_mean=("util_active", "mean"),
        active_hosts=("active", "sum"),
        migrating_in=("migrating_in", "sum"),
    )
    g["util_mean"] = g["util_mean"].fillna(0.0)
    return g


def plot_lines_over_time(series_dict: Dict[str, pd.DataFrame], x, y, ylabel, outpath: str, show: bool = False):
    plt.figure()
    is_power = "power" in y.lower()
    for name, df in series_dict.items():
        if x in df.columns and y in df.columns:
            y_data = df[y] / 1000 if is_power else df[y]
            plt.plot(df[x] / 3600.0, y_data, label=name)
    plt.xlabel("Simulated time (h)")
    plt.ylabel(ylabel)
    plt.legend()
    plt.tight_layout()
    plt.savefig(outpath, dpi=160)
    if show:
        plt.show()
    plt.close()


def plot_total_energy_bar(dc_dict: Dict[str, pd.DataFrame], outpath: str):
    names, totals = [], []
    for name, df in dc_dict.items():
        if "energy_kJ" in df.columns and len(df) > 0:
            names.append(name)
            totals.append(float(df["energy_kJ"].iloc[-1]) / 3600.0)  # kJ -> kWh
    plt.figure()
    positions = np.arange(len(names))
    plt.bar(positions, totals)

    for pos, total in zip(positions, totals):
        plt.text(pos, total, f"{total:.2f}", ha="center", va="bottom", fontsize=9)

    plt.xticks(positions, names, rotation=15)
    plt.ylabel("Total energy (kWh)")
    plt.grid(axis="y", alpha=0.3)
    plt.tight_layout()
    plt.savefig(outpath, dpi=160)
    plt.close()


def plot_host_util_boxen(host_dict: Dict[str, pd.DataFrame], outpath: str):
    records = []
    for name, df in host_dict.items():
        d = df[pd.to_numeric(df["vms"], errors="coerce") > 0]
        records.extend([{"Run": name, "Host utilization": v} for v in pd.to_numeric(d["util"], errors="coerce")])
    all_data = pd.DataFrame(records)
    if all_data.empty:
        print("[WARN] No active host samples")
        return

    fig, ax = plt.subplots(figsize=(7, 5))
    sns.boxenplot(data=all_data, x="Run", y="Host utilization", ax=ax, linewidth=1)
    ax.set_xlabel("")
    ax.grid(alpha=0.3)
    plt.tight_layout()
    plt.savefig(outpath, dpi=160)
    plt.close()


def plot_latency_histogram(cloudlet_dict: Dict[str, pd.DataFrame], outpath: str, bins: int = 40):
    fig, ax = plt.subplots(figsize=(6, 5))
    for name, df in cloudlet_dict.items():
        if "latency_s" in df.columns and len(df) > 0:
            ax.hist(df["latency_s"] / 3600.0, bins=bins, alpha=0.5, label=f"{name} - {len(df)} cloudlets")
    ax.set_xlabel("Cloudlet latency (h)")
    ax.set_ylabel("Count")
    ax.legend()
    ax.grid(alpha=0.3)
    plt.tight_layout()
    plt.savefig(outpath, dpi=160)
    plt.close()


def main():
    ap = argparse.ArgumentParser(description="Plot datacenter simulator runs (host/dc/cloudlet CSVs).")
    ap.add_argument("--run", action="append", default=[],
                    help="One run as NAME=DIR, where DIR holds host_log.csv, dc_log.csv and cloudlet_log.csv. "
                         "Repeatable.")
    ap.add_argument("--outdir", type=str, default="./figs", help="Output directory for figures.")
    ap.add_argument("--scaledown", type=int, default=1, help="Keep one row every N when reading logs.")
    ap.add_argument("--show", action="store_true", help="Show the time-series plots interactively.")
    ap.add_argument("--pdf", action="store_true", help="Save figures as PDF (default PNG).")
    args = ap.parse_args()

    if not args.run:
        raise SystemExit("Need at least one --run NAME=DIR")
    os.makedirs(args.outdir, exist_ok=True)
    fmt = "pdf" if args.pdf else "png"

    hosts_by_run: Dict[str, pd.DataFrame] = {}
    dc_by_run: Dict[str, pd.DataFrame] = {}
    cloudlets_by_run: Dict[str, pd.DataFrame] = {}
    agg_by_run: Dict[str, pd.DataFrame] = {}

    for spec in args.run:
        if "=" not in spec:
            raise SystemExit(f"Invalid run '{spec}'. Use NAME=DIR.")
        name, d = spec.split("=", 1)
        hl, dl, cl = load_run(d, scaledown=args.scaledown)
        hosts_by_run[name] = hl
        dc_by_run[name] = dl
        cloudlets_by_run[name] = cl
        agg_by_run[name] = aggregate_hosts(hl)

    # 1) total power over time
    plot_lines_over_time(agg_by_run, x="time_s", y="total_power_W", ylabel="Total power (kW)",
                         outpath=os.path.join(args.outdir, f"total_power_vs_time.{fmt}"), show=args.show)
    # 2) cumulative energy over time
    plot_lines_over_time(dc_by_run, x="time_s", y="energy_kJ", ylabel="Cumulative energy (kJ)",
                         outpath=os.path.join(args.outdir, f"cumulative_energy_vs_time.{fmt}"))
    # 3) migrations started over time
    plot_lines_over_time(dc_by_run, x="time_s", y="migrations", ylabel="Migrations started",
                         outpath=os.path.join(args.outdir, f"migrations_vs_time.{fmt}"))
    # 4) active hosts over time
    plot_lines_over_time(agg_by_run, x="time_s", y="active_hosts", ylabel="Hosts with VMs",
                         outpath=os.path.join(args.outdir, f"active_hosts_vs_time.{fmt}"), show=args.show)
    # 5) final energy
    plot_total_energy_bar(dc_by_run, outpath=os.path.join(args.outdir, f"total_energy_bar.{fmt}"))
    # 6) utilization distribution
    plot_host_util_boxen(hosts_by_run, outpath=os.path.join(args.outdir, f"host_util_boxen.{fmt}"))
    # 7) cloudlet latency
    plot_latency_histogram(cloudlets_by_run, outpath=os.path.join(args.outdir, f"cloudlet_latency_hist.{fmt}"))

    print(f"Saved figures to: {args.outdir}")


if __name__ == "__main__":
    main()
