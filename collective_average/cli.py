"""
Command-line entry point.

Run with: mpiexec -n 4 collective-average run --values 1000

Every process parses the same arguments and runs the same command; only
the coordinator prints results and writes files.
"""

from __future__ import annotations

import argparse
import logging
import threading
from pathlib import Path
from typing import List, Optional

from collective_average import consistency, harness, report
from collective_average.config import LOG_LEVELS, RunConfig
from collective_average.errors import (
    ConsistencyViolation,
    GroupMismatch,
    InvalidParameter,
    ProtocolMismatch,
)
from collective_average.group import Group, Role, select_role
from collective_average.log import configure_logging
from collective_average.pipeline import AveragePipeline

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_FATAL = 3
EXIT_TIMEOUT = 4


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--timeout", type=float, help="Abort the group after this many seconds (0 disables)")
    common.add_argument("--log-level", choices=LOG_LEVELS, help="Logging level for stderr")

    ap = argparse.ArgumentParser(
        prog="collective-average",
        description="Global average over values generated by every MPI process.",
    )
    sub = ap.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", parents=[common], help="Compute the global average once")
    run.add_argument("-n", "--values", type=int, help="Values per process (prompted for if unset)")
    run.add_argument("-v", "--verbose", action="store_true", help="Print every process's values")

    bench = sub.add_parser("benchmark", parents=[common], help="Time Bcast, Reduce and the full program")
    bench.add_argument("-i", "--iterations", type=int, help="Repetitions per measurement")
    bench.add_argument("-o", "--output-dir", type=Path, help="Directory for the results CSV")
    bench.add_argument("--sizes", type=int, nargs="+", default=list(harness.DEFAULT_DATA_SIZES),
                       help="Payload sizes for Bcast and Reduce")
    bench.add_argument("--values-list", type=int, nargs="+", default=list(harness.DEFAULT_N_VALUES),
                       help="Values per process for the full program")

    analyze = sub.add_parser("analyze", parents=[common], help="Scaling, memory and cost analysis")
    analyze.add_argument("--total", type=int, default=harness.DEFAULT_STRONG_TOTAL,
                         help="Total problem size for strong scaling")
    analyze.add_argument("--per-process", type=int, default=harness.DEFAULT_WEAK_PER_MEMBER,
                         help="Values per process for weak scaling")
    analyze.add_argument("--group-sizes", type=int, nargs="+", help="Group sizes to sweep")
    analyze.add_argument("-o", "--output-dir", type=Path, help="Directory for the scaling CSV")

    check = sub.add_parser("check", parents=[common], help="Run the consistency checks")
    check.add_argument("--only", nargs="+", choices=list(consistency.CHECKS), help="Run only these checks")

    return ap


def _prompt_values(role: Role, config: RunConfig):
    if config.values is not None or not role.is_coordinator:
        return config.values
    try:
        return input("Enter the number of values per process (N): ")
    except EOFError:
        return None


def cmd_run(args, config: RunConfig, role: Role) -> int:
    group = role.group
    role.emit("=== GLOBAL AVERAGE WITH COLLECTIVE OPERATIONS ===")
    role.emit(f"Number of processes: {group.size}")
    n = _prompt_values(role, config)

    result = AveragePipeline(group, role=role).run(n)

    if args.verbose:
        report.ordered_print(group, report.format_preview(group.rank, result))
    if role.is_coordinator:
        role.emit(report.format_pipeline_summary(result))
    if args.verbose:
        report.ordered_print(
            group, f"Process {group.rank} received the final average: {result.final_statistic:.4f}"
        )
    return EXIT_OK


def cmd_benchmark(args, config: RunConfig, role: Role) -> int:
    group = role.group
    role.emit("=== COLLECTIVE OPERATIONS BENCHMARK ===")
    role.emit(f"Number of processes: {group.size}")

    samples = harness.run_suite(group, args.sizes, args.values_list, config.iterations, role=role)

    role.emit(report.format_samples(samples))
    if role.is_coordinator:
        path = report.write_results(samples, config.output_dir / report.results_filename(group.size))
        role.emit(f"Results saved to: {path}")
    return EXIT_OK


def cmd_analyze(args, config: RunConfig, role: Role) -> int:
    group = role.group
    role.emit(report.format_system_info(harness.system_info(group)))

    strong = harness.strong_scaling(group, args.total, args.group_sizes)
    role.emit(report.format_scaling(strong, f"STRONG SCALING (total {args.total})"))
    weak = harness.weak_scaling(group, args.per_process, args.group_sizes)
    role.emit(report.format_scaling(weak, f"WEAK SCALING ({args.per_process} per process)"))

    costs = harness.compute_vs_communicate(group)
    role.emit(report.format_costs(costs))
    role.emit(f"Peak memory at coordinator: {harness.sample_memory_kb()} KB")

    if role.is_coordinator:
        path = report.write_results(strong + weak, config.output_dir / f"scaling_{group.size}procs.csv")
        role.emit(f"Results saved to: {path}")
    return EXIT_OK


def cmd_check(args, config: RunConfig, role: Role) -> int:
    result = consistency.run_checks(role.group, args.only)
    role.emit(report.format_consistency(result))
    result.raise_for_failures()
    return EXIT_OK


COMMANDS = {
    "run": cmd_run,
    "benchmark": cmd_benchmark,
    "analyze": cmd_analyze,
    "check": cmd_check,
}


def start_watchdog(group: Group, timeout: float) -> Optional[threading.Timer]:
    if not timeout or timeout <= 0:
        return None

    def expire():
        LOGGER.error("Run exceeded the %.0f s timeout", timeout)
        group.abort(EXIT_TIMEOUT)

    timer = threading.Timer(timeout, expire)
    timer.daemon = True
    timer.start()
    return timer


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    group = Group.from_comm()
    role = select_role(group)

    try:
        config = RunConfig.from_env().merged(
            values=getattr(args, "values", None),
            iterations=getattr(args, "iterations", None),
            timeout=args.timeout,
            output_dir=getattr(args, "output_dir", None),
            log_level=args.log_level,
        )
    except InvalidParameter as exc:
        configure_logging(group.rank)
        LOGGER.error("%s", exc)
        return EXIT_FAILURE
    configure_logging(group.rank, config.log_level)

    watchdog = start_watchdog(group, config.timeout)
    try:
        return COMMANDS[args.command](args, config, role)
    except (InvalidParameter, ConsistencyViolation) as exc:
        LOGGER.error("%s", exc)
        role.emit(f"Error: {exc}")
        return EXIT_FAILURE
    except (GroupMismatch, ProtocolMismatch) as exc:
        LOGGER.error("Fatal collective error: %s", exc)
        group.abort(EXIT_FATAL)
        return EXIT_FATAL
    finally:
        if watchdog is not None:
            watchdog.cancel()
