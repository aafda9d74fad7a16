"""Text and tabular rendering of results. Only the coordinator writes."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence, Union

import pandas as pd

from collective_average.collectives import barrier
from collective_average.group import Group

LOGGER = logging.getLogger(__name__)

RESULT_COLUMNS = ["Operation", "PayloadSize", "GroupSize", "AverageTimeMicroseconds"]


def results_filename(group_size: int) -> str:
    return f"benchmark_results_{group_size}procs.csv"


def samples_frame(samples: Iterable) -> pd.DataFrame:
    rows = [
        (s.operation, s.payload_size, s.group_size, s.elapsed_us)
        for s in samples
    ]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def write_results(samples: Iterable, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    samples_frame(samples).to_csv(path, index=False, float_format="%.6f")
    LOGGER.info("Results written to %s", path)
    return path


def read_results(path: Union[str, Path]) -> pd.DataFrame:
    return pd.read_csv(path)


def scaling_frame(samples: Sequence) -> pd.DataFrame:
    """Scaling curve with speedup and efficiency against the smallest group.

    Strong scaling: speedup = t_1 / t_k, efficiency = speedup / (k / k_1).
    Weak scaling: efficiency = t_1 / t_k.
    """
    frame = pd.DataFrame(
        {
            "Operation": [s.operation for s in samples],
            "GroupSize": [s.group_size for s in samples],
            "PayloadSize": [s.payload_size for s in samples],
            "TimeMicroseconds": [s.elapsed_us for s in samples],
            "MemoryKB": [s.memory_kb for s in samples],
        }
    )
    if frame.empty:
        return frame
    base = frame.iloc[0]
    frame["Speedup"] = base["TimeMicroseconds"] / frame["TimeMicroseconds"]
    if base["Operation"] == "WeakScaling":
        frame["Efficiency"] = frame["Speedup"]
    else:
        frame["Efficiency"] = frame["Speedup"] / (frame["GroupSize"] / base["GroupSize"])
    return frame


def format_system_info(info: dict) -> str:
    return "\n".join(
        [
            "=== SYSTEM INFO ===",
            f"Processes: {info['processes']}",
            f"Cores: {info['cores']}",
            f"Page size: {info['page_size']} bytes",
        ]
    )


def format_preview(rank: int, result) -> str:
    shown = ", ".join(f"{v:.2f}" for v in result.preview)
    hidden = result.n - len(result.preview)
    if hidden > 0:
        shown += f", ... ({hidden} more)"
    return (
        f"Process {rank}:\n"
        f"  - Values generated: {shown}\n"
        f"  - Partial sum: {result.local_contribution:.2f}"
    )


def format_pipeline_summary(result) -> str:
    return "\n".join(
        [
            "=== RESULTS AT COORDINATOR ===",
            f"Total sum over all processes: {result.aggregate:.2f}",
            f"Total number of values: {result.total_values}",
            f"Average: {result.final_statistic:.4f}",
            "",
            "=== TIMING SUMMARY ===",
            f"Data generation: {result.generation_us:.2f} us",
            f"Reduce: {result.reduce_us:.2f} us",
            f"Final broadcast: {result.broadcast_us:.2f} us",
        ]
    )


def format_samples(samples: Iterable) -> str:
    lines = []
    for s in samples:
        lines.append(f"  {s.operation} with {s.payload_size} elements: {s.elapsed_us:.2f} us")
    return "\n".join(lines)


def format_scaling(samples: Sequence, title: str) -> str:
    frame = scaling_frame(samples)
    if frame.empty:
        return f"=== {title} ===\n(no samples)"
    return f"=== {title} ===\n" + frame.to_string(index=False, float_format=lambda v: f"{v:.2f}")


def format_costs(breakdowns: Iterable) -> str:
    lines = ["=== COMPUTATION VS COMMUNICATION ==="]
    for b in breakdowns:
        lines.append(
            f"N={b.payload_size} | compute: {b.compute_us:.2f} us ({b.compute_pct:.1f}%) | "
            f"communicate: {b.communicate_us:.2f} us ({b.communicate_pct:.1f}%)"
        )
    return "\n".join(lines)


def format_consistency(report) -> str:
    lines = ["=== CONSISTENCY CHECKS ==="]
    for outcome in report.outcomes:
        mark = "PASS" if outcome.passed else "FAIL"
        line = f"  [{mark}] {outcome.name}"
        if outcome.detail:
            line += f": {outcome.detail}"
        lines.append(line)
    if report.passed:
        lines.append("ALL CHECKS PASSED")
    else:
        lines.append("SOME CHECKS FAILED")
        lines.append(f"Processes that passed: {report.members_passed}/{report.group_size}")
    return "\n".join(lines)


def ordered_print(group: Group, text: str) -> None:
    """Print one block per member in rank order. Collective."""
    for rank in range(group.size):
        if rank == group.rank:
            print(text, flush=True)
        barrier(group)
