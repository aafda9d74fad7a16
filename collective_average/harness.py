"""
Timing, memory sampling and scaling sweeps built on the collectives.

Every function here is collective: all members of the group call it with
the same arguments. Measurements come back as values (TimingSample,
CostBreakdown); nothing is accumulated between calls.
"""

from __future__ import annotations

import logging
import math
import os
import resource
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
from mpi4py import MPI

from collective_average.collectives import barrier, broadcast, reduce
from collective_average.errors import InvalidParameter
from collective_average.generator import generate_values, partial_sum, seed_for
from collective_average.group import Group, Role
from collective_average.pipeline import AveragePipeline

LOGGER = logging.getLogger(__name__)

BCAST = "MPI_Bcast"
REDUCE = "MPI_Reduce"
FULL_PROGRAM = "ProgramaCompleto"
STRONG_SCALING = "StrongScaling"
WEAK_SCALING = "WeakScaling"

DEFAULT_DATA_SIZES = (1, 10, 100, 1000, 10000)
DEFAULT_N_VALUES = (100, 1000, 10000)
DEFAULT_ITERATIONS = 100
DEFAULT_STRONG_TOTAL = 10000
DEFAULT_WEAK_PER_MEMBER = 1000
DEFAULT_COST_SIZES = (100, 1000, 10000, 100000)


@dataclass(frozen=True)
class TimingSample:
    operation: str
    payload_size: int
    group_size: int
    iteration_count: int
    elapsed_us: float
    memory_kb: Optional[int] = None


@dataclass(frozen=True)
class CostBreakdown:
    payload_size: int
    group_size: int
    compute_us: float
    communicate_us: float

    @property
    def total_us(self) -> float:
        return self.compute_us + self.communicate_us

    @property
    def compute_pct(self) -> float:
        return 100.0 * self.compute_us / self.total_us if self.total_us > 0 else 0.0

    @property
    def communicate_pct(self) -> float:
        return 100.0 * self.communicate_us / self.total_us if self.total_us > 0 else 0.0


def sample_memory_kb() -> int:
    """Peak resident set size of this process in KB."""
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux kilobytes
    if sys.platform == "darwin":
        rss //= 1024
    return int(rss)


def system_info(group: Group) -> dict:
    return {
        "processes": group.size,
        "cores": os.cpu_count(),
        "page_size": os.sysconf("SC_PAGESIZE") if hasattr(os, "sysconf") else None,
    }


def _timed(group: Group, iterations: int, step) -> float:
    if iterations <= 0:
        raise InvalidParameter(f"iteration count must be positive, got {iterations}")
    barrier(group)
    t0 = MPI.Wtime()
    for i in range(iterations):
        step(i)
    return (MPI.Wtime() - t0) * 1e6 / iterations


def time_broadcast(group: Group, payload_size: int, iterations: int = DEFAULT_ITERATIONS) -> TimingSample:
    if group.is_coordinator:
        data = generate_values(payload_size, seed_for(0))
    else:
        data = np.empty(payload_size, dtype=np.float64)

    elapsed = _timed(group, iterations, lambda i: broadcast(group, data, checked=False))
    LOGGER.debug("%s size=%d: %.2f us", BCAST, payload_size, elapsed)
    return TimingSample(BCAST, payload_size, group.size, iterations, elapsed, sample_memory_kb())


def time_reduce(group: Group, payload_size: int, iterations: int = DEFAULT_ITERATIONS) -> TimingSample:
    data = generate_values(payload_size, seed_for(group.rank))

    elapsed = _timed(group, iterations, lambda i: reduce(group, data, checked=False))
    LOGGER.debug("%s size=%d: %.2f us", REDUCE, payload_size, elapsed)
    return TimingSample(REDUCE, payload_size, group.size, iterations, elapsed, sample_memory_kb())


def time_pipeline(
    group: Group,
    n: int,
    iterations: int = DEFAULT_ITERATIONS,
    role: Optional[Role] = None,
) -> TimingSample:
    pipeline = AveragePipeline(group, role=role)

    elapsed = _timed(group, iterations, lambda i: pipeline.run(n, iteration=i))
    LOGGER.debug("%s n=%d: %.2f us", FULL_PROGRAM, n, elapsed)
    return TimingSample(FULL_PROGRAM, n, group.size, iterations, elapsed, sample_memory_kb())


def run_suite(
    group: Group,
    data_sizes: Sequence[int] = DEFAULT_DATA_SIZES,
    n_values: Sequence[int] = DEFAULT_N_VALUES,
    iterations: int = DEFAULT_ITERATIONS,
    role: Optional[Role] = None,
) -> List[TimingSample]:
    samples = [time_broadcast(group, size, iterations) for size in data_sizes]
    samples += [time_reduce(group, size, iterations) for size in data_sizes]
    samples += [time_pipeline(group, n, iterations, role=role) for n in n_values]
    return samples


def default_group_sizes(size: int) -> List[int]:
    sizes = []
    k = 1
    while k < size:
        sizes.append(k)
        k *= 2
    sizes.append(size)
    return sizes


def per_member_share(total_size: int, group_size: int) -> int:
    return math.ceil(total_size / group_size)


def _measure_sum(group: Group, count: int) -> tuple:
    """Generate, sum and reduce ``count`` values per member.

    Returns (elapsed_us, memory_kb, average) at the coordinator; elapsed time
    and memory are the maximum over members.
    """
    data = generate_values(count, seed_for(group.rank))

    barrier(group)
    t0 = MPI.Wtime()
    total = reduce(group, partial_sum(data))
    elapsed = (MPI.Wtime() - t0) * 1e6
    memory = sample_memory_kb()

    slowest = reduce(group, elapsed, op=MPI.MAX)
    peak = reduce(group, memory, op=MPI.MAX)
    if not total.is_valid:
        return None
    return slowest.value, peak.value, total.value / (count * group.size)


def _sweep(group: Group, operation: str, shares, group_sizes) -> List[TimingSample]:
    samples = []
    for k in group_sizes:
        sub = group.subgroup(k)
        if sub is not None:
            count = shares(k)
            measured = _measure_sum(sub, count)
            if measured is not None:
                elapsed, memory, average = measured
                LOGGER.debug(
                    "%s k=%d share=%d: %.2f us, %d KB, average %.4f",
                    operation, k, count, elapsed, memory, average,
                )
                samples.append(TimingSample(operation, count, k, 1, elapsed, memory))
            sub.free()
        barrier(group)
    return samples


def strong_scaling(
    group: Group,
    total_size: int = DEFAULT_STRONG_TOTAL,
    group_sizes: Optional[Sequence[int]] = None,
) -> List[TimingSample]:
    """Fixed total problem size, split over growing groups.

    Returns one sample per tested group size at the coordinator and an empty
    list elsewhere.
    """
    if group_sizes is None:
        group_sizes = default_group_sizes(group.size)
    return _sweep(group, STRONG_SCALING, lambda k: per_member_share(total_size, k), group_sizes)


def weak_scaling(
    group: Group,
    per_member: int = DEFAULT_WEAK_PER_MEMBER,
    group_sizes: Optional[Sequence[int]] = None,
) -> List[TimingSample]:
    if group_sizes is None:
        group_sizes = default_group_sizes(group.size)
    return _sweep(group, WEAK_SCALING, lambda k: per_member, group_sizes)


def compute_vs_communicate(
    group: Group, sizes: Sequence[int] = DEFAULT_COST_SIZES
) -> List[CostBreakdown]:
    breakdowns = []
    for size in sizes:
        data = generate_values(size, seed_for(group.rank))

        t0 = MPI.Wtime()
        local = partial_sum(data)
        compute_us = (MPI.Wtime() - t0) * 1e6

        t0 = MPI.Wtime()
        reduce(group, local, checked=False)
        communicate_us = (MPI.Wtime() - t0) * 1e6

        breakdowns.append(CostBreakdown(size, group.size, compute_us, communicate_us))
    return breakdowns
