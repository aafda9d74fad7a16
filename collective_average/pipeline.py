"""
Global average over values generated independently by every member.

One run walks a fixed sequence of states:

  INIT -> PARAM_DISTRIBUTION -> LOCAL_COMPUTE -> SYNCHRONIZE -> AGGREGATE
       -> FINALIZE_AT_COORDINATOR -> RESULT_DISTRIBUTION -> COMPLETION

Every member runs the same sequence; a failed collective aborts the run.
The only recoverable error is an invalid N at the coordinator, which is
broadcast like a valid one so that every member raises InvalidParameter at
the same point instead of waiting on a collective that never comes.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
from mpi4py import MPI

from collective_average.collectives import barrier, broadcast, reduce
from collective_average.errors import InvalidParameter
from collective_average.generator import generate_values, partial_sum, seed_for
from collective_average.group import Group, Role, select_role

LOGGER = logging.getLogger(__name__)

PREVIEW_COUNT = 5


class PipelineState(enum.Enum):
    CREATED = "created"
    INIT = "init"
    PARAM_DISTRIBUTION = "param_distribution"
    LOCAL_COMPUTE = "local_compute"
    SYNCHRONIZE = "synchronize"
    AGGREGATE = "aggregate"
    FINALIZE_AT_COORDINATOR = "finalize_at_coordinator"
    RESULT_DISTRIBUTION = "result_distribution"
    COMPLETION = "completion"


@dataclass(frozen=True)
class PipelineResult:
    n: int
    group_size: int
    local_contribution: float
    aggregate: Optional[float]
    final_statistic: float
    preview: Tuple[float, ...]
    generation_us: float
    reduce_us: float
    broadcast_us: float

    @property
    def total_values(self) -> int:
        return self.n * self.group_size


class AveragePipeline:
    def __init__(
        self,
        group: Group,
        role: Optional[Role] = None,
        generator: Callable[[int, int], np.ndarray] = generate_values,
    ):
        self.group = group
        self.role = role if role is not None else select_role(group)
        self.generator = generator
        self.state = PipelineState.CREATED

    def _enter(self, state: PipelineState) -> None:
        self.state = state
        LOGGER.debug("rank %d -> %s", self.group.rank, state.value)

    def run(self, n=None, iteration: Optional[int] = None) -> PipelineResult:
        """Run one round. ``n`` is only read at the coordinator."""
        group = self.group

        self._enter(PipelineState.INIT)
        barrier(group)

        # Step 1: coordinator supplies N, everybody receives it
        self._enter(PipelineState.PARAM_DISTRIBUTION)
        n = broadcast(group, self.role.parameter(n))
        if n <= 0:
            raise InvalidParameter(f"values per process must be positive, got {n}")

        # Step 2: every member generates and sums its own values
        self._enter(PipelineState.LOCAL_COMPUTE)
        t0 = MPI.Wtime()
        values = self.generator(n, seed_for(group.rank, iteration))
        local_contribution = partial_sum(values)
        generation_us = (MPI.Wtime() - t0) * 1e6

        self._enter(PipelineState.SYNCHRONIZE)
        barrier(group)

        # Step 3: sum the contributions at the coordinator
        self._enter(PipelineState.AGGREGATE)
        t0 = MPI.Wtime()
        aggregate = reduce(group, local_contribution)
        reduce_us = (MPI.Wtime() - t0) * 1e6

        self._enter(PipelineState.FINALIZE_AT_COORDINATOR)
        statistic = 0.0
        if aggregate.is_valid:
            statistic = self.role.finalize(aggregate.value, n)

        # Step 4: send the average back to every member
        self._enter(PipelineState.RESULT_DISTRIBUTION)
        t0 = MPI.Wtime()
        statistic = broadcast(group, statistic)
        broadcast_us = (MPI.Wtime() - t0) * 1e6

        self._enter(PipelineState.COMPLETION)
        barrier(group)

        return PipelineResult(
            n=n,
            group_size=group.size,
            local_contribution=local_contribution,
            aggregate=aggregate.value,
            final_statistic=statistic,
            preview=tuple(float(v) for v in values[:PREVIEW_COUNT]),
            generation_us=generation_us,
            reduce_us=reduce_us,
            broadcast_us=broadcast_us,
        )


def run_average(group: Group, n=None, iteration: Optional[int] = None) -> PipelineResult:
    return AveragePipeline(group).run(n, iteration=iteration)
