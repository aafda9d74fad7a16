"""
Correctness checks for the collectives and the average pipeline.

Each check feeds known inputs (for example ``rank + 1``) through the
primitives and compares the result with a value computed analytically.
Aggregates only exist at the coordinator, so reduce-based checks are
judged there; the other members report success for their part.

Every check is collective. run_checks runs them in a fixed order, sums the
per-member pass flags at the coordinator and broadcasts the verdict so that
every member agrees on the outcome.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from collective_average.collectives import barrier, broadcast, reduce
from collective_average.errors import ConsistencyViolation, InvalidParameter
from collective_average.generator import generate_values, partial_sum, seed_for
from collective_average.group import Group
from collective_average.pipeline import AveragePipeline

LOGGER = logging.getLogger(__name__)

TOLERANCE = 1e-10
BROADCAST_VALUE = 42
KNOWN_VALUES = (1.0, 2.0, 3.0, 4.0, 5.0)
FULL_PROGRAM_N = 100
REPEATS = 3
LARGE_PAYLOAD = 1_000_000
COLLECTIVE_ROUNDS = 10


@dataclass(frozen=True)
class CheckOutcome:
    name: str
    passed: bool
    observed: Any = None
    expected: Any = None
    detail: str = ""


@dataclass
class ConsistencyReport:
    group_size: int
    members_passed: int
    outcomes: List[CheckOutcome] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.members_passed == self.group_size

    @property
    def failed_checks(self) -> List[str]:
        return [o.name for o in self.outcomes if not o.passed]

    def raise_for_failures(self) -> None:
        if self.passed:
            return
        failed = self.failed_checks
        if not failed:
            failed = [f"{self.group_size - self.members_passed} of {self.group_size} members"]
        raise ConsistencyViolation(failed)


def _close(observed: float, expected: float) -> bool:
    return abs(observed - expected) < TOLERANCE


def check_broadcast(group: Group) -> CheckOutcome:
    value = BROADCAST_VALUE if group.is_coordinator else 0
    received = broadcast(group, value)
    return CheckOutcome(
        "broadcast",
        received == BROADCAST_VALUE,
        received,
        BROADCAST_VALUE,
        f"rank {group.rank} received {received}",
    )


def check_reduce(group: Group) -> CheckOutcome:
    expected = group.size * (group.size + 1) / 2
    total = reduce(group, float(group.rank + 1))
    if not total.is_valid:
        return CheckOutcome("reduce", True)
    return CheckOutcome(
        "reduce",
        _close(total.value, expected),
        total.value,
        expected,
        f"sum {total.value} (expected {expected})",
    )


def check_reduce_int(group: Group) -> CheckOutcome:
    expected = group.size * (group.size + 1) // 2
    total = reduce(group, group.rank + 1)
    if not total.is_valid:
        return CheckOutcome("reduce_int", True)
    return CheckOutcome(
        "reduce_int",
        total.value == expected,
        total.value,
        expected,
        f"sum {total.value} (expected {expected})",
    )


def _shifted_sum(rank: int) -> float:
    n = len(KNOWN_VALUES)
    return sum(KNOWN_VALUES) + rank * n * 10.0


def check_average(group: Group) -> CheckOutcome:
    n = len(KNOWN_VALUES)
    total = reduce(group, _shifted_sum(group.rank))
    if not total.is_valid:
        return CheckOutcome("average", True)
    observed = total.value / (n * group.size)
    expected = sum(_shifted_sum(r) for r in range(group.size)) / (n * group.size)
    return CheckOutcome(
        "average",
        _close(observed, expected),
        observed,
        expected,
        f"average {observed} (expected {expected})",
    )


def check_synchronization(group: Group) -> CheckOutcome:
    # later ranks do more work before arriving
    work = 0.0
    for i in range((group.rank + 1) * 1000):
        work += math.sqrt(i)
    barrier(group)
    return CheckOutcome("synchronization", True, detail=f"rank {group.rank} passed the barrier")


def _expected_average(n: int, group_size: int, iteration: Optional[int] = None) -> float:
    total = sum(
        partial_sum(generate_values(n, seed_for(rank, iteration))) for rank in range(group_size)
    )
    return total / (n * group_size)


def check_full_program(group: Group) -> CheckOutcome:
    result = AveragePipeline(group).run(FULL_PROGRAM_N)
    statistic = result.final_statistic
    expected = _expected_average(FULL_PROGRAM_N, group.size)
    in_range = 0.0 <= statistic <= 100.0
    # summation order may differ between the reduce and the local recompute
    matches = math.isclose(statistic, expected, rel_tol=1e-12, abs_tol=TOLERANCE)
    return CheckOutcome(
        "full_program",
        in_range and matches,
        statistic,
        expected,
        f"average {statistic:.6f} (expected {expected:.6f}, valid range 0-100)",
    )


def check_repeatability(group: Group) -> CheckOutcome:
    pipeline = AveragePipeline(group)
    statistics = [pipeline.run(FULL_PROGRAM_N).final_statistic for _ in range(REPEATS)]
    identical = len(set(statistics)) == 1
    return CheckOutcome(
        "repeatability",
        identical,
        statistics,
        statistics[0],
        f"{REPEATS} identically seeded runs gave {len(set(statistics))} distinct value(s)",
    )


def check_large_payload(group: Group) -> CheckOutcome:
    values = generate_values(LARGE_PAYLOAD, seed_for(group.rank))
    total = reduce(group, partial_sum(values))
    del values
    if not total.is_valid:
        return CheckOutcome("large_payload", True)
    average = total.value / (LARGE_PAYLOAD * group.size)
    return CheckOutcome(
        "large_payload",
        0.0 <= average <= 100.0,
        average,
        detail=f"{LARGE_PAYLOAD} values per process, average {average:.4f}",
    )


def check_repeated_collectives(group: Group) -> CheckOutcome:
    local = partial_sum(generate_values(1000, seed_for(group.rank)))
    rounds = []
    for _ in range(COLLECTIVE_ROUNDS):
        total = reduce(group, local)
        rounds.append(broadcast(group, total.value if total.is_valid else 0.0))
    identical = len(set(rounds)) == 1
    return CheckOutcome(
        "repeated_collectives",
        identical,
        rounds[-1],
        rounds[0],
        f"{COLLECTIVE_ROUNDS} reduce+broadcast rounds gave {len(set(rounds))} distinct value(s)",
    )


CHECKS: Dict[str, Callable[[Group], CheckOutcome]] = {
    "broadcast": check_broadcast,
    "reduce": check_reduce,
    "reduce_int": check_reduce_int,
    "average": check_average,
    "synchronization": check_synchronization,
    "full_program": check_full_program,
    "repeatability": check_repeatability,
    "large_payload": check_large_payload,
    "repeated_collectives": check_repeated_collectives,
}


def run_checks(group: Group, names: Optional[Sequence[str]] = None) -> ConsistencyReport:
    if names is None:
        names = list(CHECKS)
    unknown = [name for name in names if name not in CHECKS]
    if unknown:
        raise InvalidParameter(f"unknown consistency checks: {', '.join(unknown)}")

    barrier(group)
    outcomes = []
    for name in names:
        outcome = CHECKS[name](group)
        if not outcome.passed:
            LOGGER.warning("Check %s failed on rank %d: %s", name, group.rank, outcome.detail)
        outcomes.append(outcome)
        barrier(group)

    local_ok = all(o.passed for o in outcomes)
    passed = reduce(group, int(local_ok))
    members_passed = broadcast(group, passed.value if passed.is_valid else 0)
    return ConsistencyReport(group.size, members_passed, outcomes)
