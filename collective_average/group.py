"""
Fixed group of cooperating processes and the roles they play.

A Group wraps one mpi4py communicator: rank 0 is the coordinator, and the
membership never changes while the group is alive. The role of each member
(Coordinator or Member) is chosen once from its rank.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from mpi4py import MPI

from collective_average.errors import InvalidParameter

LOGGER = logging.getLogger(__name__)

COORDINATOR_RANK = 0
# N travels as one int64 element
MAX_VALUES = int(np.iinfo(np.int64).max)


@dataclass(frozen=True)
class Group:
    comm: MPI.Comm
    rank: int
    size: int
    coordinator_rank: int = COORDINATOR_RANK

    @classmethod
    def from_comm(cls, comm: Optional[MPI.Comm] = None) -> "Group":
        if comm is None:
            comm = MPI.COMM_WORLD
        return cls(comm=comm, rank=comm.Get_rank(), size=comm.Get_size())

    @property
    def is_coordinator(self) -> bool:
        return self.rank == self.coordinator_rank

    def subgroup(self, k: int) -> Optional["Group"]:
        """Group made of the first ``k`` ranks.

        Collective over this group: every member must call it with the same
        ``k``. Members outside the new group get ``None``.
        """
        if not 1 <= k <= self.size:
            raise InvalidParameter(f"subgroup size must be in [1, {self.size}], got {k}")
        color = 0 if self.rank < k else MPI.UNDEFINED
        sub = self.comm.Split(color, key=self.rank)
        if sub == MPI.COMM_NULL:
            return None
        return Group.from_comm(sub)

    def free(self) -> None:
        if self.comm not in (MPI.COMM_WORLD, MPI.COMM_SELF):
            self.comm.Free()

    def abort(self, code: int = 1) -> None:
        LOGGER.error("Aborting group of %d processes with code %d", self.size, code)
        self.comm.Abort(code)


class Role:
    """What a member contributes beyond taking part in every collective."""

    is_coordinator = False

    def __init__(self, group: Group):
        self.group = group

    def parameter(self, requested) -> int:
        # placeholder; the coordinator's value overwrites it on broadcast
        return 0

    def finalize(self, aggregate, n: int) -> float:
        return 0.0

    def emit(self, text: str) -> None:
        pass


class Coordinator(Role):
    """Owns the parameter, the final statistic and all output."""

    is_coordinator = True

    def parameter(self, requested) -> int:
        try:
            n = int(requested)
        except (TypeError, ValueError, OverflowError):
            LOGGER.error("Values per process must be an integer, got %r", requested)
            return 0
        if n <= 0:
            LOGGER.error("Values per process must be positive, got %d", n)
        elif n > MAX_VALUES:
            LOGGER.error("Values per process must be at most %d, got %d", MAX_VALUES, n)
            return 0
        return n

    def finalize(self, aggregate, n: int) -> float:
        return aggregate / (n * self.group.size)

    def emit(self, text: str) -> None:
        print(text, flush=True)


class Member(Role):
    pass


def select_role(group: Group) -> Role:
    if group.is_coordinator:
        return Coordinator(group)
    return Member(group)
