"""
Global average of per-process random values using MPI collective operations.

Modules:
  - group: the fixed process group and the Coordinator/Member roles
  - collectives: barrier, broadcast and reduce over the group
  - pipeline: broadcast N, compute locally, reduce, broadcast the average
  - harness: timing, memory sampling, strong and weak scaling
  - consistency: checks against analytically known results
"""

from collective_average.collectives import ReduceResult, barrier, broadcast, reduce
from collective_average.consistency import ConsistencyReport, run_checks
from collective_average.errors import (
    CollectiveError,
    ConsistencyViolation,
    GroupMismatch,
    InvalidParameter,
    ProtocolMismatch,
)
from collective_average.group import Coordinator, Group, Member, Role, select_role
from collective_average.harness import TimingSample, strong_scaling, weak_scaling
from collective_average.pipeline import AveragePipeline, PipelineResult, PipelineState

__all__ = [
    "ReduceResult",
    "barrier",
    "broadcast",
    "reduce",
    "ConsistencyReport",
    "run_checks",
    "CollectiveError",
    "ConsistencyViolation",
    "GroupMismatch",
    "InvalidParameter",
    "ProtocolMismatch",
    "Coordinator",
    "Group",
    "Member",
    "Role",
    "select_role",
    "TimingSample",
    "strong_scaling",
    "weak_scaling",
    "AveragePipeline",
    "PipelineResult",
    "PipelineState",
]
