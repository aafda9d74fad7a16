"""
Group-wide collective primitives: barrier, broadcast and reduce.

Every member of the group must call these in the same order. Each call
blocks until the exchange is complete for the whole group.

Payloads travel as numpy buffers (upper-case Bcast/Reduce). Python and
numpy scalars are wrapped in one-element arrays and unwrapped on return;
numpy arrays are exchanged in place.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, NamedTuple, Optional

import numpy as np
from mpi4py import MPI

from collective_average.errors import GroupMismatch, ProtocolMismatch
from collective_average.group import COORDINATOR_RANK, Group

LOGGER = logging.getLogger(__name__)


class ReduceResult(NamedTuple):
    value: Any
    is_valid: bool


@contextmanager
def _substrate(operation: str, group: Group):
    try:
        yield
    except MPI.Exception as exc:
        raise GroupMismatch(
            f"{operation} failed on rank {group.rank}/{group.size}: {exc.Get_error_string()}"
        ) from exc


def _to_buffer(value) -> np.ndarray:
    if isinstance(value, np.ndarray):
        return np.ascontiguousarray(value)
    if isinstance(value, np.generic):
        return np.array([value], dtype=value.dtype)
    if isinstance(value, bool):
        raise ProtocolMismatch("bool payloads are not supported, send an int")
    if isinstance(value, int):
        return np.array([value], dtype=np.int64)
    if isinstance(value, float):
        return np.array([value], dtype=np.float64)
    raise ProtocolMismatch(f"unsupported payload type {type(value).__name__}")


def _from_buffer(buf: np.ndarray, original):
    if isinstance(original, np.ndarray):
        return buf
    if isinstance(original, np.generic):
        return buf[0]
    return buf[0].item()


def _signature(buf: np.ndarray, original) -> tuple:
    shape = buf.shape if isinstance(original, np.ndarray) else ()
    return buf.dtype.str, shape


def barrier(group: Group) -> None:
    with _substrate("Barrier", group):
        group.comm.Barrier()


def broadcast(group: Group, value, origin: int = COORDINATOR_RANK, checked: bool = True):
    """Distribute ``value`` from ``origin`` to every member.

    Non-origin members pass a placeholder with the same type (and, for
    arrays, dtype and shape) as the origin's value. When ``checked`` is set
    the group first agrees that every placeholder matches; if one does not,
    every member raises ProtocolMismatch before any data moves.
    """
    buf = _to_buffer(value)
    if checked:
        mine = _signature(buf, value)
        with _substrate("Broadcast", group):
            expected = group.comm.bcast(mine, root=origin)
            mismatch = group.comm.allreduce(int(mine != expected), op=MPI.MAX)
        if mismatch:
            raise ProtocolMismatch(
                f"broadcast payload mismatch on rank {group.rank}: "
                f"origin sends {expected}, this member expects {mine}"
            )
    with _substrate("Broadcast", group):
        group.comm.Bcast(buf, root=origin)
    return _from_buffer(buf, value)


def reduce(
    group: Group,
    local_value,
    op: MPI.Op = MPI.SUM,
    destination: int = COORDINATOR_RANK,
    checked: bool = True,
) -> ReduceResult:
    """Combine one value per member with ``op`` at ``destination``.

    Only the destination receives a valid result; every other member gets
    ``ReduceResult(None, False)``.
    """
    sendbuf = _to_buffer(local_value)
    if checked:
        mine = _signature(sendbuf, local_value)
        with _substrate("Reduce", group):
            signatures = group.comm.allgather(mine)
        if len(set(signatures)) > 1:
            raise ProtocolMismatch(
                f"reduce payload mismatch on rank {group.rank}: members send {sorted(set(signatures))}"
            )
    recvbuf: Optional[np.ndarray] = None
    if group.rank == destination:
        recvbuf = np.empty_like(sendbuf)
    with _substrate("Reduce", group):
        group.comm.Reduce(sendbuf, recvbuf, op=op, root=destination)
    if recvbuf is None:
        return ReduceResult(None, False)
    return ReduceResult(_from_buffer(recvbuf, local_value), True)
