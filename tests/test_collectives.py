import unittest

import numpy as np
from mpi4py import MPI

from collective_average.collectives import ReduceResult, _substrate, barrier, broadcast, reduce
from collective_average.errors import GroupMismatch, ProtocolMismatch
from collective_average.group import Group


class BroadcastTests(unittest.TestCase):
    def setUp(self) -> None:
        self.group = Group.from_comm(MPI.COMM_WORLD)

    def test_int_reaches_every_member(self) -> None:
        value = 42 if self.group.is_coordinator else 0
        self.assertEqual(broadcast(self.group, value), 42)

    def test_float_is_bit_identical(self) -> None:
        original = 0.1 + 0.2
        value = original if self.group.is_coordinator else 0.0
        received = broadcast(self.group, value)
        self.assertIsInstance(received, float)
        self.assertEqual(received.hex(), original.hex())

    def test_array_is_received_in_place(self) -> None:
        expected = np.linspace(0.0, 1.0, 16)
        if self.group.is_coordinator:
            data = expected.copy()
        else:
            data = np.zeros(16)
        received = broadcast(self.group, data)
        self.assertIs(received, data)
        np.testing.assert_array_equal(received, expected)

    def test_numpy_scalar_keeps_dtype(self) -> None:
        value = np.int32(7) if self.group.is_coordinator else np.int32(0)
        received = broadcast(self.group, value)
        self.assertEqual(received.dtype, np.int32)
        self.assertEqual(int(received), 7)

    def test_unchecked_broadcast(self) -> None:
        value = 3.5 if self.group.is_coordinator else 0.0
        self.assertEqual(broadcast(self.group, value, checked=False), 3.5)

    def test_unsupported_payload_is_rejected(self) -> None:
        with self.assertRaises(ProtocolMismatch):
            broadcast(self.group, "text")
        with self.assertRaises(ProtocolMismatch):
            broadcast(self.group, True)

    @unittest.skipIf(MPI.COMM_WORLD.Get_size() < 2, "needs at least two processes")
    def test_placeholder_type_mismatch_fails_everywhere(self) -> None:
        value = 1.5 if self.group.is_coordinator else 0
        with self.assertRaises(ProtocolMismatch):
            broadcast(self.group, value)
        barrier(self.group)


class ReduceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.group = Group.from_comm(MPI.COMM_WORLD)
        self.size = self.group.size

    def test_sum_of_ranks_plus_one(self) -> None:
        result = reduce(self.group, float(self.group.rank + 1))
        if self.group.is_coordinator:
            self.assertTrue(result.is_valid)
            self.assertLess(abs(result.value - self.size * (self.size + 1) / 2), 1e-10)
        else:
            self.assertEqual(result, ReduceResult(None, False))

    def test_integer_sum_is_exact(self) -> None:
        result = reduce(self.group, self.group.rank + 1)
        if result.is_valid:
            self.assertIsInstance(result.value, int)
            self.assertEqual(result.value, self.size * (self.size + 1) // 2)

    def test_max_operator(self) -> None:
        result = reduce(self.group, self.group.rank, op=MPI.MAX)
        if result.is_valid:
            self.assertEqual(result.value, self.size - 1)

    def test_array_sum(self) -> None:
        local = np.full(4, float(self.group.rank + 1))
        result = reduce(self.group, local)
        if result.is_valid:
            np.testing.assert_allclose(result.value, np.full(4, self.size * (self.size + 1) / 2))

    def test_only_destination_is_valid(self) -> None:
        destination = self.size - 1
        result = reduce(self.group, 1, destination=destination)
        self.assertEqual(result.is_valid, self.group.rank == destination)
        if result.is_valid:
            self.assertEqual(result.value, self.size)

    @unittest.skipIf(MPI.COMM_WORLD.Get_size() < 2, "needs at least two processes")
    def test_mixed_payloads_fail_everywhere(self) -> None:
        value = 1.0 if self.group.is_coordinator else 1
        with self.assertRaises(ProtocolMismatch):
            reduce(self.group, value)
        barrier(self.group)


class BarrierTests(unittest.TestCase):
    def test_barrier_returns_none(self) -> None:
        self.assertIsNone(barrier(Group.from_comm()))

    def test_substrate_errors_become_group_mismatch(self) -> None:
        with self.assertRaises(GroupMismatch) as ctx:
            with _substrate("Reduce", Group.from_comm()):
                raise MPI.Exception(MPI.ERR_ROOT)
        self.assertIsInstance(ctx.exception.__cause__, MPI.Exception)


if __name__ == "__main__":
    unittest.main()
