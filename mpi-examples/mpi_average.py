"""
MPI Global Average Example

This program computes one average over values generated on every process
using only collective operations:
- Broadcast (N, the number of values per process)
- Reduce (partial sums into the root)
- Broadcast (the final average back to everyone)
- Barrier (phase boundaries)

Run with: mpiexec -n 4 python3 mpi_average.py 1000
"""

import sys

from mpi4py import MPI

from collective_average import Group, barrier, broadcast, reduce
from collective_average.generator import generate_values, partial_sum, seed_for

group = Group.from_comm(MPI.COMM_WORLD)
rank = group.rank
size = group.size

# Step 1: Broadcast N to all processes
# Root process reads it, all others receive it
if rank == 0:
    N = int(sys.argv[1]) if len(sys.argv) > 1 else 1000
else:
    N = 0

N = broadcast(group, N, origin=0)
print(f"Rank {rank}: received N = {N}")

# Step 2: Local computation
# Every process draws its own N values, seeded from its rank
values = generate_values(N, seed_for(rank))
local_sum = partial_sum(values)
print(f"Rank {rank}: local sum = {local_sum:.2f}")

barrier(group)

# Step 3: Reduce - add the partial sums together
# All processes contribute, root gets the total
total = reduce(group, local_sum, op=MPI.SUM, destination=0)

if total.is_valid:
    average = total.value / (N * size)
    print(f"Root reduced (SUM): {total.value:.2f} over {N * size} values")
else:
    average = 0.0

# Step 4: Broadcast the average back to all processes
average = broadcast(group, average, origin=0)
print(f"Rank {rank}: average = {average:.4f}")

barrier(group)
