"""Task Distributor - split remaining tasks across clones.

Contiguous, order-preserving chunks of ceil(len / count). Trailing buckets
that would be empty are omitted, so the result can be shorter than count.
"""

import math
from typing import Sequence, TypeVar

T = TypeVar("T")


def distribute_tasks(remaining_tasks: Sequence[T], duplicate_count: int) -> list[list[T]]:
    """Split tasks into at most duplicate_count contiguous buckets.

    Examples:
        distribute_tasks(["a", "b", "c", "d", "e", "f", "g"], 3)
        -> [["a", "b", "c"], ["d", "e", "f"], ["g"]]
        distribute_tasks(["a", "b"], 3) -> [["a"], ["b"]]
    """
    if duplicate_count <= 0 or not remaining_tasks:
        return []

    chunk = math.ceil(len(remaining_tasks) / duplicate_count)
    buckets = []

    for i in range(duplicate_count):
        bucket = list(remaining_tasks[i * chunk:(i + 1) * chunk])
        if bucket:
            buckets.append(bucket)

    return buckets
