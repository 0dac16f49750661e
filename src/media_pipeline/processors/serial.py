"""Serial fan-out - runs variant jobs one by one."""

import threading
from typing import Callable, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def process_batch(
    jobs: List[T],
    worker: Callable[[T], R],
    cancel_event: Optional[threading.Event] = None,
) -> List[R]:
    """
    Run ``worker`` over each job in the current thread.

    The first failure stops the batch; jobs after it never run.

    Args:
        jobs: Variant jobs to run, in manifest order.
        worker: Callable producing the result for one job.
        cancel_event: Set when the batch is abandoned.

    Returns:
        Results in job order.
    """
    results: List[R] = []

    for job in jobs:
        try:
            results.append(worker(job))
        except BaseException:
            if cancel_event is not None:
                cancel_event.set()
            raise

    return results
