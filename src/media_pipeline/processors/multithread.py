"""Multithreaded fan-out - runs variant jobs on a bounded thread pool."""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, as_completed, wait
from typing import Callable, Dict, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def process_batch(
    jobs: List[T],
    worker: Callable[[T], R],
    executor: Optional[Executor] = None,
    max_workers: int = 4,
    cancel_event: Optional[threading.Event] = None,
) -> List[R]:
    """
    Run ``worker`` over every job concurrently, all or nothing.

    Pillow releases the GIL while resampling and encoding, so threads give
    real parallelism for this CPU-bound work without pickling images across
    processes.

    Args:
        jobs: Variant jobs to run.
        worker: Callable producing the result for one job.
        executor: Shared pool; when omitted a private pool of
            ``min(max_workers, len(jobs))`` threads is used.
        max_workers: Bound for the private pool.
        cancel_event: Set as soon as one job fails so siblings that have not
            written yet can bail out.

    Returns:
        Results in job order.

    Raises:
        The first exception raised by any job. Pending jobs are cancelled and
        running ones are waited for before it propagates.
    """
    if not jobs:
        return []

    own_pool = executor is None
    pool = executor or ThreadPoolExecutor(
        max_workers=min(max_workers, len(jobs)), thread_name_prefix="media-variant"
    )

    try:
        future_to_index: Dict[Future, int] = {
            pool.submit(worker, job): index for index, job in enumerate(jobs)
        }
        results: List[Optional[R]] = [None] * len(jobs)

        try:
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()
        except BaseException:
            if cancel_event is not None:
                cancel_event.set()
            for future in future_to_index:
                future.cancel()
            wait(list(future_to_index))
            raise

        return results  # type: ignore[return-value]
    finally:
        if own_pool:
            pool.shutdown(wait=True)
