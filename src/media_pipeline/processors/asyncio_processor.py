"""AsyncIO fan-out - awaits variant jobs running on an executor."""

import asyncio
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, List, Optional, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def process_batch_async(
    jobs: List[T],
    worker: Callable[[T], R],
    executor: Optional[Executor] = None,
    cancel_event: Optional[threading.Event] = None,
    max_workers: int = 4,
) -> List[R]:
    """
    Dispatch every job to ``executor`` and await them together.

    The event loop stays free to serve other requests while the CPU-bound
    work runs on the pool. If a job fails or the awaiting task is cancelled,
    ``cancel_event`` is set, jobs that have not started are cancelled, and
    jobs already running are awaited before the exception propagates, so
    nothing is still writing once the caller cleans up.

    Args:
        jobs: Variant jobs to run.
        worker: Callable producing the result for one job.
        executor: Shared pool; when omitted a private pool of
            ``min(max_workers, len(jobs))`` threads is used.
        cancel_event: Signals abandonment to jobs that are already running.
        max_workers: Bound for the private pool.

    Returns:
        Results in job order.
    """
    if not jobs:
        return []

    own_pool = executor is None
    pool = executor or ThreadPoolExecutor(
        max_workers=min(max_workers, len(jobs)), thread_name_prefix="media-variant"
    )
    submitted = [pool.submit(worker, job) for job in jobs]

    try:
        return list(
            await asyncio.gather(*(asyncio.wrap_future(f) for f in submitted))
        )
    except BaseException:
        if cancel_event is not None:
            cancel_event.set()
        for future in submitted:
            future.cancel()
        await _drain(submitted)
        raise
    finally:
        if own_pool:
            pool.shutdown(wait=False)


async def _drain(futures: List[Future]) -> None:
    running = [asyncio.wrap_future(f) for f in futures if not f.done()]
    if running:
        # Outcomes of abandoned jobs are collected and dropped.
        await asyncio.gather(*running, return_exceptions=True)
