"""Variant fan-out strategies with different concurrency models."""

from .serial import process_batch as serial_process_batch
from .multithread import process_batch as multithread_process_batch
from .asyncio_processor import process_batch_async as asyncio_process_batch

__all__ = [
    "serial_process_batch",
    "multithread_process_batch",
    "asyncio_process_batch",
]
