"""Transaction boundary helper"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from domain.errors import TransientStorageError
from domain.repositories import UnitOfWork

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def transactional(
    uow: UnitOfWork,
    work: Callable[[], Awaitable[T]],
    retries: int = 1,
    backoff_seconds: float = 0.05
) -> T:
    """Run ``work`` inside one unit of work.

    Transient storage failures roll back and are retried up to ``retries``
    times with linear backoff. Business errors propagate on the first failure.
    """
    attempt = 0
    while True:
        try:
            async with uow:
                return await work()
        except TransientStorageError:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("Transient storage failure, retrying (attempt %d of %d)", attempt, retries)
            await asyncio.sleep(backoff_seconds * attempt)
