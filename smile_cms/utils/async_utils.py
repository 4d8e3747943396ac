import asyncio
from typing import Callable, TypeVar

T = TypeVar("T")


async def run_sync(fn: Callable[..., T], *args, **kwargs) -> T:
    """Await a blocking call (Cosmos SDK, blob health probe) on a worker thread."""
    return await asyncio.to_thread(fn, *args, **kwargs)
