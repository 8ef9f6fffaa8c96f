import asyncio
import functools
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run synchronous I/O (database calls) in the default thread pool.

    Keeps the event loop free while a query is in flight. Exceptions raised
    by ``func`` propagate to the awaiting coroutine.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
