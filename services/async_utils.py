import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Sequence


async def run_in_threads(
    func: Callable[..., Any],
    args_list: Iterable[Sequence[Any]],
    max_concurrency: int = 5,
    return_exceptions: bool = False,
) -> List[Any]:
    """
    Run a sync function 'func' over a list/iterable of argument sequences concurrently
    using asyncio.to_thread, bounded by max_concurrency. Returns results in order.

    With return_exceptions=True every call settles and failures come back as the
    exception instance in their slot instead of cancelling the join.
    """
    sem = asyncio.Semaphore(max_concurrency)

    async def _run_one(args: Sequence[Any]) -> Any:
        async with sem:
            return await asyncio.to_thread(func, *args)

    tasks = [asyncio.create_task(_run_one(args)) for args in args_list]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


def run_blocking(coro: Awaitable[Any]) -> Any:
    """Drive a coroutine to completion from sync code (FastAPI threadpool, scripts)."""
    return asyncio.run(coro)
