"""
Blocking Runtime Module.

Provides async execution of blocking file I/O and heavy recomputation
using a dedicated thread pool.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, TypeVar

T = TypeVar("T")


@dataclass
class BlockingRuntime:
    """ファイルI/O・重い再計算用の専用スレッドプール"""

    max_workers: int = 2
    executor: ThreadPoolExecutor = field(init=False)

    def __post_init__(self) -> None:
        self.executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="pagecache"
        )

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run a blocking call in the pool and await its result.

        Used for digest computation (stat, read, hash) and for existence
        checks made by request handlers, so the event loop keeps serving.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, lambda: fn(*args, **kwargs))

    def offload(self, fn: Callable[[str], T]) -> Callable[[str], Any]:
        """Wrap a CPU-heavy recomputation function so it runs in the pool."""

        async def compute(src: str) -> T:
            return await self.run(fn, src)

        return compute

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False)
