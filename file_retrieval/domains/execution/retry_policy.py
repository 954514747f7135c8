import asyncio
from typing import Awaitable, Callable, Sequence

Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """Fixed backoff schedule. The number of delays is the retry budget of one execution."""

    def __init__(self, delays_seconds: Sequence[float], sleep: Sleep = asyncio.sleep):
        self._delays = list(delays_seconds)
        self._sleep = sleep

    @property
    def max_retries(self) -> int:
        return len(self._delays)

    def can_retry(self, retries_used: int) -> bool:
        return retries_used < self.max_retries

    def delay_for(self, retries_used: int) -> float:
        return self._delays[retries_used]

    async def wait(self, retries_used: int) -> None:
        await self._sleep(self.delay_for(retries_used))
