import asyncio
from asyncio import TaskGroup, Semaphore


class Throttler:
    """Bounds how many coroutines scheduled into a TaskGroup run at once.

    ``schedule`` waits for a free slot before creating the task, so a producer
    looping over a large input is held back instead of creating one task per
    item up front.
    """

    def __init__(self, task_group: TaskGroup, concurrency: int):
        """Initialize the throttler.

        Args:
            task_group: The TaskGroup to which tasks will be added
            concurrency: Maximum number of tasks that can run concurrently
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")

        self._task_group = task_group
        self._semaphore = Semaphore(concurrency)
        self._concurrency = concurrency
        self._in_flight = 0

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def schedule(self, coro, name=None) -> asyncio.Task:
        """Wait for a slot, then run coro as a task of the group.

        The slot is released when the task finishes, whether it returns,
        raises or is cancelled.
        """
        await self._semaphore.acquire()
        self._in_flight += 1

        async def wrapper():
            try:
                return await coro
            finally:
                self._release()

        try:
            return self._task_group.create_task(wrapper(), name=name)
        except BaseException:
            coro.close()
            self._release()
            raise

    def _release(self):
        self._in_flight -= 1
        self._semaphore.release()
