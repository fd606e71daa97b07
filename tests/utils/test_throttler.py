import asyncio
import unittest
from asyncio import TaskGroup

from mirrorcheck.utils.throttler import Throttler


class ThrottlerTest(unittest.TestCase):
    def test_limits_concurrent_tasks(self):
        running = 0
        peak = 0
        finished = 0

        async def job():
            nonlocal running, peak, finished
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            finished += 1

        async def run():
            async with TaskGroup() as tg:
                throttler = Throttler(tg, 3)
                for _ in range(10):
                    await throttler.schedule(job())
                    self.assertLessEqual(throttler.in_flight, 3)
            return throttler

        throttler = asyncio.run(run())

        self.assertEqual(3, peak)
        self.assertEqual(10, finished)
        self.assertEqual(0, throttler.in_flight)

    def test_slot_released_when_task_fails(self):
        async def failing():
            raise RuntimeError("boom")

        async def run():
            throttler = None
            with self.assertRaises(ExceptionGroup):
                async with TaskGroup() as tg:
                    throttler = Throttler(tg, 1)
                    await throttler.schedule(failing())
            return throttler

        throttler = asyncio.run(run())
        self.assertEqual(0, throttler.in_flight)

    def test_returns_task_result(self):
        async def value():
            return 42

        async def run():
            async with TaskGroup() as tg:
                task = await Throttler(tg, 2).schedule(value())
            return task.result()

        self.assertEqual(42, asyncio.run(run()))

    def test_rejects_non_positive_concurrency(self):
        with self.assertRaises(ValueError):
            Throttler(None, 0)


if __name__ == '__main__':
    unittest.main()
