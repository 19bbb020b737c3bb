import asyncio

import pytest

from app.infrastructure.messaging.outbox_worker import OutboxWorker


class RecordingRunner:
    def __init__(self, batches=None, error: Exception | None = None):
        self.calls: list[tuple[str, int]] = []
        self._batches = list(batches or [])
        self._error = error

    async def __call__(self, worker_id: str, limit: int):
        self.calls.append((worker_id, limit))
        if self._error:
            raise self._error
        return self._batches.pop(0) if self._batches else []


class TestOutboxWorker:
    async def test_run_once_returns_processed_count(self):
        runner = RecordingRunner(batches=[["a", "b"]])
        worker = OutboxWorker(run_batch=runner, worker_id="worker-test", batch_size=7)

        processed = await worker.run_once()

        assert processed == 2
        assert runner.calls == [("worker-test", 7)]

    async def test_generated_worker_id(self):
        worker = OutboxWorker(run_batch=RecordingRunner())
        assert worker.worker_id.startswith("worker-")

    async def test_start_and_stop(self):
        runner = RecordingRunner()
        worker = OutboxWorker(run_batch=runner, poll_interval_seconds=0.01)

        worker.start_background()
        await asyncio.sleep(0.05)
        assert worker.is_running

        await worker.stop()

        assert not worker.is_running
        assert len(runner.calls) >= 1

    async def test_failed_cycle_does_not_stop_the_loop(self):
        runner = RecordingRunner(error=RuntimeError("db down"))
        worker = OutboxWorker(run_batch=runner, poll_interval_seconds=0.01)

        worker.start_background()
        await asyncio.sleep(0.05)
        await worker.stop()

        assert len(runner.calls) >= 2

    async def test_run_once_propagates_errors(self):
        worker = OutboxWorker(run_batch=RecordingRunner(error=RuntimeError("db down")))

        with pytest.raises(RuntimeError):
            await worker.run_once()
