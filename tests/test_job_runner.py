import asyncio
from datetime import timedelta
from typing import Any

import pytest

from pulse.v1.core.registries import JobContext, JobRegistry
from pulse.v1.jobs.handlers import PingHandler
from pulse.v1.jobs.models import JobStatus
from pulse.v1.jobs.runner import FAILURE_SOURCE, JobRunner
from pulse.v1.notifications.notifier import Priority


class CountingHandler:
    def __init__(self):
        self.calls: list[tuple[dict[str, Any], str, JobContext]] = []

    async def handle(self, payload, owner_id, context):
        self.calls.append((payload, owner_id, context))
        return {"status": "completed"}


class FailingHandler:
    def __init__(self, message: str = "smtp unreachable"):
        self.message = message
        self.calls = 0

    async def handle(self, payload, owner_id, context):
        self.calls += 1
        raise RuntimeError(self.message)


class SlowHandler:
    async def handle(self, payload, owner_id, context):
        await asyncio.sleep(5)


@pytest.fixture
def counting_handler() -> CountingHandler:
    return CountingHandler()


@pytest.fixture
def failing_handler() -> FailingHandler:
    return FailingHandler()


@pytest.fixture
def registry(counting_handler, failing_handler) -> JobRegistry:
    registry = JobRegistry()
    registry.register("ping", PingHandler())
    registry.register("count", counting_handler)
    registry.register("explode", failing_handler)
    registry.register("slow", SlowHandler())
    registry.freeze()
    return registry


@pytest.fixture
def runner(job_repository, registry, notifier, clock) -> JobRunner:
    return JobRunner(job_repository, registry, notifier, clock, handler_timeout_s=0.1)


class TestOneTimeJobs:
    """One-time job cycles"""

    async def test_just_overdue_ping_runs_on_next_tick(
        self, runner, job_repository, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="ping", run_at=clock.now() - timedelta(seconds=1)
        )

        (outcome,) = await runner.tick()

        assert outcome.job_id == job.id
        assert outcome.status == "done"
        assert (await job_repository.get(job.id)).status == JobStatus.DONE.value

    async def test_ping_job_runs_to_done(self, runner, job_repository, clock):
        job = await job_repository.create(
            owner_id="alice", type="ping", run_at=clock.now() + timedelta(seconds=1)
        )

        assert await runner.tick() == []

        clock.advance(seconds=2)
        outcomes = await runner.tick()

        assert [(o.job_id, o.status) for o in outcomes] == [(job.id, "done")]
        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.DONE.value
        assert stored.attempts == 1

    async def test_handler_invoked_once_with_payload(
        self, runner, job_repository, counting_handler, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="count", run_at=clock.now(), payload={"n": 3}
        )

        await runner.tick()
        await runner.tick()

        assert len(counting_handler.calls) == 1
        payload, owner_id, context = counting_handler.calls[0]
        assert payload == {"n": 3}
        assert owner_id == "alice"
        assert context.job_id == job.id
        assert context.run_at == clock.now()

    async def test_lost_claim_is_skipped(
        self, runner, job_repository, counting_handler, clock
    ):
        job = await job_repository.create(owner_id="alice", type="count", run_at=clock.now())
        (due,) = await job_repository.due_jobs(clock.now())
        await job_repository.mark_running(job.id)

        outcome = await runner.execute(due)

        assert outcome.status == "skipped"
        assert not outcome.claimed
        assert counting_handler.calls == []

    async def test_outdated_snapshot_does_not_rerun_cycle(
        self, runner, job_repository, counting_handler, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="count", run_at=clock.now(), recurrence="hourly"
        )
        (outdated,) = await job_repository.due_jobs(clock.now())

        await runner.tick()
        outcome = await runner.execute(outdated)

        assert outcome.status == "skipped"
        assert len(counting_handler.calls) == 1
        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.PENDING.value
        assert stored.run_at == job.run_at + timedelta(hours=1)


class TestRecurringJobs:
    """Recurring job cycles"""

    async def test_hourly_job_returns_to_pending(self, runner, job_repository, clock):
        job = await job_repository.create(
            owner_id="alice", type="ping", run_at=clock.now(), recurrence="hourly"
        )
        scheduled = job.run_at

        outcomes = await runner.tick()

        assert outcomes[0].next_run_at == scheduled + timedelta(hours=1)
        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.PENDING.value
        assert stored.run_at == scheduled + timedelta(hours=1)

    async def test_late_tick_advances_from_scheduled_time(
        self, runner, job_repository, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="ping", run_at=clock.now(), recurrence="daily"
        )
        scheduled = job.run_at

        clock.advance(hours=5)
        await runner.tick()

        stored = await job_repository.get(job.id)
        assert stored.run_at == scheduled + timedelta(hours=24)

    async def test_stalled_series_catches_up_one_cycle_per_tick(
        self, runner, job_repository, counting_handler, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="count", run_at=clock.now(), recurrence="hourly"
        )
        scheduled = job.run_at

        clock.advance(hours=3, minutes=30)
        await runner.tick()
        await runner.tick()

        assert len(counting_handler.calls) == 2
        stored = await job_repository.get(job.id)
        assert stored.run_at == scheduled + timedelta(hours=2)

    async def test_failed_recurring_cycle_keeps_series(
        self, runner, job_repository, queue, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="explode", run_at=clock.now(), recurrence="hourly"
        )

        await runner.tick()
        clock.advance(hours=1)
        await runner.tick()

        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.PENDING.value
        assert stored.last_error == "smtp unreachable"
        assert stored.run_at == job.run_at + timedelta(hours=2)
        # one failure notification per failed cycle
        assert queue.qsize() == 2


class TestFailures:
    """Failure handling"""

    async def test_unknown_type_fails_with_one_notification(
        self, runner, job_repository, queue, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="teleport", run_at=clock.now()
        )

        outcomes = await runner.tick()

        assert outcomes[0].status == "failed"
        assert "teleport" in outcomes[0].error
        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.FAILED.value
        assert stored.last_error == "No handler registered for job type: teleport"

        (notification,) = queue.drain()
        assert notification.source == FAILURE_SOURCE
        assert notification.subject_id == "alice"
        assert notification.priority == Priority.IMPORTANT
        assert notification.title == "[FAILED] Scheduled task failed"
        assert notification.body.startswith("teleport: ")

    async def test_handler_exception_preserves_message(
        self, runner, job_repository, failing_handler, queue, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="explode", run_at=clock.now()
        )

        outcomes = await runner.tick()
        await runner.tick()

        assert failing_handler.calls == 1
        assert outcomes[0].error == "smtp unreachable"
        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.FAILED.value
        assert stored.last_error == "smtp unreachable"
        assert queue.qsize() == 1

    async def test_failure_notification_is_deduplicated(
        self, runner, job_repository, ledger, queue, clock
    ):
        job = await job_repository.create(
            owner_id="alice", type="explode", run_at=clock.now()
        )
        await runner.tick()
        (notification,) = queue.drain()

        # a restarted process re-reporting the same failed cycle stays silent
        context = JobContext(
            job_id=job.id, job_type=job.type, owner_id="alice", run_at=job.run_at
        )
        await runner._notify_failure(job, context, "smtp unreachable")

        assert queue.empty()
        assert await ledger.has("alice", FAILURE_SOURCE, notification.source_event_id)

    async def test_handler_timeout_marks_failed(self, runner, job_repository, clock):
        job = await job_repository.create(owner_id="alice", type="slow", run_at=clock.now())

        outcomes = await runner.tick()

        assert outcomes[0].status == "failed"
        assert "timed out" in outcomes[0].error
        stored = await job_repository.get(job.id)
        assert stored.status == JobStatus.FAILED.value

    async def test_failure_does_not_block_other_jobs(
        self, runner, job_repository, counting_handler, clock
    ):
        await job_repository.create(
            owner_id="alice", type="explode", run_at=clock.now(), job_id="a-first"
        )
        await job_repository.create(
            owner_id="alice", type="count", run_at=clock.now(), job_id="b-second"
        )

        outcomes = await runner.tick()

        assert [o.status for o in outcomes] == ["failed", "done"]
        assert len(counting_handler.calls) == 1
