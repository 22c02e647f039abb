"""Unit tests for the background job runner."""

import threading

import pytest

from export_service.errors import ExportCancelled
from export_service.jobs import BackgroundJobRunner, CancelOutcome
from export_service.models import ExportJobStatus


@pytest.fixture
def runner():
    runner = BackgroundJobRunner(max_workers=1)
    yield runner
    runner.shutdown()


def blocking_work(started, release):
    def _work(job_id, token):
        started.set()
        release.wait(timeout=5)
        token.raise_if_cancelled()
        return ExportJobStatus.COMPLETED

    return _work


class TestBackgroundJobRunner:
    def test_enqueue_returns_unique_ids(self, runner):
        ids = {runner.enqueue(lambda job_id, token: ExportJobStatus.COMPLETED) for _ in range(5)}
        assert len(ids) == 5
        for job_id in ids:
            assert runner.wait(job_id, timeout=5) == ExportJobStatus.COMPLETED

    def test_enqueue_does_not_wait_for_execution(self, runner):
        started, release = threading.Event(), threading.Event()
        job_id = runner.enqueue(blocking_work(started, release))

        assert runner.status(job_id) in (ExportJobStatus.QUEUED, ExportJobStatus.RUNNING)
        release.set()
        assert runner.wait(job_id, timeout=5) == ExportJobStatus.COMPLETED

    def test_cancel_queued_job_never_runs_it(self, runner):
        started, release = threading.Event(), threading.Event()
        blocker = runner.enqueue(blocking_work(started, release))
        assert started.wait(timeout=5)

        ran = threading.Event()

        def second(job_id, token):
            ran.set()
            return ExportJobStatus.COMPLETED

        queued = runner.enqueue(second)
        assert runner.cancel(queued) == CancelOutcome.REMOVED
        release.set()

        assert runner.wait(blocker, timeout=5) == ExportJobStatus.COMPLETED
        assert runner.wait(queued, timeout=5) == ExportJobStatus.CANCELLED
        assert not ran.is_set()

    def test_cancel_running_job_signals_token(self, runner):
        started, release = threading.Event(), threading.Event()
        job_id = runner.enqueue(blocking_work(started, release))
        assert started.wait(timeout=5)

        assert runner.cancel(job_id) == CancelOutcome.SIGNALLED
        release.set()

        assert runner.wait(job_id, timeout=5) == ExportJobStatus.CANCELLED

    def test_cancel_unknown_or_finished_job_is_ignored(self, runner):
        assert runner.cancel("does-not-exist") == CancelOutcome.IGNORED

        job_id = runner.enqueue(lambda job_id, token: ExportJobStatus.COMPLETED)
        runner.wait(job_id, timeout=5)
        assert runner.cancel(job_id) == CancelOutcome.IGNORED
        assert runner.cancel(job_id) == CancelOutcome.IGNORED
        assert runner.status(job_id) == ExportJobStatus.COMPLETED

    def test_crashing_work_marks_job_failed(self, runner):
        def crash(job_id, token):
            raise ValueError("boom")

        job_id = runner.enqueue(crash)
        assert runner.wait(job_id, timeout=5) == ExportJobStatus.FAILED

    def test_cancelled_exception_marks_job_cancelled(self, runner):
        def cancelled(job_id, token):
            raise ExportCancelled("stop")

        job_id = runner.enqueue(cancelled)
        assert runner.wait(job_id, timeout=5) == ExportJobStatus.CANCELLED

    def test_active_job_ids(self, runner):
        started, release = threading.Event(), threading.Event()
        job_id = runner.enqueue(blocking_work(started, release))
        assert started.wait(timeout=5)

        assert runner.active_job_ids() == [job_id]
        release.set()
        runner.wait(job_id, timeout=5)
        assert runner.active_job_ids() == []


class TestJobRetention:
    def setup_method(self):
        self.runner = BackgroundJobRunner(max_workers=1, retained_jobs=2)
        self.evicted = []
        self.runner.add_eviction_listener(self.evicted.extend)

    def teardown_method(self):
        self.runner.shutdown()

    def run_jobs(self, count):
        job_ids = []
        for _ in range(count):
            job_id = self.runner.enqueue(lambda job_id, token: ExportJobStatus.COMPLETED)
            assert self.runner.wait(job_id, timeout=5) == ExportJobStatus.COMPLETED
            job_ids.append(job_id)
        return job_ids

    def test_only_recent_finished_jobs_are_kept(self):
        job_ids = self.run_jobs(5)

        assert len(self.runner) == 2
        assert self.evicted == job_ids[:3]
        assert self.runner.status(job_ids[0]) is None
        assert self.runner.status(job_ids[-1]) == ExportJobStatus.COMPLETED

    def test_cancel_of_evicted_job_is_ignored(self):
        job_ids = self.run_jobs(3)
        assert self.runner.cancel(job_ids[0]) == CancelOutcome.IGNORED

    def test_running_jobs_are_never_evicted(self):
        started, release = threading.Event(), threading.Event()
        running = self.runner.enqueue(blocking_work(started, release))
        assert started.wait(timeout=5)

        queued = [self.runner.enqueue(lambda job_id, token: ExportJobStatus.COMPLETED) for _ in range(3)]
        for job_id in queued:
            assert self.runner.cancel(job_id) == CancelOutcome.REMOVED

        assert self.evicted == queued[:1]
        assert self.runner.status(running) == ExportJobStatus.RUNNING
        release.set()
        assert self.runner.wait(running, timeout=5) == ExportJobStatus.COMPLETED


def test_enqueue_after_shutdown_records_nothing():
    runner = BackgroundJobRunner(max_workers=1)
    runner.shutdown()

    with pytest.raises(RuntimeError):
        runner.enqueue(lambda job_id, token: ExportJobStatus.COMPLETED)
    assert len(runner) == 0
    assert runner.active_job_ids() == []
