import os
import threading
import time
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor
from concurrent.futures.process import BrokenProcessPool

import pytest

from conftest import failure_for, make_tasks, success_for, thread_pool
from webpbatch.conversion.aggregator import ResultAggregator
from webpbatch.conversion.models import EncodeFailure, EncodeSuccess
from webpbatch.conversion.scheduler import TaskScheduler


class ConcurrencyProbe:
    """Worker stub that tracks how many calls overlap."""

    def __init__(self, delay: float = 0.01, fail: set = frozenset()):
        self.delay = delay
        self.fail = fail
        self.active = 0
        self.peak = 0
        self.seen = []
        self._lock = threading.Lock()

    def __call__(self, task):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.seen.append(task.source.name)
        try:
            time.sleep(self.delay)
            if task.source.name in self.fail:
                return failure_for(task, "cannot decode")
            return success_for(task)
        finally:
            with self._lock:
                self.active -= 1


def exit_on_first_task(task):
    """Process worker: img0 kills its process, img1 is still running when it does."""
    if task.source.name == "img0.png":
        time.sleep(0.3)
        os._exit(1)
    if task.source.name == "img1.png":
        time.sleep(1.0)
    return success_for(task)


def test_every_task_yields_exactly_one_outcome():
    tasks = make_tasks(12)
    probe = ConcurrencyProbe()
    scheduler = TaskScheduler(worker=probe, concurrency=4, executor_factory=thread_pool)

    outcomes = list(scheduler.run(tasks))

    assert sorted(o.source.name for o in outcomes) == sorted(t.source.name for t in tasks)
    assert scheduler.state.finished
    assert scheduler.state.completions == 12


@pytest.mark.parametrize("length,concurrency", [(1, 4), (5, 1), (7, 3), (3, 3), (20, 6)])
def test_in_flight_never_exceeds_bound(length, concurrency):
    snapshots = []

    def record(state):
        snapshots.append((len(state.in_flight), state.cursor, state.completions))

    probe = ConcurrencyProbe(delay=0.005)
    scheduler = TaskScheduler(worker=probe, concurrency=concurrency, executor_factory=thread_pool, on_dispatch=record)
    outcomes = list(scheduler.run(make_tasks(length)))

    bound = min(concurrency, length)
    assert len(snapshots) == length
    for in_flight, cursor, completions in snapshots:
        assert 0 < in_flight <= bound
        assert cursor == completions + in_flight
    assert probe.peak <= bound
    assert len(outcomes) == length


def test_dispatch_is_fifo():
    order = []

    def record(state):
        order.append(state.tasks[state.cursor - 1].source.name)

    tasks = make_tasks(9)
    scheduler = TaskScheduler(worker=ConcurrencyProbe(), concurrency=2, executor_factory=thread_pool, on_dispatch=record)
    list(scheduler.run(tasks))

    assert order == [t.source.name for t in tasks]


def test_initial_window_fills_before_any_completion():
    release = threading.Event()
    dispatched = []

    def worker(task):
        release.wait(timeout=5)
        return success_for(task)

    def record(state):
        dispatched.append(state.completions)
        if state.cursor == 3:
            release.set()

    scheduler = TaskScheduler(worker=worker, concurrency=3, executor_factory=thread_pool, on_dispatch=record)
    list(scheduler.run(make_tasks(5)))

    # the first three dispatches happen before anything completes
    assert dispatched[:3] == [0, 0, 0]


def test_failed_task_frees_its_slot_for_the_next_one():
    tasks = make_tasks(6)
    probe = ConcurrencyProbe(fail={"img3.png"})
    scheduler = TaskScheduler(worker=probe, concurrency=2, executor_factory=thread_pool)

    outcomes = list(scheduler.run(tasks))
    totals = ResultAggregator().fold_all(outcomes)

    assert "img4.png" in probe.seen
    assert totals.succeeded == 5
    assert totals.failed == 1
    failed = [o for o in outcomes if isinstance(o, EncodeFailure)]
    assert [o.source.name for o in failed] == ["img3.png"]


def test_worker_exception_becomes_failure():
    def worker(task):
        if task.source.name == "img1.png":
            raise RuntimeError("unexpected crash")
        return success_for(task)

    scheduler = TaskScheduler(worker=worker, concurrency=2, executor_factory=thread_pool)
    outcomes = {o.source.name: o for o in scheduler.run(make_tasks(4))}

    assert isinstance(outcomes["img1.png"], EncodeFailure)
    assert "unexpected crash" in outcomes["img1.png"].error
    assert all(isinstance(outcomes[f"img{i}.png"], EncodeSuccess) for i in (0, 2, 3))


def test_broken_pool_is_replaced_and_run_continues():
    created = []

    class CrashingPool(ThreadPoolExecutor):
        def submit(self, fn, task):
            if task.source.name == "img2.png":
                future = Future()
                future.set_exception(BrokenProcessPool("worker process terminated abruptly"))
                return future
            return super().submit(fn, task)

    def factory(workers):
        pool = CrashingPool(max_workers=workers)
        created.append(pool)
        return pool

    scheduler = TaskScheduler(worker=ConcurrencyProbe(), concurrency=2, executor_factory=factory)
    outcomes = list(scheduler.run(make_tasks(6)))
    totals = ResultAggregator().fold_all(outcomes)

    assert len(created) == 2
    assert totals.failed == 1
    assert totals.succeeded == 5
    crashed = next(o for o in outcomes if o.source.name == "img2.png")
    assert "worker crashed" in crashed.error


def test_empty_task_list_yields_nothing():
    factory_calls = []

    def factory(workers):
        factory_calls.append(workers)
        return thread_pool(workers)

    scheduler = TaskScheduler(worker=ConcurrencyProbe(), concurrency=3, executor_factory=factory)
    assert list(scheduler.run([])) == []
    assert factory_calls == []


def test_concurrency_must_be_positive():
    with pytest.raises(ValueError):
        TaskScheduler(worker=ConcurrencyProbe(), concurrency=0)


def test_ten_tasks_three_workers_summary():
    scheduler = TaskScheduler(worker=ConcurrencyProbe(), concurrency=3, executor_factory=thread_pool)
    aggregator = ResultAggregator()
    for outcome in scheduler.run(make_tasks(10)):
        aggregator.fold(outcome)

    summary = aggregator.summarize(elapsed=1.0)
    assert summary.succeeded == 10
    assert summary.failed == 0
    assert summary.original_bytes == 1000 * 1024
    assert summary.encoded_bytes == 500 * 1024
    assert round(summary.percent_saved, 2) == 50.00


def test_dead_worker_process_fails_in_flight_tasks_and_run_continues():
    created = []

    def factory(workers):
        pool = ProcessPoolExecutor(max_workers=workers)
        created.append(pool)
        return pool

    scheduler = TaskScheduler(worker=exit_on_first_task, concurrency=2, executor_factory=factory)
    outcomes = list(scheduler.run(make_tasks(6)))

    assert sorted(o.source.name for o in outcomes) == [f"img{i}.png" for i in range(6)]
    failed = {o.source.name: o.error for o in outcomes if not o.ok}
    assert set(failed) == {"img0.png", "img1.png"}
    assert all("worker crashed" in error for error in failed.values())
    assert len(created) == 2
    assert ResultAggregator().fold_all(outcomes).succeeded == 4
