"""Sliding-window scheduler over a worker pool.

At most ``concurrency`` tasks are in flight. Every completion frees a slot that
is refilled with the next task in list order, so the pool never idles while
work is pending. Outcomes are yielded to the caller in completion order; the
caller's loop is the single coordinating context, so folding outcomes needs no
locking.
"""
import logging
from concurrent.futures import FIRST_COMPLETED, BrokenExecutor, Executor, Future, ProcessPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from webpbatch.config import MAX_WORKERS
from webpbatch.conversion.models import EncodeFailure, EncodeOutcome, Task
from webpbatch.conversion.worker import convert_file

logger = logging.getLogger("webpbatch.scheduler")

ExecutorFactory = Callable[[int], Executor]


@dataclass
class _Slot:
    index: int
    task: Task
    generation: int


@dataclass
class SchedulerState:
    tasks: tuple
    concurrency: int
    cursor: int = 0  # tasks dispatched so far; only ever incremented
    completions: int = 0
    in_flight: dict = field(default_factory=dict)  # Future -> _Slot

    @property
    def pending(self) -> int:
        return len(self.tasks) - self.cursor

    @property
    def finished(self) -> bool:
        return self.completions == len(self.tasks) and not self.in_flight

    def check(self) -> None:
        if not 0 <= len(self.in_flight) <= self.concurrency:
            raise RuntimeError(f"{len(self.in_flight)} tasks in flight with concurrency {self.concurrency}")
        if self.cursor != self.completions + len(self.in_flight):
            raise RuntimeError(
                f"Dispatch count {self.cursor} != completions {self.completions} + in flight {len(self.in_flight)}"
            )


def _process_pool(workers: int) -> Executor:
    return ProcessPoolExecutor(max_workers=workers)


class TaskScheduler:
    """Runs tasks through ``worker`` with a bounded number in flight."""

    def __init__(
        self,
        worker: Callable[[Task], EncodeOutcome] = convert_file,
        concurrency: int = MAX_WORKERS,
        executor_factory: Optional[ExecutorFactory] = None,
        on_dispatch: Optional[Callable[[SchedulerState], None]] = None,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        self.worker = worker
        self.concurrency = concurrency
        self._executor_factory = executor_factory or _process_pool
        self._on_dispatch = on_dispatch
        self._executor: Optional[Executor] = None
        self._generation = 0
        self.state: Optional[SchedulerState] = None

    def run(self, tasks: Iterable[Task]) -> Iterator[EncodeOutcome]:
        state = SchedulerState(tasks=tuple(tasks), concurrency=self.concurrency)
        self.state = state
        if not state.tasks:
            return
        self._executor = self._executor_factory(self.concurrency)
        try:
            while state.pending and len(state.in_flight) < self.concurrency:
                self._dispatch(state)
            while state.in_flight:
                done, _ = wait(list(state.in_flight), return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: state.in_flight[f].index):
                    slot = state.in_flight.pop(future)
                    state.completions += 1
                    outcome = self._outcome(future, slot)
                    if state.pending:
                        self._dispatch(state)
                    state.check()
                    yield outcome
        finally:
            self._executor.shutdown(wait=True)
            self._executor = None
        logger.debug("Scheduler finished %s tasks", state.completions)

    def _dispatch(self, state: SchedulerState) -> None:
        index = state.cursor
        task = state.tasks[index]
        try:
            future = self._executor.submit(self.worker, task)
        except BrokenExecutor:
            self._replace_executor()
            future = self._executor.submit(self.worker, task)
        state.in_flight[future] = _Slot(index=index, task=task, generation=self._generation)
        state.cursor += 1
        state.check()
        logger.debug("Dispatched [%s/%s] %s", index + 1, len(state.tasks), task.source)
        if self._on_dispatch:
            self._on_dispatch(state)

    def _outcome(self, future: Future, slot: _Slot) -> EncodeOutcome:
        try:
            return future.result()
        except BrokenExecutor as e:
            logger.error("Worker process died while converting %s: %s", slot.task.source, e)
            if slot.generation == self._generation:
                self._replace_executor()
            return EncodeFailure(source=slot.task.source, error=f"worker crashed: {e}")
        except Exception as e:
            logger.error("Worker error for %s: %s", slot.task.source, e)
            return EncodeFailure(source=slot.task.source, error=str(e) or e.__class__.__name__)

    def _replace_executor(self) -> None:
        logger.warning("Worker pool is broken; starting a new one")
        self._executor.shutdown(wait=False)
        self._executor = self._executor_factory(self.concurrency)
        self._generation += 1
