# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Parallel configuration search across worker processes.

Runs several annealing searches with distinct seeds and keeps the best.
Two strategies:

- independent: every worker runs the full phased search on its own and
  the best final result wins (highest phase reached, then lowest score).
- per-phase: all workers optimize the same island for each phase; the
  best island is locked in before the next phase starts.

Workers report progress through a managed queue and poll a managed event
for cancellation. Workers ignore SIGINT; the coordinator turns the first
Ctrl+C into a cancellation and lets the workers return their best so far.

External dependencies (multiprocessing, concurrent.futures, signal) are
confined to this adapter layer.
"""
import logging
import os
import queue
import signal
from concurrent.futures import FIRST_COMPLETED, Executor, ProcessPoolExecutor, wait
from contextlib import ExitStack
from dataclasses import dataclass, replace
from multiprocessing.managers import SyncManager
from typing import Any, Callable

import numpy as np

from skydrift.domain.islands import Island
from skydrift.domain.config_search import (
    ConfigSearchParams,
    ConfigSearchResult,
    IslandConfigSearch,
)

logger = logging.getLogger(__name__)

POLL_INTERVAL_S = 0.2


class SearchFailedError(RuntimeError):
    """Every worker of a parallel search failed."""


@dataclass(frozen=True)
class WorkerProgress:
    """Progress message sent from a worker to the coordinator."""
    worker_id: int
    phase: int
    total_phases: int
    island_name: str
    result: ConfigSearchResult
    iteration: int
    temperature: float
    elapsed_ms: float

    @property
    def score(self) -> float:
        return self.result.score


def result_rank(worker_id: int, result: ConfigSearchResult) -> tuple[int, float, int]:
    """Sort key for results: highest phase, then lowest score, then lowest worker id."""
    return (-result.phase, result.score, worker_id)


def _ignore_sigint() -> None:
    signal.signal(signal.SIGINT, signal.SIG_IGN)


def _process_pool(max_workers: int = 1) -> Executor:
    return ProcessPoolExecutor(max_workers=max_workers, initializer=_ignore_sigint)


def _start_manager() -> SyncManager:
    # The manager serves the queue and event; it must outlive a Ctrl+C.
    manager = SyncManager()
    manager.start(_ignore_sigint)
    return manager


def run_incremental_worker(
    worker_id: int,
    params: ConfigSearchParams,
    seed: int,
    progress_queue: Any = None,
    cancel_event: Any = None,
) -> ConfigSearchResult:
    """Full phased search in one worker."""
    search = IslandConfigSearch(params, rng=np.random.default_rng(seed))

    def on_progress(phase, total_phases, island_name, result, iteration, temperature, elapsed_ms):
        if progress_queue is not None:
            progress_queue.put(WorkerProgress(
                worker_id, phase, total_phases, island_name,
                result, iteration, temperature, elapsed_ms,
            ))

    def should_cancel() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    return search.search_incremental(on_progress, should_cancel)


def run_phase_worker(
    worker_id: int,
    params: ConfigSearchParams,
    configured: list[Island],
    phase: int,
    seed: int,
    progress_queue: Any = None,
    cancel_event: Any = None,
) -> ConfigSearchResult:
    """Optimize island ``phase`` (1-based) with ``configured`` fixed."""
    island = params.islands_to_configure[phase - 1]
    total = len(params.islands_to_configure)
    rng = np.random.default_rng(seed)
    search = IslandConfigSearch(params, rng=rng).build_phase_search(configured, island, rng=rng)

    def on_progress(result, iteration, temperature, elapsed_ms):
        if progress_queue is not None:
            progress_queue.put(WorkerProgress(
                worker_id, phase, total, island.name,
                replace(result, phase=phase), iteration, temperature, elapsed_ms,
            ))

    def should_cancel() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    return replace(search.optimize_island(on_progress, should_cancel), phase=phase)


class ParallelSearchCoordinator:
    """
    Runs N annealing workers and merges their results.

    Args:
        params: Validated search parameters.
        num_workers: Worker count. Default: CPU count minus one (min 1).
        base_seed: Seed of worker 0; worker i uses ``base_seed + i``.
            Defaults to ``annealing_params.random_seed``, then to fresh
            entropy (logged so a run can be repeated).
        progress_callback: Called in the coordinator process with every
            WorkerProgress message.
        executor_factory: ``max_workers -> Executor``, called once per
            worker with 1 so a dead worker process only loses its own
            result. Default: a process pool ignoring SIGINT.
    """

    def __init__(
        self,
        params: ConfigSearchParams,
        num_workers: int | None = None,
        base_seed: int | None = None,
        progress_callback: Callable[[WorkerProgress], None] | None = None,
        executor_factory: Callable[[int], Executor] = _process_pool,
        worker_fn: Callable[..., ConfigSearchResult] = run_incremental_worker,
        phase_worker_fn: Callable[..., ConfigSearchResult] = run_phase_worker,
    ):
        if num_workers is not None and num_workers < 1:
            raise ValueError(f"num_workers must be >= 1, got {num_workers}")
        self.params = params
        self.num_workers = num_workers or max(1, (os.cpu_count() or 2) - 1)
        if base_seed is None:
            base_seed = params.annealing_params.random_seed
        if base_seed is None:
            base_seed = int(np.random.SeedSequence().entropy)
        self.base_seed = base_seed
        self._progress_callback = progress_callback
        self._executor_factory = executor_factory
        self._worker_fn = worker_fn
        self._phase_worker_fn = phase_worker_fn

        self.best_result: ConfigSearchResult | None = None
        self.best_worker: int | None = None
        self.worker_progress: dict[int, WorkerProgress] = {}
        self.failed_workers: list[int] = []
        self.completed_workers: list[int] = []
        self.cancelled = False
        self._cancel_event: Any = None
        self._progress_queue: Any = None

    def worker_seed(self, worker_id: int, phase: int = 1) -> int:
        return self.base_seed + (phase - 1) * self.num_workers + worker_id

    def cancel(self) -> None:
        """Ask every worker to stop and return its best result so far."""
        self.cancelled = True
        if self._cancel_event is not None:
            self._cancel_event.set()

    # ── Strategies ─────────────────────────────────────────────────

    def run_independent(self) -> ConfigSearchResult:
        """
        Every worker runs the full phased search.

        Raises:
            SearchFailedError: If every worker failed.
        """
        logger.info(
            "Starting %d independent workers (base seed %d)", self.num_workers, self.base_seed,
        )
        with _start_manager() as manager:
            self._open_channels(manager)
            try:
                calls = [
                    (i, self._worker_fn, (
                        i, self.params, self.worker_seed(i),
                        self._progress_queue, self._cancel_event,
                    ))
                    for i in range(self.num_workers)
                ]
                results = self._run_workers(calls)
            finally:
                self._close_channels()

        return self._select(results)

    def run_per_phase(self) -> ConfigSearchResult:
        """
        All workers optimize each island in turn; the best island is kept.

        Raises:
            SearchFailedError: If every worker of a phase failed.
        """
        total = len(self.params.islands_to_configure)
        configured: list[Island] = [self.params.base_island]
        best: ConfigSearchResult | None = None
        logger.info(
            "Starting per-phase search: %d phases x %d workers (base seed %d)",
            total, self.num_workers, self.base_seed,
        )
        with _start_manager() as manager:
            self._open_channels(manager)
            try:
                for phase in range(1, total + 1):
                    calls = [
                        (i, self._phase_worker_fn, (
                            i, self.params, configured, phase, self.worker_seed(i, phase),
                            self._progress_queue, self._cancel_event,
                        ))
                        for i in range(self.num_workers)
                    ]
                    best = self._select(self._run_workers(calls))
                    configured = list(best.islands)
                    logger.info("Phase %d/%d locked in with score %.4f", phase, total, best.score)
                    if self.cancelled:
                        return best
            finally:
                self._close_channels()

        final = IslandConfigSearch(self.params).evaluate_final(configured)
        return replace(final, phase=total)

    # ── Worker plumbing ────────────────────────────────────────────

    def _open_channels(self, manager) -> None:
        self._progress_queue = manager.Queue()
        self._cancel_event = manager.Event()
        if self.cancelled:
            self._cancel_event.set()

    def _close_channels(self) -> None:
        self._drain_progress()
        self._progress_queue = None
        self._cancel_event = None

    def _run_workers(self, calls: list[tuple]) -> dict[int, ConfigSearchResult]:
        results: dict[int, ConfigSearchResult] = {}
        # One executor per worker: a crashed process breaks only its own pool.
        with ExitStack() as stack:
            futures = {}
            for worker_id, fn, args in calls:
                executor = stack.enter_context(self._executor_factory(1))
                futures[executor.submit(fn, *args)] = worker_id
            pending = set(futures)
            while pending:
                try:
                    done, pending = wait(pending, timeout=POLL_INTERVAL_S, return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    if self.cancelled:
                        raise
                    logger.warning("Interrupted; stopping workers and keeping best results so far")
                    self.cancel()
                    continue

                self._drain_progress()
                for future in done:
                    worker_id = futures[future]
                    try:
                        result = future.result()
                    except Exception as e:
                        logger.error("Worker %d failed: %s", worker_id, e)
                        self.failed_workers.append(worker_id)
                        continue
                    results[worker_id] = result
                    self.completed_workers.append(worker_id)
                    self._track(worker_id, result)
        return results

    def _drain_progress(self) -> None:
        if self._progress_queue is None:
            return
        while True:
            try:
                message = self._progress_queue.get_nowait()
            except queue.Empty:
                return
            self.worker_progress[message.worker_id] = message
            self._track(message.worker_id, message.result)
            if self._progress_callback is not None:
                self._progress_callback(message)

    def _track(self, worker_id: int, result: ConfigSearchResult) -> None:
        if self.best_result is None or (
            result_rank(worker_id, result) < result_rank(self.best_worker, self.best_result)
        ):
            self.best_result = result
            self.best_worker = worker_id

    def _select(self, results: dict[int, ConfigSearchResult]) -> ConfigSearchResult:
        if not results:
            raise SearchFailedError(f"All {self.num_workers} workers failed")
        worker_id, best = min(results.items(), key=lambda item: result_rank(*item))
        logger.info("Best result from worker %d: phase %d, score %.4f", worker_id, best.phase, best.score)
        return best
