# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Command-line interface for island conjunction analysis and configuration search.

Usage:
    # Conjunction statistics for an island file (100 years from year 0)
    skydrift analyze -c islands.json
    skydrift analyze -c islands.json -s "0012-03-05 6h" -d 3650

    # Search epicycle periods, 4 worker processes
    skydrift search -c search.json -o best-island-config.json -w 4
    skydrift search -c search.json -w 4 --strategy per-phase

    # Calendar form of a day count
    skydrift convert-days 1234.5
"""
import argparse
import logging
import math
import os
import sys
import time

from tqdm import tqdm

from skydrift.domain.conjunction_statistics import analyze_conjunctions_from_date
from skydrift.domain.config_search import ConfigSearchResult
from skydrift.domain.time_format import (
    days_to_time,
    format_duration,
    format_time,
    parse_time_string,
)
from skydrift.adapters.json_io import (
    JsonIslandReader,
    JsonIslandWriter,
    JsonSearchConfigReader,
)
from skydrift.adapters.parallel_search import (
    ParallelSearchCoordinator,
    SearchFailedError,
    WorkerProgress,
)
from skydrift.adapters.console_report import (
    annealing_progress_percent,
    format_analysis_table,
    format_island_periods,
    format_search_summary,
)

DEFAULT_START = "0000-01-01"
DEFAULT_DURATION_DAYS = 36500.0
DEFAULT_TIME_STEP_DAYS = 30.0
DEFAULT_OUTPUT = "best-island-config.json"


def run_analyze(
    config_path: str,
    start_date: str = DEFAULT_START,
    duration_days: float = DEFAULT_DURATION_DAYS,
    time_step_days: float = DEFAULT_TIME_STEP_DAYS,
) -> dict:
    """
    Load islands and print conjunction statistics.

    Returns:
        The per-pair statistics dict.
    """
    islands = JsonIslandReader().read_islands(config_path)
    print(f"Loaded {len(islands)} islands from {os.path.basename(config_path)}")

    start_time = parse_time_string(start_date)
    print(f"Start time: {format_time(start_time)}")
    print(f"Duration: {format_duration(duration_days)} ({duration_days:.0f} days)")
    print(f"Time step: {format_duration(time_step_days)} ({time_step_days:.0f} days)")
    print("Analyzing conjunctions...")

    started = time.monotonic()
    stats = analyze_conjunctions_from_date(islands, start_date, duration_days, time_step_days)
    print(f"Analysis completed in {time.monotonic() - started:.1f} seconds")
    print(format_analysis_table(stats))
    return stats


class _ProgressDisplay:
    """
    One tqdm bar per worker showing cooling progress of its current phase,
    plus a status screen at most once per interval.
    """

    def __init__(self, interval_s: float, file=None):
        self._interval_s = interval_s
        self._file = file
        self._started = time.monotonic()
        self._last_shown = 0.0
        self.coordinator: ParallelSearchCoordinator | None = None
        self.bars: dict[int, tqdm] = {}

    @property
    def elapsed_s(self) -> float:
        return time.monotonic() - self._started

    def _bar(self, worker_id: int) -> tqdm:
        bar = self.bars.get(worker_id)
        if bar is None:
            bar = tqdm(
                total=100, position=worker_id, desc=f"Worker {worker_id}",
                unit="%", file=self._file, leave=True,
                bar_format="{desc} |{bar}| {percentage:5.1f}% {postfix}",
            )
            self.bars[worker_id] = bar
        return bar

    def __call__(self, progress: WorkerProgress) -> None:
        params = progress.result.annealing_params
        pct = 0.0
        if params is not None:
            pct = annealing_progress_percent(
                progress.temperature, params.initial_temperature, params.min_temperature,
            )
        bar = self._bar(progress.worker_id)
        bar.n = pct
        bar.set_description(
            f"Worker {progress.worker_id} phase {progress.phase}/{progress.total_phases} "
            f"({progress.island_name})",
            refresh=False,
        )
        bar.set_postfix(score=f"{progress.score:.4f}", refresh=False)
        bar.refresh()

        now = time.monotonic()
        if now - self._last_shown < self._interval_s or self.coordinator is None:
            return
        self._last_shown = now

        best = self.coordinator.best_result
        if best is None:
            return
        tqdm.write(format_search_summary(
            best,
            now - self._started,
            self.coordinator.worker_progress,
            self.coordinator.num_workers,
        ), file=self._file)

    def close(self) -> None:
        for bar in self.bars.values():
            bar.close()
        self.bars.clear()


def run_search(
    config_path: str,
    output_path: str = DEFAULT_OUTPUT,
    workers: int = 1,
    strategy: str = "independent",
    update_interval_s: float = 2.0,
) -> ConfigSearchResult:
    """
    Run a parallel configuration search and write the best islands.

    Ctrl+C stops the workers; the best configuration found so far is
    still written.

    Raises:
        SearchFailedError: If every worker failed.
    """
    params = JsonSearchConfigReader().read_search_config(config_path)
    print(f"Loaded search configuration from {os.path.basename(config_path)}")
    print(f"Running with {workers} worker processes ({strategy} strategy)")

    display = _ProgressDisplay(update_interval_s)
    coordinator = ParallelSearchCoordinator(params, num_workers=workers, progress_callback=display)
    display.coordinator = coordinator
    print("Press Ctrl+C to stop and save the current best configuration")

    try:
        if strategy == "per-phase":
            result = coordinator.run_per_phase()
        else:
            result = coordinator.run_independent()
    except KeyboardInterrupt:
        if coordinator.best_result is None:
            raise
        print("\nSearch interrupted.")
        result = coordinator.best_result
    finally:
        display.close()

    if coordinator.cancelled:
        print("\nSearch stopped early; saving the best configuration found so far.")
    else:
        print("\nSearch completed.")
    print(format_search_summary(result, display.elapsed_s))

    JsonIslandWriter().write_islands(list(result.islands), output_path)
    print(f"\nConfiguration saved to {output_path}")
    print("\nIsland Configurations:")
    print(format_island_periods(result.islands))
    return result


def run_convert_days(days_text: str) -> str:
    """
    Calendar form of a day count, e.g. ``400 days = 0001-01-36``.

    Raises:
        ValueError: If the text is not a number.
    """
    try:
        days = float(days_text)
    except ValueError:
        days = math.nan
    if not math.isfinite(days):
        raise ValueError(f"Please provide a valid number of days, got {days_text!r}")
    shown = int(days) if days.is_integer() else days
    return f"{shown} days = {format_time(days_to_time(days))}"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Epicycle island simulator: conjunction analysis and configuration search"
    )
    parser.add_argument(
        '--verbose', '-v', action='store_true', default=False,
        help="Log progress details to stderr"
    )
    commands = parser.add_subparsers(dest='command', required=True)

    analyze = commands.add_parser('analyze', help="Conjunction statistics for an island file")
    analyze.add_argument(
        '--config', '-c', required=True,
        help="Path to island configuration JSON (list of islands)"
    )
    analyze.add_argument(
        '--start', '-s', default=DEFAULT_START,
        help=f"Start date as yyyy-mm-dd with optional ' Nh' suffix (default: {DEFAULT_START})"
    )
    analyze.add_argument(
        '--duration', '-d', type=float, default=DEFAULT_DURATION_DAYS,
        help="Simulation duration in days (default: 36500)"
    )
    analyze.add_argument(
        '--time-step', type=float, default=DEFAULT_TIME_STEP_DAYS,
        help="Analysis chunk size in days (default: 30)"
    )

    search = commands.add_parser('search', help="Search epicycle periods for target gaps")
    search.add_argument(
        '--config', '-c', required=True,
        help="Path to search configuration JSON"
    )
    search.add_argument(
        '--output', '-o', default=DEFAULT_OUTPUT,
        help=f"Path to write the best island configuration (default: {DEFAULT_OUTPUT})"
    )
    search.add_argument(
        '--workers', '-w', type=int, default=1,
        help="Number of worker processes (default: 1)"
    )
    search.add_argument(
        '--strategy', choices=['independent', 'per-phase'], default='independent',
        help="independent: full search per worker; per-phase: workers share each phase"
    )
    search.add_argument(
        '--update-interval', '-u', type=float, default=2.0,
        help="Progress update interval in seconds (default: 2)"
    )

    convert = commands.add_parser('convert-days', help="Convert a day count to a calendar date")
    convert.add_argument('days', help="Number of days since 0000-01-01")

    return parser


def main():
    parser = _build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    try:
        if args.command == 'analyze':
            run_analyze(args.config, args.start, args.duration, args.time_step)
        elif args.command == 'search':
            if args.workers < 1:
                raise ValueError(f"--workers must be >= 1, got {args.workers}")
            run_search(
                args.config, args.output, args.workers, args.strategy, args.update_interval,
            )
        elif args.command == 'convert-days':
            print(run_convert_days(args.days))

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except SearchFailedError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
