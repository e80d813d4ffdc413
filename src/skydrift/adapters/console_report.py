# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Plain-text tables for the command line.

Renders conjunction statistics, search progress and worker status as
fixed-width ASCII tables. Pure string formatting; callers print.
"""
import math

from skydrift.domain.islands import Island
from skydrift.domain.conjunction_statistics import ConjunctionStats
from skydrift.domain.config_search import ConfigSearchResult

NAME_WIDTH = 14
EMPTY_CELL = "-"

ANALYSIS_LEGEND = (
    "Avg Dur  = Average duration of conjunctions",
    "Max Dur  = Maximum duration of conjunctions",
    "Avg Dist = Average minimum distance during conjunctions (miles)",
    "Min Dist = Minimum distance recorded during any conjunction (miles)",
    "Min Gap  = Minimum time between consecutive conjunctions",
    "Max Gap  = Maximum time between consecutive conjunctions",
    "Avg Gap  = Average time between conjunctions, considering full simulation timespan",
)


def format_duration_compact(days: float) -> str:
    """Short duration: ``5h``, ``12.5d``, ``3.0m`` (30-day months), ``1.2y``."""
    if days < 1:
        return f"{round(days * 24)}h"
    if days < 30:
        return f"{days:.1f}d"
    if days < 365:
        return f"{days / 30:.1f}m"
    return f"{days / 365:.1f}y"


def format_distance_compact(miles: float) -> str:
    return f"{miles:.1f}mi"


def _name(text: str) -> str:
    return text[:NAME_WIDTH].ljust(NAME_WIDTH)


def _border(widths: list[int]) -> str:
    return "+" + "+".join("-" * (w + 2) for w in widths) + "+"


def _row(cells: list[str], widths: list[int]) -> str:
    return "| " + " | ".join(
        c.ljust(w) if i < 2 else c.rjust(w)
        for i, (c, w) in enumerate(zip(cells, widths))
    ) + " |"


def _table(headers: list[str], rows: list[list[str]]) -> list[str]:
    """Bordered table; the first two columns are left-aligned, the rest right."""
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(c)) for w, c in zip(widths, row)]
    border = _border(widths)
    header = "| " + " | ".join(h.ljust(w) for h, w in zip(headers, widths)) + " |"
    return [border, header, border, *(_row(r, widths) for r in rows), border]


def _gap_cell(gap: float | None) -> str:
    return EMPTY_CELL if gap is None else format_duration_compact(gap)


def format_analysis_table(stats: dict[tuple[int, int], ConjunctionStats]) -> str:
    """Per-pair statistics, most frequent pairs first, with a legend."""
    ordered = sorted(stats.values(), key=lambda s: -s.total_conjunctions)
    rows = []
    for s in ordered:
        if s.total_conjunctions == 0:
            rows.append([_name(s.island1_name), _name(s.island2_name)] + [EMPTY_CELL] * 7)
            continue
        rows.append([
            _name(s.island1_name),
            _name(s.island2_name),
            format_duration_compact(s.avg_duration),
            format_duration_compact(s.max_duration),
            format_distance_compact(s.avg_min_distance),
            format_distance_compact(s.min_min_distance),
            _gap_cell(s.min_gap),
            _gap_cell(s.max_gap),
            format_duration_compact(s.avg_gap),
        ])

    lines = [
        "",
        "=== CONJUNCTION ANALYSIS SUMMARY ===",
        "",
        f"Analyzed {len(stats)} island pairs",
        "",
    ]
    lines += _table(
        ["Island 1", "Island 2", "Avg Dur", "Max Dur", "Avg Dist", "Min Dist",
         "Min Gap", "Max Gap", "Avg Gap"],
        rows,
    )
    lines += ["", "LEGEND:", *ANALYSIS_LEGEND]
    return "\n".join(lines)


def format_target_table(result: ConfigSearchResult) -> str:
    """Statistics and error for each targeted pair of a search result."""
    rows = []
    for key in sorted(result.errors):
        s = result.stats.get(key)
        if s is None:
            continue
        if s.total_conjunctions == 0:
            cells = [EMPTY_CELL] * 4
        else:
            cells = [
                format_distance_compact(s.avg_min_distance),
                format_duration_compact(s.max_duration),
                format_duration_compact(s.avg_gap),
                _gap_cell(s.max_gap),
            ]
        rows.append([
            _name(s.island1_name), _name(s.island2_name), *cells,
            f"{result.errors[key]:.2f}%",
        ])
    return "\n".join(_table(
        ["Island 1", "Island 2", "Avg Dist", "Max Dur", "Avg Gap", "Max Gap", "Error (%)"],
        rows,
    ))


def annealing_progress_percent(
    temperature: float | None,
    initial_temperature: float,
    min_temperature: float,
) -> float:
    """Progress of a cooling schedule on a log scale, clamped to [0, 100]."""
    if temperature is None or temperature <= 0:
        return 0.0
    log_initial = math.log(initial_temperature)
    log_min = math.log(min_temperature)
    pct = (log_initial - math.log(temperature)) / (log_initial - log_min) * 100.0
    return min(100.0, max(0.0, pct))


def format_worker_table(progress: dict, num_workers: int) -> str:
    """
    One row per worker: current island, cooling progress, best score.

    Args:
        progress: worker id -> latest WorkerProgress message.
        num_workers: Total worker count (idle workers show as not started).
    """
    rows = []
    for worker_id in range(num_workers):
        message = progress.get(worker_id)
        if message is None:
            rows.append([str(worker_id), _name("Not started"), "0.0%", EMPTY_CELL])
            continue
        params = message.result.annealing_params
        pct = 0.0
        if params is not None:
            pct = annealing_progress_percent(
                message.temperature, params.initial_temperature, params.min_temperature,
            )
        rows.append([
            str(worker_id),
            _name(message.island_name),
            f"{pct:.1f}%",
            f"{message.score:.4f}",
        ])
    return "\n".join(_table(["Worker", "Current Island", "Progress", "Score"], rows))


def format_island_periods(islands: list[Island] | tuple[Island, ...]) -> str:
    lines = []
    for island in islands:
        lines.append(f"- {island.name}:")
        if not island.cycles:
            lines.append("  * No cycles configured yet")
        for cycle in island.cycles:
            lines.append(f"  * Period: {cycle.period:.2f} days")
    return "\n".join(lines)


def format_search_summary(
    result: ConfigSearchResult,
    elapsed_s: float,
    worker_progress: dict | None = None,
    num_workers: int = 0,
) -> str:
    """Status screen for a running or finished search."""
    lines = [
        "",
        "=== ISLAND CONFIGURATION SEARCH ===",
        "",
        f"Elapsed time: {elapsed_s:.1f} seconds",
        f"Current best score: {result.score:.4f} (phase {result.phase})",
    ]
    if worker_progress is not None and num_workers:
        lines += ["", "WORKER STATUS:", format_worker_table(worker_progress, num_workers)]
    lines += ["", "CONJUNCTION RESULTS (BEST CONFIGURATION):", format_target_table(result)]
    return "\n".join(lines)

