"""
Renderers for benchmark results.

Every renderer sorts the methods of a data size by ascending execution time
with one shared stable sort, so all formats agree on the ranking. `format_*`
functions return text; `print_*` functions write the same text to a sink
(standard output by default).
"""

from __future__ import annotations

import csv
import io
import sys
from typing import Mapping, Optional, Sequence, TextIO

from services.course_mapping_service.benchmark.models import BenchmarkResult

Results = Mapping[int, Sequence[BenchmarkResult]]

TABLE_WIDTH = 100
COMPARISON_WIDTH = 80

CSV_HEADER = (
    "data_size",
    "method",
    "execution_time_ms",
    "memory_mb",
    "cpu_percent",
    "query_count",
)


def sort_by_execution_time(results: Sequence[BenchmarkResult]) -> list[BenchmarkResult]:
    return sorted(results, key=lambda result: result.performance.execution_time_ms)


def speed_ratio(fastest_ms: float, current_ms: float) -> float:
    """Fastest time divided by this entry's time; values below 1 mean slower."""
    if current_ms == 0:
        return 1.0
    return fastest_ms / current_ms


def format_ratio(ratio: float) -> str:
    return f"{ratio:.2g}x"


def _write(text: str, sink: Optional[TextIO]) -> None:
    (sink if sink is not None else sys.stdout).write(text)


# Table


def format_table_for_size(data_size: int, results: Sequence[BenchmarkResult]) -> str:
    lines = [
        "",
        f"[ Data size: {data_size} ]",
        "-" * TABLE_WIDTH,
        "",
        f"{'Method':<35} | {'Time':>10} | {'Memory':>12} | {'CPU':>10} | {'Queries':>15}",
        "-" * TABLE_WIDTH,
    ]
    for result in sort_by_execution_time(results):
        perf = result.performance
        lines.append(
            f"{result.method_name:<35} | {perf.execution_time_ms:>8.2f}ms | "
            f"{perf.memory_used_mb:>10.2f}MB | {perf.cpu_usage_percent:>9.2f}% | "
            f"{perf.query_count:>15d}"
        )
    lines.append("")
    return "\n".join(lines) + "\n"


def format_table(results: Results) -> str:
    return "".join(format_table_for_size(size, entries) for size, entries in results.items())


def print_table(results: Results, sink: Optional[TextIO] = None) -> None:
    _write(format_table(results), sink)


def print_table_for_size(
    data_size: int, results: Sequence[BenchmarkResult], sink: Optional[TextIO] = None
) -> None:
    _write(format_table_for_size(data_size, results), sink)


# Simple comparison


def format_simple_comparison(results: Results) -> str:
    lines: list[str] = []
    for size, entries in results.items():
        lines += ["", f"[ Data size: {size} ]", "-" * COMPARISON_WIDTH]
        ranked = sort_by_execution_time(entries)
        for index, result in enumerate(ranked):
            time_ms = result.performance.execution_time_ms
            if index == 0:
                note = "(fastest)"
            else:
                ratio = speed_ratio(ranked[0].performance.execution_time_ms, time_ms)
                note = f"({format_ratio(ratio)})"
            lines.append(f"{index + 1}. {result.method_name:<35} : {time_ms:>8.2f} ms {note}")
        lines.append("")
    return "\n".join(lines) + "\n"


def print_simple_comparison(results: Results, sink: Optional[TextIO] = None) -> None:
    _write(format_simple_comparison(results), sink)


# Markdown


def _markdown_cell(value: str) -> str:
    return value.replace("|", "\\|")


def format_markdown(results: Results) -> str:
    lines: list[str] = []
    for size, entries in results.items():
        lines += [
            "",
            f"## {size} rows inserted",
            "",
            "| Method | Time | Memory | CPU | Queries |",
            "|--------|------|--------|-----|---------|",
        ]
        for result in sort_by_execution_time(entries):
            perf = result.performance
            lines.append(
                f"| {_markdown_cell(result.method_name)} | {perf.execution_time_ms:.2f}ms | "
                f"{perf.memory_used_mb:.2f}MB | {perf.cpu_usage_percent:.2f}% | "
                f"{perf.query_count} |"
            )
        lines.append("")
    return "\n".join(lines) + "\n"


def print_markdown(results: Results, sink: Optional[TextIO] = None) -> None:
    _write(format_markdown(results), sink)


# Delimited


def format_csv(results: Results) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for size, entries in results.items():
        for result in sort_by_execution_time(entries):
            perf = result.performance
            writer.writerow(
                [
                    size,
                    result.method_name,
                    f"{perf.execution_time_ms:.2f}",
                    f"{perf.memory_used_mb:.2f}",
                    f"{perf.cpu_usage_percent:.2f}",
                    perf.query_count,
                ]
            )
    return buffer.getvalue()


def print_csv(results: Results, sink: Optional[TextIO] = None) -> None:
    _write(format_csv(results), sink)


# Analysis


def format_analysis(results: Results) -> str:
    lines: list[str] = []
    for size, entries in results.items():
        lines += ["", f"[ Analysis: {size} rows ]"]
        if not entries:
            lines += ["- no results", ""]
            continue

        ranked = sort_by_execution_time(entries)
        fastest, slowest = ranked[0], ranked[-1]
        fastest_ms = fastest.performance.execution_time_ms
        slowest_ms = slowest.performance.execution_time_ms
        difference = f"{slowest_ms / fastest_ms:.2f}x" if fastest_ms > 0 else "n/a"

        # min() keeps the first minimal element in input order
        least_memory = min(entries, key=lambda result: result.performance.memory_used_mb)
        least_queries = min(entries, key=lambda result: result.performance.query_count)

        lines += [
            f"- Fastest: {fastest.method_name} ({fastest_ms:.2f}ms)",
            f"- Slowest: {slowest.method_name} ({slowest_ms:.2f}ms)",
            f"- Speed difference: {difference}",
            f"- Least memory: {least_memory.method_name} "
            f"({least_memory.performance.memory_used_mb:.2f}MB)",
            f"- Fewest queries: {least_queries.method_name} "
            f"({least_queries.performance.query_count})",
            "",
        ]
    return "\n".join(lines) + "\n"


def print_analysis(results: Results, sink: Optional[TextIO] = None) -> None:
    _write(format_analysis(results), sink)
