"""Text charts for the Metrics view."""

from typing import List, Sequence

from ..models import FunctionMetrics, MetricPoint, MetricSeries

SPARK_CHARS = "▁▂▃▄▅▆▇█"

_ICONS = {
    "invocations": "🔥",
    "duration": "⏱️ ",
    "errors": "❗",
    "throttles": "🚦",
    "memory": "💾",
    "concurrent_executions": "🔀",
}


def sparkline(points: Sequence[MetricPoint], width: int) -> str:
    """One character per column, resampling ``points`` to ``width``."""
    if width <= 0:
        return ""
    if not points:
        return "_" * width

    values = [p.value for p in points]
    low, high = min(values), max(values)
    per_char = len(values) / width

    chars = []
    for i in range(width):
        index = min(int(i * per_char), len(values) - 1)
        if high == low:
            level = 0
        else:
            level = int((values[index] - low) / (high - low) * (len(SPARK_CHARS) - 1))
        chars.append(SPARK_CHARS[level])
    return "".join(chars)


def bar_chart(points: Sequence[MetricPoint], width: int, height: int) -> List[str]:
    """
    Horizontal bars for the last ``height`` points: ``HH:MM │████   │ value``.

    Bars are scaled against the largest value; 20 columns are reserved for labels.
    """
    if not points:
        return ["No data available"]

    bar_width = max(width - 20, 1)
    peak = max(p.value for p in points)
    lines = []
    for point in list(points)[-height:]:
        length = int(point.value / peak * bar_width) if peak > 0 else 0
        length = max(0, min(length, bar_width))
        bar = "█" * length + " " * (bar_width - length)
        lines.append(f"{point.timestamp.strftime('%H:%M')} │{bar}│ {point.value:.1f}")
    return lines


def _section(series: MetricSeries, icon: str, width: int, height: int) -> List[str]:
    title = f"{icon} {series.name}"
    if series.unit:
        title += f" ({series.unit})"
    lines = [title, "", sparkline(series.points, max(width - 4, 10)), ""]
    lines += bar_chart(series.points, width, height)
    values = series.values
    lines.append("")
    lines.append(f"Range: {min(values):.1f} - {max(values):.1f}")
    return lines


def render_metrics(metrics: FunctionMetrics, width: int) -> str:
    """Full metrics dashboard: header, one section per non-empty series, summary."""
    width = max(width - 8, 30)
    lines = [
        f"📊 Metrics for {metrics.function_name}",
        f"Time Range: {metrics.start.strftime('%H:%M')} - {metrics.end.strftime('%H:%M')}",
        "",
    ]

    fields = [
        ("invocations", 8),
        ("duration", 8),
        ("errors", 6),
        ("throttles", 6),
        ("memory", 6),
        ("concurrent_executions", 6),
    ]
    shown = 0
    for field, height in fields:
        series = getattr(metrics, field)
        if series.is_empty:
            continue
        shown += 1
        lines += _section(series, _ICONS[field], width, height)
        lines.append("")

    if not shown:
        lines.append("No metrics data available")
        return "\n".join(lines)

    invocations = metrics.invocations.values
    if invocations:
        durations = metrics.duration.values
        average = sum(durations) / len(durations) if durations else 0.0
        lines += [
            "📈 Summary Statistics:",
            f"• Total Invocations: {sum(invocations):.0f}",
            f"• Average Duration: {average:.2f} ms",
            f"• Data Points: {len(invocations)}",
        ]
    return "\n".join(lines)
