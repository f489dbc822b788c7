"""
Where: f6n/tests/test_render.py
What: Tests for the text renderer and metric charts.
Why: Rendering is a pure function of state; these pin the screen contents
     users rely on (table, details, panes, charts).
"""

from datetime import timedelta

from f6n.core.result import TaskResult
from f6n.events import Action, KeyPressed, Resized, TaskCompleted, TaskKind
from f6n.models import FunctionMetrics, MetricPoint, MetricSeries
from f6n.providers.sample import sample_metrics
from f6n.tests.conftest import FIXED_NOW, make_function
from f6n.ui.charts import SPARK_CHARS, bar_chart, render_metrics, sparkline
from f6n.ui.render import format_function_details, max_scroll, render
from f6n.ui.views import View


def load(machine, functions):
    for request in machine.start():
        value = functions if request.kind is TaskKind.LIST_FUNCTIONS else "123456789012"
        machine.handle(TaskCompleted(request.kind, request.target, request.token, TaskResult.ok(value)))


def points(*values):
    return [MetricPoint(timestamp=FIXED_NOW + timedelta(minutes=i), value=v) for i, v in enumerate(values)]


class TestListScreen:
    def test_loading_placeholder(self, machine):
        machine.start()
        assert "Loading functions..." in render(machine.state)

    def test_header_and_rows(self, machine, functions):
        load(machine, functions)
        screen = render(machine.state)

        assert "Provider: AWS" in screen
        assert "Account: 123456789012" in screen
        assert "Environment: test" in screen
        assert "<q>: quit" in screen
        assert "NAME" in screen and "RUNTIME" in screen
        assert "> fn-a" in screen
        assert "  fn-b" in screen

    def test_empty_list(self, machine):
        load(machine, [])
        assert "No functions found in this region." in render(machine.state)

    def test_filter_prompt_and_no_match(self, machine, functions):
        load(machine, functions)
        for char in "\\zz":
            machine.handle(KeyPressed(Action.CHAR, char))

        screen = render(machine.state)
        assert "Filter: zz█" in screen
        assert "No functions match the current filter." in screen

    def test_gcp_labels(self, machine):
        from dataclasses import replace

        machine.state.provider = replace(machine.state.provider, name="gcp")
        screen = render(machine.state)

        assert "Project: " in screen
        assert "(Cloud Functions, 1st Gen)" in screen

    def test_error_line(self, machine):
        machine.state.error = "boom"
        assert "Error: boom" in render(machine.state)


class TestContentPanes:
    def test_details(self):
        fn = make_function("fn-a", description="Alpha")
        text = format_function_details(fn.model_copy(update={"environment": {"B": "2", "A": "1"}}))

        assert text.startswith("━━━ Function Details ━━━")
        assert "Memory: 128 MB" in text
        assert "Timeout: 3 seconds" in text
        assert text.index("  A: 1") < text.index("  B: 2")

    def test_details_view_renders_selected(self, machine, functions):
        load(machine, functions)
        machine.handle(KeyPressed(Action.ENTER))

        screen = render(machine.state)
        assert "[detail] fn-a" in screen
        assert "Description: Alpha worker" in screen

    def test_pane_shows_scrolled_window(self, machine, functions):
        load(machine, functions)
        machine.handle(Resized(100, 18))
        machine.handle(KeyPressed(Action.CHAR, "l"))
        request = [k for k in machine.state.pending if k[0] is TaskKind.FUNCTION_LOGS][0]
        token = machine.state.pending[request]
        lines = [f"line {i:02d}" for i in range(30)]
        machine.handle(TaskCompleted(TaskKind.FUNCTION_LOGS, "fn-a", token, TaskResult.ok(lines)))

        assert max_scroll(machine.state) == 20
        machine.handle(KeyPressed(Action.END))
        screen = render(machine.state)

        assert "line 29" in screen
        assert "line 19" not in screen
        assert "line 20" in screen

    def test_edit_mode_cursor(self, machine, functions):
        load(machine, functions)
        state = machine.state
        state.view = View.CODE
        state.selected_name = "fn-a"
        state.edit_mode = True
        state.edit_buffer = "x = 1"

        assert "x = 1█" in render(state)


class TestCharts:
    def test_sparkline_scales_to_range(self):
        line = sparkline(points(0, 7), 2)
        assert line == SPARK_CHARS[0] + SPARK_CHARS[-1]

    def test_sparkline_flat_and_empty(self):
        assert sparkline(points(3, 3, 3), 3) == SPARK_CHARS[0] * 3
        assert sparkline([], 4) == "____"
        assert sparkline(points(1), 0) == ""

    def test_bar_chart(self):
        lines = bar_chart(points(5, 10), 30, 8)

        assert lines[0] == f"12:00 │{'█' * 5}{' ' * 5}│ 5.0"
        assert lines[1] == f"12:01 │{'█' * 10}│ 10.0"

    def test_bar_chart_keeps_last_points(self):
        assert len(bar_chart(points(*range(20)), 40, 6)) == 6
        assert bar_chart([], 40, 6) == ["No data available"]

    def test_non_finite_points_dropped(self):
        series = MetricSeries(name="Duration", points=points(1, float("nan"), 2))
        assert series.values == [1, 2]

    def test_render_sample_metrics(self):
        metrics = sample_metrics("fn-a", FIXED_NOW - timedelta(hours=1), FIXED_NOW)
        text = render_metrics(metrics, 100)

        assert text.startswith("📊 Metrics for fn-a\nTime Range: 11:00 - 12:00")
        assert "🔥 Invocations (count)" in text
        assert "💾 Memory Usage (bytes)" in text
        assert "• Data Points: 12" in text

    def test_render_without_data(self):
        metrics = FunctionMetrics(function_name="fn-a", start=FIXED_NOW, end=FIXED_NOW)
        assert render_metrics(metrics, 80).endswith("No metrics data available")
