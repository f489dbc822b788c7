"""
Renderer: ApplicationState -> text.

Pure functions only. The Textual app places the result in a single Static
widget, so styling is limited to plain characters.
"""

from typing import List, Optional

from ..models import FunctionSummary
from .charts import render_metrics
from .state import ApplicationState
from .views import InputMode, View

LOGO = [
    "  _____  ________       ",
    "_/ ____\\/  _____/ ____  ",
    "\\   __\\/   __  \\ /    \\ ",
    " |  |  \\  |__\\  \\   |  \\",
    " |__|   \\_____  /___|  /",
    "              \\/     \\/ ",
]

LIST_SHORTCUTS = [
    ("<enter>", "view details"),
    ("<\\>", "filter"),
    ("<:>", "command"),
    ("<l>", "logs"),
    ("<c>", "view code"),
    ("<m>", "metrics"),
    ("<w>", "download code"),
    ("<r>", "refresh"),
    ("<q>", "quit"),
]

VIEW_HELP = {
    View.DETAIL: "↑/↓: scroll • esc: back • ctrl+c: quit",
    View.LOGS: "s: start/stop streaming • l: refresh • ↑/↓: scroll • esc: back",
    View.CODE: "e: edit • v: view downloaded files • ↑/↓: scroll • esc: back",
    View.CODE_FILES: "↑/↓/pgup/pgdn: scroll • esc: back to code info",
    View.METRICS: "m: refresh • ↑/↓: scroll • esc: back",
}

TABLE_HEADERS = ("NAME", "RUNTIME", "MEMORY", "TIMEOUT", "LAST MODIFIED")


def _fit(text: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(text) > width:
        return text[: max(width - 1, 0)] + "…"
    return text.ljust(width)


def _center(lines: List[str], width: int) -> List[str]:
    block = max(len(line) for line in lines)
    pad = max((width - block) // 2, 0)
    return [" " * pad + line for line in lines]


def format_function_details(fn: Optional[FunctionSummary]) -> str:
    if fn is None:
        return ""
    lines = ["━━━ Function Details ━━━", "", f"Name: {fn.name}", ""]
    if fn.resource_id:
        lines += [f"ARN/Resource: {fn.resource_id}", ""]
    lines += [f"Runtime: {fn.runtime}", ""]
    if fn.handler:
        lines += [f"Handler: {fn.handler}", ""]
    lines += [f"Memory: {fn.memory} MB", "", f"Timeout: {fn.timeout} seconds", ""]
    if fn.region:
        lines += [f"Region/Location: {fn.region}", ""]
    if fn.description:
        lines += [f"Description: {fn.description}", ""]
    if fn.role:
        lines += [f"Role: {fn.role}", ""]
    if fn.last_modified:
        lines += [f"Last Modified: {fn.last_modified}", ""]
    if fn.environment:
        lines.append("Environment Variables:")
        lines += [f"  {key}: {value}" for key, value in sorted(fn.environment.items())]
    return "\n".join(lines).rstrip("\n")


def content_text(state: ApplicationState) -> str:
    """Full text of the content pane for non-list views, before scrolling."""
    if state.view is View.DETAIL:
        return format_function_details(state.selected)
    if state.view is View.METRICS and state.metrics is not None:
        return render_metrics(state.metrics, state.width)
    if state.view is View.CODE and state.edit_mode:
        return (
            "✏️  Editing (ctrl+s: save • esc: discard)\n"
            + "─" * 37
            + "\n"
            + state.edit_buffer
            + "█"
        )
    return state.content


def content_lines(state: ApplicationState) -> List[str]:
    return content_text(state).split("\n")


def max_scroll(state: ApplicationState) -> int:
    height = state.layout.edit_height if state.edit_mode else state.layout.viewport_height
    return max(len(content_lines(state)) - height, 0)


def _info(state: ApplicationState) -> List[str]:
    provider = state.provider
    rows = [
        ("Provider", provider.name.upper()),
        (provider.account_label, state.account_id or "…"),
        ("Region", provider.region),
        ("Environment", provider.environment),
        ("Functions", str(len(state.registry.all))),
        ("CPU", state.host.cpu),
        ("MEM", state.host.memory),
        ("OS", state.host.os),
        ("User", state.host.user),
    ]
    lines = [f"{key}: {value}" for key, value in rows]
    if provider.name == "gcp":
        lines += ["", "(Cloud Functions, 1st Gen)"]
    return lines


def _shortcuts() -> List[str]:
    return [f"{key}: {label}" for key, label in LIST_SHORTCUTS]


def _header(state: ApplicationState) -> List[str]:
    info = _info(state)
    shortcuts = _shortcuts()
    column = max(len(line) for line in info) + 4
    rows = []
    for i in range(max(len(info), len(shortcuts))):
        left = info[i] if i < len(info) else ""
        right = shortcuts[i] if i < len(shortcuts) else ""
        rows.append(("    " + left.ljust(column) + right).rstrip())
    return rows


def _input_line(state: ApplicationState) -> List[str]:
    if state.mode is InputMode.FILTER:
        return [f"Filter: {state.input_buffer}█"]
    if state.mode is InputMode.COMMAND:
        return [f":{state.input_buffer}█"]
    if state.filter_text:
        return [f"Filter active: {state.filter_text} (press Esc to clear)"]
    return []


def _table(state: ApplicationState) -> List[str]:
    registry = state.registry
    if not registry.all:
        if state.loading:
            return ["", "  Loading functions...", ""]
        return [
            "",
            "  No functions found in this region.",
            "",
            "  Press 'r' to refresh or 'q' to quit",
        ]

    widths = state.layout.columns
    if not any(widths):
        widths = (28, 12, 10, 10, 20)

    def row(cells, marker: str) -> str:
        return marker + " ".join(_fit(cell, w) for cell, w in zip(cells, widths)).rstrip()

    lines = [row(TABLE_HEADERS, "  ")]
    if not registry.filtered:
        lines.append("  No functions match the current filter.")
        return lines

    height = state.layout.table_height
    top = min(max(state.cursor - height + 1, 0), max(len(registry.filtered) - height, 0))
    for index, fn in enumerate(registry.filtered[top : top + height], start=top):
        cells = (fn.name, fn.runtime, f"{fn.memory} MB", f"{fn.timeout} s", fn.last_modified)
        lines.append(row(cells, "> " if index == state.cursor else "  "))
    return lines


def _pane(state: ApplicationState) -> List[str]:
    lines = content_lines(state)
    height = state.layout.edit_height if state.edit_mode else state.layout.viewport_height
    start = min(state.scroll, max(len(lines) - height, 0))
    return lines[start : start + height]


def _status(state: ApplicationState) -> List[str]:
    if state.error:
        return [f"Error: {state.error}"]
    if state.status:
        return [state.status]
    return []


def render(state: ApplicationState) -> str:
    """Render the whole screen."""
    parts: List[str] = []
    parts += _center(LOGO, state.width)
    parts.append("")
    parts += _header(state)
    parts.append("")

    if state.view is View.LIST:
        parts += _input_line(state)
        parts += _table(state)
        help_line = "Use keyboard shortcuts above to navigate"
    else:
        title = state.selected_name or ""
        parts.append(f"[{state.view.value}] {title}".rstrip())
        parts += _pane(state)
        help_line = VIEW_HELP[state.view]

    status = _status(state)
    if status:
        parts.append("")
        parts += status
    parts.append("")
    parts.append(help_line)
    return "\n".join(parts)
