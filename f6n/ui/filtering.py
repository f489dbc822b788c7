"""Filter and command-line parsing for the function list."""

from enum import Enum
from typing import List, Optional, Sequence

from ..models import FunctionSummary


class LineCommand(str, Enum):
    QUIT = "quit"
    REFRESH = "refresh"


_COMMANDS = {
    "q": LineCommand.QUIT,
    "quit": LineCommand.QUIT,
    "r": LineCommand.REFRESH,
    "refresh": LineCommand.REFRESH,
}


def filter_functions(
    functions: Sequence[FunctionSummary], text: Optional[str]
) -> List[FunctionSummary]:
    """
    Case-insensitive substring match on name, runtime or description.

    A blank filter returns every function, in order.
    """
    needle = (text or "").strip().lower()
    if not needle:
        return list(functions)
    return [
        fn
        for fn in functions
        if needle in fn.name.lower()
        or needle in fn.runtime.lower()
        or needle in fn.description.lower()
    ]


def parse_command(text: str) -> Optional[LineCommand]:
    """Parse ``q``/``quit``/``r``/``refresh`` (leading ``:`` optional); anything else is None."""
    word = text.strip()
    if word.startswith(":"):
        word = word[1:].strip()
    return _COMMANDS.get(word.lower())
