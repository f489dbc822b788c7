from typing import Optional

from ..events import Action, KeyPressed

_NAMED_KEYS = {
    "enter": Action.ENTER,
    "escape": Action.ESCAPE,
    "backspace": Action.BACKSPACE,
    "ctrl+h": Action.BACKSPACE,
    "up": Action.UP,
    "down": Action.DOWN,
    "pageup": Action.PAGE_UP,
    "pagedown": Action.PAGE_DOWN,
    "home": Action.HOME,
    "end": Action.END,
    "ctrl+s": Action.SAVE,
    "ctrl+c": Action.INTERRUPT,
}


def normalize_key(key: str, character: Optional[str] = None) -> Optional[KeyPressed]:
    """
    Map a Textual key event to a logical key action.

    Returns None for keys the application does not use (function keys, tab...).
    """
    action = _NAMED_KEYS.get(key)
    if action is not None:
        return KeyPressed(action)
    if character and len(character) == 1 and character.isprintable():
        return KeyPressed(Action.CHAR, character)
    return None
