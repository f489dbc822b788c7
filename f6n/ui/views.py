from enum import Enum


class View(str, Enum):
    LIST = "list"
    DETAIL = "detail"
    LOGS = "logs"
    CODE = "code"
    CODE_FILES = "code-files"
    METRICS = "metrics"


class InputMode(str, Enum):
    NORMAL = "normal"
    FILTER = "filter"
    COMMAND = "command"
