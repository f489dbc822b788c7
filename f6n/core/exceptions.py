"""
Custom exception classes.

Represent errors raised by providers, the archive manager and log streams.
The task dispatcher converts every one of them into a failed TaskResult.
"""


class F6nError(Exception):
    """Base exception class for f6n."""

    pass


class ProviderError(F6nError):
    """Raised when a cloud provider call fails."""

    def __init__(self, operation: str, cause: Exception):
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {cause}")


class ProviderConfigError(F6nError):
    """Raised when a provider cannot be constructed from the given settings."""

    pass


class FunctionNotFoundError(F6nError):
    """Raised when a function is not found."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"function {function_name} not found")


class UnsupportedSourceError(F6nError):
    """Raised when a function's source location cannot be downloaded."""

    def __init__(self, function_name: str, detail: str):
        self.function_name = function_name
        self.detail = detail
        super().__init__(detail)


class ArchiveIntegrityError(F6nError):
    """Raised for corrupt archives or entries escaping the destination."""

    def __init__(self, detail: str, entry: str | None = None):
        self.entry = entry
        self.detail = detail
        if entry is not None:
            super().__init__(f"{detail}: {entry}")
        else:
            super().__init__(detail)


class CodeNotDownloadedError(F6nError):
    """Raised when code files are browsed before a successful download."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(
            f"code for {function_name} not downloaded yet. "
            "Press 'w' in the function list to download first"
        )


class StreamEndedError(F6nError):
    """Raised when a log stream finishes without being stopped."""

    def __init__(self, detail: str = "log stream ended"):
        super().__init__(detail)
