__version__ = "0.1.0"

# Overridden at build time.
GIT_COMMIT = "dev"
BUILD_DATE = "unknown"


def info() -> str:
    return f"f6n version {__version__} (commit: {GIT_COMMIT}, built: {BUILD_DATE})"
