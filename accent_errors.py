"""Errors that abort an accent run."""


class AccentError(Exception):
    """Base class for fatal accent picker errors."""


class ColorFileError(AccentError):
    """A color list file is missing or does not hold a JSON array of hex codes."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class CacheError(AccentError):
    """A cached round result cannot be turned back into colors."""

    def __init__(self, path, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")
