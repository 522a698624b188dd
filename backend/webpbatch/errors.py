"""Exceptions raised outside the per-task boundary."""


class WebpBatchError(Exception):
    """Base class for webpbatch errors."""


class ConfigError(WebpBatchError):
    """A named config could not be parsed or holds invalid values."""


class ConfigNotFoundError(ConfigError):
    def __init__(self, name: str, path):
        super().__init__(f"Config file not found: {path}")
        self.name = name
        self.path = path


class RunAbortedError(WebpBatchError):
    """A single run cannot start. Later configs still run."""


class SourceNotFoundError(RunAbortedError):
    """The source root of a run is missing or not a directory."""

    def __init__(self, path):
        super().__init__(f"Source directory not found: {path}")
        self.path = path


class SourceUnreadableError(RunAbortedError):
    def __init__(self, path, reason):
        super().__init__(f"Source directory not readable: {path} ({reason})")
        self.path = path


class OutputDirError(RunAbortedError):
    def __init__(self, path, reason):
        super().__init__(f"Cannot create output directory {path}: {reason}")
        self.path = path
