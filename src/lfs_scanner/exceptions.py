"""Exception hierarchy for LFS Scanner."""

from typing import List, Optional


class LfsScannerError(Exception):
    """Base class for all LFS Scanner errors."""


class ConfigError(LfsScannerError):
    """Configuration file could not be read or validated."""


class PipeStartError(LfsScannerError):
    """An external command could not be launched."""

    def __init__(self, command: List[str], reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to start {' '.join(command)}: {reason}")


class GitCommandError(LfsScannerError):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, command: List[str], returncode: int):
        self.command = command
        self.returncode = returncode
        super().__init__(
            f"{' '.join(command)} exited with status {returncode}"
        )


class PointerDecodeError(LfsScannerError, ValueError):
    """Data is not a valid LFS pointer."""


class MalformedBatchHeaderError(LfsScannerError, ValueError):
    """A cat-file batch header did not have the <sha1> <type> <size> shape."""

    def __init__(self, header: bytes, detail: Optional[str] = None):
        self.header = header
        message = f"Malformed batch header: {header!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ScanCancelledError(LfsScannerError):
    """The scan was stopped before its subprocesses finished."""


class UnexpectedEndOfStreamError(LfsScannerError, OSError):
    """A subprocess stream ended in the middle of a response."""


class ShortReadError(UnexpectedEndOfStreamError):
    """A batch response ended before the announced number of bytes."""

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(f"Expected {expected} bytes, got {received}")
