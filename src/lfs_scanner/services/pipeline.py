"""
Bounded channels and scan results for the threaded scan pipelines.

Each pipeline stage runs in its own thread and talks to its neighbours only
through a Channel: a bounded queue whose put() blocks when full and whose
iteration blocks when empty, ended by close().
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Generic, Iterator, List, Optional, TypeVar

from ..exceptions import GitCommandError, ScanCancelledError
from ..pointer import WrappedPointer
from ..utils.git_runner import ProcessPipe

logger = logging.getLogger(__name__)

T = TypeVar("T")

PipeStarter = Callable[..., ProcessPipe]

DEFAULT_CHANNEL_SIZE = 100

_CLOSED = object()


class Channel(Generic[T]):
    """Bounded single-consumer channel with an end-of-stream marker.

    The producer records the error that stopped it, if any, when closing;
    the consumer reads it from ``error`` once iteration has finished.
    """

    def __init__(self, maxsize: int = DEFAULT_CHANNEL_SIZE, name: str = "channel"):
        self.name = name
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()
        self.error: Optional[BaseException] = None

    def put(self, item: T) -> None:
        if self._closed.is_set():
            raise ValueError(f"put on closed channel {self.name}")
        self._queue.put(item)

    def close(self, error: Optional[BaseException] = None) -> None:
        """Mark the end of the stream; later calls are ignored."""
        if self._closed.is_set():
            return
        self.error = error
        self._closed.set()
        self._queue.put(_CLOSED)

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]

    def drain(self) -> int:
        """Consume and discard everything until the producer closes."""
        discarded = 0
        for _ in self:
            discarded += 1
        return discarded


@dataclass
class ScanResult:
    """Pointers collected by one scan and whether the scan ran to the end.

    ``complete`` is False when a mid-stream failure truncated the scan; the
    pointers gathered before the failure are still returned.
    """

    pointers: List[WrappedPointer] = field(default_factory=list)
    errors: List[BaseException] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.errors

    @property
    def error(self) -> Optional[BaseException]:
        return self.errors[0] if self.errors else None

    def __iter__(self) -> Iterator[WrappedPointer]:
        return iter(self.pointers)

    def __len__(self) -> int:
        return len(self.pointers)


def start_stage(name: str, target: Callable[..., None], *args: object) -> threading.Thread:
    """Run a pipeline stage in a daemon thread."""
    thread = threading.Thread(target=target, args=args, name=name, daemon=True)
    thread.start()
    return thread


class GitStage:
    """A pipeline stage that owns one git subprocess."""

    def __init__(
        self,
        pipe_starter: PipeStarter,
        git_binary: str = "git",
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        buffer_size: int = DEFAULT_CHANNEL_SIZE,
    ):
        self.pipe_starter = pipe_starter
        self.git_binary = git_binary
        self.cwd = cwd
        self.env = env
        self.buffer_size = buffer_size
        self.pipe: Optional[ProcessPipe] = None
        self.output: Optional[Channel] = None
        self.thread: Optional[threading.Thread] = None

    def _start_git(self, *args: str) -> ProcessPipe:
        self.pipe = self.pipe_starter(self.git_binary, *args, cwd=self.cwd, env=self.env)
        return self.pipe

    def finalize(self) -> Optional[BaseException]:
        """Release the subprocess; report a non-zero exit status."""
        if self.pipe is None:
            return None
        returncode = self.pipe.close()
        if returncode:
            return GitCommandError(self.pipe.command, returncode)
        return None

    def kill(self) -> None:
        if self.pipe is not None:
            self.pipe.kill()


class ScanHandle:
    """A running scan whose pointers can be consumed as they arrive.

    Iterate to stream pointers, or call result() to collect the rest. Every
    iteration shares one underlying stream, so a loop that stopped early can
    be resumed by result(). Use the handle as a context manager (or call
    close()) when a loop may exit before the end; otherwise the git
    subprocesses keep running until the stream is drained.
    """

    def __init__(self, stages: List[GitStage]):
        if not stages or stages[-1].output is None:
            raise ValueError("ScanHandle needs started stages")
        self._stages = stages
        self._output: Channel[WrappedPointer] = stages[-1].output
        self._stream: Optional[Iterator[WrappedPointer]] = None
        self._finished = False
        self._cancelled = threading.Event()
        self.errors: List[BaseException] = []

    def __iter__(self) -> Iterator[WrappedPointer]:
        if self._stream is None:
            self._stream = self._consume()
        return self._stream

    def __enter__(self) -> "ScanHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _consume(self) -> Iterator[WrappedPointer]:
        drained = False
        try:
            yield from self._output
            drained = True
        finally:
            if not drained:
                # Consumer stopped early: stop the producers and unblock them
                self.cancel()
                self._output.drain()
            self._finish()

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        errors: List[BaseException] = []
        if self._cancelled.is_set():
            errors.append(ScanCancelledError("Scan cancelled before completion"))
        for stage in self._stages:
            if stage.thread is not None:
                stage.thread.join()
            if stage.output is not None and stage.output.error is not None:
                errors.append(stage.output.error)
        for stage in self._stages:
            error = stage.finalize()
            if error is not None and not self._cancelled.is_set():
                errors.append(error)
        for error in errors:
            logger.warning(f"Scan incomplete: {error}")
        self.errors = errors

    def result(self) -> ScanResult:
        """Collect all pointers not yet consumed and the completion status."""
        pointers = list(self)
        return ScanResult(pointers=pointers, errors=list(self.errors))

    def cancel(self) -> None:
        """Stop the scan early by killing its git subprocesses.

        Keep iterating (or call result()) afterwards so the stages can wind
        down; the result is then reported as incomplete.
        """
        self._cancelled.set()
        for stage in self._stages:
            stage.kill()

    def close(self) -> None:
        """Cancel the scan unless it already ended and release its stages."""
        if self._finished:
            return
        self.cancel()
        for _ in self:
            pass
