"""
History scanning: rebuild LFS pointers from ``git log -p`` diff text.

git log is asked for one predictable header line per commit and a context
window wide enough to contain a whole pointer body. For each commit the
output looks like:

    lfs-commit-sha: 60fde3d23553e10a55e2a32ed18c20f65edd91e7 e2eaf1c10b57da7b98eb5d722ec5912ddeb53ea1

    diff --git a/1D_Noise.png b/1D_Noise.png
    new file mode 100644
    index 0000000..2622b4a
    --- /dev/null
    +++ b/1D_Noise.png
    @@ -0,0 +1,3 @@
    +version https://git-lfs.github.com/spec/v1
    +oid sha256:f5d84da40ab1f6aa28df2b2bf1ade2cdcd4397133f903c12b4106641b10e1ed6
    +size 1289

There can be several file diffs per commit, and a changed pointer shows both
a '-' line for the old oid and a '+' line for the new one.
"""

import logging
import re
from enum import Enum
from typing import IO, Iterable, Iterator, List, Optional

from ..exceptions import PointerDecodeError
from ..pointer import WrappedPointer, decode_pointer
from .path_pattern_matcher import filename_passes_filter
from .pipeline import Channel, GitStage, start_stage

logger = logging.getLogger(__name__)

# Enough context for the version line plus up to 10 extension lines
LOG_CONTEXT_LINES = 12

COMMIT_HEADER_PREFIX = "lfs-commit-sha:"

# Appended to a git log call to limit output to LFS changes in a parseable form
LOG_LFS_SEARCH_ARGS = [
    "-G",
    "oid sha256:",  # only diffs which touch an LFS oid line
    "-p",  # include the diff so the pointer can be read
    f"-U{LOG_CONTEXT_LINES}",
    f"--format={COMMIT_HEADER_PREFIX} %H %P",
]

COMMIT_HEADER_PATTERN = re.compile(r"^lfs-commit-sha: ([A-Fa-f0-9]{40})(?: ([A-Fa-f0-9]{40}))*")
FILE_HEADER_PATTERN = re.compile(r"^diff --git a/(.+?)\s+b/(.+)")
MERGE_FILE_HEADER_PATTERN = re.compile(r"^diff --cc (.+)")
POINTER_DATA_PATTERN = re.compile(r"^([+\- ])(version https://git-lfs|oid sha256|size|ext-).*$")


class LogDiffDirection(Enum):
    """Which side of a diff pointer data is collected from."""

    ADDITIONS = "+"
    DELETIONS = "-"


class LogDiffParser:
    """
    Streaming parser that rebuilds pointer bodies from log diff text.

    Pointer field lines are buffered per changed file and decoded when the
    next commit or file header arrives, and once more at end of input.
    Context lines are always kept because the version line is usually
    unchanged on both sides of a pointer change.
    """

    def __init__(
        self,
        direction: LogDiffDirection = LogDiffDirection.ADDITIONS,
        include_paths: Optional[List[str]] = None,
        exclude_paths: Optional[List[str]] = None,
    ):
        self.direction = direction
        self.include_paths = include_paths
        self.exclude_paths = exclude_paths
        self._pointer_data: List[str] = []
        self._current_filename = ""
        self._current_file_included = True

    def parse(self, lines: Iterable[str]) -> Iterator[WrappedPointer]:
        """Yield pointers from diff lines (with or without trailing newlines)."""
        for line in lines:
            yield from self.feed(line.rstrip("\r\n"))
        yield from self.finish()

    def feed(self, line: str) -> Iterator[WrappedPointer]:
        """Process one line, yielding any pointer the line completes."""
        if COMMIT_HEADER_PATTERN.match(line):
            # Commit groupings are not kept; the header only delimits pointers
            yield from self.finish()
            self._current_filename = ""
            self._current_file_included = True
            return

        match = FILE_HEADER_PATTERN.match(line)
        if match:
            yield from self.finish()
            if self.direction is LogDiffDirection.ADDITIONS:
                self._track_file(match.group(2))
            else:
                self._track_file(match.group(1))
            return

        match = MERGE_FILE_HEADER_PATTERN.match(line)
        if match:
            yield from self.finish()
            self._track_file(match.group(1))
            return

        if not self._current_file_included:
            return

        match = POINTER_DATA_PATTERN.match(line)
        if match:
            change_type = match.group(1)
            if change_type == self.direction.value or change_type == " ":
                self._pointer_data.append(line[1:])

    def finish(self) -> Iterator[WrappedPointer]:
        """Decode whatever pointer body is buffered, then clear the buffer."""
        if not self._pointer_data:
            return
        data = "\n".join(self._pointer_data) + "\n"
        self._pointer_data = []
        if not self._current_file_included:
            return
        try:
            pointer = decode_pointer(data)
        except PointerDecodeError as e:
            logger.debug(f"Unable to parse pointer from log for {self._current_filename}: {e}")
            return
        yield WrappedPointer(name=self._current_filename, size=pointer.size, pointer=pointer)

    def _track_file(self, filename: str) -> None:
        self._current_filename = filename
        self._current_file_included = filename_passes_filter(
            filename, self.include_paths, self.exclude_paths
        )


def parse_log_output_to_pointers(
    log: IO[bytes],
    direction: LogDiffDirection,
    include_paths: Optional[List[str]],
    exclude_paths: Optional[List[str]],
    results: Channel[WrappedPointer],
) -> None:
    """
    Parse a git log stream formatted with LOG_LFS_SEARCH_ARGS into a channel.

    The channel is closed when the stream ends; a read failure is recorded
    on the channel as the reason it closed early.
    """
    parser = LogDiffParser(direction, include_paths, exclude_paths)
    lines = (raw.decode("utf-8", errors="surrogateescape") for raw in log)
    error: Optional[BaseException] = None
    try:
        for pointer in parser.parse(lines):
            results.put(pointer)
    except (OSError, ValueError) as e:
        logger.debug(f"git log output stopped: {e}")
        error = e
    finally:
        results.close(error)


class HistoryLogScanner(GitStage):
    """Runs git log with LFS search arguments and parses its diffs."""

    def start(
        self,
        log_args: List[str],
        direction: LogDiffDirection = LogDiffDirection.ADDITIONS,
        include_paths: Optional[List[str]] = None,
        exclude_paths: Optional[List[str]] = None,
    ) -> Channel[WrappedPointer]:
        """
        Launch ``git log <log_args> <search args>`` and parse it on a thread.

        Raises:
            PipeStartError: If git cannot be launched
        """
        pipe = self._start_git("log", *log_args, *LOG_LFS_SEARCH_ARGS)
        pipe.close_stdin()

        pointers: Channel[WrappedPointer] = Channel(self.buffer_size, name="log-pointers")
        self.output = pointers
        self.thread = start_stage(
            "git-log",
            parse_log_output_to_pointers,
            pipe.stdout,
            direction,
            include_paths,
            exclude_paths,
            pointers,
        )
        return pointers

    def start_unpushed(self, remote: Optional[str] = None) -> Channel[WrappedPointer]:
        """Scan commits on local branches and tags that no remote has."""
        return self.start(unpushed_log_args(remote))


def unpushed_log_args(remote: Optional[str] = None) -> List[str]:
    """Ref selection for commits reachable locally but not from remotes."""
    args = [
        "--branches",
        "--tags",  # include all locally referenced commits
        "--not",
    ]
    if remote:
        args.append(f"--remotes={remote}")
    else:
        args.append("--remotes")  # exclude everything reachable from any remote
    return args

