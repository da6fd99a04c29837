"""
Pointer scanning service.

Entry points for finding LFS pointers in a repository:

- scan_tree(ref): every pointer file present in the tree at ref
- scan_unpushed(): pointers added by local commits that no remote has yet
- scan_log(...): pointers added or removed in any git log range
"""

import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

from ..config import ScannerConfig
from ..utils.git_runner import get_git_environment, start_command
from ..utils.performance import record_duration
from .log_scanner import HistoryLogScanner, LogDiffDirection
from .pipeline import GitStage, PipeStarter, ScanHandle, ScanResult
from .tree_scanner import BatchObjectReader, TreeBlobLister

logger = logging.getLogger(__name__)


class PointerScanner:
    """Finds LFS pointers in a repository's trees and history."""

    def __init__(
        self,
        repo_dir: Path,
        config: Optional[ScannerConfig] = None,
        pipe_starter: Optional[PipeStarter] = None,
    ):
        """Initialize the scanner.

        Args:
            repo_dir: Directory inside the git repository to scan
            config: Scanner settings (defaults when omitted)
            pipe_starter: Replacement for start_command, used by tests
        """
        self.repo_dir = Path(repo_dir)
        self.config = config or ScannerConfig()
        self.pipe_starter = pipe_starter or start_command

    def _git_env(self) -> Optional[Dict[str, str]]:
        if not self.config.safe_directory:
            return None
        return get_git_environment(self.repo_dir)

    def _stage_options(self) -> Dict[str, object]:
        return {
            "pipe_starter": self.pipe_starter,
            "git_binary": self.config.git_binary,
            "cwd": self.repo_dir,
            "env": self._git_env(),
            "buffer_size": self.config.channel_buffer_size,
        }

    def stream_tree(self, ref: str) -> ScanHandle:
        """
        Start a tree scan and return a handle streaming its pointers.

        Raises:
            PipeStartError: If git cannot be launched
        """
        options = self._stage_options()
        lister = TreeBlobLister(**options)  # type: ignore[arg-type]
        reader = BatchObjectReader(**options)  # type: ignore[arg-type]

        blobs = lister.start(ref)
        try:
            reader.start(blobs)
        except Exception:
            _abort([lister])
            raise
        return ScanHandle([lister, reader])

    def scan_tree(self, ref: str) -> ScanResult:
        """
        Find every pointer in the tree at ref.

        Unlike content-based scans, several paths with identical content are
        each reported.

        Raises:
            PipeStartError: If git cannot be launched
        """
        start = time.perf_counter()
        try:
            return self.stream_tree(ref).result()
        finally:
            record_duration("scan", start)

    def stream_log(
        self,
        log_args: List[str],
        direction: LogDiffDirection = LogDiffDirection.ADDITIONS,
        include_paths: Optional[List[str]] = None,
        exclude_paths: Optional[List[str]] = None,
    ) -> ScanHandle:
        """
        Start a log scan and return a handle streaming its pointers.

        Raises:
            PipeStartError: If git cannot be launched
        """
        scanner = HistoryLogScanner(**self._stage_options())  # type: ignore[arg-type]
        scanner.start(log_args, direction, include_paths, exclude_paths)
        return ScanHandle([scanner])

    def scan_log(
        self,
        log_args: List[str],
        direction: LogDiffDirection = LogDiffDirection.ADDITIONS,
        include_paths: Optional[List[str]] = None,
        exclude_paths: Optional[List[str]] = None,
    ) -> ScanResult:
        """
        Find pointers added (or removed) by the commits log_args selects.

        Path filters default to the configured include/exclude patterns.

        Raises:
            PipeStartError: If git cannot be launched
        """
        if include_paths is None:
            include_paths = self.config.include_paths
        if exclude_paths is None:
            exclude_paths = self.config.exclude_paths

        start = time.perf_counter()
        try:
            return self.stream_log(
                log_args, direction, include_paths, exclude_paths
            ).result()
        finally:
            record_duration("scan", start)

    def stream_unpushed(self) -> ScanHandle:
        """Start an unpushed-pointer scan and return its handle.

        Raises:
            PipeStartError: If git cannot be launched
        """
        scanner = HistoryLogScanner(**self._stage_options())  # type: ignore[arg-type]
        scanner.start_unpushed(self.config.remote)
        return ScanHandle([scanner])

    def scan_unpushed(self) -> ScanResult:
        """
        Find pointers added by local branches and tags but absent from remotes.

        Raises:
            PipeStartError: If git cannot be launched
        """
        start = time.perf_counter()
        try:
            return self.stream_unpushed().result()
        finally:
            record_duration("scan", start)


def _abort(stages: List[GitStage]) -> None:
    """Tear down stages already started when a later one fails to launch."""
    for stage in stages:
        stage.kill()
        if stage.output is not None:
            stage.output.drain()
        stage.finalize()
