"""
Tree scanning: find every LFS pointer present in a revision's tree.

Two stages connected by a bounded channel:

1. TreeBlobLister runs ``git ls-tree -r -l --full-tree <ref>`` and emits
   every blob small enough to be a pointer.
2. BatchObjectReader feeds those blob ids to a single long-lived
   ``git cat-file --batch`` process and decodes each body as a pointer.

Files sharing identical content are all reported, one result per path.
"""

import logging
import re
from dataclasses import dataclass
from typing import IO, Optional

from ..exceptions import (
    MalformedBatchHeaderError,
    PointerDecodeError,
    ShortReadError,
    UnexpectedEndOfStreamError,
)
from ..pointer import BLOB_SIZE_CUTOFF, WrappedPointer, decode_pointer
from ..utils.git_runner import ProcessPipe
from .pipeline import Channel, GitStage, start_stage

logger = logging.getLogger(__name__)

LS_TREE_BLOB_PATTERN = re.compile(r"^\d+\s+blob\s+([0-9a-zA-Z]{40})\s+(\d+)\s+(.*)$")


@dataclass(frozen=True)
class TreeBlob:
    """A candidate blob from ls-tree: its id and repo-relative path."""

    sha1: str
    filename: str


def parse_ls_tree_line(line: str) -> Optional[TreeBlob]:
    """Turn one ``ls-tree -l`` line into a TreeBlob candidate.

    Returns None for subtrees, submodules, unparsable lines and blobs too
    large to be pointers.
    """
    match = LS_TREE_BLOB_PATTERN.match(line.strip())
    if match is None:
        return None
    try:
        size = int(match.group(2))
    except ValueError:
        return None
    if size >= BLOB_SIZE_CUTOFF:
        return None
    return TreeBlob(sha1=match.group(1), filename=match.group(3))


class TreeBlobLister(GitStage):
    """Lists pointer-sized blobs reachable from a revision's tree."""

    def start(self, ref: str) -> Channel[TreeBlob]:
        """
        Launch ls-tree for ref and stream candidates on a channel.

        Raises:
            PipeStartError: If git cannot be launched
        """
        pipe = self._start_git(
            "ls-tree",
            "-r",  # recurse
            "-l",  # report object size
            "--full-tree",  # start at the root regardless of the working subdir
            ref,
        )
        pipe.close_stdin()

        blobs: Channel[TreeBlob] = Channel(self.buffer_size, name="tree-blobs")
        self.output = blobs
        self.thread = start_stage("ls-tree", self._run, pipe.stdout, blobs)
        return blobs

    def _run(self, stdout: IO[bytes], blobs: Channel[TreeBlob]) -> None:
        error: Optional[BaseException] = None
        try:
            for raw in stdout:
                line = raw.decode("utf-8", errors="surrogateescape")
                blob = parse_ls_tree_line(line)
                if blob is not None:
                    blobs.put(blob)
        except (OSError, ValueError) as e:
            logger.debug(f"ls-tree output stopped: {e}")
            error = e
        finally:
            blobs.close(error)


class BatchObjectReader(GitStage):
    """Reads candidate blobs through ``git cat-file --batch`` and decodes pointers."""

    def start(self, blobs: Channel[TreeBlob]) -> Channel[WrappedPointer]:
        """
        Launch cat-file and start decoding the candidates from blobs.

        Raises:
            PipeStartError: If git cannot be launched
        """
        pipe = self._start_git("cat-file", "--batch")
        pointers: Channel[WrappedPointer] = Channel(self.buffer_size, name="tree-pointers")
        self.output = pointers
        self.thread = start_stage("cat-file", self._run, pipe, blobs, pointers)
        return pointers

    def _run(
        self,
        pipe: ProcessPipe,
        blobs: Channel[TreeBlob],
        pointers: Channel[WrappedPointer],
    ) -> None:
        error: Optional[BaseException] = None
        try:
            for blob in blobs:
                wrapped = self.read_pointer(pipe, blob)
                if wrapped is not None:
                    pointers.put(wrapped)
        except (OSError, ValueError) as e:
            logger.debug(f"cat-file --batch stopped: {e}")
            error = e
        finally:
            pointers.close(error)
            pipe.close_stdin()

        if error is not None:
            # Let the lister run to the end so its process can exit
            blobs.drain()

    @staticmethod
    def read_pointer(pipe: ProcessPipe, blob: TreeBlob) -> Optional[WrappedPointer]:
        """
        Request one object and decode it.

        Returns:
            The wrapped pointer, or None when the blob is not a pointer

        Raises:
            OSError: On broken pipe or unexpected end of stream
            MalformedBatchHeaderError: On a header without a numeric size
        """
        pipe.stdin.write(blob.sha1.encode("ascii") + b"\n")
        pipe.stdin.flush()

        # <sha1> <type> <size>
        header = pipe.stdout.readline()
        if not header:
            raise UnexpectedEndOfStreamError(f"cat-file closed before {blob.sha1}")
        fields = header.split()
        if len(fields) < 3:
            raise MalformedBatchHeaderError(header)
        try:
            size = int(fields[2])
        except ValueError as e:
            raise MalformedBatchHeaderError(header, "size is not a number") from e

        content = _read_exactly(pipe.stdout, size)

        wrapped = None
        try:
            pointer = decode_pointer(content)
        except PointerDecodeError:
            pass  # small blob that is not a pointer
        else:
            wrapped = WrappedPointer(
                name=blob.filename,
                size=pointer.size,
                pointer=pointer,
                sha1=fields[0].decode("ascii", errors="replace"),
            )

        # Newline cat-file appends after every object
        if not pipe.stdout.readline():
            raise UnexpectedEndOfStreamError(f"cat-file closed after {blob.sha1}")

        return wrapped


def _read_exactly(stream: IO[bytes], size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            raise ShortReadError(size, size - remaining)
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
