"""In-memory process pipes and git output builders for scanner tests."""

import io
from typing import Dict, List, Optional

from lfs_scanner.pointer import Pointer

SHA_A = "a" * 40
SHA_B = "b" * 40
SHA_C = "c" * 40
OID_1 = "1" * 64
OID_2 = "2" * 64


class _ClosableBytesIO(io.BytesIO):
    """BytesIO that keeps its contents readable after close()."""

    captured = b""

    def close(self) -> None:
        if not self.closed:
            self.captured = self.getvalue()
        super().close()


class FakePipe:
    """In-memory stand-in for ProcessPipe.

    stdout is pre-loaded with everything the fake process will print; writes
    to stdin are captured for assertions.
    """

    def __init__(self, command: List[str], output: bytes = b"", returncode: int = 0):
        self.command = command
        self.stdin = _ClosableBytesIO()
        self.stdout = io.BufferedReader(io.BytesIO(output))
        self.returncode = returncode
        self.killed = False

    @property
    def written(self) -> bytes:
        if self.stdin.closed:
            return self.stdin.captured
        return self.stdin.getvalue()

    def close_stdin(self) -> None:
        self.stdin.close()

    def close(self) -> int:
        self.close_stdin()
        self.stdout.close()
        return self.returncode

    def kill(self) -> None:
        self.killed = True


class FakePipeStarter:
    """Records start requests and hands out FakePipes keyed by git subcommand."""

    def __init__(
        self, outputs: Dict[str, bytes], returncodes: Optional[Dict[str, int]] = None
    ):
        self.outputs = outputs
        self.returncodes = returncodes or {}
        self.calls: List[Dict[str, object]] = []
        self.pipes: Dict[str, FakePipe] = {}

    def __call__(self, name: str, *args: str, cwd=None, env=None) -> FakePipe:
        subcommand = args[0]
        self.calls.append({"name": name, "args": list(args), "cwd": cwd, "env": env})
        pipe = FakePipe(
            [name, *args],
            self.outputs.get(subcommand, b""),
            self.returncodes.get(subcommand, 0),
        )
        self.pipes[subcommand] = pipe
        return pipe


def pointer_text(oid: str = OID_1, size: int = 12345) -> str:
    return Pointer(oid=oid, size=size).encode()


def batch_response(sha1: str, content: bytes, object_type: str = "blob") -> bytes:
    """One cat-file --batch response: header, content, trailing newline."""
    return f"{sha1} {object_type} {len(content)}\n".encode() + content + b"\n"


def ls_tree_line(sha1: str, size: int, path: str, mode: str = "100644") -> bytes:
    return f"{mode} blob {sha1} {size:>7}\t{path}\n".encode()
