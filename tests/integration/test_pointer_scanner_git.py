"""End-to-end scans against real git repositories."""

import threading

import pytest

from lfs_scanner.config import ScannerConfig
from lfs_scanner.exceptions import GitCommandError
from lfs_scanner.services.log_scanner import LogDiffDirection
from lfs_scanner.services.pointer_scanner import PointerScanner
from tests.helpers import OID_1, OID_2, pointer_text

pytestmark = pytest.mark.integration


def _commit(git, repo, files, message):
    for name, content in files.items():
        path = repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    git(repo, "add", *files)
    git(repo, "commit", "-q", "-m", message)


class TestTreeScan:
    """Scan committed trees through ls-tree and cat-file."""

    def test_finds_pointers_at_every_path(self, git_repo, git):
        _commit(
            git,
            git_repo,
            {
                "assets/logo.png": pointer_text(OID_1, 2048),
                "copy/logo.png": pointer_text(OID_1, 2048),
                "video.mp4": pointer_text(OID_2, 99999),
                "README.md": "# Not a pointer\n",
                "big.txt": "x" * 4096,
            },
            "add files",
        )

        result = PointerScanner(git_repo).scan_tree("HEAD")

        assert result.complete
        found = {p.name: p for p in result}
        assert set(found) == {"assets/logo.png", "copy/logo.png", "video.mp4"}
        assert found["assets/logo.png"].oid == OID_1
        assert found["assets/logo.png"].sha1 == found["copy/logo.png"].sha1
        assert found["video.mp4"].pointer.size == 99999

    def test_unknown_ref_is_reported_incomplete(self, git_repo, git):
        _commit(git, git_repo, {"a.bin": pointer_text()}, "initial")

        result = PointerScanner(git_repo).scan_tree("no-such-ref")

        assert not result.complete
        assert list(result) == []
        assert any(isinstance(e, GitCommandError) for e in result.errors)

    def test_stream_tree_can_be_cancelled(self, git_repo, git):
        files = {f"f{i}.bin": pointer_text(OID_1, i) for i in range(20)}
        _commit(git, git_repo, files, "many pointers")

        handle = PointerScanner(git_repo, ScannerConfig(channel_buffer_size=1)).stream_tree("HEAD")
        handle.cancel()
        result = handle.result()

        assert not result.complete
        assert len(result) <= 20

    def test_cancel_after_first_pointer_releases_git(self, git_repo, git):
        files = {f"f{i:03d}.bin": pointer_text(OID_1, i) for i in range(300)}
        _commit(git, git_repo, files, "many pointers")

        handle = PointerScanner(git_repo, ScannerConfig(channel_buffer_size=1)).stream_tree("HEAD")
        stream = iter(handle)
        next(stream)
        handle.cancel()
        result = handle.result()

        assert not result.complete
        assert len(result) < 300
        alive = [t.name for t in threading.enumerate() if t.name in ("ls-tree", "cat-file")]
        assert alive == []

    def test_context_manager_releases_git_on_break(self, git_repo, git):
        files = {f"f{i:03d}.bin": pointer_text(OID_1, i) for i in range(300)}
        _commit(git, git_repo, files, "many pointers")

        scanner = PointerScanner(git_repo, ScannerConfig(channel_buffer_size=1))
        with scanner.stream_tree("HEAD") as handle:
            for _ in handle:
                break

        assert not any(stage.pipe.process.poll() is None for stage in handle._stages)
        assert not any(stage.thread.is_alive() for stage in handle._stages)


class TestHistoryScan:
    """Scan history through git log diffs."""

    def test_unpushed_reports_only_local_commits(self, git_repo, git, tmp_path):
        remote = tmp_path / "remote.git"
        git(tmp_path, "init", "-q", "--bare", str(remote))
        git(git_repo, "remote", "add", "origin", str(remote))

        _commit(git, git_repo, {"pushed.bin": pointer_text(OID_1, 10)}, "pushed")
        git(git_repo, "push", "-q", "origin", "HEAD:refs/heads/main")
        git(git_repo, "fetch", "-q", "origin")
        _commit(git, git_repo, {"local.bin": pointer_text(OID_2, 20)}, "local")

        result = PointerScanner(git_repo).scan_unpushed()

        assert result.complete
        assert [(p.name, p.oid) for p in result] == [("local.bin", OID_2)]

    def test_log_deletions(self, git_repo, git):
        _commit(git, git_repo, {"gone.bin": pointer_text(OID_1, 10)}, "add")
        git(git_repo, "rm", "-q", "gone.bin")
        git(git_repo, "commit", "-q", "-m", "remove")

        result = PointerScanner(git_repo).scan_log(
            ["HEAD~1..HEAD"], LogDiffDirection.DELETIONS
        )

        assert result.complete
        assert [(p.name, p.oid) for p in result] == [("gone.bin", OID_1)]

    def test_log_respects_exclude_filter(self, git_repo, git):
        _commit(
            git,
            git_repo,
            {
                "keep/a.bin": pointer_text(OID_1, 1),
                "vendor/b.bin": pointer_text(OID_2, 2),
            },
            "add",
        )

        result = PointerScanner(git_repo).scan_log(
            ["HEAD"], exclude_paths=["vendor"]
        )

        assert [p.name for p in result] == ["keep/a.bin"]
