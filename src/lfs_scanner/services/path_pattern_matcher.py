"""
Path include/exclude filtering for scanned pointer paths.

Glob-style matching on repo-relative paths:
- Wildcard patterns (*, **, ?)
- Character sequences ([seq], [!seq])
- Directory prefixes ("assets" matches "assets/logo.png")
"""

import fnmatch
from functools import lru_cache
from pathlib import PurePosixPath
from typing import Iterable, List, Optional


@lru_cache(maxsize=1024)
def _normalize_path(path: str) -> str:
    """
    Normalize separators and resolve . and .. components.

    Examples:
        >>> _normalize_path("assets\\\\img\\\\a.png")
        'assets/img/a.png'
        >>> _normalize_path("assets/./img/../img/a.png")
        'assets/img/a.png'
    """
    if not path:
        return ""

    normalized = PurePosixPath(path.replace("\\", "/"))
    parts: List[str] = []
    for part in normalized.parts:
        if part == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            else:
                parts.append(part)
        elif part not in (".", "", "/"):
            parts.append(part)

    result = "/".join(parts)
    if str(normalized).startswith("/"):
        result = "/" + result
    return result


class PathPatternMatcher:
    """
    Matches repo-relative paths against glob patterns.

    Examples:
        >>> matcher = PathPatternMatcher()
        >>> matcher.matches_pattern("assets/textures/wood.png", "*.png")
        True
        >>> matcher.matches_pattern("assets/textures/wood.png", "assets")
        True
        >>> matcher.matches_any_pattern("models/car.fbx", ["*.png", "**/models/**"])
        True
    """

    def matches_pattern(self, path: str, pattern: str) -> bool:
        """
        Check if a path matches a glob pattern.

        Raises:
            TypeError: If pattern is None
        """
        if pattern is None:
            raise TypeError("Pattern cannot be None")

        normalized_pattern = _normalize_path(pattern.strip())
        if not normalized_pattern:
            return False

        normalized_path = _normalize_path(path).rstrip("/")

        if fnmatch.fnmatchcase(normalized_path, normalized_pattern):
            return True

        # A plain directory pattern matches everything beneath it
        if normalized_path.startswith(normalized_pattern.rstrip("/") + "/"):
            return True

        # Patterns without a separator match the file name at any depth
        if "/" not in normalized_pattern:
            basename = normalized_path.rsplit("/", 1)[-1]
            if fnmatch.fnmatchcase(basename, normalized_pattern):
                return True

        if "**" in normalized_pattern:
            return self._matches_double_star(normalized_path, normalized_pattern)

        # "*/dir/*" also matches "dir/file" at the top level
        if normalized_pattern.startswith("*/") and "/" in normalized_path:
            if fnmatch.fnmatchcase(normalized_path, normalized_pattern[2:]):
                return True

        return False

    def _matches_double_star(self, path: str, pattern: str) -> bool:
        """Match pattern pieces separated by ** in order, at any depth."""
        pieces = [p.strip("/") for p in pattern.split("**")]
        # Offsets index into the slash-padded path so pieces align on segments
        padded = "/" + path + "/"
        position = 0
        for i, piece in enumerate(pieces):
            if not piece:
                continue
            if i == 0:
                if not fnmatch.fnmatchcase(path, piece + "/*") and path != piece:
                    return False
                position = 1 + len(piece)
            elif i == len(pieces) - 1:
                tail = padded[position:].strip("/")
                if not (
                    fnmatch.fnmatchcase(tail, "*/" + piece)
                    or fnmatch.fnmatchcase(tail, piece)
                ):
                    return False
            else:
                found = padded.find("/" + piece + "/", max(position - 1, 0))
                if found < 0:
                    return False
                position = found + 1 + len(piece)
        return True

    def matches_any_pattern(self, path: str, patterns: Iterable[str]) -> bool:
        """Check if a path matches at least one of the given patterns."""
        for pattern in patterns:
            if pattern and self.matches_pattern(path, pattern):
                return True
        return False


_matcher = PathPatternMatcher()


def filename_passes_filter(
    filename: str,
    include_paths: Optional[List[str]],
    exclude_paths: Optional[List[str]],
) -> bool:
    """
    Decide whether a path is selected by include/exclude patterns.

    With no include patterns every path is included. A path matching any
    exclude pattern is rejected even when it is included.

    Examples:
        >>> filename_passes_filter("a/b.bin", None, None)
        True
        >>> filename_passes_filter("a/b.bin", ["a"], ["*.bin"])
        False
    """
    if include_paths and not _matcher.matches_any_pattern(filename, include_paths):
        return False
    if exclude_paths and _matcher.matches_any_pattern(filename, exclude_paths):
        return False
    return True
