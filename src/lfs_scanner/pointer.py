"""
Git LFS pointer model and text codec.

A pointer file is a small key/value text body standing in for large content:

    version https://git-lfs.github.com/spec/v1
    ext-0-foo sha256:<hex>
    oid sha256:<hex>
    size 12345
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from .exceptions import PointerDecodeError

# Pointer bodies are always smaller than this; larger blobs are never pointers
BLOB_SIZE_CUTOFF = 1024

LATEST_SPEC_URL = "https://git-lfs.github.com/spec/v1"
ALPHA_SPEC_URL = "https://hawser.github.com/spec/v1"
SUPPORTED_SPEC_URLS = (LATEST_SPEC_URL, ALPHA_SPEC_URL)

DEFAULT_OID_TYPE = "sha256"

_OID_PATTERNS = {"sha256": re.compile(r"^[0-9a-f]{64}$")}
_SIZE_PATTERN = re.compile(r"[0-9]+")
_EXTENSION_KEY_PATTERN = re.compile(r"^ext-([0-9])-([a-z0-9]+)$")


@dataclass(frozen=True)
class PointerExtension:
    """One ext-<priority>-<name> entry of a pointer."""

    name: str
    priority: int
    oid: str
    oid_type: str = DEFAULT_OID_TYPE


@dataclass(frozen=True)
class Pointer:
    """Decoded LFS pointer."""

    oid: str
    size: int
    oid_type: str = DEFAULT_OID_TYPE
    extensions: Tuple[PointerExtension, ...] = field(default_factory=tuple)

    def encode(self) -> str:
        """Render the canonical pointer text."""
        lines = [f"version {LATEST_SPEC_URL}"]
        for ext in sorted(self.extensions, key=lambda e: e.priority):
            lines.append(f"ext-{ext.priority}-{ext.name} {ext.oid_type}:{ext.oid}")
        lines.append(f"oid {self.oid_type}:{self.oid}")
        lines.append(f"size {self.size}")
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class WrappedPointer:
    """A pointer found at one location (a tree path or a commit-introduced path).

    sha1 is the blob id for tree scans and None for log scans.
    """

    name: str
    size: int
    pointer: Pointer
    sha1: Optional[str] = None

    @property
    def oid(self) -> str:
        return self.pointer.oid

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "sha1": self.sha1,
            "oid": self.pointer.oid,
            "oid_type": self.pointer.oid_type,
            "size": self.size,
            "extensions": [
                {
                    "name": ext.name,
                    "priority": ext.priority,
                    "oid": ext.oid,
                    "oid_type": ext.oid_type,
                }
                for ext in self.pointer.extensions
            ],
        }


def decode_pointer(data: Union[bytes, str]) -> Pointer:
    """
    Decode pointer text into a Pointer.

    Args:
        data: Raw pointer body as bytes or text

    Returns:
        The decoded Pointer

    Raises:
        PointerDecodeError: If data is not a valid pointer
    """
    if isinstance(data, bytes):
        if len(data) >= BLOB_SIZE_CUTOFF:
            raise PointerDecodeError(f"Pointer data too large: {len(data)} bytes")
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PointerDecodeError(f"Pointer data is not UTF-8: {e}") from e
    else:
        text = data
        if len(text.encode("utf-8")) >= BLOB_SIZE_CUTOFF:
            raise PointerDecodeError(f"Pointer data too large: {len(text)} chars")

    values = _parse_key_values(text)

    version = values.pop("version", None)
    if version is None:
        raise PointerDecodeError("Missing version line")
    if version not in SUPPORTED_SPEC_URLS:
        raise PointerDecodeError(f"Unsupported pointer version: {version}")

    raw_oid = values.pop("oid", None)
    if raw_oid is None:
        raise PointerDecodeError("Missing oid line")
    oid_type, oid = _parse_oid(raw_oid)

    raw_size = values.pop("size", None)
    if raw_size is None:
        raise PointerDecodeError("Missing size line")
    # ASCII digits only, no sign or underscores
    if not _SIZE_PATTERN.fullmatch(raw_size):
        raise PointerDecodeError(f"Invalid size: {raw_size!r}")
    size = int(raw_size)

    extensions = []
    seen_priorities = set()
    for key, value in values.items():
        match = _EXTENSION_KEY_PATTERN.match(key)
        if match is None:
            continue  # unknown keys are tolerated
        priority = int(match.group(1))
        if priority in seen_priorities:
            raise PointerDecodeError(f"Duplicate extension priority: {priority}")
        seen_priorities.add(priority)
        ext_type, ext_oid = _parse_oid(value)
        extensions.append(
            PointerExtension(
                name=match.group(2), priority=priority, oid=ext_oid, oid_type=ext_type
            )
        )

    extensions.sort(key=lambda e: e.priority)
    return Pointer(oid=oid, size=size, oid_type=oid_type, extensions=tuple(extensions))


def _parse_key_values(text: str) -> Dict[str, str]:
    values: Dict[str, str] = {}
    first_key = None
    for line in text.strip().splitlines():
        line = line.rstrip("\r")
        if not line:
            continue
        key, sep, value = line.partition(" ")
        if not sep or not value:
            raise PointerDecodeError(f"Malformed pointer line: {line!r}")
        if key in values:
            raise PointerDecodeError(f"Duplicate key: {key}")
        if first_key is None:
            first_key = key
        values[key] = value

    if first_key is not None and first_key != "version":
        raise PointerDecodeError(f"Pointer must start with version, got {first_key}")
    return values


def _parse_oid(value: str) -> Tuple[str, str]:
    oid_type, sep, oid = value.partition(":")
    if not sep:
        raise PointerDecodeError(f"Oid without type: {value!r}")
    pattern = _OID_PATTERNS.get(oid_type)
    if pattern is None:
        raise PointerDecodeError(f"Unsupported oid type: {oid_type}")
    if not pattern.match(oid):
        raise PointerDecodeError(f"Invalid {oid_type} oid: {oid!r}")
    return oid_type, oid
