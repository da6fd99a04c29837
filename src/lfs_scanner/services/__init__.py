"""Scanning services for LFS pointers in git trees and history."""

from .log_scanner import LogDiffDirection, LogDiffParser
from .pipeline import ScanHandle, ScanResult
from .pointer_scanner import PointerScanner
from .tree_scanner import TreeBlob

__all__ = [
    "LogDiffDirection",
    "LogDiffParser",
    "PointerScanner",
    "ScanHandle",
    "ScanResult",
    "TreeBlob",
]
