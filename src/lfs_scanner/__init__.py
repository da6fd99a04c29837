"""
LFS Scanner - locate Git LFS pointer files in git trees and history.

Finds every pointer present at a revision and every pointer introduced by
local commits that have not been pushed to any remote, without fetching the
large content the pointers stand in for.
"""

__version__ = "1.2.0"
__author__ = "Seba Battig"
