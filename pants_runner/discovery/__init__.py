"""pants-runner discovery module.

Finds the build file that owns a source path and caches the targets it
declares.

Key classes:
    BuildFileLocator  - Upward search for the nearest build file
    BuildFileLocation - Directory + mtime of a located build file
    TargetCache       - mtime-checked on-disk target lists
"""

from .cache import TargetCache, cache_key, parse_targets
from .locator import BuildFileLocation, BuildFileLocator

__all__ = [
    "BuildFileLocation",
    "BuildFileLocator",
    "TargetCache",
    "cache_key",
    "parse_targets",
]
