"""
LocalNotes - a local, single-user document store for a notes application.
This package keeps a JSON metadata index, plain-text note bodies, derived tags
and wiki-links, a bounded edit history and a small operator search language,
all on the local filesystem.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("localnotes")
except PackageNotFoundError:
    __version__ = "0.3.0"
