"""
filearchive: write files and build nested tar.gz / zip archives incrementally.

Features:

- One facade (FileArchive) for writing and copying files; calls land on disk
  under a configurable root, or inside the innermost open archive.
- Nested archives: a child archive opened inside a parent is finalized into a
  temporary sibling and spliced into the parent as a single entry before the
  parent closes.
- Non-blocking entry writes on a per-archive worker; finalize returns a
  concurrent.futures.Future (or can be awaited with afinalize_archive).
- Optional event-bus logging and plugin-host wiring (on_plugin_load).
- A reader and CLI for listing archives, including nested ones.
"""

from .archive import FileArchive
from .errors import ArchiveClosedError, ArchiveWriterError, FileArchiveError, UnsupportedFormatError
from .eventbus import EventBus, PluginLoadEvent
from .options import FileArchiveOptions
from .reader import ArchiveReader
from .stack import ArchiveInstance, ArchiveStack, ArchiveState

__version__ = "0.1"

__all__ = [
    "FileArchive",
    "FileArchiveOptions",
    "ArchiveInstance",
    "ArchiveStack",
    "ArchiveState",
    "ArchiveReader",
    "EventBus",
    "PluginLoadEvent",
    "FileArchiveError",
    "UnsupportedFormatError",
    "ArchiveWriterError",
    "ArchiveClosedError",
]
