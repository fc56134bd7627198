from __future__ import annotations

import enum
import functools
import os
from concurrent.futures import FIRST_EXCEPTION, Future, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .constants import SUPPORTED_FORMATS, archive_extension
from .errors import UnsupportedFormatError
from .pathutil import PathArg, norm_entry_name, resolve_path, temp_sibling
from .sink import ArchiveSink


class ArchiveState(enum.Enum):
    OPEN = "open"
    FINALIZING = "finalizing"
    CLOSED = "closed"
    SPLICED = "spliced"
    FAILED = "failed"


@dataclass
class ArchiveInstance:
    """One archive being built.

    ``file_path`` is the requested destination with the format extension
    appended; it doubles as the entry name when the archive is spliced into
    its parent. ``resolved_path`` is where the bytes actually go, a
    ``.temp-<n>`` sibling for children that attach to a parent.
    """

    sink: ArchiveSink
    file_path: str
    resolved_path: Path
    add_to_parent: bool = True
    pending_children: List[Future] = field(default_factory=list)
    finalizing: bool = field(default=False, repr=False)
    spliced: bool = field(default=False, repr=False)

    @property
    def stream_done(self) -> Future:
        return self.sink.stream_done

    @property
    def state(self) -> ArchiveState:
        done = self.stream_done
        if done.done():
            if done.exception() is not None:
                return ArchiveState.FAILED
            return ArchiveState.SPLICED if self.spliced else ArchiveState.CLOSED
        return ArchiveState.FINALIZING if self.finalizing else ArchiveState.OPEN


def _child_completion(child: ArchiveInstance) -> Future:
    """Future resolving to ``child`` once its file is closed."""
    completion: Future = Future()

    def _relay(done: Future) -> None:
        exc = done.exception()
        if exc is not None:
            completion.set_exception(exc)
        else:
            completion.set_result(child)

    child.stream_done.add_done_callback(_relay)
    return completion


def _wait_all(futures: Sequence[Future]) -> List[ArchiveInstance]:
    """Join on every future; the first failure fails the join."""
    if not futures:
        return []
    done, _ = wait(futures, return_when=FIRST_EXCEPTION)
    for fut in futures:
        if fut in done and fut.exception() is not None:
            raise fut.exception()
    return [fut.result() for fut in futures]


def _splice_children(children: Sequence[Future], sink: ArchiveSink) -> None:
    for child in _wait_all(children):
        sink.splice(child.resolved_path, norm_entry_name(child.file_path))
        child.spliced = True


class ArchiveStack:
    """LIFO stack of open archives.

    Finalizing the top archive hands it to its parent (the next one down) as a
    pending child when it asked to be attached. The parent's own finalize
    waits for every pending child to close, splices each one in as a single
    entry and only then closes itself. Each level only ever waits on its
    direct children, so nesting depth is not bounded by the call stack.
    """

    def __init__(self) -> None:
        self._stack: List[ArchiveInstance] = []
        self._counter = 0

    def __len__(self) -> int:
        return len(self._stack)

    def peek(self) -> Optional[ArchiveInstance]:
        return self._stack[-1] if self._stack else None

    def push(
        self,
        file_path: PathArg,
        compress_format: str,
        root: Optional[PathArg] = None,
        add_to_parent: bool = True,
    ) -> ArchiveInstance:
        if compress_format not in SUPPORTED_FORMATS:
            raise UnsupportedFormatError(compress_format)
        file_path = os.fspath(file_path) + archive_extension(compress_format)
        attach = bool(self._stack) and add_to_parent
        if attach:
            # raises before any file is opened
            norm_entry_name(file_path)
        resolved = resolve_path(root, file_path)
        # Children write to a temp sibling; the parent names them at splice time.
        if attach:
            resolved = temp_sibling(resolved, self._counter)
            self._counter += 1
        resolved.parent.mkdir(parents=True, exist_ok=True)
        sink = ArchiveSink(resolved, compress_format)
        instance = ArchiveInstance(
            sink=sink,
            file_path=file_path,
            resolved_path=resolved,
            add_to_parent=add_to_parent,
        )
        self._stack.append(instance)
        return instance

    def pop(self) -> Optional[ArchiveInstance]:
        return self._stack.pop() if self._stack else None

    def finalize_top(self) -> Optional[Future]:
        """
        Pop the top archive and queue its completion.

        Returns the popped archive's ``stream_done`` future, or None when
        nothing is open.
        """
        instance = self.pop()
        if instance is None:
            return None
        instance.finalizing = True
        parent = self.peek()
        if instance.add_to_parent and parent is not None:
            parent.pending_children.append(_child_completion(instance))
        children = list(instance.pending_children)
        return instance.sink.finalize(functools.partial(_splice_children, children))
