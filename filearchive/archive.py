"""
FileArchive - write and copy files to disk or into nested archives.

While an archive is open every ``write`` and ``copy`` lands in the innermost
open archive as an entry; with nothing open they go straight to disk under the
configured root. Archives nest: a child archive opened inside a parent is
written to a temporary sibling file and, once both are finalized, ends up as a
single ``<name>.<format>`` entry of the parent.

Typical use:

    fa = FileArchive(relative_path="dist")
    fa.create_archive("bundle")
    fa.write("hello", "hello.txt")
    fa.create_archive("docs")
    fa.copy("README.md", "README.md")
    fa.finalize_archive()
    fa.finalize_archive().result()   # dist/bundle.tar.gz contains docs.tar.gz
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
from collections.abc import Mapping
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from .constants import DEFAULT_EVENT_PREPEND
from .eventbus import PluginLoadEvent
from .options import FileArchiveOptions, canonical_options
from .pathutil import PathArg, check_path_arg, is_within, norm_entry_name, resolve_path
from .stack import ArchiveInstance, ArchiveStack

_logger = logging.getLogger(__name__)

# (event suffix, method) pairs registered by on_plugin_load
_EVENT_BINDINGS = (
    ("utils:file:archive:create", "create_archive"),
    ("utils:file:archive:finalize", "finalize_archive"),
    ("utils:file:archive:copy", "copy"),
    ("utils:file:archive:options:get", "get_options"),
    ("utils:file:archive:options:set", "set_options"),
    ("utils:file:archive:path:relative:empty", "empty_root"),
    ("utils:file:archive:write", "write"),
)


def _check_bool(name: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise TypeError(f"'{name}' is not a 'bool'.")


def _check_str(name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise TypeError(f"'{name}' is not a 'str'.")


def _resolved_future() -> Future:
    fut: Future = Future()
    fut.set_result(None)
    return fut


class FileArchive:
    """Routes writes and copies to the filesystem or to the open archive.

    Args:
        eventbus: Optional log sink; an object with ``trigger(event, message)``
            (such as ``EventBus``) or a plain callable taking the same
            arguments. Without one, log messages only reach the
            ``filearchive.archive`` logger.
        **options: Initial ``FileArchiveOptions`` values.

    Not safe for concurrent callers: operations must be issued from one
    thread, one after another.
    """

    def __init__(self, eventbus: Any = None, **options: Any):
        if eventbus is not None and not (callable(getattr(eventbus, "trigger", None)) or callable(eventbus)):
            raise TypeError("'eventbus' is neither callable nor provides 'trigger'.")
        self._eventbus = eventbus
        self._options = FileArchiveOptions()
        self._stack = ArchiveStack()
        self.set_options(options)

    # -------- archives --------

    def create_archive(
        self,
        file_path: PathArg,
        *,
        add_to_parent: bool = True,
        log_prepend: str = "",
        silent: bool = False,
    ) -> ArchiveInstance:
        """Open a compressed archive; later writes and copies go into it.

        Args:
            file_path: Destination relative to the root; the format extension
                is appended.
            add_to_parent: When another archive is open, splice this one into
                it on finalize instead of leaving a standalone file.
            log_prepend: Prefix for the log message.
            silent: Suppress the log message.

        Every call must be matched by ``finalize_archive``.
        """
        check_path_arg("file_path", file_path)
        _check_bool("add_to_parent", add_to_parent)
        _check_str("log_prepend", log_prepend)
        _check_bool("silent", silent)

        instance = self._stack.push(
            file_path,
            self._options.compress_format,
            root=self._options.relative_path,
            add_to_parent=add_to_parent,
        )
        self._log(f"creating archive: {instance.file_path}", log_prepend, silent)
        return instance

    def finalize_archive(self, *, log_prepend: str = "", silent: bool = False) -> Future:
        """Finalize the innermost open archive.

        Returns a future that resolves once the archive file is closed, after
        every attached child has been spliced in; it fails with
        ``ArchiveWriterError`` if writing failed. With nothing open this is a
        logged no-op returning an already resolved future.
        """
        _check_str("log_prepend", log_prepend)
        _check_bool("silent", silent)

        instance = self._stack.peek()
        if instance is None:
            self._log("No active archive to finalize.", log_prepend, silent)
            return _resolved_future()

        self._log(f"finalizing archive: {instance.file_path}", log_prepend, silent)
        return self._stack.finalize_top()

    async def afinalize_archive(self, *, log_prepend: str = "", silent: bool = False) -> None:
        """``finalize_archive`` for asyncio callers."""
        await asyncio.wrap_future(self.finalize_archive(log_prepend=log_prepend, silent=silent))

    @contextlib.contextmanager
    def archive(
        self,
        file_path: PathArg,
        *,
        add_to_parent: bool = True,
        log_prepend: str = "",
        silent: bool = False,
    ) -> Iterator[ArchiveInstance]:
        """Create an archive for the duration of a ``with`` block.

        On a clean exit the archive is finalized and waited for; if the block
        raises, it is finalized without waiting and the error propagates.
        """
        instance = self.create_archive(
            file_path, add_to_parent=add_to_parent, log_prepend=log_prepend, silent=silent
        )
        try:
            yield instance
        except BaseException:
            if self._stack.peek() is instance:
                self.finalize_archive(log_prepend=log_prepend, silent=silent)
            raise
        if self._stack.peek() is not instance:
            raise RuntimeError(f"'{instance.file_path}' is not the innermost open archive")
        self.finalize_archive(log_prepend=log_prepend, silent=silent).result()

    def current_archive(self) -> Optional[ArchiveInstance]:
        return self._stack.peek()

    @property
    def depth(self) -> int:
        """Number of open archives."""
        return len(self._stack)

    # -------- files --------

    def write(
        self,
        data: Any,
        file_path: PathArg,
        *,
        encoding: str = "utf-8",
        log_prepend: str = "",
        silent: bool = False,
    ) -> None:
        """Write ``data`` to ``file_path`` in the open archive or under the root.

        Args:
            data: Text (encoded with ``encoding``) or bytes-like content.
            file_path: Entry name, or a path relative to the root.
            encoding: Text encoding.
            log_prepend: Prefix for the log message.
            silent: Suppress the log message.

        Raises:
            TypeError: If ``data`` is None or of an unsupported type.
            ValueError: If ``file_path`` normalizes to no entry name inside
                an archive, or contains '..'.
            ArchiveClosedError: If the open archive's writer already failed.
                Failures happen on the writer thread, so a write issued
                shortly after one may still be accepted and dropped.
        """
        check_path_arg("file_path", file_path)
        _check_str("encoding", encoding)
        _check_str("log_prepend", log_prepend)
        _check_bool("silent", silent)
        if data is None:
            raise TypeError("'data' is missing.")
        if isinstance(data, str):
            payload = data.encode(encoding)
        elif isinstance(data, (bytes, bytearray, memoryview)):
            payload = bytes(data)
        else:
            raise TypeError("'data' is not 'str' or bytes-like.")

        instance = self._stack.peek()
        name = None
        if instance is not None:
            name = norm_entry_name(file_path)
            if not name:
                raise ValueError("'file_path' does not name an entry.")

        self._log(f"output: {os.fspath(file_path)}", log_prepend, silent)

        if instance is not None:
            instance.sink.append_bytes(payload, name)
            return

        dest = self._resolve(file_path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(payload)

    def copy(
        self,
        src_path: PathArg,
        dest_path: PathArg,
        *,
        log_prepend: str = "",
        silent: bool = False,
    ) -> None:
        """Copy a file or directory tree into the open archive or under the root.

        Inside an archive a directory becomes one entry per file, named
        ``dest_path/<relative path>``; a missing source fails the archive's
        finalize future. Outside an archive the copy happens immediately and
        a missing source raises ``FileNotFoundError``.

        Once the open archive's writer has failed, further copies raise
        ``ArchiveClosedError``. The failure is detected on the writer thread,
        so a copy queued right after it may be accepted and then dropped.
        """
        check_path_arg("src_path", src_path)
        check_path_arg("dest_path", dest_path)
        _check_str("log_prepend", log_prepend)
        _check_bool("silent", silent)

        is_dir = os.path.isdir(src_path)
        instance = self._stack.peek()
        name = None
        if instance is not None:
            name = norm_entry_name(dest_path)
            if not name and not is_dir:
                raise ValueError("'dest_path' does not name an entry.")

        self._log(f"copied: {os.fspath(dest_path)}", log_prepend, silent)

        if instance is not None:
            if is_dir:
                instance.sink.append_directory(src_path, name)
            else:
                instance.sink.append_file(src_path, name)
            return

        dest = self._resolve(dest_path)
        if is_dir:
            shutil.copytree(src_path, dest, dirs_exist_ok=True)
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src_path, dest)

    def empty_root(self, *, log_prepend: str = "", silent: bool = False) -> bool:
        """Delete everything inside the configured root.

        Refuses (logs and returns False) when no root is set or when the
        current working directory is the root or lies inside it.
        """
        _check_str("log_prepend", log_prepend)
        _check_bool("silent", silent)

        root = self._options.relative_path
        if not root:
            self._log("FileArchive.empty_root: no relative path to empty.", log_prepend, silent)
            return False

        resolved = Path(root).resolve()
        if is_within(os.getcwd(), resolved):
            self._log(
                "FileArchive.empty_root: aborting as current working directory will be deleted.",
                log_prepend,
                silent,
            )
            return False

        self._log(f"emptying: {root}", log_prepend, silent)
        resolved.mkdir(parents=True, exist_ok=True)
        for child in resolved.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        return True

    # -------- options --------

    def get_options(self) -> Dict[str, Any]:
        """Return a copy of the current options."""
        return self._options.to_dict()

    def set_options(self, options: Optional[Mapping[str, Any]] = None) -> None:
        """Merge ``options`` into the current options (see FileArchiveOptions.merge)."""
        self._options.merge({} if options is None else options)

    # -------- host wiring --------

    def on_plugin_load(self, ev: PluginLoadEvent) -> None:
        """Bind every operation to ``ev.eventbus``.

        ``ev.plugin_options`` are applied with ``set_options``; its optional
        ``event_prepend`` key replaces the default ``filearchive`` prefix of
        the event names.
        """
        eventbus = ev.eventbus
        self._eventbus = eventbus

        event_prepend = DEFAULT_EVENT_PREPEND
        options = ev.plugin_options
        if isinstance(options, Mapping):
            options = canonical_options(options)
            self.set_options(options)
            if isinstance(options.get("event_prepend"), str):
                event_prepend = options["event_prepend"]

        for suffix, method in _EVENT_BINDINGS:
            eventbus.on(f"{event_prepend}:{suffix}", getattr(self, method))

    # internals

    def _resolve(self, p: PathArg) -> Path:
        return resolve_path(self._options.relative_path, p)

    def _log(self, message: str, log_prepend: str, silent: bool) -> None:
        if silent:
            return
        message = f"{log_prepend}{message}"
        _logger.debug(message)
        if self._eventbus is None:
            return
        trigger = getattr(self._eventbus, "trigger", None)
        if callable(trigger):
            trigger(self._options.log_event, message)
        else:
            self._eventbus(self._options.log_event, message)
