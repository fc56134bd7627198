from __future__ import annotations

import contextlib
import io
import os
import stat
import tarfile
import time
import zipfile
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Union

from .constants import COMPRESS_LEVEL, DEFAULT_FILE_MODE, FORMAT_TAR_GZ, FORMAT_ZIP, SUPPORTED_FORMATS
from .errors import ArchiveClosedError, ArchiveWriterError, UnsupportedFormatError


def _collect_files(base_dir: Path) -> List[Path]:
    """
    Collect all files under base_dir, sorted lexicographically
    by their relative path.
    """
    files: List[Path] = []
    for root, _, filenames in os.walk(base_dir):
        root_path = Path(root)
        for name in filenames:
            files.append(root_path / name)
    files.sort(key=lambda p: p.relative_to(base_dir).as_posix())
    return files


class ArchiveSink:
    """Archive writer bound to a single output file.

    All entry writes happen on one worker thread, in the order they were
    queued, so callers never block on compression or disk I/O. ``stream_done``
    resolves once the output file is closed and fails with
    ``ArchiveWriterError`` on the first I/O error. A failed sink is poisoned:
    queued work is dropped and new appends raise ``ArchiveClosedError``.
    """

    def __init__(self, out_path: Union[str, Path], compress_format: str):
        if compress_format not in SUPPORTED_FORMATS:
            raise UnsupportedFormatError(compress_format)
        self.out_path = str(out_path)
        self.compress_format = compress_format
        self.stream_done: Future = Future()
        self._failure: Optional[ArchiveWriterError] = None
        self._finalizing = False
        self.f: BinaryIO = open(self.out_path, "wb")
        try:
            self._archive = self._open_backend()
        except BaseException:
            self.f.close()
            raise
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="filearchive-sink")

    def _open_backend(self):
        if self.compress_format == FORMAT_TAR_GZ:
            return tarfile.open(fileobj=self.f, mode="w:gz", compresslevel=COMPRESS_LEVEL)
        return zipfile.ZipFile(self.f, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL)

    @property
    def failed(self) -> bool:
        return self._failure is not None

    # queueing

    def append_bytes(self, data: bytes, name: str) -> None:
        """Queue ``data`` as a file entry called ``name``."""
        self._submit(self._write_bytes, bytes(data), name)

    def append_file(self, fs_path: Union[str, Path], name: str) -> None:
        """Queue a filesystem file as a single entry called ``name``."""
        self._submit(self._write_file, os.fspath(fs_path), name)

    def append_directory(self, fs_path: Union[str, Path], name: str) -> None:
        """Queue every file below ``fs_path`` as ``name/<relative path>``."""
        self._submit(self._write_tree, Path(fs_path), name)

    def finalize(self, before_close: Optional[Callable[["ArchiveSink"], None]] = None) -> Future:
        """
        Queue the end of the archive and return ``stream_done``.

        ``before_close`` runs on the worker after every previously queued entry
        and before the archive trailer is written; it may append further
        entries through ``splice``.
        """
        if self._finalizing:
            raise ArchiveClosedError(self.out_path, "archive is already finalized")
        self._finalizing = True
        if self._failure is None:
            self._executor.submit(self._run, self._close, before_close)
        self._executor.shutdown(wait=False)
        return self.stream_done

    def splice(self, fs_path: Union[str, Path], name: str) -> None:
        """Append a finished archive file as entry ``name`` and delete it.

        Worker thread only (from a ``before_close`` callback).
        """
        self._write_file(os.fspath(fs_path), name)
        os.remove(fs_path)

    def _submit(self, fn, *args) -> None:
        if self._failure is not None:
            raise ArchiveClosedError(self.out_path, f"archive failed earlier ({self._failure})") from self._failure
        if self._finalizing:
            raise ArchiveClosedError(self.out_path, "archive is already finalized")
        self._executor.submit(self._run, fn, *args)

    # worker

    def _run(self, fn, *args) -> None:
        if self._failure is not None:
            return
        try:
            fn(*args)
        except Exception as exc:
            self._fail(exc)

    def _fail(self, exc: Exception) -> None:
        err = ArchiveWriterError(self.out_path, f"{type(exc).__name__}: {exc}")
        err.__cause__ = exc
        self._failure = err
        # stream_done carries the first error only
        with contextlib.suppress(OSError):
            self.f.close()
        if not self.stream_done.done():
            self.stream_done.set_exception(err)

    def _close(self, before_close: Optional[Callable[["ArchiveSink"], None]]) -> None:
        if before_close is not None:
            before_close(self)
        self._archive.close()
        self.f.close()
        self.stream_done.set_result(None)

    def _write_bytes(self, data: bytes, name: str) -> None:
        if self.compress_format == FORMAT_ZIP:
            info = zipfile.ZipInfo(name, date_time=time.localtime()[:6])
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = (stat.S_IFREG | DEFAULT_FILE_MODE) << 16
            self._archive.writestr(info, data, compresslevel=COMPRESS_LEVEL)
            return
        info = tarfile.TarInfo(name)
        info.size = len(data)
        info.mtime = int(time.time())
        info.mode = DEFAULT_FILE_MODE
        self._archive.addfile(info, io.BytesIO(data))

    def _write_file(self, fs_path: str, name: str) -> None:
        if not os.path.isfile(fs_path):
            raise FileNotFoundError(f"No such file: '{fs_path}'")
        if self.compress_format == FORMAT_ZIP:
            self._archive.write(fs_path, arcname=name)
        else:
            self._archive.add(fs_path, arcname=name, recursive=False)

    def _write_tree(self, base_dir: Path, name: str) -> None:
        if not base_dir.is_dir():
            raise NotADirectoryError(f"Not a directory: '{base_dir}'")
        for full in _collect_files(base_dir):
            rel = full.relative_to(base_dir).as_posix()
            self._write_file(str(full), f"{name}/{rel}" if name else rel)
