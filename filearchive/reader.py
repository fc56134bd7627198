from __future__ import annotations

import io
import tarfile
import zipfile
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from .constants import FORMAT_TAR_GZ, FORMAT_ZIP, is_archive_name
from .errors import UnsupportedFormatError


def _sniff_format(fh: BinaryIO) -> str:
    pos = fh.tell()
    head = fh.read(4)
    fh.seek(pos)
    if head[:2] == b"\x1f\x8b":
        return FORMAT_TAR_GZ
    if head == b"PK\x03\x04" or head == b"PK\x05\x06":
        return FORMAT_ZIP
    raise UnsupportedFormatError(repr(head))


class ArchiveReader:
    """Read entries of a finished tar.gz or zip archive.

    The format is detected from the file content, not the name. Archives
    nested as entries can be opened with ``open_nested`` or visited with
    ``walk``.
    """

    def __init__(self, source: Union[str, BinaryIO]):
        self.source = source
        self._fh: Optional[BinaryIO] = None
        self._owns_fh = False
        self._tar: Optional[tarfile.TarFile] = None
        self._zip: Optional[zipfile.ZipFile] = None
        self.compress_format: Optional[str] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self._fh is not None:
            return
        if isinstance(self.source, str):
            self._fh = open(self.source, "rb")
            self._owns_fh = True
        else:
            self._fh = self.source
        try:
            self.compress_format = _sniff_format(self._fh)
            if self.compress_format == FORMAT_TAR_GZ:
                self._tar = tarfile.open(fileobj=self._fh, mode="r:gz")
            else:
                self._zip = zipfile.ZipFile(self._fh, "r")
        except BaseException:
            self.close()
            raise

    def close(self):
        if self._tar is not None:
            self._tar.close()
            self._tar = None
        if self._zip is not None:
            self._zip.close()
            self._zip = None
        if self._fh is not None and self._owns_fh:
            self._fh.close()
        self._fh = None

    def names(self) -> List[str]:
        """File entry names in archive order."""
        if self._tar is not None:
            return [m.name for m in self._tar.getmembers() if m.isfile()]
        if self._zip is not None:
            return [n for n in self._zip.namelist() if not n.endswith("/")]
        raise RuntimeError("Archive not open")

    def read(self, name: str) -> bytes:
        if self._tar is not None:
            fh = self._tar.extractfile(name)
            if fh is None:
                raise KeyError(name)
            with fh:
                return fh.read()
        if self._zip is not None:
            return self._zip.read(name)
        raise RuntimeError("Archive not open")

    def open_nested(self, name: str) -> "ArchiveReader":
        """Reader over an archive stored as entry ``name``."""
        return open_archive_bytes(self.read(name))

    def walk(self, nested: bool = True) -> Iterator[Tuple[int, str]]:
        """Yield ``(depth, name)`` for every entry, descending into nested archives."""
        pending: List[Tuple[int, "ArchiveReader", List[str]]] = [(0, self, list(reversed(self.names())))]
        try:
            while pending:
                depth, reader, names = pending[-1]
                if not names:
                    pending.pop()
                    if reader is not self:
                        reader.close()
                    continue
                name = names.pop()
                yield depth, name
                if nested and is_archive_name(name):
                    child = reader.open_nested(name)
                    child.open()
                    pending.append((depth + 1, child, list(reversed(child.names()))))
        finally:
            for _, reader, _ in pending:
                if reader is not self:
                    reader.close()


def open_archive_bytes(data: bytes) -> ArchiveReader:
    return ArchiveReader(io.BytesIO(data))
