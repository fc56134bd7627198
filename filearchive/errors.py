class FileArchiveError(Exception):
    """Base class for filearchive errors."""


# Contract
class UnsupportedFormatError(FileArchiveError, ValueError):
    """Raised for a compression format other than 'tar.gz' or 'zip'."""

    def __init__(self, compress_format):
        self.compress_format = compress_format
        super().__init__(f"Unknown compression format: '{compress_format}'.")


# Writer / stream
class ArchiveWriterError(FileArchiveError):
    """An archive sink failed while writing; the archive is unusable."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class ArchiveClosedError(ArchiveWriterError):
    pass
