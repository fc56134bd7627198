from __future__ import annotations


# Compression formats
FORMAT_TAR_GZ = "tar.gz"
FORMAT_ZIP = "zip"

SUPPORTED_FORMATS = (FORMAT_TAR_GZ, FORMAT_ZIP)

# zlib level used by both backends
COMPRESS_LEVEL = 9

# Temporary child archives are written next to their resolved destination
TEMP_PREFIX = ".temp-"

# Option defaults
DEFAULT_COMPRESS_FORMAT = FORMAT_TAR_GZ
DEFAULT_LOG_EVENT = "log:debug"
DEFAULT_EVENT_PREPEND = "filearchive"

# Entry mode for in-memory writes
DEFAULT_FILE_MODE = 0o644


def archive_extension(compress_format: str) -> str:
    return "." + compress_format


def is_archive_name(name: str) -> bool:
    lower = name.lower()
    return any(lower.endswith(archive_extension(fmt)) for fmt in SUPPORTED_FORMATS)
