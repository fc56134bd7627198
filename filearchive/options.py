from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .constants import DEFAULT_COMPRESS_FORMAT, DEFAULT_LOG_EVENT, SUPPORTED_FORMATS
from .errors import UnsupportedFormatError

# camelCase spellings used by host plugin configs
OPTION_ALIASES = {
    "compressFormat": "compress_format",
    "lockRelative": "lock_relative",
    "logEvent": "log_event",
    "relativePath": "relative_path",
    "eventPrepend": "event_prepend",
}


def canonical_options(options: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy ``options`` with camelCase keys renamed to their Python names."""
    if not isinstance(options, Mapping):
        raise TypeError("'options' is not a mapping.")
    out: Dict[str, Any] = {}
    for key, value in options.items():
        name = OPTION_ALIASES.get(key, key)
        if name in out and name != key:
            # the Python spelling wins over its alias
            continue
        out[name] = value
    return out


@dataclass
class FileArchiveOptions:
    """Settings shared by every FileArchive operation.

    compress_format: 'tar.gz' or 'zip'.
    lock_relative: once True, ``relative_path`` can no longer be changed.
    log_event: event name used when logging through an eventbus.
    relative_path: root that write/copy/archive paths resolve against.
    """

    compress_format: str = DEFAULT_COMPRESS_FORMAT
    lock_relative: bool = False
    log_event: str = DEFAULT_LOG_EVENT
    relative_path: Optional[str] = None

    def merge(self, options: Mapping[str, Any]) -> None:
        """Apply known keys from ``options``; unknown keys are ignored.

        Keys may also be given in camelCase (``relativePath``). While
        ``lock_relative`` is set, ``relative_path`` and ``lock_relative``
        keep their current values.
        """
        options = canonical_options(options)

        compress_format = options.get("compress_format")
        if compress_format is not None:
            if not isinstance(compress_format, str):
                raise TypeError("'compress_format' is not a 'str'.")
            if compress_format not in SUPPORTED_FORMATS:
                raise UnsupportedFormatError(compress_format)

        log_event = options.get("log_event")
        if log_event is not None and not isinstance(log_event, str):
            raise TypeError("'log_event' is not a 'str'.")

        relative_path = options.get("relative_path")
        if relative_path is not None and not isinstance(relative_path, (str, os.PathLike)):
            raise TypeError("'relative_path' is not a 'str'.")

        lock_relative = options.get("lock_relative")
        if lock_relative is not None and not isinstance(lock_relative, bool):
            raise TypeError("'lock_relative' is not a 'bool'.")

        if not self.lock_relative:
            if relative_path is not None:
                self.relative_path = os.fspath(relative_path)
            if lock_relative is not None:
                self.lock_relative = lock_relative

        if compress_format is not None:
            self.compress_format = compress_format
        if log_event is not None:
            self.log_event = log_event

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
