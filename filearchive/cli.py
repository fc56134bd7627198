from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import List, Optional

from filearchive.archive import FileArchive
from filearchive.constants import SUPPORTED_FORMATS, DEFAULT_COMPRESS_FORMAT
from filearchive.errors import FileArchiveError
from filearchive.reader import ArchiveReader


def _print_event(event: str, message: str) -> None:
    print(message, flush=True)


def cmd_pack(
    output: str,
    inputs: List[str],
    *,
    compress_format: str = DEFAULT_COMPRESS_FORMAT,
    root: Optional[str] = None,
    nest: bool = False,
    quiet: bool = False,
) -> bool:
    """Pack files and directories into a new archive.

    Args:
        output: Archive path without extension, relative to ``root``.
        inputs: Files and directories to add; each is stored under its base name.
        compress_format: 'tar.gz' or 'zip'.
        root: Directory that ``output`` resolves against.
        nest: Store each directory input as its own nested archive.
        quiet: Only print the final summary.
    """
    for inp in inputs:
        if not os.path.exists(inp):
            raise FileNotFoundError(f"No such file or directory: '{inp}'")

    fa = FileArchive(
        eventbus=None if quiet else _print_event,
        compress_format=compress_format,
        relative_path=root,
    )
    instance = fa.create_archive(output)
    for inp in inputs:
        src = Path(inp)
        name = src.resolve().name
        if nest and src.is_dir():
            fa.create_archive(os.path.join(os.path.dirname(output), name))
            fa.copy(str(src), ".")
            fa.finalize_archive()
        else:
            fa.copy(str(src), name)
    fa.finalize_archive().result()
    print(f"Wrote {instance.resolved_path}")
    return True


def cmd_list(archive: str, *, nested: bool = False) -> bool:
    """Print entry names, indenting the contents of nested archives."""
    with ArchiveReader(archive) as reader:
        for depth, name in reader.walk(nested=nested):
            print("  " * depth + name)
    return True


def cmd_empty(root: str, *, quiet: bool = False) -> bool:
    """Delete the contents of ``root`` unless it holds the working directory."""
    fa = FileArchive(eventbus=None if quiet else _print_event, relative_path=root)
    if not fa.empty_root():
        print(f"Refusing to empty {root}", file=sys.stderr)
        return False
    return True


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(prog="filearchive", description="Write files and nested archives")
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_pack = sub.add_parser("pack", help="Pack files into an archive")
    ap_pack.add_argument("output", help="Output archive path (format extension is appended)")
    ap_pack.add_argument("inputs", nargs="+", help="Input files/directories")
    ap_pack.add_argument(
        "--format",
        dest="compress_format",
        choices=list(SUPPORTED_FORMATS),
        default=DEFAULT_COMPRESS_FORMAT,
        help="Compression format (default tar.gz)",
    )
    ap_pack.add_argument("--root", help="Directory the output path resolves against")
    ap_pack.add_argument("--nest", action="store_true", help="Store each input directory as a nested archive")
    ap_pack.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_list = sub.add_parser("list", help="List archive contents")
    ap_list.add_argument("archive", help="Archive path")
    ap_list.add_argument("--nested", action="store_true", help="Descend into nested archives")

    ap_empty = sub.add_parser("empty", help="Delete everything inside a directory")
    ap_empty.add_argument("root", help="Directory to empty")
    ap_empty.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    args = ap.parse_args(argv)
    try:
        if args.cmd == "pack":
            cmd_pack(
                args.output,
                args.inputs,
                compress_format=args.compress_format,
                root=args.root,
                nest=args.nest,
                quiet=args.quiet,
            )
        elif args.cmd == "list":
            cmd_list(args.archive, nested=args.nested)
        elif args.cmd == "empty":
            sys.exit(0 if cmd_empty(args.root, quiet=args.quiet) else 1)
        else:
            raise RuntimeError("Unknown command")
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (ValueError, TypeError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (FileArchiveError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
