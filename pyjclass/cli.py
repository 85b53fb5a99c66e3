#!/usr/bin/env python3
"""
Command-line interface for pyjclass - Python Java class file decoder.
"""

import argparse
import logging
import os
import sys
import zipfile
from enum import IntEnum
from pathlib import Path


class ExitCode(IntEnum):
    OK = 0
    INVALID_CLASS = 1
    USAGE = 2  # argparse exits with 2 on its own errors
    NOT_FOUND = 3
    IO_ERROR = 4


def _options(args):
    from .context import DecodeOptions

    return DecodeOptions(
        decode_instructions=not args.no_instructions,
        allow_trailing_bytes=args.allow_trailing,
    )


def _load_bytes(args) -> bytes:
    """Bytes of the requested class, from a file or the given classpath."""
    if args.classpath:
        from .classpath import ClassPath

        with ClassPath() as classpath:
            for entry in args.classpath.split(os.pathsep):
                if entry:
                    classpath.add_path(entry)
            data = classpath.read_bytes(args.target.replace(".", "/"))
        if data is None:
            raise FileNotFoundError(f"Class not found on classpath: {args.target}")
        return data
    return Path(args.target).read_bytes()


def show_command(args) -> int:
    """Decode one class file and print it."""
    from .classfile import decode_class_file
    from .errors import ClassFormatError, InvalidDescriptor
    from .printer import format_class

    try:
        data = _load_bytes(args)
    except FileNotFoundError as e:
        print(f"Error: File not found: {e.filename or e}", file=sys.stderr)
        return ExitCode.NOT_FOUND
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        print(f"Error reading {args.target}: {e}", file=sys.stderr)
        return ExitCode.IO_ERROR

    try:
        cf = decode_class_file(data, _options(args))
        if args.json:
            print(cf.to_json())
        else:
            print(format_class(cf, show_code=args.code, show_pool=args.pool))
    except (ClassFormatError, InvalidDescriptor) as e:
        print(f"Error decoding {args.target}: {e}", file=sys.stderr)
        return ExitCode.INVALID_CLASS
    return ExitCode.OK


def _iter_inputs(paths):
    """(label, bytes) for every class file under the given paths."""
    from .classpath import ClassPath

    for raw in paths:
        path = Path(raw)
        if not path.exists():
            raise FileNotFoundError(str(path))
        if path.suffix == ".class":
            yield str(path), path.read_bytes()
            continue
        with ClassPath() as classpath:
            classpath.add_path(path)
            for name in classpath.iter_class_names():
                yield f"{path}:{name}", classpath.read_bytes(name)


def scan_command(args) -> int:
    """Decode every class file found in the given paths."""
    from .classfile import decode_class_file
    from .errors import ClassFormatError
    from .printer import summarize

    options = _options(args)
    total = failed = 0
    try:
        for label, data in _iter_inputs(args.paths):
            total += 1
            try:
                cf = decode_class_file(data, options)
            except ClassFormatError as e:
                failed += 1
                print(f"FAIL {label}: {e}", file=sys.stderr)
                continue
            if not args.quiet:
                print(summarize(cf, label))
    except FileNotFoundError as e:
        print(f"Error: File not found: {e.filename or e}", file=sys.stderr)
        return ExitCode.NOT_FOUND
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.IO_ERROR

    print(f"Decoded {total - failed} of {total} class file(s)")
    return ExitCode.INVALID_CLASS if failed else ExitCode.OK


def _add_decode_flags(parser):
    parser.add_argument(
        "--no-instructions",
        action="store_true",
        help="Don't materialize instruction lists for Code attributes",
    )
    parser.add_argument(
        "--allow-trailing",
        action="store_true",
        help="Accept bytes after the class attributes",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log decode diagnostics to stderr",
    )


def main(argv=None):
    """Main entry point for pyjclass CLI."""
    parser = argparse.ArgumentParser(
        prog="pyjclass",
        description="Python Java class file decoder",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Show command
    show_parser = subparsers.add_parser(
        "show",
        help="Decode a class file and print its structure",
    )
    show_parser.add_argument(
        "target",
        help="Path to a .class file, or a class name when --classpath is given",
    )
    show_parser.add_argument(
        "-cp", "--classpath",
        help="Classpath to look the class up on (directories and .jar files)",
    )
    show_parser.add_argument(
        "-c", "--code",
        action="store_true",
        help="Print attributes, including disassembled code",
    )
    show_parser.add_argument(
        "-p", "--pool",
        action="store_true",
        help="Print the constant pool",
    )
    show_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the decoded model as JSON",
    )
    _add_decode_flags(show_parser)
    show_parser.set_defaults(func=show_command)

    # Scan command
    scan_parser = subparsers.add_parser(
        "scan",
        help="Decode every class file in directories, jars or files",
    )
    scan_parser.add_argument(
        "paths",
        nargs="+",
        help="Directories, .jar/.zip archives or .class files",
    )
    scan_parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only report failures and the final count",
    )
    _add_decode_flags(scan_parser)
    scan_parser.set_defaults(func=scan_command)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(ExitCode.USAGE)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    sys.exit(int(args.func(args)))


if __name__ == "__main__":
    main()
