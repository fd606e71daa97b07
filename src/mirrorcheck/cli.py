import argparse
import logging
import os
import sys
import textwrap
from pathlib import Path

from . import Auditor, AuditSettings, Processor, StalenessThreshold, TimeBasis, WalkAborted
from .auditor import LOG_FORMAT
from .settings import SETTING_WORKERS
from .utils.processor import HASH_ALGORITHMS
from .utils.profiling import profile_main


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='mirrorcheck',
        description='Verify that a backup tree mirrors a source tree and list source files that have not been '
                    'modified or accessed within a number of minutes.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent('''
            Examples:
              mirrorcheck -src /data -backup /mnt/backup/data -minutes 1440
              mirrorcheck -src /data -backup /mnt/backup/data -minutes 60 -type access

            Stale source paths are appended to res.txt, missing files, content
            mismatches and read errors to error.txt, both in the working directory.
            ''').strip()
    )
    parser.add_argument(
        '-src', '--src',
        metavar='DIR',
        help='Source directory to audit (required)')
    parser.add_argument(
        '-backup', '--backup',
        metavar='DIR',
        help='Backup directory expected to mirror the source (required)')
    parser.add_argument(
        '-minutes', '--minutes',
        type=int,
        default=0,
        metavar='N',
        help='Report files whose timestamp is more than N minutes old (required, nonzero)')
    parser.add_argument(
        '-type', '--type',
        choices=[basis.value for basis in TimeBasis],
        default=TimeBasis.MODIFY.value,
        help='Timestamp to measure staleness against: modify (default) or access')
    parser.add_argument(
        '--workers',
        type=int,
        metavar='N',
        help='Number of worker processes for hashing (default: concurrency.workers setting or CPU count)')
    parser.add_argument(
        '--hash',
        choices=HASH_ALGORITHMS,
        help='Digest used to compare file contents (default: hash.algorithm setting or md5)')
    parser.add_argument(
        '--results',
        metavar='PATH',
        help='File receiving stale source paths (default: res.txt)')
    parser.add_argument(
        '--errors',
        metavar='PATH',
        help='File receiving mismatches, missing files and errors (default: error.txt)')
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Do not print a line for every file checked')
    parser.add_argument(
        '--config',
        metavar='PATH',
        help='Settings file. If not provided, uses MIRRORCHECK_CONFIG or mirrorcheck.toml in the working directory.')
    parser.add_argument(
        '--log-file',
        metavar='PATH',
        help='Path to log file. If not provided, uses logging.path from settings or no logging.')
    parser.add_argument(
        '--log-level',
        metavar='LEVEL',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Defaults to INFO when --log-file is provided.')
    return parser


def _printable(text: str | os.PathLike) -> str:
    """Render text holding file names for stdout, escaping bytes the console encoding cannot show."""
    encoding = getattr(sys.stdout, 'encoding', None) or 'utf-8'
    return os.fsencode(text).decode(encoding, 'backslashreplace')


def _print_progress(path: Path):
    print("Checking:", _printable(path), flush=True)


@profile_main
def mirrorcheck_main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.src or not args.backup or args.minutes == 0:
        parser.print_usage(sys.stdout)
        return

    if args.log_file:
        logging.basicConfig(
            filename=args.log_file,
            level=getattr(logging, args.log_level or 'INFO'),
            format=LOG_FORMAT
        )

    try:
        settings = AuditSettings.locate(args.config)
    except FileNotFoundError as e:
        print(f"Error loading settings: {_printable(str(e))}")
        sys.exit(1)

    workers = args.workers if args.workers is not None else settings.get(SETTING_WORKERS)
    threshold = StalenessThreshold(args.minutes, TimeBasis(args.type))

    try:
        processor = Processor(workers)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    with processor:
        try:
            auditor = Auditor(
                processor,
                settings,
                results_path=args.results,
                errors_path=args.errors,
                hash_algorithm=args.hash
            )
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)

        if not args.log_file:
            auditor.configure_logging_from_settings(args.log_level)

        try:
            auditor.audit(args.src, args.backup, threshold, progress=None if args.quiet else _print_progress)
        except (NotADirectoryError, WalkAborted) as e:
            print(f"Error comparing directories: {_printable(str(e))}")
            sys.exit(1)
        except OSError as e:
            print(f"Error opening report file: {_printable(str(e))}")
            sys.exit(1)

    print(f"Comparison complete. Check {_printable(auditor.results_path)} and "
          f"{_printable(auditor.errors_path)} for details.")


if __name__ == '__main__':
    mirrorcheck_main()
