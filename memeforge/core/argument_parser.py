"""Command-line argument parsing for memeforge."""
import argparse
from typing import Optional, Sequence


def _add_common(parser: argparse.ArgumentParser) -> None:
    # Logging level
    parser.add_argument("--log-level", default="INFO",
                        help="Logging level (TRACE, DEBUG, INFO, WARNING, ERROR)")

    # Optional log file
    parser.add_argument("--log-file", default=None, help="Also write logs to this rotating file")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(prog="memeforge", description="memeforge - Macro Image Rendering and Caching")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Render once, bypassing the cache
    render = subparsers.add_parser("render", help="Render a macro onto a template image")
    render.add_argument("template", help="Path to the template image (.gif, .jpg, .jpeg, .png)")
    render.add_argument("macro", help="Path to the macro JSON")
    render.add_argument("-o", "--output", required=True,
                        help="Output path; must have the template's extension")
    render.add_argument("--workers", type=int, default=None, help="Frame render threads (default: CPU count)")
    _add_common(render)

    # Fetch through the cache
    fetch = subparsers.add_parser("fetch", help="Fetch a macro from the cache, generating it if needed")
    fetch.add_argument("template", help="Path to the template image")
    fetch.add_argument("macro", help="Path to the macro JSON")
    fetch.add_argument("--data-dir", default=None, help="Data directory holding the macro cache")
    fetch.add_argument("--cache-seed", default=None, help="Cache key prefix")
    fetch.add_argument("--workers", type=int, default=None, help="Frame render threads (default: CPU count)")
    _add_common(fetch)

    # Janitor
    janitor = subparsers.add_parser("janitor", help="Evict idle files from the macro cache")
    janitor.add_argument("--data-dir", default=None, help="Data directory holding the macro cache")
    janitor.add_argument("--max-access-age", type=float, default=None,
                         help="Seconds since last access after which a file may be evicted")
    janitor.add_argument("--min-prune-mib", type=int, default=None,
                         help="Do not evict while the cache is at most this many MiB")
    janitor.add_argument("--poll-interval", type=float, default=None, help="Seconds between scans")
    janitor.add_argument("--once", action="store_true", help="Run a single scan and exit")
    _add_common(janitor)

    return parser


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Arguments to parse, or None for sys.argv

    Returns:
        Parsed arguments namespace
    """
    return build_parser().parse_args(argv)
