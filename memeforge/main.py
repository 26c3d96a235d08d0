"""Main entry point for the memeforge command line."""
import sys
from typing import Optional, Sequence

from .core.app_initializer import (initialize_cache, initialize_janitor, initialize_logging,
                                   load_macro, render_to_file, template_for_file)
from .core.argument_parser import parse_arguments
from .logging_utils import get_logger

logger = get_logger(__name__)


def run_render(args) -> int:
    macro = load_macro(args.macro)
    etag = render_to_file(args, macro)
    print(f"{args.output}\t{etag}")
    return 0


def run_fetch(args) -> int:
    macro = load_macro(args.macro)
    cache = initialize_cache(args, template_for_file(args.template, macro))
    content = cache.fetch_or_generate(macro)
    print(f"{content.path}\t{content.etag}")
    logger.debug(f"Cache counters: {cache.stats.snapshot()}")
    return 0


def run_janitor(args) -> int:
    janitor = initialize_janitor(args)
    if args.once:
        result = janitor.scan_once()
        logger.info(f"Scanned {result.files} file(s), {result.total_bytes} bytes; "
                    f"evicted {len(result.evicted)}")
        return 0

    try:
        janitor.run_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping janitor")
    finally:
        janitor.stop()
    return 0


COMMANDS = {
    'render': run_render,
    'fetch': run_fetch,
    'janitor': run_janitor,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the application."""
    args = parse_arguments(argv)
    try:
        initialize_logging(args)
    except ValueError as e:
        print(f"memeforge: {e}", file=sys.stderr)
        return 2

    try:
        return COMMANDS[args.command](args)
    except Exception as e:
        logger.error(f"Error in {args.command}: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
