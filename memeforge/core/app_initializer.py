"""Application initialization: logging setup and component wiring."""
import json
import os

from ..cache import CacheJanitor, CacheStats, CacheStore, GenerationCache
from ..config import CacheConfig
from ..errors import ExtensionMismatchError, InvalidMacroError, TemplateNotFoundError
from ..logging_utils import get_logger, setup_logging
from ..models import Macro, Template

logger = get_logger(__name__)


def initialize_logging(args):
    """Configure logging from the common command line flags."""
    setup_logging(args.log_level, log_file=args.log_file)
    logger.debug(f"Logging initialized at {args.log_level.upper()}")


def load_macro(path: str) -> Macro:
    """Read a macro from a JSON file.

    Raises:
        InvalidMacroError: If the file is not valid macro JSON
        OSError: If the file cannot be read
    """
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidMacroError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidMacroError(f"{path}: expected a JSON object")
    macro = Macro.from_dict(data)
    macro.check_renderable()
    logger.debug(f"Loaded macro {macro.id} with {len(macro.text_overlay)} line(s) from {path}")
    return macro


def template_for_file(path: str, macro: Macro) -> Template:
    """A Template record for an image file given on the command line.

    Raises:
        TemplateNotFoundError: If the file does not exist
    """
    if not os.path.isfile(path):
        raise TemplateNotFoundError(f"template file not found: {path}")
    return Template(id=macro.template_id or 1, path=os.path.abspath(path))


def initialize_cache(args, template: Template) -> GenerationCache:
    """Build a GenerationCache that knows only the given template."""
    config = CacheConfig.from_env(
        data_dir=getattr(args, 'data_dir', None),
        cache_seed=getattr(args, 'cache_seed', None),
        max_workers=getattr(args, 'workers', None),
    )

    def resolve_template(template_id: int) -> Template:
        if template_id not in (template.id, 0):
            raise TemplateNotFoundError(f"template {template_id} not found")
        return template

    logger.info(f"Using cache directory {config.macro_dir}")
    return GenerationCache(config, resolve_template)


def render_to_file(args, macro: Macro) -> str:
    """Render macro onto the template named in args and write it to args.output.

    Returns:
        str: ETag of the written file
    """
    template = template_for_file(args.template, macro)
    out_ext = os.path.splitext(args.output)[1].lower()
    if out_ext != template.extension:
        raise ExtensionMismatchError(f"output {args.output} must end in {template.extension}")

    out_dir = os.path.dirname(os.path.abspath(args.output))
    cache = GenerationCache(CacheConfig(data_dir=out_dir, max_workers=args.workers),
                            lambda template_id: template)
    return cache.generate(macro, template, args.output)


def initialize_janitor(args) -> CacheJanitor:
    """Build a janitor for the cache under args.data_dir."""
    min_prune_bytes = args.min_prune_mib << 20 if args.min_prune_mib is not None else None
    config = CacheConfig.from_env(
        data_dir=args.data_dir,
        max_access_age=args.max_access_age,
        min_prune_bytes=min_prune_bytes,
        poll_interval=args.poll_interval,
    )
    return CacheJanitor(CacheStore(config), config, stats=CacheStats())
