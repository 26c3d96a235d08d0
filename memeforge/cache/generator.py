"""
Generation cache: renders each macro once and serves the stored file.

A macro's output is written to a deterministic path in the cache
directory. Requests for a cached macro return the file and its ETag
without rendering. Concurrent requests for a macro that is not cached
share a single render.
"""

import functools
import os
import time
from typing import Callable, Dict, NamedTuple, Optional

from PIL import Image

from ..animation import AnimationPipeline, decode_gif, encode_gif
from ..config import CacheConfig, MACRO_MAX_AGE, TEMPLATE_MAX_AGE
from ..errors import ExtensionMismatchError, UnsupportedFormatError
from ..logging_utils import get_logger
from ..models import Macro, Template
from ..overlay import MacroRenderer
from . import stats as counters
from .etags import EtagIndex, HashingWriter, etag_for_file
from .inflight import SingleFlight
from .stats import CacheStats
from .store import CacheStore

logger = get_logger(__name__)

PARTIAL_SUFFIX = '.partial'

TemplateResolver = Callable[[int], Template]


class CachedContent(NamedTuple):
    """A file ready to be served, with its validator and lifetime."""
    path: str
    etag: Optional[str]
    max_age: int

    def headers(self) -> Dict[str, str]:
        """HTTP caching headers for this content."""
        headers = {'Cache-Control': f"public, max-age={self.max_age}, no-transform"}
        if self.etag:
            headers['ETag'] = self.etag
        return headers


class GenerationCache:
    """Renders macros on demand and keeps the results on disk."""

    def __init__(self, config: CacheConfig, resolve_template: TemplateResolver,
                 renderer: MacroRenderer = None, store: CacheStore = None,
                 stats: CacheStats = None):
        """Initialize the cache.

        Args:
            config: Cache settings
            resolve_template: Returns the Template for a template ID, raising
                TemplateNotFoundError if there is none
            renderer: MacroRenderer instance or None for default
            store: CacheStore instance or None to create one from config
            stats: CacheStats instance or None for a private one
        """
        self.config = config
        self.resolve_template = resolve_template
        self.renderer = renderer if renderer is not None else MacroRenderer()
        self.store = store if store is not None else CacheStore(config)
        self.stats = stats if stats is not None else CacheStats()
        self.etags = EtagIndex()
        self.pipeline = AnimationPipeline(self.renderer, config.workers)
        self._flight = SingleFlight()

    def cache_path(self, macro: Macro) -> str:
        return self.store.cache_path(macro, self.resolve_template(macro.template_id))

    def fetch_or_generate(self, macro: Macro, ext: Optional[str] = None) -> CachedContent:
        """Return the cached file for macro, rendering it first if needed.

        Args:
            macro: The macro to serve
            ext: Extension the caller asked for, if any; must match the
                template's

        Returns:
            CachedContent: path, ETag and max-age of the file

        Raises:
            TemplateNotFoundError: If the macro's template does not exist
            ExtensionMismatchError: If ext differs from the stored extension
            Exception: Any error from rendering or writing, shared by all
                callers waiting on the same generation
        """
        template = self.resolve_template(macro.template_id)
        path = self.store.cache_path(macro, template)
        self._check_extension(ext, template)

        if os.path.isfile(path):
            self.stats.add(counters.CACHE_HIT)
            return CachedContent(path, self._etag_for(path), MACRO_MAX_AGE)

        logger.debug(f"Cache file {path} not found, generating")

        def generate():
            self.stats.add(counters.CACHE_MISS)
            return self.generate(macro, template, path)

        try:
            etag, reused = self._flight.do(path, generate)
        except Exception as e:
            logger.error(f"Error generating macro {macro.id}: {e}", exc_info=True)
            raise
        if reused:
            self.stats.add(counters.CACHE_REUSED)
        return CachedContent(path, etag, MACRO_MAX_AGE)

    def generate(self, macro: Macro, template: Template, path: str) -> str:
        """Render macro and write it to path.

        On failure nothing is left at path.

        Returns:
            str: ETag of the written file
        """
        ext = template.extension
        encode = None if ext == '.gif' else self._still_encoder(ext)
        start = time.time()
        with open(self.store.template_path(template), 'rb') as src:
            if ext == '.gif':
                self.stats.add(counters.GENERATE_GIF)
                logger.info(f"Generating GIF for macro {macro.id}")
                animation = self.pipeline.render(decode_gif(src), macro)
                write = functools.partial(encode_gif, animation)
            else:
                self.stats.add(counters.GENERATE)
                with Image.open(src) as template_image:
                    image = self.renderer.render_still(template_image, macro)
                write = functools.partial(encode, image)

        etag = self._write(path, write)
        logger.info(f"Generated macro {macro.id} ({ext}) in {(time.time() - start) * 1000:.0f}ms")
        return etag

    def _still_encoder(self, ext: str):
        if ext in ('.jpg', '.jpeg'):
            return self._encode_jpeg
        if ext == '.png':
            return self._encode_png
        raise UnsupportedFormatError(f"unknown image format {ext!r}")

    def _encode_jpeg(self, image: Image.Image, fp) -> None:
        self.stats.add(counters.GENERATE_JPG)
        image.convert('RGB').save(fp, format='JPEG', quality=self.config.jpeg_quality)

    def _encode_png(self, image: Image.Image, fp) -> None:
        self.stats.add(counters.GENERATE_PNG)
        image.save(fp, format='PNG')

    def _write(self, path: str, write) -> str:
        """Stream write()'s output to path through the hasher.

        Bytes go to a side file that replaces path only once complete, so
        readers never see a partial entry.
        """
        partial = path + PARTIAL_SUFFIX
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        try:
            with open(partial, 'wb') as f:
                out = HashingWriter(f)
                write(out)
                out.flush()
            os.replace(partial, path)
        except BaseException:
            try:
                os.remove(partial)
            except FileNotFoundError:
                pass
            raise

        etag = out.etag()
        self.etags.set(path, etag)
        logger.debug(f"Wrote {out.bytes_written} bytes to {path}, etag {etag}")
        return etag

    def _etag_for(self, path: str) -> Optional[str]:
        etag = self.etags.get(path)
        if etag is None:
            try:
                etag = etag_for_file(path)
            except OSError as e:
                logger.warning(f"Cannot hash {path}: {e}")
                return None
            self.etags.set(path, etag)
        return etag

    @staticmethod
    def _check_extension(ext: Optional[str], template: Template) -> None:
        if ext and ext.lower() != template.extension:
            raise ExtensionMismatchError(
                f"wrong file extension {ext!r} for template {template.id} ({template.extension})")

    def template_content(self, template_id: int, ext: Optional[str] = None) -> CachedContent:
        """The stored image of a template, for serving.

        Raises:
            TemplateNotFoundError: If the template does not exist
            ExtensionMismatchError: If ext differs from the stored extension
        """
        template = self.resolve_template(template_id)
        self._check_extension(ext, template)
        path = self.store.template_path(template)
        return CachedContent(path, self._etag_for(path), TEMPLATE_MAX_AGE)

    def remove_cached(self, macro: Macro) -> None:
        """Drop macro's cache entry, e.g. when the macro is deleted."""
        path = self.store.remove_cached(macro, self.resolve_template(macro.template_id))
        self.etags.discard(path)

    def preload_etags(self) -> int:
        """Hash every file already in the cache directory.

        Returns:
            int: Number of files hashed
        """
        count = 0
        if not os.path.isdir(self.store.dir):
            return count
        with os.scandir(self.store.dir) as entries:
            for entry in entries:
                if not entry.is_file() or entry.name.endswith(PARTIAL_SUFFIX):
                    continue
                try:
                    self.etags.set(entry.path, etag_for_file(entry.path))
                    count += 1
                except OSError as e:
                    logger.warning(f"Cannot hash cached file {entry.path}: {e}")
        logger.info(f"Preloaded {count} cache ETags from {self.store.dir}")
        return count
