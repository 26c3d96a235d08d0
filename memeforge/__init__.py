"""
memeforge - rendering and caching of image macros.

A macro is a template image plus lines of outlined text. Still templates
(PNG, JPEG) are rendered once; animated GIF templates have the text laid
out on every frame, optionally moving between areas. Rendered macros are
cached on disk, generated at most once at a time, and evicted when idle.

Usage:
    from memeforge import CacheConfig, GenerationCache

    cache = GenerationCache(CacheConfig(data_dir="data"), templates.get)
    content = cache.fetch_or_generate(macro)
"""

from .animation import AnimatedTemplate, decode_gif, encode_gif, render_animated
from .cache import CacheJanitor, CachedContent, CacheStats, CacheStore, GenerationCache
from .colors import Color
from .config import CacheConfig
from .errors import (EmptyAnimationError, ExtensionMismatchError, InvalidMacroError,
                     MemeforgeError, RenderError, TemplateNotFoundError, UnsupportedFormatError)
from .models import Area, ContextLink, Macro, Template, TextLine
from .overlay import MacroRenderer, TextCompositor, TextStyleConfig, schedule

__version__ = "0.1.0"

__all__ = [
    'AnimatedTemplate',
    'Area',
    'CacheConfig',
    'CacheJanitor',
    'CacheStats',
    'CacheStore',
    'CachedContent',
    'Color',
    'ContextLink',
    'EmptyAnimationError',
    'ExtensionMismatchError',
    'GenerationCache',
    'InvalidMacroError',
    'Macro',
    'MacroRenderer',
    'MemeforgeError',
    'RenderError',
    'Template',
    'TemplateNotFoundError',
    'TextCompositor',
    'TextLine',
    'TextStyleConfig',
    'UnsupportedFormatError',
    'decode_gif',
    'encode_gif',
    'render_animated',
    'schedule',
]
