"""Animated (GIF) template support: decoding, per-frame rendering, palettes."""

from .decoder import AnimatedTemplate, Disposal, TemplateFrame, decode_gif, encode_gif
from .palette import SharedPalette, apply_palette, build_palette
from .pipeline import AnimationPipeline, BackdropChain, render_animated

__all__ = [
    'AnimatedTemplate',
    'AnimationPipeline',
    'BackdropChain',
    'Disposal',
    'SharedPalette',
    'TemplateFrame',
    'apply_palette',
    'build_palette',
    'decode_gif',
    'encode_gif',
    'render_animated',
]
