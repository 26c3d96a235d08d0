"""
Memeforge Text Overlay Module

This module lays out and draws macro text onto template images:

- style_config.py: Configuration dataclass for text sizing and outlines
- typeface.py: The shared font used for all text
- utils.py: Text trimming, word wrapping and block measurement
- scheduler.py: Which area a text line occupies on each frame
- renderer.py: Drawing one outlined, wrapped text line
- overlay.py: Orchestration of all lines of a macro

Usage:
    from memeforge.overlay import MacroRenderer

    renderer = MacroRenderer()
    image = renderer.render_still(template_image, macro)
"""

from .overlay import MacroRenderer
from .renderer import TextCompositor
from .scheduler import Frame, FrameSource, schedule
from .style_config import TextStyleConfig
from .typeface import Typeface, get_typeface

__all__ = [
    'Frame',
    'FrameSource',
    'MacroRenderer',
    'TextCompositor',
    'TextStyleConfig',
    'Typeface',
    'get_typeface',
    'schedule',
]
