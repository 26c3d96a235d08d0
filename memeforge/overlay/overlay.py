"""Orchestration of text overlays for whole macros."""
import time
from typing import List, Tuple

from PIL import Image

from ..logging_utils import get_logger
from ..models import Macro
from .renderer import TextCompositor
from .scheduler import FrameSource, schedule
from .style_config import TextStyleConfig

logger = get_logger(__name__)


class MacroRenderer:
    """Draws all text lines of a macro onto still images or animation frames."""

    def __init__(self, compositor: TextCompositor = None, style_config: TextStyleConfig = None):
        """Initialize the macro renderer.

        Args:
            compositor: TextCompositor instance or None for default
            style_config: TextStyleConfig used when no compositor is given
        """
        self.compositor = compositor if compositor is not None else TextCompositor(style_config)
        logger.debug("MacroRenderer initialized")

    def sources(self, macro: Macro, total_frames: int) -> List[FrameSource]:
        """Schedule every text line of macro over total_frames frames.

        Raises:
            InvalidMacroError: If the macro has no text or a line has no areas
        """
        macro.check_renderable()
        return [schedule(total_frames, line) for line in macro.text_overlay]

    def render_overlay(self, sources: List[FrameSource], index: int, bounds: Tuple[int, int]) -> Image.Image:
        """Draw the lines visible on frame index onto a transparent surface.

        Args:
            sources: Frame schedules from sources()
            index: Frame index
            bounds: (width, height) of the frame

        Returns:
            RGBA image of size bounds holding only the text
        """
        surface = Image.new('RGBA', bounds, (0, 0, 0, 0))
        for source in sources:
            if source.is_visible(index):
                self.compositor.draw(surface, source.frame(index), bounds)
        return surface

    def render_still(self, template_image: Image.Image, macro: Macro) -> Image.Image:
        """Render a macro over a single-frame template.

        Every line is drawn using its first area. The template image is
        not modified.

        Args:
            template_image: The decoded template
            macro: The macro to render

        Returns:
            RGBA image the size of the template
        """
        render_start = time.time()
        sources = self.sources(macro, 1)

        image = template_image.convert('RGBA')
        image.alpha_composite(self.render_overlay(sources, 0, image.size))

        logger.debug(f"[RENDER] Macro {macro.id} still {image.size[0]}x{image.size[1]} "
                     f"with {len(sources)} line(s) in {(time.time() - render_start) * 1000:.1f}ms")
        return image
