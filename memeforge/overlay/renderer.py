"""Text compositing: lays out and draws one text line onto a frame."""
import threading
from typing import List, Tuple

from PIL import Image, ImageDraw, ImageFont

from ..logging_utils import get_logger, TRACE
from .scheduler import Frame
from .style_config import TextStyleConfig
from .typeface import Typeface, get_typeface
from .utils import block_height, normalize_text, word_wrap

logger = get_logger(__name__)


class TextCompositor:
    """Draws outlined, word-wrapped text lines onto RGBA surfaces.

    The font size starts proportional to the image height and shrinks one
    point at a time until the text wraps to at most style.max_lines lines
    or the minimum size is reached.

    Outlines are made by stamping the glyphs in the stroke color at every
    offset inside a disc, then drawing the fill on top.

    A compositor may be shared between threads; font faces are cached per
    thread.
    """

    def __init__(self, style: TextStyleConfig = None, typeface: Typeface = None):
        """Initialize the compositor.

        Args:
            style: TextStyleConfig instance or None for defaults
            typeface: Typeface to draw with, or None for the configured one
        """
        self.style = style or TextStyleConfig()
        self.typeface = typeface or get_typeface(self.style.font_path)
        self._outline_offsets = self.style.outline_offsets()
        self._local = threading.local()

        logger.debug(f"TextCompositor initialized with {self.typeface}, style: {self.style}")

    def _face(self, size: int) -> ImageFont.FreeTypeFont:
        faces = getattr(self._local, 'faces', None)
        if faces is None:
            faces = self._local.faces = {}
        if size not in faces:
            faces[size] = self.typeface.face(size)
            # Only a few sizes are ever live at once
            if len(faces) > 16:
                del faces[next(iter(faces))]
        return faces[size]

    @staticmethod
    def font_height(font) -> int:
        ascent, descent = font.getmetrics()
        return ascent + descent

    def fit_text(self, text: str, max_width: float, image_height: int) -> Tuple[ImageFont.FreeTypeFont, List[str], int]:
        """Choose a font size and wrap text to fit.

        Args:
            text: Trimmed text to lay out
            max_width: Maximum line width in pixels
            image_height: Height of the target image in pixels

        Returns:
            tuple: (font, wrapped_lines, font_size)
        """
        size = max(1, self.style.font_size_for_height(image_height))
        font = self._face(size)
        lines = word_wrap(text, font.getlength, max_width)

        while len(lines) > self.style.max_lines and size > self.style.min_font_size:
            size -= 1
            font = self._face(size)
            lines = word_wrap(text, font.getlength, max_width)

        return font, lines, size

    def draw(self, surface: Image.Image, frame: Frame, bounds: Tuple[int, int]) -> None:
        """Draw one text line onto surface in place.

        Nothing is drawn if the text is blank.

        Args:
            surface: RGBA image to draw on, usually transparent
            frame: The text line and its effective area for this frame
            bounds: (width, height) of the image the area is relative to

        Raises:
            RenderError: If a font face cannot be constructed
        """
        text = normalize_text(frame.text)
        if not text:
            return

        width, height = bounds
        area = frame.area
        max_width = (area.width or 1.0) * width
        font, lines, size = self.fit_text(text, max_width, height)

        fh = self.font_height(font)
        spacing = self.style.line_spacing
        x = area.x * width
        y = area.y * height - 0.5 * block_height(len(lines), fh, spacing)

        if logger.isEnabledFor(TRACE):
            logger.trace(f"[TEXT] frame {frame.index}: {len(lines)} line(s) at {size}pt, "
                         f"anchor=({x:.1f}, {y:.1f}), max_width={max_width:.1f}")

        stroke = frame.line.stroke_color.to_rgb8()
        fill = frame.line.color.to_rgb8()
        for line in lines:
            baseline_x = x - self.style.anchor_x * font.getlength(line)
            baseline_y = y + self.style.anchor_y * fh
            self._draw_line(surface, line, font, (round(baseline_x), round(baseline_y)), stroke, fill)
            y += fh * spacing

    def _draw_line(self, surface, line, font, origin, stroke, fill):
        """Draw one visual line: outline stamps first, then the fill."""
        glyphs, left, top = self._render_glyphs(line, font)
        gx, gy = origin[0] + left, origin[1] + top

        outline = Image.new('L', surface.size, 0)
        for dx, dy in self._outline_offsets:
            outline.paste(255, (gx + dx, gy + dy), glyphs)
        self._composite(surface, outline, stroke)

        body = Image.new('L', surface.size, 0)
        body.paste(glyphs, (gx, gy))
        self._composite(surface, body, fill)

    @staticmethod
    def _render_glyphs(line, font):
        """Rasterize a line to an 8-bit coverage mask.

        Returns:
            tuple: (mask, left, top) where (left, top) is the mask's offset
                from the left end of the baseline
        """
        left, top, right, bottom = font.getbbox(line, anchor='ls')
        mask = Image.new('L', (max(1, right - left), max(1, bottom - top)), 0)
        ImageDraw.Draw(mask).text((-left, -top), line, font=font, fill=255, anchor='ls')
        return mask, left, top

    @staticmethod
    def _composite(surface, coverage, rgb):
        """Blend a solid color over surface using coverage as alpha."""
        bbox = coverage.getbbox()
        if bbox is None:
            return
        region = coverage.crop(bbox)
        layer = Image.new('RGBA', region.size, rgb + (0,))
        layer.putalpha(region)
        surface.alpha_composite(layer, dest=bbox[:2])
