"""The single typeface used for all macro text."""
import functools
import io
from typing import Optional

from PIL import ImageFont

from ..errors import RenderError
from ..logging_utils import get_logger

logger = get_logger(__name__)


class Typeface:
    """A font loaded once and shared read-only by every renderer.

    With no font data the typeface is the scalable default font bundled with
    Pillow. Otherwise font_data holds the bytes of a TrueType/OpenType file.
    Faces for specific point sizes are built on demand and never shared
    between calls, so a Typeface is safe to use from any thread.
    """

    def __init__(self, font_data: Optional[bytes] = None, name: str = "default"):
        self._data = font_data
        self.name = name
        # Fail now rather than on the first render.
        self.face(12)

    @classmethod
    def from_file(cls, path: str) -> 'Typeface':
        """Load a typeface from a font file.

        Raises:
            OSError: If the file cannot be read
            RenderError: If the file is not a usable font
        """
        with open(path, 'rb') as f:
            data = f.read()
        logger.info(f"Loaded typeface from {path} ({len(data)} bytes)")
        return cls(data, name=path)

    def face(self, size: int) -> ImageFont.FreeTypeFont:
        """Build a font face for the given point size.

        Raises:
            RenderError: If the face cannot be constructed
        """
        try:
            if self._data is None:
                return ImageFont.load_default(size=size)
            return ImageFont.truetype(io.BytesIO(self._data), size=size)
        except (OSError, ValueError) as e:
            raise RenderError(f"cannot build {size}pt face from typeface {self.name}: {e}") from e

    def __repr__(self):
        return f"Typeface({self.name!r})"


@functools.lru_cache(maxsize=None)
def get_typeface(path: Optional[str] = None) -> Typeface:
    """Return the process-wide typeface for path (None for the bundled font)."""
    if path:
        return Typeface.from_file(path)
    return Typeface()
