"""Configuration for macro text styling and layout."""
import math
import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class TextStyleConfig:
    """Layout and outline parameters for overlay text.

    Text is sized relative to the image height, wrapped to at most
    max_lines lines, and outlined by stamping the stroke color over a
    disc of outline_radius pixels.
    """
    type_height_fraction: float = 0.15
    height_factor: float = 0.75
    line_spacing: float = 1.25
    outline_radius: int = 6
    max_lines: int = 2
    min_font_size: int = 6
    anchor_x: float = 0.5  # Horizontal anchor, 0.5 centers each line on x
    anchor_y: float = 1.0  # Vertical anchor, 1.0 puts the line below y
    font_path: Optional[str] = field(default_factory=lambda: os.environ.get('MEMEFORGE_FONT_PATH') or None)

    def __post_init__(self):
        """Validate configuration values after initialization."""
        if self.type_height_fraction <= 0 or self.height_factor <= 0:
            raise ValueError("font sizing fractions must be positive")
        if self.line_spacing < 1:
            raise ValueError("line_spacing must be at least 1")
        if self.outline_radius < 0:
            raise ValueError("outline_radius must be non-negative")
        if self.max_lines < 1:
            raise ValueError("max_lines must be at least 1")
        if self.min_font_size < 1:
            raise ValueError("min_font_size must be at least 1")

    def font_size_for_height(self, image_height: int) -> int:
        """Recommended font size in points for an image of the given height.

        Args:
            image_height: Image height in pixels

        Returns:
            int: Starting font size before any shrink-to-fit
        """
        # Halves round up, not to even
        scaled = (image_height * self.height_factor) * self.type_height_fraction
        return int(math.floor(scaled + 0.5))

    def outline_offsets(self):
        """Offsets (dx, dy) strictly inside a disc of outline_radius."""
        n = self.outline_radius
        return [(dx, dy)
                for dy in range(-n, n + 1)
                for dx in range(-n, n + 1)
                if dx * dx + dy * dy < n * n]
