"""RGB colors for text fill and outline, with web color names."""
from dataclasses import dataclass
from typing import Tuple

from .errors import InvalidMacroError

# Color names mapped to their hex strings. Names are lower-case.
NAMED_COLORS = {
    'white': '#ffffff',
    'silver': '#c0c0c0',
    'gray': '#808080',
    'black': '#000000',
    'red': '#ff0000',
    'maroon': '#800000',
    'yellow': '#ffff00',
    'olive': '#808000',
    'lime': '#00ff00',
    'green': '#008000',
    'aqua': '#00ffff',
    'teal': '#008080',
    'blue': '#0000ff',
    'navy': '#000080',
    'fuchsia': '#ff00ff',
    'purple': '#800080',
}

# Reverse mapping; the first name listed for a hex value wins.
_HEX_TO_NAME = {}
for _name, _hex in NAMED_COLORS.items():
    _HEX_TO_NAME.setdefault(_hex, _name)


@dataclass(frozen=True)
class Color:
    """An RGB color with each channel a fraction 0..1."""
    r: float = 1.0
    g: float = 1.0
    b: float = 1.0

    @classmethod
    def parse(cls, text: str) -> 'Color':
        """Parse a color name, '#rgb' or '#rrggbb' (the '#' is optional).

        An empty string is white.

        Raises:
            InvalidMacroError: If text is not a valid color
        """
        if not text:
            return cls(1.0, 1.0, 1.0)
        hex_text = NAMED_COLORS.get(text, text)
        hex_text = hex_text[1:] if hex_text.startswith('#') else hex_text
        if len(hex_text) == 3:
            digits = [ch * 2 for ch in hex_text]
        elif len(hex_text) == 6:
            digits = [hex_text[i:i + 2] for i in (0, 2, 4)]
        else:
            raise InvalidMacroError(f"invalid hex color {text!r}")
        if not all(ch in '0123456789abcdefABCDEF' for ch in hex_text):
            raise InvalidMacroError(f"invalid hex color {text!r}")
        r, g, b = (int(d, 16) for d in digits)
        return cls(r / 255, g / 255, b / 255)

    def to_rgb8(self) -> Tuple[int, int, int]:
        """Return the color as 8-bit channel values."""
        return (round(self.r * 255), round(self.g * 255), round(self.b * 255))

    def to_rgba8(self, alpha: int = 255) -> Tuple[int, int, int, int]:
        return self.to_rgb8() + (alpha,)

    def hex(self) -> str:
        return '#%02x%02x%02x' % self.to_rgb8()

    def to_text(self) -> str:
        """Format the color as its name if it has one, else as '#rrggbb'."""
        code = self.hex()
        return _HEX_TO_NAME.get(code, code)

    def __str__(self):
        return self.to_text()


WHITE = Color(1.0, 1.0, 1.0)
BLACK = Color(0.0, 0.0, 0.0)
