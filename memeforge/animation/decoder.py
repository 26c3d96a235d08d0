"""Decoding GIF templates into frames and encoding rendered frames back."""
import enum
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from ..errors import EmptyAnimationError, UnsupportedFormatError
from ..logging_utils import get_logger

logger = get_logger(__name__)

Box = Tuple[int, int, int, int]


class Disposal(enum.IntEnum):
    """GIF disposal methods, as numbered in the graphic control extension."""
    UNSPECIFIED = 0
    NONE = 1
    BACKGROUND = 2
    PREVIOUS = 3

    @classmethod
    def from_gif(cls, value) -> 'Disposal':
        try:
            return cls(value or 0)
        except ValueError:
            return cls.UNSPECIFIED


@dataclass
class TemplateFrame:
    """One frame of an animation.

    image covers only box, the frame's rectangle within the canvas. It is
    RGBA after decoding and paletted ('P') after rendering.
    """
    image: Image.Image
    box: Box
    disposal: Disposal = Disposal.UNSPECIFIED
    duration: int = 0  # milliseconds

    @property
    def offset(self) -> Tuple[int, int]:
        return self.box[0], self.box[1]


@dataclass
class AnimatedTemplate:
    """A decoded GIF: its frames plus the metadata needed to write it back."""
    frames: List[TemplateFrame]
    background: Tuple[int, int, int, int] = (0, 0, 0, 0)
    loop: Optional[int] = 0
    transparency: Optional[int] = None
    comment: Optional[bytes] = field(default=None, repr=False)

    def union_box(self) -> Box:
        """Union of all frame rectangles.

        Raises:
            EmptyAnimationError: If there are no frames
        """
        if not self.frames:
            raise EmptyAnimationError("animation has no frames")
        boxes = [f.box for f in self.frames]
        return (min(b[0] for b in boxes), min(b[1] for b in boxes),
                max(b[2] for b in boxes), max(b[3] for b in boxes))

    def bounds(self) -> Tuple[int, int]:
        """(width, height) of the union of frame rectangles moved to the origin."""
        x0, y0, x1, y1 = self.union_box()
        return x1 - x0, y1 - y0


def _background_color(im: Image.Image) -> Tuple[int, int, int, int]:
    """The color a GIF's canvas is cleared to."""
    if 'transparency' in im.info:
        return 0, 0, 0, 0
    palette = im.getpalette() or []
    index = im.info.get('background', 0) or 0
    if 3 * index + 3 > len(palette):
        return 0, 0, 0, 255
    r, g, b = palette[3 * index:3 * index + 3]
    return r, g, b, 255


def decode_gif(fp: BinaryIO) -> AnimatedTemplate:
    """Decode every frame of a GIF.

    Each frame is cropped to the rectangle it actually updates and keeps
    its own disposal method and duration. The cropped pixels are Pillow's
    composited canvas inside that rectangle, not the raw frame data; the
    backdrop chain applies the same disposal rules, so pasting a frame
    over its backdrop reproduces the canvas Pillow shows for it.

    Args:
        fp: Path or binary file object holding the GIF

    Returns:
        AnimatedTemplate: The decoded animation

    Raises:
        UnsupportedFormatError: If the data is not a GIF
        EmptyAnimationError: If the GIF has no frames
        OSError: If the data is corrupt
    """
    try:
        im = Image.open(fp)
    except UnidentifiedImageError as e:
        raise UnsupportedFormatError(f"not a recognized image: {e}") from e

    with im:
        if im.format != 'GIF':
            raise UnsupportedFormatError(f"expected a GIF, got {im.format}")

        background = _background_color(im)
        loop = im.info.get('loop')
        comment = im.info.get('comment')
        frames = []
        for index in range(getattr(im, 'n_frames', 1)):
            if index:
                # Pillow keeps the previous frame's method when a frame leaves it unspecified
                im.disposal_method = 0
                im.seek(index)
            im.load()
            box = tuple(getattr(im, 'dispose_extent', None) or (0, 0) + im.size)
            frames.append(TemplateFrame(
                image=im.convert('RGBA').crop(box),
                box=box,
                disposal=Disposal.from_gif(getattr(im, 'disposal_method', 0)),
                duration=int(im.info.get('duration', 0) or 0),
            ))

    if not frames:
        raise EmptyAnimationError("GIF has no frames")

    logger.debug(f"[GIF] Decoded {len(frames)} frame(s), canvas {im.size}, loop={loop}")
    return AnimatedTemplate(frames=frames, background=background, loop=loop, comment=comment)


def encode_gif(animation: AnimatedTemplate, fp: BinaryIO) -> None:
    """Write a rendered animation as a GIF.

    Every frame must already be paletted with the same palette and cover
    the whole canvas.

    Raises:
        EmptyAnimationError: If there are no frames
    """
    if not animation.frames:
        raise EmptyAnimationError("animation has no frames")

    first, *rest = [f.image for f in animation.frames]
    params = {
        'format': 'GIF',
        'save_all': True,
        'append_images': rest,
        'duration': [f.duration for f in animation.frames],
        'disposal': [int(f.disposal) for f in animation.frames],
        'optimize': False,
    }
    if animation.loop is not None:
        params['loop'] = animation.loop
    if animation.transparency is not None:
        params['transparency'] = animation.transparency
    if animation.comment:
        params['comment'] = animation.comment
    first.save(fp, **params)
