"""Frame scheduling: where and when a text line appears in an animation."""
import dataclasses
import math
from dataclasses import dataclass

from ..errors import InvalidMacroError
from ..logging_utils import get_logger
from ..models import Area, TextLine

logger = get_logger(__name__)


@dataclass(frozen=True)
class Frame:
    """A text line as it appears on one frame, with its effective area."""
    line: TextLine
    index: int
    area: Area

    @property
    def text(self) -> str:
        return self.line.text


class FrameSource:
    """Maps frame indexes of an animation to the position of one text line.

    Areas are assigned cyclically to equal bands of frames_per_area frames.
    The visible window is [start, end] inclusive.
    """

    def __init__(self, total_frames: int, line: TextLine):
        """Build the schedule for line over total_frames frames.

        Args:
            total_frames: Number of frames in the animation (1 for stills)
            line: The text line to schedule

        Raises:
            InvalidMacroError: If the line has no areas or there are no frames
        """
        if not line.field:
            raise InvalidMacroError("text line has no areas")
        if total_frames < 1:
            raise InvalidMacroError(f"cannot schedule over {total_frames} frames")

        self.line = line
        self.total_frames = total_frames
        self.frames_per_area = math.ceil(total_frames / len(line.field))
        self.start = 0
        self.end = total_frames
        if line.start > 0:
            self.start = math.ceil(line.start * total_frames)
        if line.end > line.start:
            self.end = math.ceil(line.end * total_frames)

    def is_visible(self, i: int) -> bool:
        """Report whether the line is drawn on frame i."""
        return self.start <= i <= self.end

    def area_index(self, i: int) -> int:
        """Index into line.field of the area active at frame i."""
        if len(self.line.field) == 1:
            return 0
        return (i // self.frames_per_area) % len(self.line.field)

    def resolve(self, i: int) -> Area:
        """Effective area for frame i, interpolated if the active area tweens.

        At band boundaries the active area is returned as-is; in between,
        its anchor moves linearly toward the next area in cyclic order.
        """
        areas = self.line.field
        if len(areas) == 1:
            return areas[0]

        pos = self.area_index(i)
        cur = areas[pos]
        rem = i % self.frames_per_area
        if not cur.tween or rem == 0:
            return cur

        nxt = areas[(pos + 1) % len(areas)]
        dx = (nxt.x - cur.x) / self.frames_per_area
        dy = (nxt.y - cur.y) / self.frames_per_area
        return dataclasses.replace(cur, x=cur.x + rem * dx, y=cur.y + rem * dy)

    def frame(self, i: int) -> Frame:
        return Frame(self.line, i, self.resolve(i))

    def __repr__(self):
        return (f"FrameSource(frames={self.total_frames}, areas={len(self.line.field)}, "
                f"per_area={self.frames_per_area}, visible={self.start}..{self.end})")


def schedule(total_frames: int, line: TextLine) -> FrameSource:
    """Build the frame schedule for a text line."""
    source = FrameSource(total_frames, line)
    logger.trace(f"[SCHEDULE] {source} for '{line.text[:30]}'")
    return source
