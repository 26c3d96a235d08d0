"""
Data types describing templates and macros.

These are the immutable values handed to the rendering core by the metadata
layer. Each type converts to and from the JSON-shaped dictionaries used by
the service API.
"""
import dataclasses
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

from .colors import Color, WHITE, BLACK
from .errors import InvalidMacroError

# Creator ID used for anonymous templates and macros.
ANONYMOUS = -1

MAX_CONTEXT_LINKS = 3


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    return datetime.fromisoformat(value)


def _format_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace('+00:00', 'Z')


@dataclass(frozen=True)
class Area:
    """A region of an image where text is placed.

    The anchor (x, y) is a fraction 0..1 of the image width and height,
    measured from the top-left corner. width is the text box width as a
    fraction of the image width; 0 means the full width may be used.

    If tween is set, multi-frame renders interpolate the anchor toward the
    next area in sequence. Single-frame renders ignore it.
    """
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    tween: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Area':
        if not isinstance(data, dict):
            raise InvalidMacroError(f"area must be an object, got {type(data).__name__}")
        return cls(
            x=float(data.get('x', 0.0)),
            y=float(data.get('y', 0.0)),
            width=float(data.get('width', 0.0)),
            tween=bool(data.get('tween', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {'x': self.x, 'y': self.y}
        if self.width:
            out['width'] = self.width
        if self.tween:
            out['tween'] = True
        return out

    def validate(self) -> None:
        """Check that the area is usable for a new macro.

        Raises:
            InvalidMacroError: If a coordinate is outside 0..1
        """
        if not 0 <= self.x <= 1:
            raise InvalidMacroError(f"x out of range {self.x:g}")
        if not 0 <= self.y <= 1:
            raise InvalidMacroError(f"y out of range {self.y:g}")
        if not 0 <= self.width <= 1:
            raise InvalidMacroError(f"width out of range {self.width:g}")


def areas_from_json(data: Any) -> Tuple[Area, ...]:
    """Decode a field that is either a single area object or a list of them."""
    if isinstance(data, dict):
        return (Area.from_dict(data),)
    if isinstance(data, (list, tuple)):
        return tuple(Area.from_dict(item) for item in data)
    raise InvalidMacroError("field must be an area object or a list of areas")


def areas_to_json(areas: Tuple[Area, ...]) -> Any:
    """Encode areas; a single area encodes as a plain object."""
    if len(areas) == 1:
        return areas[0].to_dict()
    return [a.to_dict() for a in areas]


@dataclass(frozen=True)
class TextLine:
    """A single line of overlay text.

    field holds the location(s) of the text. On a multi-frame image the
    areas are applied cyclically, each covering an equal share of frames.

    start and end are fractions 0..1 of the frame count bounding when the
    text is visible. If end <= start the text stays visible to the last frame.
    """
    text: str
    color: Color = WHITE
    stroke_color: Color = BLACK
    field: Tuple[Area, ...] = ()
    start: float = 0.0
    end: float = 0.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TextLine':
        return cls(
            text=data.get('text', ''),
            color=Color.parse(data['color']) if 'color' in data else WHITE,
            stroke_color=Color.parse(data['strokeColor']) if 'strokeColor' in data else BLACK,
            field=areas_from_json(data.get('field', [])),
            start=float(data.get('start', 0.0)),
            end=float(data.get('end', 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'text': self.text,
            'color': self.color.to_text(),
            'strokeColor': self.stroke_color.to_text(),
            'field': areas_to_json(self.field),
        }
        if self.start:
            out['start'] = self.start
        if self.end:
            out['end'] = self.end
        return out

    def validate(self) -> None:
        """Check that the line is usable for a new macro.

        Raises:
            InvalidMacroError: If the line is empty, has no areas, or has an
                out-of-range visibility window
        """
        if self.text == '':
            raise InvalidMacroError("text is empty")
        if not self.field:
            raise InvalidMacroError("no fields specified")
        if not 0 <= self.start <= 1:
            raise InvalidMacroError(f"start out of range {self.start:g}")
        if not 0 <= self.end <= 1:
            raise InvalidMacroError(f"end out of range {self.end:g}")
        for area in self.field:
            area.validate()


@dataclass(frozen=True)
class ContextLink:
    """A link explaining the context of a macro."""
    url: str
    text: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContextLink':
        return cls(url=data.get('url', ''), text=data.get('text', ''))

    def to_dict(self) -> Dict[str, Any]:
        out = {'url': self.url}
        if self.text:
            out['text'] = self.text
        return out

    def normalized(self) -> 'ContextLink':
        """Return a copy with a cleaned-up http(s) URL.

        Raises:
            InvalidMacroError: If the URL does not parse or is not http(s)
        """
        try:
            parts = urlsplit(self.url.strip())
        except ValueError as e:
            raise InvalidMacroError(f"invalid context URL: {e}") from e
        if parts.scheme not in ('http', 'https'):
            raise InvalidMacroError(f"invalid context link scheme {parts.scheme!r}")
        return dataclasses.replace(self, url=parts.geturl())


@dataclass(frozen=True)
class Template:
    """A base image for macros.

    Hidden templates are not offered for new macros, but macros created
    before the template was hidden still render.
    """
    id: int
    path: str
    width: int = 0
    height: int = 0
    name: str = ''
    creator: int = ANONYMOUS
    created_at: Optional[datetime] = None
    areas: Tuple[Area, ...] = ()
    hidden: bool = False

    @property
    def extension(self) -> str:
        """File extension of the image, lower-cased, including the dot."""
        return os.path.splitext(self.path)[1].lower()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Template':
        return cls(
            id=int(data.get('id', 0)),
            path=data.get('path', ''),
            width=int(data.get('width', 0)),
            height=int(data.get('height', 0)),
            name=data.get('name', ''),
            creator=int(data.get('creator', ANONYMOUS)),
            created_at=_parse_time(data.get('createdAt')),
            areas=areas_from_json(data.get('areas', [])),
            hidden=bool(data.get('hidden', False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'id': self.id,
            'path': self.path,
            'width': self.width,
            'height': self.height,
            'name': self.name,
            'creator': self.creator,
            'createdAt': _format_time(self.created_at),
        }
        if self.areas:
            out['areas'] = [a.to_dict() for a in self.areas]
        if self.hidden:
            out['hidden'] = True
        return out


@dataclass(frozen=True)
class Macro:
    """A template combined with one or more lines of text.

    Macros are cached by ID and re-rendered on demand.
    """
    id: int
    template_id: int
    text_overlay: Tuple[TextLine, ...]
    creator: int = ANONYMOUS
    created_at: Optional[datetime] = None
    context_link: Tuple[ContextLink, ...] = ()
    upvotes: int = 0
    downvotes: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Macro':
        return cls(
            id=int(data.get('id', 0)),
            template_id=int(data.get('templateID', 0)),
            text_overlay=tuple(TextLine.from_dict(tl) for tl in data.get('textOverlay') or []),
            creator=int(data.get('creator', ANONYMOUS)),
            created_at=_parse_time(data.get('createdAt')),
            context_link=tuple(ContextLink.from_dict(cl) for cl in data.get('contextLink') or []),
            upvotes=int(data.get('upvotes', 0)),
            downvotes=int(data.get('downvotes', 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'id': self.id,
            'templateID': self.template_id,
            'creator': self.creator,
            'createdAt': _format_time(self.created_at),
            'textOverlay': [tl.to_dict() for tl in self.text_overlay],
        }
        if self.context_link:
            out['contextLink'] = [cl.to_dict() for cl in self.context_link]
        if self.upvotes:
            out['upvotes'] = self.upvotes
        if self.downvotes:
            out['downvotes'] = self.downvotes
        return out

    def validate_for_create(self) -> 'Macro':
        """Check that the macro may be created, and return it normalized.

        The returned copy has its context link URLs cleaned up.

        Raises:
            InvalidMacroError: If any part of the macro is invalid
        """
        if self.id != 0:
            raise InvalidMacroError("macro ID must be zero")
        if self.template_id <= 0:
            raise InvalidMacroError("macro must have a template ID")
        if not self.text_overlay:
            raise InvalidMacroError("macro must have an overlay")
        if self.upvotes != 0 or self.downvotes != 0:
            raise InvalidMacroError("macro must not contain votes")
        if self.creator > 0:
            raise InvalidMacroError("invalid macro creator")
        if len(self.context_link) > MAX_CONTEXT_LINKS:
            raise InvalidMacroError("too many context links")

        links = tuple(cl.normalized() for cl in self.context_link)
        for line in self.text_overlay:
            line.validate()
        return dataclasses.replace(self, context_link=links)

    def check_renderable(self) -> None:
        """Check the invariants rendering relies on.

        Raises:
            InvalidMacroError: If there is no text or a line has no areas
        """
        if not self.text_overlay:
            raise InvalidMacroError(f"macro {self.id} has no text overlay")
        for i, line in enumerate(self.text_overlay):
            if not line.field:
                raise InvalidMacroError(f"macro {self.id} line {i} has no areas")
