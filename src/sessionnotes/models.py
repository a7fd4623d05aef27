"""Defines classes for representing sessions, note elements, and catalog entries.

The most important classes are :class:`Session` and the three element classes that make up :data:`NoteElement`:
:class:`TextElement`, :class:`PhotoElement`, and :class:`DrawingElement`.
"""

from __future__ import annotations
import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union

import shortuuid


class ParseError(Exception):
    """Raised when serialized session data cannot be turned back into model objects."""
    def __init__(self, message: str, path: str = None, cause: BaseException = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.cause = cause


def new_id() -> str:
    return shortuuid.uuid()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(val) -> datetime:
    if not isinstance(val, str):
        raise ParseError(f'Expected an ISO 8601 string, got {val!r}')
    if val.endswith('Z'):
        val = val[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(val)
    except ValueError as e:
        raise ParseError(f'Invalid datetime: {val}', cause=e)
    # timestamps without an offset are taken to be UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require(data: dict, key: str, kind: type):
    if not isinstance(data, dict):
        raise ParseError(f'Expected an object, got {type(data).__name__}')
    if key not in data:
        raise ParseError(f'Missing field: {key}')
    val = data[key]
    if kind is float and isinstance(val, int) and not isinstance(val, bool):
        return float(val)
    if not isinstance(val, kind) or (kind is int and isinstance(val, bool)):
        raise ParseError(f'Field {key} should be {kind.__name__}, got {type(val).__name__}')
    return val


@dataclass
class DrawingPath:
    """One stroke of a freehand drawing."""

    points: List[Tuple[float, float]]
    """Coordinates in the order they were drawn."""

    color: str
    """Color tag, such as ``"black"`` or ``"#ff9900"``."""

    width: float
    """Stroke width."""

    def as_json(self) -> dict:
        return {
            'points': [[x, y] for x, y in self.points],
            'color': self.color,
            'width': self.width,
        }

    @classmethod
    def from_json(cls, data: dict) -> DrawingPath:
        points = []
        for point in _require(data, 'points', list):
            if not (isinstance(point, list) and len(point) == 2
                    and all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in point)):
                raise ParseError(f'Invalid point: {point!r}')
            points.append((float(point[0]), float(point[1])))
        return cls(points=points, color=_require(data, 'color', str), width=_require(data, 'width', float))


@dataclass
class TextElement:
    """A typed note."""

    content: str

    position: int
    """Length of the session's content when this element was appended.

    This is provenance only. It is not updated when elements are deleted or reordered; the element's index in
    :attr:`Session.content` is what determines display order.
    """

    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def as_json(self) -> dict:
        return {
            'type': 'text',
            'id': self.id,
            'content': self.content,
            'timestamp': self.timestamp.isoformat(),
            'position': self.position,
        }

    @classmethod
    def from_json(cls, data: dict) -> TextElement:
        return cls(content=_require(data, 'content', str),
                   position=_require(data, 'position', int),
                   id=_require(data, 'id', str),
                   timestamp=_parse_datetime(_require(data, 'timestamp', str)))


@dataclass
class PhotoElement:
    """A captured image. The raw bytes are kept in memory and embedded in the store file."""

    image: bytes
    position: int
    caption: str = ''
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def as_json(self) -> dict:
        return {
            'type': 'photo',
            'id': self.id,
            'image': base64.b64encode(self.image).decode('ascii'),
            'caption': self.caption,
            'timestamp': self.timestamp.isoformat(),
            'position': self.position,
        }

    @classmethod
    def from_json(cls, data: dict) -> PhotoElement:
        try:
            image = base64.b64decode(_require(data, 'image', str), validate=True)
        except binascii.Error as e:
            raise ParseError('Invalid base64 image data', cause=e)
        return cls(image=image,
                   position=_require(data, 'position', int),
                   caption=_require(data, 'caption', str),
                   id=_require(data, 'id', str),
                   timestamp=_parse_datetime(_require(data, 'timestamp', str)))


@dataclass
class DrawingElement:
    """A freehand drawing made of zero or more strokes."""

    paths: List[DrawingPath]
    position: int
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utcnow)

    def as_json(self) -> dict:
        return {
            'type': 'drawing',
            'id': self.id,
            'paths': [p.as_json() for p in self.paths],
            'timestamp': self.timestamp.isoformat(),
            'position': self.position,
        }

    @classmethod
    def from_json(cls, data: dict) -> DrawingElement:
        return cls(paths=[DrawingPath.from_json(p) for p in _require(data, 'paths', list)],
                   position=_require(data, 'position', int),
                   id=_require(data, 'id', str),
                   timestamp=_parse_datetime(_require(data, 'timestamp', str)))


NoteElement = Union[TextElement, PhotoElement, DrawingElement]
"""The closed set of element kinds a session can contain."""

_ELEMENT_TYPES = {
    'text': TextElement,
    'photo': PhotoElement,
    'drawing': DrawingElement,
}


def element_type(element: NoteElement) -> str:
    """Returns the discriminant tag used for the element in serialized data."""
    if isinstance(element, TextElement):
        return 'text'
    elif isinstance(element, PhotoElement):
        return 'photo'
    elif isinstance(element, DrawingElement):
        return 'drawing'
    raise TypeError(f'Not a note element: {element!r}')


def element_from_json(data: dict) -> NoteElement:
    """Builds the right element class based on the ``type`` tag in the data.

    Raises :exc:`ParseError` for an unknown or missing tag.
    """
    tag = _require(data, 'type', str)
    if tag not in _ELEMENT_TYPES:
        raise ParseError(f'Unknown element type: {tag}')
    return _ELEMENT_TYPES[tag].from_json(data)


@dataclass
class Session:
    """A titled, ordered collection of note elements for one talk or meeting.

    Sessions should be created and changed through :class:`sessionnotes.store.SessionStore` rather than directly,
    so that changes get timestamped and persisted.
    """

    title: str

    session_code: str = ''
    """Catalog code for the session, e.g. ``"ARC301"``."""

    speaker: str = ''
    """Speaker name(s). Sessions prefilled from a catalog join multiple speakers with ``", "``."""

    track: str = ''

    content: List[NoteElement] = field(default_factory=list)
    """The elements in display order. This order, not :attr:`TextElement.position`, is authoritative."""

    id: str = field(default_factory=new_id)

    created_at: Optional[datetime] = None
    """Set once at creation."""

    updated_at: Optional[datetime] = None
    """Set at creation and refreshed on every change to the session or its content."""

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = utcnow()
        if self.updated_at is None:
            self.updated_at = self.created_at

    def element_index(self, element_id: str) -> Optional[int]:
        """Returns the index in :attr:`content` of the element with the given id, or None."""
        for i, element in enumerate(self.content):
            if element.id == element_id:
                return i
        return None

    def as_json(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'session_code': self.session_code,
            'speaker': self.speaker,
            'track': self.track,
            'content': [e.as_json() for e in self.content],
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    @classmethod
    def from_json(cls, data: dict) -> Session:
        return cls(id=_require(data, 'id', str),
                   title=_require(data, 'title', str),
                   session_code=_require(data, 'session_code', str),
                   speaker=_require(data, 'speaker', str),
                   track=_require(data, 'track', str),
                   content=[element_from_json(e) for e in _require(data, 'content', list)],
                   created_at=_parse_datetime(_require(data, 'created_at', str)),
                   updated_at=_parse_datetime(_require(data, 'updated_at', str)))


def sessions_as_json(sessions: List[Session]) -> list:
    return [s.as_json() for s in sessions]


def sessions_from_json(data) -> List[Session]:
    """Rebuilds a whole collection. Raises :exc:`ParseError` if anything in it is malformed."""
    if not isinstance(data, list):
        raise ParseError(f'Expected a list of sessions, got {type(data).__name__}')
    return [Session.from_json(s) for s in data]


@dataclass
class CatalogSession:
    """A candidate session offered by a :class:`sessionnotes.catalog.SessionCatalog`.

    Only :attr:`title`, :attr:`session_code`, :attr:`speakers` and :attr:`track` are used when creating a new
    :class:`Session` from it; the rest is for display and searching.
    """

    id: str
    title: str
    session_code: str = ''
    speakers: List[str] = field(default_factory=list)
    track: str = ''
    description: str = ''
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: str = ''
    level: str = ''

    def as_json(self) -> dict:
        return {
            'id': self.id,
            'title': self.title,
            'sessionCode': self.session_code,
            'speakers': list(self.speakers),
            'track': self.track,
            'description': self.description,
            'startTime': self.start_time.isoformat() if self.start_time else None,
            'endTime': self.end_time.isoformat() if self.end_time else None,
            'location': self.location,
            'level': self.level,
        }

    @classmethod
    def from_json(cls, data: dict) -> CatalogSession:
        """Parses a catalog entry. The code may be given as either ``sessionCode`` or ``sessionId``."""
        if not isinstance(data, dict):
            raise ParseError(f'Expected an object, got {type(data).__name__}')
        speakers = data.get('speakers') or []
        if not (isinstance(speakers, list) and all(isinstance(s, str) for s in speakers)):
            raise ParseError(f'Invalid speakers: {speakers!r}')
        start = data.get('startTime')
        end = data.get('endTime')
        ident = data.get('id')
        if not isinstance(ident, (str, int)) or isinstance(ident, bool):
            raise ParseError(f'Invalid catalog id: {ident!r}')
        return cls(id=str(ident),
                   title=_require(data, 'title', str),
                   session_code=str(data.get('sessionCode', data.get('sessionId')) or ''),
                   speakers=speakers,
                   track=str(data.get('track') or ''),
                   description=str(data.get('description') or ''),
                   start_time=_parse_datetime(start) if start else None,
                   end_time=_parse_datetime(end) if end else None,
                   location=str(data.get('location') or ''),
                   level=str(data.get('level') or ''))
