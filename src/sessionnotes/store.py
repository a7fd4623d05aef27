"""Provides :class:`SessionStore`, which owns the collection of sessions and persists it to a single file.

Every mutating method changes the in-memory collection, rewrites the whole store file, and then notifies
subscribers before returning. There is no locking; a store instance assumes it is the only writer of its file.
"""

from __future__ import annotations
from datetime import datetime, timezone
import json
import logging
import os
import os.path
from tempfile import mkstemp
from typing import Callable, List, Optional

from sessionnotes.models import Session, TextElement, PhotoElement, DrawingElement, DrawingPath, NoteElement,\
    ParseError, sessions_as_json, sessions_from_json, utcnow

logger = logging.getLogger(__name__)

DEFAULT_TITLE = 'Untitled Session'

CorruptHook = Callable[[str, BaseException], None]
Subscriber = Callable[['SessionStore'], None]


def backup_corrupt_file(path: str, error: BaseException) -> Optional[str]:
    """Renames an unreadable store file out of the way so that it is not lost when the store resets.

    The file is renamed to ``PATH.corrupt-YYYYMMDDTHHMMSSZ``. Returns the new path, or None if there was nothing to
    rename. Suitable for use as the ``on_corrupt`` hook of :class:`SessionStore`.
    """
    if not os.path.exists(path):
        return None
    stamp = datetime.now(timezone.utc).strftime('%Y%m%dT%H%M%SZ')
    dest = f'{path}.corrupt-{stamp}'
    counter = 1
    while os.path.exists(dest):
        counter += 1
        dest = f'{path}.corrupt-{stamp}-{counter}'
    os.rename(path, dest)
    logger.warning('Backed up unreadable store file %s to %s', path, dest)
    return dest


def _move(items: list, from_index: int, to_index: int) -> None:
    if not (0 <= from_index < len(items)):
        raise IndexError(f'from_index {from_index} out of range for {len(items)} items')
    if not (0 <= to_index < len(items)):
        raise IndexError(f'to_index {to_index} out of range for {len(items)} items')
    item = items.pop(from_index)
    items.insert(to_index, item)


class SessionStore:
    """In-memory collection of :class:`sessionnotes.models.Session` objects, backed by a JSON file.

    The file is loaded when the instance is created (see :meth:`load`). Afterwards, the instance is the source of
    truth: every change is applied in memory first and then the whole collection is written out by :meth:`save`.

    Lookups that fail (an unknown session id or element id) never raise; the operation simply has no effect, and
    methods return None or False so callers can tell.

    Elements returned by the store are the live objects held in the collection. Don't keep them across calls;
    fetch them again from the session instead.

    .. attribute:: path
       :type: str

    .. attribute:: last_save_error
       :type: Optional[BaseException]

       The exception from the most recent failed :meth:`save`, or None if the last save succeeded.
    """

    def __init__(self, path: str, *, on_corrupt: CorruptHook = None):
        self.path = path
        self.on_corrupt = on_corrupt
        self.last_save_error = None
        self._sessions = []
        self._current_id = None
        self._subscribers = []
        self.load()

    @property
    def sessions(self) -> List[Session]:
        """All sessions, in collection order. The returned list is a copy; the sessions in it are not."""
        return list(self._sessions)

    @property
    def current_session(self) -> Optional[Session]:
        """The active session, which new elements are usually added to, or None."""
        if self._current_id is None:
            return None
        return self.get_session(self._current_id)

    def get_session(self, session_id: str) -> Optional[Session]:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def get_element(self, session_id: str, element_id: str) -> Optional[NoteElement]:
        session = self.get_session(session_id)
        if session is None:
            return None
        index = session.element_index(element_id)
        return None if index is None else session.content[index]

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Registers a function to be called with this store after every change (and after :meth:`load`).

        Callbacks run synchronously, after the change is saved. An exception from a callback is logged and does not
        affect the store or other callbacks. Returns a function that unsubscribes.
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback(self)
            except Exception:
                logger.exception('Subscriber %r failed', callback)

    def _commit(self) -> None:
        self.save()
        self._notify()

    @staticmethod
    def _touch(session: Session) -> None:
        now = utcnow()
        session.updated_at = now if now > session.updated_at else session.updated_at

    def _find(self, session_id: str) -> Optional[Session]:
        session = self.get_session(session_id)
        if session is None:
            logger.debug('Session not found: %s', session_id)
        return session

    def create_session(self, title: str = '', session_code: str = '', speaker: str = '', track: str = '') -> Session:
        """Creates an empty session, appends it to the collection, and makes it the active session.

        A blank title is replaced with :data:`DEFAULT_TITLE`.
        """
        session = Session(title=title if title and title.strip() else DEFAULT_TITLE,
                          session_code=session_code or '',
                          speaker=speaker or '',
                          track=track or '')
        self._sessions.append(session)
        self._current_id = session.id
        logger.debug('Created session %s', session.id)
        self._commit()
        return session

    def _append(self, session_id: str, build: Callable[[int], NoteElement]) -> Optional[NoteElement]:
        session = self._find(session_id)
        if session is None:
            return None
        element = build(len(session.content))
        session.content.append(element)
        self._touch(session)
        self._commit()
        return element

    def add_text(self, session_id: str, content: str) -> Optional[TextElement]:
        """Appends a text element. Returns the new element, or None if the session doesn't exist."""
        return self._append(session_id, lambda position: TextElement(content=content, position=position))

    def add_photo(self, session_id: str, image: bytes, caption: str = '') -> Optional[PhotoElement]:
        """Appends a photo element. Returns the new element, or None if the session doesn't exist."""
        return self._append(session_id,
                            lambda position: PhotoElement(image=bytes(image), caption=caption or '',
                                                          position=position))

    def add_drawing(self, session_id: str, paths: List[DrawingPath]) -> Optional[DrawingElement]:
        """Appends a drawing element with the given strokes (which may be empty).

        Returns the new element, or None if the session doesn't exist.
        """
        logger.debug('Adding drawing with %d paths to session %s', len(paths), session_id)
        return self._append(session_id, lambda position: DrawingElement(paths=list(paths), position=position))

    def update_title(self, session_id: str, title: str) -> bool:
        session = self._find(session_id)
        if session is None:
            return False
        session.title = title
        self._touch(session)
        self._commit()
        return True

    def update_metadata(self, session_id: str, session_code: str = None, speaker: str = None,
                        track: str = None) -> bool:
        """Changes any of the optional metadata fields that are not None."""
        session = self._find(session_id)
        if session is None:
            return False
        if session_code is not None:
            session.session_code = session_code
        if speaker is not None:
            session.speaker = speaker
        if track is not None:
            session.track = track
        self._touch(session)
        self._commit()
        return True

    def update_text(self, session_id: str, element_id: str, content: str) -> bool:
        """Replaces the content of a text element, keeping its id, timestamp and position.

        Does nothing and returns False if the session or element doesn't exist, or the element is not text.
        """
        session = self._find(session_id)
        if session is None:
            return False
        index = session.element_index(element_id)
        if index is None:
            logger.debug('Element not found: %s', element_id)
            return False
        element = session.content[index]
        if not isinstance(element, TextElement):
            logger.debug('Element %s is not text', element_id)
            return False
        element.content = content
        self._touch(session)
        self._commit()
        return True

    def delete_element(self, session_id: str, element_id: str) -> bool:
        """Removes the element with the given id. Removing an id that isn't there is not an error.

        Returns True if an element was removed.
        """
        session = self._find(session_id)
        if session is None:
            return False
        remaining = [e for e in session.content if e.id != element_id]
        if len(remaining) == len(session.content):
            logger.debug('Element not found: %s', element_id)
            return False
        session.content[:] = remaining
        self._touch(session)
        self._commit()
        return True

    def reorder_element(self, session_id: str, from_index: int, to_index: int) -> bool:
        """Moves the element at from_index so that it ends up at to_index.

        The element is removed and then reinserted, so moving index 0 to 2 in ``[A, B, C, D]`` gives
        ``[B, C, A, D]``. Element positions are not renumbered.

        Raises :exc:`IndexError` (without changing anything) if either index is out of range.
        """
        session = self._find(session_id)
        if session is None:
            return False
        _move(session.content, from_index, to_index)
        self._touch(session)
        self._commit()
        return True

    def move_session(self, from_index: int, to_index: int) -> bool:
        """Reorders the session collection, with the same semantics as :meth:`reorder_element`."""
        _move(self._sessions, from_index, to_index)
        self._commit()
        return True

    def delete_session(self, session_id: str) -> bool:
        """Removes a session. If it was the active session, there is no longer an active session."""
        session = self._find(session_id)
        if session is None:
            return False
        self._sessions.remove(session)
        if self._current_id == session_id:
            self._current_id = None
        self._commit()
        return True

    def select_session(self, session_id: Optional[str]) -> bool:
        """Makes the given session active, or clears the active session if session_id is None.

        The active session is not persisted. Returns False (and leaves the active session alone) for an unknown id.
        """
        if session_id is not None and self._find(session_id) is None:
            return False
        self._current_id = session_id
        self._notify()
        return True

    def save(self) -> bool:
        """Writes the entire collection to the store file, replacing its previous contents.

        The data is written to a temporary file in the same folder which is then renamed over the store file, so a
        failed write leaves the old file intact. Failures are logged and recorded in :attr:`last_save_error` rather
        than raised. Returns True on success.
        """
        text = json.dumps(sessions_as_json(self._sessions), ensure_ascii=False)
        tmp = None
        try:
            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            fd, tmp = mkstemp(prefix=f'.{os.path.basename(self.path)}.', dir=parent or '.')
            with os.fdopen(fd, 'w', encoding='utf-8') as file:
                file.write(text)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.error('Failed to save sessions to %s: %s', self.path, e)
            self.last_save_error = e
            if tmp and os.path.exists(tmp):
                try:
                    os.remove(tmp)
                except OSError:
                    logger.debug('Could not remove temporary file %s', tmp)
            return False
        self.last_save_error = None
        return True

    def _read(self) -> List[Session]:
        try:
            with open(self.path, 'r', encoding='utf-8') as file:
                data = json.load(file)
        except (OSError, ValueError, RecursionError) as e:
            raise ParseError(f'Could not read store file: {e}', self.path, e)
        try:
            return sessions_from_json(data)
        except ParseError as e:
            e.path = self.path
            raise

    def load(self) -> None:
        """Replaces the in-memory collection with the contents of the store file.

        This is called automatically by the constructor.

        If the file doesn't exist, the collection starts out empty and an empty store file is written.

        If the file can't be read or parsed, a warning is logged, the ``on_corrupt`` hook (if any) is called, and
        then the collection is reset to empty and the file is overwritten with an empty store. Unless the hook
        preserves the file (see :func:`backup_corrupt_file`), its previous contents are lost.
        """
        if not os.path.exists(self.path):
            logger.info('Store file %s does not exist yet; starting with no sessions', self.path)
            self._sessions = []
            self._current_id = None
            self._notify()
            self.save()
            return

        try:
            sessions = self._read()
        except ParseError as e:
            logger.warning('Could not load sessions from %s, resetting to an empty store: %s', self.path, e.message)
            if self.on_corrupt:
                try:
                    self.on_corrupt(self.path, e)
                except Exception as hook_error:
                    logger.error('Recovery hook failed for %s: %s', self.path, hook_error)
            self._sessions = []
            self._current_id = None
            self._notify()
            self.save()
            return

        self._sessions = sessions
        if self._current_id is not None and self.get_session(self._current_id) is None:
            self._current_id = None
        logger.info('Loaded %d sessions from %s', len(sessions), self.path)
        self._notify()
