"""Sources of candidate sessions that can be used to prefill new sessions.

A catalog is never required for the store to work; if it can't produce anything, it produces an empty list.
"""

import json
import logging
import os.path
from typing import Iterable, List

from sessionnotes.models import CatalogSession, ParseError

logger = logging.getLogger(__name__)


class SessionCatalog:
    """Base class for catalogs."""
    def fetch(self) -> List[CatalogSession]:
        raise NotImplementedError()


class EmptyCatalog(SessionCatalog):
    """Used when no catalog is configured."""
    def fetch(self) -> List[CatalogSession]:
        return []


class JsonFileCatalog(SessionCatalog):
    """Reads candidate sessions from a JSON file.

    The file may hold a list of sessions, or an object with a ``sessions`` key holding the list. Each entry needs
    at least ``id`` and ``title``; see :meth:`sessionnotes.models.CatalogSession.from_json`.
    """
    def __init__(self, path: str):
        self.path = path

    def fetch(self) -> List[CatalogSession]:
        if not os.path.exists(self.path):
            logger.warning('Catalog file %s does not exist', self.path)
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as file:
                data = json.load(file)
            if isinstance(data, dict):
                data = data.get('sessions', [])
            if not isinstance(data, list):
                raise ParseError('Expected a list of sessions', self.path)
            return [CatalogSession.from_json(entry) for entry in data]
        except (OSError, ValueError, ParseError) as e:
            logger.warning('Could not read catalog %s: %s', self.path, e)
            return []


def search(candidates: Iterable[CatalogSession], text: str) -> List[CatalogSession]:
    """Returns the candidates whose title, session code or speakers contain the text, ignoring case."""
    needle = (text or '').strip().lower()
    if not needle:
        return list(candidates)
    return [c for c in candidates
            if needle in c.title.lower()
            or needle in c.session_code.lower()
            or any(needle in s.lower() for s in c.speakers)]


def prefill(candidate: CatalogSession) -> dict:
    """Returns keyword arguments for :meth:`sessionnotes.store.SessionStore.create_session`."""
    return {
        'title': candidate.title,
        'session_code': candidate.session_code,
        'speaker': ', '.join(candidate.speakers),
        'track': candidate.track,
    }
