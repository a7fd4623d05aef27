"""Provides the main entry point for using the library, :class:`SessionNotes`"""

from __future__ import annotations
import os
from typing import Optional

from sessionnotes.catalog import EmptyCatalog, JsonFileCatalog, SessionCatalog, prefill
from sessionnotes.conf import SessionNotesConf
from sessionnotes.export import export_session
from sessionnotes.models import CatalogSession, Session
from sessionnotes.store import SessionStore, backup_corrupt_file


class Error(Exception):
    pass


class SessionNotes:
    """Main entry point for working programmatically with your sessions.

    Generally, you should get an instance using the :meth:`SessionNotes.for_user` method. Call :meth:`close` when
    you're done with it, or else use it as a context manager.

    .. attribute:: conf
       :type: sessionnotes.conf.SessionNotesConf

       Typically loaded from the variable ``conf`` in the file ``~/.sessionnotes.conf.py``

    .. attribute:: store
       :type: sessionnotes.store.SessionStore

       All changes to sessions go through this.

    .. attribute:: catalog
       :type: sessionnotes.catalog.SessionCatalog

    Here's an example that jots a note into the most recently created session:

    .. code-block:: python

       from sessionnotes.api import SessionNotes
       with SessionNotes.for_user() as sn:
           session = sn.store.sessions[-1]
           sn.store.add_text(session.id, 'Remember to look up the slides')
    """

    @staticmethod
    def for_user() -> SessionNotes:
        """Creates an instance using the user's ``~/.sessionnotes.conf.py`` file.

        Raises :exc:`Exception` if it does not exist or does not define configuration.
        """
        return SessionNotesConf.for_user().instantiate()

    def __init__(self, conf: SessionNotesConf, catalog: SessionCatalog = None):
        self.conf = conf
        self.store = SessionStore(conf.store_path, on_corrupt=backup_corrupt_file if conf.backup_corrupt else None)
        if catalog is not None:
            self.catalog = catalog
        elif conf.catalog_path:
            self.catalog = JsonFileCatalog(conf.catalog_path)
        else:
            self.catalog = EmptyCatalog()

    def create_session_from_catalog(self, candidate: CatalogSession) -> Session:
        """Creates a new active session with its title, code, speakers and track copied from the candidate."""
        return self.store.create_session(**prefill(candidate))

    def resolve_session(self, ref: str) -> Session:
        """Finds a session by id, or by its 1-based index in the collection.

        Raises :exc:`Error` if there's no such session.
        """
        session = self.store.get_session(ref)
        if session:
            return session
        if ref.isdigit():
            index = int(ref) - 1
            sessions = self.store.sessions
            if 0 <= index < len(sessions):
                return sessions[index]
        raise Error(f'No such session: {ref}')

    def export(self, session_id: str, dest: Optional[str] = None) -> str:
        """Exports a session as Markdown (see :func:`sessionnotes.export.export_session`).

        If dest is not given, the file goes into :attr:`SessionNotesConf.export_dir` or the current directory.
        Returns the path of the created file.
        """
        session = self.store.get_session(session_id)
        if session is None:
            raise Error(f'No such session: {session_id}')
        if dest is None:
            dest = self.conf.export_dir or os.getcwd()
        return export_session(session, dest)

    def close(self):
        """Saves the store one last time."""
        self.store.save()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
