from __future__ import annotations
from dataclasses import dataclass, replace
import os.path
from typing import Optional


def _standardize_path(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    return os.path.realpath(os.path.expanduser(path))


@dataclass
class SessionNotesConf:
    store_path: str
    """Required. Path of the JSON file that holds every session.

    The file and any missing parent folders are created the first time the store is loaded.
    """

    catalog_path: Optional[str] = None
    """Path to a JSON file listing candidate sessions, used by the ``catalog`` command and
    :meth:`sessionnotes.api.SessionNotes.create_session_from_catalog`.

    The file can contain either a list of sessions or an object with a ``sessions`` key holding that list.
    If this is not set, the catalog is always empty.
    """

    backup_corrupt: bool = False
    """If True, a store file that cannot be parsed is renamed with a ``.corrupt-TIMESTAMP`` suffix before being
    replaced with an empty store.

    If False (the default), an unparseable store file is simply overwritten, and its contents are lost.
    """

    export_dir: Optional[str] = None
    """Folder where exported Markdown files go when no destination is given. Defaults to the current directory."""

    @classmethod
    def for_user(cls) -> SessionNotesConf:
        path = os.path.expanduser(os.path.join('~', '.sessionnotes.conf.py'))
        if not os.path.exists(path):
            raise Exception(f'You need to create the config file: {path}')
        with open(path, 'r') as file:
            conf_script = file.read()
        context = {}
        exec(conf_script, context)
        if 'conf' not in context or not isinstance(context['conf'], cls):
            raise Exception('You need to assign an instance of SessionNotesConf to the variable `conf` '
                            f'in your config file: {path}')
        return context['conf']

    def standardize(self):
        return replace(
            self,
            store_path=_standardize_path(self.store_path),
            catalog_path=_standardize_path(self.catalog_path),
            export_dir=_standardize_path(self.export_dir)
        )

    def instantiate(self):
        from sessionnotes.api import SessionNotes
        return SessionNotes(self.standardize())
