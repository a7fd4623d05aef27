"""Keeps notes for talks and meetings as sessions of text, photos and drawings, stored in a single local file.

If you installed via ``pip``, run ``sessionnotes -h`` to get help.

To use the Python API, look at :class:`sessionnotes.api.SessionNotes`, or use
:class:`sessionnotes.store.SessionStore` directly.
"""
