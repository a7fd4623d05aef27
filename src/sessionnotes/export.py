"""Exports sessions as Markdown files.

Photos and drawings are written as separate files in a folder next to the Markdown file, named after it with a
``.resources`` suffix. For example, exporting to ``/notes/keynote.md`` puts attachments in
``/notes/keynote.md.resources/``.
"""

from io import StringIO
import os
import os.path
import re
from typing import List, Set
from urllib.parse import quote

import shortuuid
import yaml

from sessionnotes.models import Session, TextElement, PhotoElement, DrawingElement, DrawingPath, NoteElement

_IMAGE_SIGNATURES = [
    (b'\x89PNG\r\n\x1a\n', 'png'),
    (b'\xff\xd8\xff', 'jpg'),
    (b'GIF87a', 'gif'),
    (b'GIF89a', 'gif'),
]


def image_extension(data: bytes) -> str:
    """Guesses a file extension from the leading bytes of image data. Returns ``bin`` if unrecognized."""
    for signature, ext in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return ext
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return 'webp'
    if data[4:12] in (b'ftypheic', b'ftypheix', b'ftypmif1'):
        return 'heic'
    return 'bin'


def filename_for_title(title: str, suffix: str = '.md') -> str:
    """Turns a session title into a filename.

    The title is truncated to 60 characters and lowercased, and runs of anything other than a-z and 0-9 become
    a single dash. An empty result becomes ``session``.
    """
    name = title.lower()[:60]
    name = re.sub(r'[^a-z0-9]', '-', name)
    name = re.sub(r'-+', '-', name)
    name = name.strip('-')
    return f'{name or "session"}{suffix}'


def find_available_name(dest: str, also_unavailable: Set[str] = frozenset()) -> str:
    """Returns dest, or a variation of it with a short UUID added, such that nothing exists at the path."""
    if not (os.path.exists(dest) or dest in also_unavailable):
        return dest
    base, suffix = os.path.splitext(dest)
    while True:
        candidate = f'{base}_{shortuuid.uuid()}{suffix}'
        if not (os.path.exists(candidate) or candidate in also_unavailable):
            return candidate


def drawing_as_svg(paths: List[DrawingPath]) -> str:
    """Renders the strokes of a drawing as a standalone SVG document."""
    xs = [x for p in paths for x, _ in p.points]
    ys = [y for p in paths for _, y in p.points]
    pad = max((p.width for p in paths), default=0)
    if xs:
        min_x, min_y = min(xs) - pad, min(ys) - pad
        width, height = max(xs) - min(xs) + 2 * pad, max(ys) - min(ys) + 2 * pad
    else:
        min_x = min_y = width = height = 0
    lines = [f'<svg xmlns="http://www.w3.org/2000/svg" viewBox="{min_x:g} {min_y:g} {max(width, 1):g} '
             f'{max(height, 1):g}">']
    for path in paths:
        if not path.points:
            continue
        points = ' '.join(f'{x:g},{y:g}' for x, y in path.points)
        lines.append(f'  <polyline points="{points}" fill="none" stroke="{_xml_attr(path.color)}" '
                     f'stroke-width="{path.width:g}" stroke-linecap="round" stroke-linejoin="round"/>')
    lines.append('</svg>')
    return '\n'.join(lines) + '\n'


def _xml_attr(val: str) -> str:
    return val.replace('&', '&amp;').replace('"', '&quot;').replace('<', '&lt;')


class _FrontMatterDumper(yaml.SafeDumper):
    """Writes repeated values out in full instead of as anchors and aliases."""
    def ignore_aliases(self, data):
        return True


def _front_matter(session: Session) -> str:
    meta = {
        'title': session.title,
        'created': session.created_at,
        'updated': session.updated_at,
    }
    for key, val in [('session_code', session.session_code), ('speaker', session.speaker),
                     ('track', session.track)]:
        if val:
            meta[key] = val
    sio = StringIO()
    yaml.dump(meta, sio, Dumper=_FrontMatterDumper, allow_unicode=True, sort_keys=False)
    return f'---\n{sio.getvalue()}...\n'


def _write_resource(resdir: str, filename: str, data: bytes) -> str:
    os.makedirs(resdir, exist_ok=True)
    path = os.path.join(resdir, filename)
    with open(path, 'wb') as file:
        file.write(data)
    return path


def _element_markdown(element: NoteElement, resdir: str) -> str:
    reslink = quote(os.path.basename(resdir))
    if isinstance(element, TextElement):
        return element.content
    elif isinstance(element, PhotoElement):
        filename = f'{element.id}.{image_extension(element.image)}'
        _write_resource(resdir, filename, element.image)
        alt = element.caption.replace('[', '(').replace(']', ')')
        text = f'![{alt}]({reslink}/{quote(filename)})'
        if element.caption:
            text += f'\n\n*{element.caption}*'
        return text
    elif isinstance(element, DrawingElement):
        filename = f'{element.id}.svg'
        _write_resource(resdir, filename, drawing_as_svg(element.paths).encode('utf-8'))
        return f'![Drawing]({reslink}/{quote(filename)})'
    raise TypeError(f'Not a note element: {element!r}')


def export_session(session: Session, dest: str) -> str:
    """Writes the session to a Markdown file at dest (or a similar unused path) and returns the path written.

    If dest is an existing directory, a filename based on the session title is used inside it.
    """
    if os.path.isdir(dest):
        dest = os.path.join(dest, filename_for_title(session.title))
    dest = find_available_name(os.path.realpath(dest))
    resdir = f'{dest}.resources'
    parts = [_element_markdown(e, resdir) for e in session.content]
    body = '\n\n'.join(parts)
    parent = os.path.dirname(dest)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(dest, 'w', encoding='utf-8') as file:
        file.write(_front_matter(session))
        file.write(f'# {session.title}\n')
        if body:
            file.write(f'\n{body}\n')
    return dest
