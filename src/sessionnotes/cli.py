"""Command-line interface for sessionnotes."""


import argparse
import json
import logging
import sys
from terminaltables import AsciiTable
from sessionnotes.api import Error, SessionNotes
from sessionnotes.catalog import search
from sessionnotes.models import Session, TextElement, PhotoElement, DrawingElement, NoteElement, element_type


def configure_logging(verbose: bool = False) -> None:
    """Sends sessionnotes log messages to stderr through a single handler."""
    logger = logging.getLogger('sessionnotes')
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter('%(levelname)s: %(name)s: %(message)s'))
    logger.addHandler(handler)
    logger.propagate = False


def _summary(element: NoteElement) -> str:
    if isinstance(element, TextElement):
        return element.content
    elif isinstance(element, PhotoElement):
        return f'[photo, {len(element.image)} bytes] {element.caption}'.rstrip()
    elif isinstance(element, DrawingElement):
        return f'[drawing, {len(element.paths)} paths]'
    raise TypeError(f'Not a note element: {element!r}')


def _print_session(session: Session) -> None:
    print(f'id: {session.id}')
    print(f'title: {session.title}')
    if session.session_code:
        print(f'session code: {session.session_code}')
    if session.speaker:
        print(f'speaker: {session.speaker}')
    if session.track:
        print(f'track: {session.track}')
    print(f'created: {session.created_at.isoformat()}')
    print(f'updated: {session.updated_at.isoformat()}')
    print('content:')
    for i, element in enumerate(session.content, 1):
        print(f'\t{i}. {element.id} {element_type(element)}: {_summary(element)}')


def _element_id(session: Session, ref: str) -> str:
    if session.element_index(ref) is not None:
        return ref
    if ref.isdigit() and 0 < int(ref) <= len(session.content):
        return session.content[int(ref) - 1].id
    raise Error(f'No such element: {ref}')


def _list(args, sn: SessionNotes) -> int:
    sessions = sn.store.sessions
    if args.json:
        print(json.dumps([{'id': s.id, 'title': s.title, 'session_code': s.session_code, 'speaker': s.speaker,
                           'track': s.track, 'elements': len(s.content), 'updated_at': s.updated_at.isoformat()}
                          for s in sessions]))
        return 0
    data = [('#', 'Title', 'Code', 'Speaker', 'Notes', 'Updated')]
    for i, s in enumerate(sessions, 1):
        data.append((i, s.title, s.session_code, s.speaker, len(s.content),
                     s.updated_at.strftime('%Y-%m-%d %H:%M')))
    table = AsciiTable(data)
    table.justify_columns[4] = 'right'
    print(table.table)
    return 0


def _show(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    if args.json:
        print(json.dumps(session.as_json(), ensure_ascii=False))
    else:
        _print_session(session)
    return 0


def _new(args, sn: SessionNotes) -> int:
    session = sn.store.create_session(args.title or '',
                                      session_code=args.code[0] if args.code else '',
                                      speaker=args.speaker[0] if args.speaker else '',
                                      track=args.track[0] if args.track else '')
    print(f'Created {session.id} {session.title}')
    return 0


def _catalog(args, sn: SessionNotes) -> int:
    candidates = search(sn.catalog.fetch(), args.query or '')
    if args.create:
        index = args.create[0]
        if not 0 < index <= len(candidates):
            raise Error(f'No catalog entry #{index}')
        session = sn.create_session_from_catalog(candidates[index - 1])
        print(f'Created {session.id} {session.title}')
        return 0
    if args.json:
        print(json.dumps([c.as_json() for c in candidates]))
        return 0
    data = [('#', 'Code', 'Title', 'Speakers', 'Track')]
    for i, c in enumerate(candidates, 1):
        data.append((i, c.session_code, c.title, '\n'.join(c.speakers), c.track))
    print(AsciiTable(data).table)
    return 0


def _add_text(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    element = sn.store.add_text(session.id, args.text[0])
    print(f'Added {element.id}')
    return 0


def _add_photo(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    try:
        with open(args.file[0], 'rb') as file:
            image = file.read()
    except OSError as e:
        raise Error(f'Could not read {args.file[0]}: {e.strerror or e}')
    element = sn.store.add_photo(session.id, image, caption=args.caption[0] if args.caption else '')
    print(f'Added {element.id}')
    return 0


def _edit_text(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    element_id = _element_id(session, args.element[0])
    if not sn.store.update_text(session.id, element_id, args.text[0]):
        raise Error(f'Element is not text: {element_id}')
    return 0


def _rm_element(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    sn.store.delete_element(session.id, _element_id(session, args.element[0]))
    return 0


def _move_element(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    count = len(session.content)
    src, dest = args.src[0], args.dest[0]
    if not (0 < src <= count and 0 < dest <= count):
        raise Error(f'Positions must be between 1 and {count}')
    sn.store.reorder_element(session.id, src - 1, dest - 1)
    return 0


def _title(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    title = args.title[0]
    if not title.strip():
        raise Error('Title must not be empty')
    sn.store.update_title(session.id, title)
    return 0


def _rm(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    sn.store.delete_session(session.id)
    print(f'Deleted {session.id} {session.title}')
    return 0


def _export(args, sn: SessionNotes) -> int:
    session = sn.resolve_session(args.session[0])
    path = sn.export(session.id, args.dest)
    print(f'Exported {path}')
    return 0


def argparser() -> argparse.ArgumentParser:
    session_help = 'Session id, or its number as shown by the `list` command.'
    element_help = 'Element id, or its number as shown by the `show` command.'

    parser = argparse.ArgumentParser()
    parser.set_defaults(func=None)
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debugging information to stderr.')

    subs = parser.add_subparsers(title='Commands')

    p_list = subs.add_parser('list', help='List all sessions.')
    p_list.add_argument('-j', '--json', action='store_true', help='Output as JSON.')
    p_list.set_defaults(func=_list)

    p_show = subs.add_parser('show', help='Show a session and its notes.')
    p_show.add_argument('session', nargs=1, help=session_help)
    p_show.add_argument('-j', '--json', action='store_true',
                        help='Output as JSON, in the same format used in the store file.')
    p_show.set_defaults(func=_show)

    p_new = subs.add_parser('new', help='Create an empty session.')
    p_new.add_argument('title', nargs='?', help='Title for the session. Defaults to "Untitled Session".')
    p_new.add_argument('-c', '--code', nargs=1, help='Session code, e.g. ARC301.')
    p_new.add_argument('-s', '--speaker', nargs=1)
    p_new.add_argument('-t', '--track', nargs=1)
    p_new.set_defaults(func=_new)

    p_cat = subs.add_parser(
        'catalog',
        help='Search the session catalog configured in conf.catalog_path, or create a session from an entry.')
    p_cat.add_argument('query', nargs='?',
                       help='Text to look for in titles, session codes and speakers. If omitted, all entries are shown.')
    p_cat.add_argument('--create', nargs=1, type=int, metavar='N',
                       help='Create a new session prefilled from entry number N of the search results.')
    p_cat.add_argument('-j', '--json', action='store_true', help='Output as JSON.')
    p_cat.set_defaults(func=_catalog)

    p_at = subs.add_parser('add-text', help='Append a text note to a session.')
    p_at.add_argument('session', nargs=1, help=session_help)
    p_at.add_argument('text', nargs=1)
    p_at.set_defaults(func=_add_text)

    p_ap = subs.add_parser('add-photo', help='Append a photo to a session. The image is copied into the store.')
    p_ap.add_argument('session', nargs=1, help=session_help)
    p_ap.add_argument('file', nargs=1, help='Image file.')
    p_ap.add_argument('--caption', nargs=1)
    p_ap.set_defaults(func=_add_photo)

    p_et = subs.add_parser('edit-text', help='Replace the content of a text note.')
    p_et.add_argument('session', nargs=1, help=session_help)
    p_et.add_argument('element', nargs=1, help=element_help)
    p_et.add_argument('text', nargs=1)
    p_et.set_defaults(func=_edit_text)

    p_re = subs.add_parser('rm-element', help='Delete a note from a session.')
    p_re.add_argument('session', nargs=1, help=session_help)
    p_re.add_argument('element', nargs=1, help=element_help)
    p_re.set_defaults(func=_rm_element)

    p_me = subs.add_parser('move-element',
                           help='Move a note so that it ends up at a new position (both numbered from 1).')
    p_me.add_argument('session', nargs=1, help=session_help)
    p_me.add_argument('src', nargs=1, type=int)
    p_me.add_argument('dest', nargs=1, type=int)
    p_me.set_defaults(func=_move_element)

    p_title = subs.add_parser('title', help='Rename a session.')
    p_title.add_argument('session', nargs=1, help=session_help)
    p_title.add_argument('title', nargs=1)
    p_title.set_defaults(func=_title)

    p_rm = subs.add_parser('rm', help='Delete a session and all its notes.')
    p_rm.add_argument('session', nargs=1, help=session_help)
    p_rm.set_defaults(func=_rm)

    p_exp = subs.add_parser(
        'export',
        help='Export a session as Markdown. Photos and drawings are written to a folder next to the file, with '
             'the same name plus ".resources".')
    p_exp.add_argument('session', nargs=1, help=session_help)
    p_exp.add_argument('dest', nargs='?',
                       help='File or folder to export to. Defaults to conf.export_dir or the current directory. '
                            'An existing file is never overwritten; a unique name is chosen instead.')
    p_exp.set_defaults(func=_export)

    return parser


def main(args=None) -> int:
    """Runs the tool and returns its exit code.

    args may be an array of string command-line arguments; if absent,
    the process's arguments are used.
    """
    parser = argparser()
    args = parser.parse_args(args)
    if not args.func:
        parser.print_help()
        return 1
    configure_logging(args.verbose)
    with SessionNotes.for_user() as sn:
        try:
            return args.func(args, sn)
        except Error as e:
            print(str(e), file=sys.stderr)
            return 1
