import itertools
import json
from pathlib import Path
from freezegun import freeze_time
from sessionnotes import cli

STORE = '/data/sessions.json'


def sn_setup(fs, extra_conf=''):
    fs.cwd = '/work'
    Path(fs.cwd).mkdir(parents=True)
    Path('~').expanduser().mkdir(parents=True)
    Path('~/.sessionnotes.conf.py').expanduser().write_text("""
from sessionnotes.conf import *
conf = SessionNotesConf(
    store_path='/data/sessions.json',
    catalog_path='/data/catalog.json',
)
""" + extra_conf)


def stored():
    return json.loads(Path(STORE).read_text())


def test_no_command(fs, capsys):
    assert cli.main([]) == 1
    out, err = capsys.readouterr()
    assert 'Commands' in out


@freeze_time('2012-05-02T03:04:05Z')
def test_new_and_list(fs, capsys, mocker):
    mocker.patch('shortuuid.uuid', side_effect=(f'uuid{i}' for i in itertools.count(1)))
    sn_setup(fs)
    assert cli.main(['new', 'Keynote', '-c', 'KEY001', '-s', 'Ann', '-t', 'Keynotes']) == 0
    assert cli.main(['new']) == 0
    out, err = capsys.readouterr()
    assert out == 'Created uuid1 Keynote\nCreated uuid2 Untitled Session\n'
    assert [s['title'] for s in stored()] == ['Keynote', 'Untitled Session']

    assert cli.main(['list', '-j']) == 0
    out, err = capsys.readouterr()
    assert json.loads(out) == [
        {'id': 'uuid1', 'title': 'Keynote', 'session_code': 'KEY001', 'speaker': 'Ann', 'track': 'Keynotes',
         'elements': 0, 'updated_at': '2012-05-02T03:04:05+00:00'},
        {'id': 'uuid2', 'title': 'Untitled Session', 'session_code': '', 'speaker': '', 'track': '',
         'elements': 0, 'updated_at': '2012-05-02T03:04:05+00:00'},
    ]

    assert cli.main(['list']) == 0
    out, err = capsys.readouterr()
    assert 'Keynote' in out
    assert 'Untitled Session' in out
    assert '2012-05-02 03:04' in out


@freeze_time('2012-05-02T03:04:05Z')
def test_add_show_edit(fs, capsys, mocker):
    mocker.patch('shortuuid.uuid', side_effect=(f'uuid{i}' for i in itertools.count(1)))
    sn_setup(fs)
    fs.create_file('/work/slide.png', contents=b'\x89PNG\r\n\x1a\nimg')
    assert cli.main(['new', 'Talk']) == 0
    assert cli.main(['add-text', '1', 'first']) == 0
    assert cli.main(['add-photo', 'uuid1', 'slide.png', '--caption', 'A slide']) == 0
    assert cli.main(['add-text', '1', 'third']) == 0
    assert cli.main(['edit-text', '1', '3', 'third, edited']) == 0
    capsys.readouterr()

    assert cli.main(['show', '1']) == 0
    out, err = capsys.readouterr()
    assert out == """id: uuid1
title: Talk
created: 2012-05-02T03:04:05+00:00
updated: 2012-05-02T03:04:05+00:00
content:
\t1. uuid2 text: first
\t2. uuid3 photo: [photo, 11 bytes] A slide
\t3. uuid4 text: third, edited
"""

    assert cli.main(['show', '-j', '1']) == 0
    out, err = capsys.readouterr()
    assert json.loads(out) == stored()[0]

    assert cli.main(['edit-text', '1', '2', 'not text']) == 1
    out, err = capsys.readouterr()
    assert err == 'Element is not text: uuid3\n'


def test_move_and_remove_elements(fs, capsys):
    sn_setup(fs)
    cli.main(['new', 'Talk'])
    for text in 'ABCD':
        cli.main(['add-text', '1', text])
    assert cli.main(['move-element', '1', '1', '3']) == 0
    assert [e['content'] for e in stored()[0]['content']] == ['B', 'C', 'A', 'D']
    assert cli.main(['rm-element', '1', '2']) == 0
    assert [e['content'] for e in stored()[0]['content']] == ['B', 'A', 'D']
    assert [e['position'] for e in stored()[0]['content']] == [1, 0, 3]
    capsys.readouterr()

    assert cli.main(['move-element', '1', '1', '4']) == 1
    out, err = capsys.readouterr()
    assert err == 'Positions must be between 1 and 3\n'
    assert cli.main(['rm-element', '1', '9']) == 1
    out, err = capsys.readouterr()
    assert err == 'No such element: 9\n'


def test_title_and_rm(fs, capsys):
    sn_setup(fs)
    cli.main(['new', 'Old'])
    cli.main(['new', 'Other'])
    assert cli.main(['title', '1', 'New']) == 0
    assert [s['title'] for s in stored()] == ['New', 'Other']
    assert cli.main(['title', '1', ' ']) == 1
    capsys.readouterr()
    assert cli.main(['rm', '2']) == 0
    out, err = capsys.readouterr()
    assert out.startswith('Deleted ')
    assert out.endswith(' Other\n')
    assert [s['title'] for s in stored()] == ['New']
    assert cli.main(['rm', '2']) == 1
    out, err = capsys.readouterr()
    assert err == 'No such session: 2\n'


def test_catalog(fs, capsys):
    sn_setup(fs)
    fs.create_file('/data/catalog.json', contents=json.dumps({'sessions': [
        {'id': '1', 'title': 'Serverless at scale', 'sessionId': 'SVS301', 'speakers': ['Ann', 'Bo'],
         'track': 'Serverless'},
        {'id': '2', 'title': 'Databases', 'sessionId': 'DAT201', 'speakers': ['Cy']},
    ]}))
    assert cli.main(['catalog', '-j', 'bo']) == 0
    out, err = capsys.readouterr()
    assert [c['sessionCode'] for c in json.loads(out)] == ['SVS301']

    assert cli.main(['catalog']) == 0
    out, err = capsys.readouterr()
    assert 'SVS301' in out
    assert 'DAT201' in out

    assert cli.main(['catalog', 'dat', '--create', '1']) == 0
    assert stored()[0]['title'] == 'Databases'
    assert stored()[0]['session_code'] == 'DAT201'
    assert stored()[0]['speaker'] == 'Cy'

    assert cli.main(['catalog', 'dat', '--create', '2']) == 1
    out, err = capsys.readouterr()
    assert err == 'No catalog entry #2\n'


def test_catalog_missing_file(fs, capsys):
    sn_setup(fs)
    assert cli.main(['catalog', '-j']) == 0
    out, err = capsys.readouterr()
    assert json.loads(out) == []


def test_export(fs, capsys):
    sn_setup(fs)
    cli.main(['new', 'My Talk'])
    cli.main(['add-text', '1', 'hello'])
    capsys.readouterr()
    assert cli.main(['export', '1']) == 0
    out, err = capsys.readouterr()
    assert out == 'Exported /work/my-talk.md\n'
    assert Path('/work/my-talk.md').read_text().endswith('# My Talk\n\nhello\n')


def test_corrupt_store_warns(fs, capsys):
    sn_setup(fs)
    fs.create_file(STORE, contents='not json')
    assert cli.main(['list', '-j']) == 0
    out, err = capsys.readouterr()
    assert json.loads(out) == []
    assert 'WARNING: sessionnotes.store: Could not load sessions' in err
    assert stored() == []


def test_add_photo_missing_file(fs, capsys):
    sn_setup(fs)
    cli.main(['new', 'Talk'])
    capsys.readouterr()
    assert cli.main(['add-photo', '1', 'missing.png']) == 1
    out, err = capsys.readouterr()
    assert err == 'Could not read missing.png: No such file or directory\n'
    assert stored()[0]['content'] == []
