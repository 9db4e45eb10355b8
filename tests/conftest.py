import pytest

from config import DatabaseConfig
from meldb.db import Store


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / 'mel.sqlite3'


@pytest.fixture
def store(db_path):
    """An initialised sqlite store seeded with two users and two projects.

    alice owns 1 "Alpha" and bob owns 2 "Beta"; bob may also view Alpha.
    """
    s = Store.open(DatabaseConfig('sqlite', str(db_path)))
    s.init_db()
    s.create_user('alice', 'alice-pw')
    s.create_user('bob', 'bob-pw')
    assert s.create_project('Alpha', owner='alice') == 1
    assert s.create_project('Beta', owner='bob') == 2
    s.add_viewer(1, 'bob')
    yield s
    s.close()


@pytest.fixture
def output_lines(capsys):
    """Non-empty stdout lines printed since the last call."""
    def read():
        return [line for line in capsys.readouterr().out.splitlines() if line]
    return read
