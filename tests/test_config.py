import pytest

from config import ConfigError, log_level, resolve_database


def test_neither_set_uses_local_sqlite():
    cfg = resolve_database({'MEL_SQLITE_PATH': '/tmp/mel.sqlite3'})
    assert cfg.driver == 'sqlite'
    assert cfg.url == '/tmp/mel.sqlite3'
    assert not cfg.is_postgres


def test_url_only_assumes_postgres():
    cfg = resolve_database({'DATABASE_URL': 'postgres://mel@db/mel'})
    assert cfg.driver == 'postgres'
    assert cfg.url == 'postgres://mel@db/mel'


@pytest.mark.parametrize('driver,url,expected', [
    ('postgres', 'dbname=mel', 'dbname=mel'),
    ('SQLite', 'sqlite:////var/lib/mel.db', '/var/lib/mel.db'),
    ('sqlite', 'relative.db', 'relative.db'),
])
def test_both_set(driver, url, expected):
    cfg = resolve_database({'DATABASE_TYPE': driver, 'DATABASE_URL': url})
    assert cfg.driver == driver.lower()
    assert cfg.url == expected


def test_type_without_url_is_rejected():
    with pytest.raises(ConfigError, match='DATABASE_URL is not set'):
        resolve_database({'DATABASE_TYPE': 'postgres'})


def test_unknown_type_is_rejected():
    with pytest.raises(ConfigError, match='Unknown DATABASE_TYPE'):
        resolve_database({'DATABASE_TYPE': 'mysql', 'DATABASE_URL': 'x'})


def test_blank_values_count_as_unset():
    cfg = resolve_database({'DATABASE_URL': '  ', 'DATABASE_TYPE': '', 'MEL_SQLITE_PATH': 'mel.db'})
    assert cfg.driver == 'sqlite'


def test_statement_timeout_from_env():
    cfg = resolve_database({'MEL_STATEMENT_TIMEOUT': '2.5'})
    assert cfg.timeout == 2.5


@pytest.mark.parametrize('raw', ['soon', '0', '-1', 'nan', 'inf'])
def test_bad_statement_timeout_is_rejected(raw):
    with pytest.raises(ConfigError, match='MEL_STATEMENT_TIMEOUT'):
        resolve_database({'MEL_STATEMENT_TIMEOUT': raw})


@pytest.mark.parametrize('name,expected', [('debug', 10), (' INFO ', 20), ('WARNING', 30)])
def test_log_level(name, expected):
    assert log_level(name) == expected


def test_unknown_log_level_is_rejected():
    with pytest.raises(ConfigError, match='Unknown MEL_LOG_LEVEL'):
        log_level('chatty')
