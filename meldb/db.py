import logging
import sqlite3
import threading
from pathlib import Path

import psycopg2
from werkzeug.security import generate_password_hash, check_password_hash

from config import DatabaseConfig

logger = logging.getLogger(__name__)

DRIVER_ERRORS = (sqlite3.Error, psycopg2.Error)


class StoreError(Exception):
    """A statement failed in the underlying driver."""


USERS_TABLE = '''
CREATE TABLE IF NOT EXISTS users (
    name TEXT PRIMARY KEY,
    password TEXT NOT NULL,
    is_manager BOOLEAN NOT NULL DEFAULT FALSE
)
'''

PROJECTS_TABLE = {
    'sqlite': '''
    CREATE TABLE IF NOT EXISTS projects (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    )
    ''',
    'postgres': '''
    CREATE TABLE IF NOT EXISTS projects (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL
    )
    ''',
}

OWNS_TABLE = '''
CREATE TABLE IF NOT EXISTS owns (
    pid INTEGER PRIMARY KEY REFERENCES projects(id),
    name TEXT REFERENCES users(name)
)
'''

VIEWS_TABLE = '''
CREATE TABLE IF NOT EXISTS views (
    pid INTEGER REFERENCES projects(id),
    name TEXT REFERENCES users(name),
    PRIMARY KEY (pid, name)
)
'''


def connect(cfg: DatabaseConfig):
    """Open a connection for the configured driver."""
    if cfg.is_postgres:
        ms = int(cfg.timeout * 1000)
        conn = psycopg2.connect(cfg.url, options=f'-c statement_timeout={ms}')
    else:
        Path(cfg.url).parent.mkdir(parents=True, exist_ok=True)
        # shared with the server threads; Store serialises access
        conn = sqlite3.connect(cfg.url, timeout=cfg.timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
    logger.info('opened %s database', cfg.driver)
    return conn


class Store:
    """The queries the admin utility and the web app run.

    Every call ends its own transaction: writes commit, reads commit once the
    rows are consumed or abandoned. A failed statement is rolled back and
    re-raised as StoreError. One statement runs at a time per connection.
    """

    def __init__(self, conn, driver: str = 'sqlite'):
        self.conn = conn
        self.driver = driver
        self.lock = threading.RLock()

    @classmethod
    def open(cls, cfg: DatabaseConfig):
        return cls(connect(cfg), cfg.driver)

    def close(self):
        with self.lock:
            self.conn.close()

    def _sql(self, sql):
        # psycopg2 uses the format paramstyle
        if self.driver == 'postgres':
            return sql.replace('?', '%s')
        return sql

    def _execute(self, sql, params=()) -> int:
        with self.lock:
            cur = self.conn.cursor()
            try:
                cur.execute(self._sql(sql), params)
                self.conn.commit()
                return cur.rowcount
            except DRIVER_ERRORS as exc:
                self.conn.rollback()
                raise StoreError(str(exc)) from exc
            finally:
                cur.close()

    def _query(self, sql, params=()):
        """Yield rows lazily; the cursor is closed once the caller stops."""
        with self.lock:
            cur = self.conn.cursor()
            try:
                cur.execute(self._sql(sql), params)
                for row in cur:
                    yield tuple(row)
            except DRIVER_ERRORS as exc:
                self.conn.rollback()
                raise StoreError(str(exc)) from exc
            finally:
                cur.close()
                self._end_read()

    def _end_read(self):
        # leave no read transaction open (postgres: idle in transaction)
        try:
            self.conn.commit()
        except DRIVER_ERRORS as exc:
            logger.warning('could not end read transaction: %s', exc)

    def init_db(self):
        for ddl in (USERS_TABLE, PROJECTS_TABLE[self.driver], OWNS_TABLE, VIEWS_TABLE):
            self._execute(ddl)

    # users

    def create_user(self, name: str, password: str, is_manager: bool = False):
        self._execute('INSERT INTO users (name, password, is_manager) VALUES (?, ?, ?)',
                      (name, generate_password_hash(password), is_manager))

    def set_is_manager(self, name: str, is_manager: bool) -> bool:
        """Returns False when no such user exists."""
        count = self._execute('UPDATE users SET is_manager = ? WHERE name = ?', (is_manager, name))
        if count == 0:
            logger.warning('no user named %r; is_manager unchanged', name)
        return count > 0

    def is_manager(self, name: str):
        for (flag,) in self._query('SELECT is_manager FROM users WHERE name = ?', (name,)):
            return bool(flag)
        return None

    def set_password(self, name: str, password: str) -> bool:
        """Hash and store a new password. Returns False when no such user exists."""
        pw_hash = generate_password_hash(password)
        return self._execute('UPDATE users SET password = ? WHERE name = ?', (pw_hash, name)) > 0

    def check_password(self, name: str, password: str) -> bool:
        for (pw_hash,) in self._query('SELECT password FROM users WHERE name = ?', (name,)):
            return check_password_hash(pw_hash, password)
        return False

    def delete_user(self, name: str) -> int:
        # owns/views rows naming the user are left in place
        return self._execute('DELETE FROM users WHERE name = ?', (name,))

    def iter_user_names(self):
        for (name,) in self._query('SELECT name FROM users'):
            yield name

    # projects

    def create_project(self, name: str, owner: str = None) -> int:
        with self.lock:
            return self._create_project(name, owner)

    def _create_project(self, name, owner):
        cur = self.conn.cursor()
        try:
            if self.driver == 'postgres':
                cur.execute('INSERT INTO projects (name) VALUES (%s) RETURNING id', (name,))
                pid = cur.fetchone()[0]
            else:
                cur.execute('INSERT INTO projects (name) VALUES (?)', (name,))
                pid = cur.lastrowid
            if owner is not None:
                cur.execute(self._sql('INSERT INTO owns (pid, name) VALUES (?, ?)'), (pid, owner))
            self.conn.commit()
            return pid
        except DRIVER_ERRORS as exc:
            self.conn.rollback()
            raise StoreError(str(exc)) from exc
        finally:
            cur.close()

    def add_viewer(self, pid: int, name: str):
        self._execute('INSERT INTO views (pid, name) VALUES (?, ?)', (pid, name))

    def owner_of(self, pid: int):
        for (name,) in self._query('SELECT name FROM owns WHERE pid = ?', (pid,)):
            return name
        return None

    def transfer(self, pid: int, name: str) -> int:
        count = self._execute('UPDATE owns SET name = ? WHERE pid = ?', (name, pid))
        if count == 0:
            logger.warning('project %d has no owner row; nothing transferred', pid)
        return count

    def iter_projects(self):
        return self._query('SELECT id, name FROM projects')

    def iter_user_projects(self, name: str):
        return self._query('SELECT p.id, p.name FROM owns o JOIN projects p ON p.id = o.pid WHERE o.name = ?', (name,))

    def iter_visible_projects(self, name: str):
        """Projects the user owns or has been granted a view of."""
        return self._query(
            'SELECT p.id, p.name FROM projects p JOIN owns o ON o.pid = p.id WHERE o.name = ? '
            'UNION SELECT p.id, p.name FROM projects p JOIN views v ON v.pid = p.id WHERE v.name = ?',
            (name, name))

    def iter_viewers(self, pid: int):
        for (name,) in self._query('SELECT name FROM views WHERE pid = ?', (pid,)):
            yield name

    def delete_project_views(self, pid: int) -> int:
        return self._execute('DELETE FROM views WHERE pid = ?', (pid,))

    def delete_project_owner(self, pid: int) -> int:
        return self._execute('DELETE FROM owns WHERE pid = ?', (pid,))

    def delete_project_row(self, pid: int) -> int:
        return self._execute('DELETE FROM projects WHERE id = ?', (pid,))
