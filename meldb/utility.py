"""MEL admin utility.

Performs maintenance actions that bypass the web app's authentication:
role changes, password resets, ownership transfers, listings, deletions,
schema setup, and running the server.

Usage:
    mel-utility <command> [<args> ...]

DATABASE_URL (and optionally DATABASE_TYPE) select the database; with
neither set the local sqlite file is used.
"""
import json
import logging
import sys
from contextlib import closing
from dataclasses import dataclass
from typing import Optional

import config
from meldb.db import Store, StoreError, DRIVER_ERRORS

logger = logging.getLogger(__name__)

USAGE = '''{prog} <command> [<args> ...]

bless <user> - mark the given user as a manager
curse <user> - mark the given user as a client (undo a bless)
password <user> <pass> - reset the password for the given user
transfer <project> <user> - transfer the project from the current manager to the given user
users - list the names of all users
projects [<user>] - list project names and ids, for all users if none is given
delete [user <user>] [project <project>] - delete the given user or project
serve [<port>] - run the server on localhost, defaulting to port {port}
init - initialise a new database

The environment variable DATABASE_URL selects the database; set DATABASE_TYPE
to "postgres" or "sqlite" to choose the driver explicitly.
'''


class UsageError(Exception):
    pass


@dataclass(frozen=True)
class Bless:
    user: str


@dataclass(frozen=True)
class Curse:
    user: str


@dataclass(frozen=True)
class Password:
    user: str
    password: str


@dataclass(frozen=True)
class Transfer:
    pid: str
    user: str


@dataclass(frozen=True)
class ListUsers:
    pass


@dataclass(frozen=True)
class ListProjects:
    user: Optional[str] = None


@dataclass(frozen=True)
class DeleteUser:
    user: str


@dataclass(frozen=True)
class DeleteProject:
    pid: str


@dataclass(frozen=True)
class Serve:
    port: str = config.DEFAULT_PORT


@dataclass(frozen=True)
class Init:
    pass


def usage(prog='mel-utility'):
    print(USAGE.format(prog=prog, port=config.DEFAULT_PORT), end='')


def parse_args(args) -> object:
    """Turn the arguments after the program name into a command."""
    match list(args):
        case ['bless', user]:
            return Bless(user)
        case ['curse', user]:
            return Curse(user)
        case ['password', user, password]:
            return Password(user, password)
        case ['transfer', pid, user]:
            return Transfer(pid, user)
        case ['users']:
            return ListUsers()
        case ['projects']:
            return ListProjects()
        case ['projects', user]:
            return ListProjects(user)
        case ['delete', 'user', user]:
            return DeleteUser(user)
        case ['delete', 'project', pid]:
            return DeleteProject(pid)
        case ['serve']:
            return Serve()
        case ['serve', port]:
            return Serve(port)
        case ['init']:
            return Init()
    raise UsageError(' '.join(args))


# ids are INTEGER columns (32-bit on postgres)
MAX_PID = 2**31 - 1


def parse_pid(spid: str):
    """Return the project id, or None unless spid is plain digits within MAX_PID."""
    if not (spid.isascii() and spid.isdigit()):
        return None
    pid = int(spid)
    return pid if pid <= MAX_PID else None


def quoted(value) -> str:
    return json.dumps(value, ensure_ascii=False)


def _print_rows(rows, fmt) -> int:
    try:
        for row in rows:
            print(fmt(row))
    except StoreError as exc:
        print(f'Error getting rows: {quoted(str(exc))}')
        return 1
    return 0


def run(command, store) -> int:
    """Execute one command against the store and return the exit status."""
    match command:
        case Bless(user) | Curse(user):
            verb = 'blessing' if isinstance(command, Bless) else 'cursing'
            try:
                store.set_is_manager(user, isinstance(command, Bless))
            except StoreError as exc:
                print(f'Error {verb} user: {quoted(str(exc))}')
                return 1
            return 0

        case Password(user, password):
            try:
                found = store.set_password(user, password)
            except StoreError as exc:
                print(f'Error setting password: {quoted(str(exc))}')
                return 1
            if not found:
                print(f'User not found: {user}')
                return 1
            return 0

        case Transfer(spid, user):
            pid = parse_pid(spid)
            if pid is None:
                print(f'Invalid pid {spid}')
                return 1
            try:
                store.transfer(pid, user)
            except StoreError as exc:
                print(f'Failed to update the owner: {quoted(str(exc))}')
                return 1
            return 0

        case ListUsers():
            return _print_rows(store.iter_user_names(), quoted)

        case ListProjects(user):
            rows = store.iter_projects() if user is None else store.iter_user_projects(user)
            return _print_rows(rows, lambda row: f'{row[0]}: {quoted(row[1])}')

        case DeleteUser(user):
            try:
                store.delete_user(user)
            except StoreError as exc:
                print(f'Error deleting user: {quoted(str(exc))}')
                return 1
            return 0

        case DeleteProject(spid):
            pid = parse_pid(spid)
            if pid is None:
                print(f'Invalid pid {spid}')
                return 1
            status = 0
            # views and owns reference projects, so they go first
            for step in (store.delete_project_views, store.delete_project_owner, store.delete_project_row):
                try:
                    step(pid)
                except StoreError as exc:
                    print(f'Error deleting project: {quoted(str(exc))}')
                    status = 1
            return status

        case Init():
            try:
                store.init_db()
            except StoreError as exc:
                print(f'Error initialising the database: {quoted(str(exc))}')
                return 1
            return 0

        case Serve(sport):
            port = parse_pid(sport)
            if port is None or not 0 < port < 65536:
                print(f'Invalid port {sport}')
                return 2
            from app import create_app
            create_app(store).run(host='localhost', port=port)
            return 0

    raise TypeError(f'unhandled command {command!r}')


def main(argv=None) -> int:
    argv = sys.argv if argv is None else argv
    prog, args = argv[0] if argv else 'mel-utility', argv[1:]

    try:
        command = parse_args(args)
    except UsageError:
        usage(prog)
        return 2

    try:
        level = config.log_level()
        cfg = config.resolve_database()
    except config.ConfigError as exc:
        print(f'Configuration error: {exc}')
        return 2
    logging.basicConfig(level=level, format='%(asctime)s [%(levelname)s] %(name)s: %(message)s')

    try:
        store = Store.open(cfg)
    except DRIVER_ERRORS + (OSError,) as exc:
        print(f'Error opening DB: {quoted(str(exc))}')
        return 1

    with closing(store):
        return run(command, store)


if __name__ == '__main__':
    sys.exit(main())
