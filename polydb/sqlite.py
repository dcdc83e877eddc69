"""
SQLite adapter — stdlib sqlite3.

The database is a file path (or ":memory:"). Flags follow the SQLite C
API open flags and are translated to a URI mode:

  OPEN_READONLY                  → mode=ro
  OPEN_READWRITE                 → mode=rw   (file must exist)
  OPEN_READWRITE | OPEN_CREATE   → mode=rwc

Transactions are explicit BEGIN / COMMIT / ROLLBACK statements; outside
of them every statement commits on its own.
"""

import logging
import pathlib

from .base import Adapter, bind_type
from .errors import ConfigError

logger = logging.getLogger(__name__)

OPEN_READONLY = 1
OPEN_READWRITE = 2
OPEN_CREATE = 4


def _uri(filename, flags) -> str:
    if flags & OPEN_READWRITE:
        mode = "rwc" if flags & OPEN_CREATE else "rw"
    else:
        mode = "ro"
    path = pathlib.Path(filename).expanduser().absolute()
    return f"{path.as_uri()}?mode={mode}"


class SQLiteAdapter(Adapter):
    """
    SQLite via sqlite3.

    Args:
        filename:       Database file path, or ":memory:".
        flags:          OPEN_* bitmask (default OPEN_READWRITE).
        encryption_key: Sent as PRAGMA key; only SQLCipher builds use it.
        busy_timeout:   Milliseconds to wait on a locked database.
        prefix:         Table name prefix used by table().
    """

    backend = "sqlite"
    driver_module = "sqlite3"
    driver_package = None

    def __init__(self, filename=None, flags=OPEN_READWRITE, encryption_key=None,
                 busy_timeout=30000, prefix=""):
        super().__init__(prefix)
        if not filename:
            raise ConfigError("SQLiteAdapter requires 'filename'")
        self.filename = filename
        self.flags = int(flags)
        self.encryption_key = encryption_key
        self.busy_timeout = busy_timeout
        self._open()

    def _connect(self, driver):
        if self.filename == ":memory:":
            conn = driver.connect(":memory:", timeout=self.busy_timeout / 1000,
                                  isolation_level=None)
        else:
            conn = driver.connect(_uri(self.filename, self.flags), uri=True,
                                  timeout=self.busy_timeout / 1000,
                                  isolation_level=None)
        if self.encryption_key:
            conn.execute(f"PRAGMA key = '{self.quote(self.encryption_key)}'")
            logger.debug("sent PRAGMA key for %s", self.filename)
        return conn

    def _run(self, cursor, sql, params):
        if not params:
            cursor.execute(sql)
            return
        values = []
        for value in params:
            kind = bind_type(value)
            if kind == "text" and not isinstance(value, str):
                # sqlite3 refuses types it has no adapter for
                value = str(value)
            elif kind == "blob":
                value = bytes(value)
            values.append(value)
        cursor.execute(sql, values)

    def _exec(self, what, sql):
        with self._driver_call(what):
            return self._handle().execute(sql)

    def start_trans(self):
        self._exec("begin", "BEGIN TRANSACTION")

    def commit(self):
        self._exec("commit", "COMMIT")

    def rollback(self):
        self._exec("rollback", "ROLLBACK")

    def last_insert_id(self, name=None):
        """Rowid of the most recent successful INSERT on this connection."""
        return self._exec("last_insert_id", "SELECT last_insert_rowid()").fetchone()[0]

    def __repr__(self):
        return f"<SQLiteAdapter {self.filename}>"
