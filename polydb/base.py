"""
Abstract database adapter interface.

Every adapter implements the same surface:

    query(sql, params)        → list[dict] | int   rows, or affected count
    execute(sql, params)      → int                affected row count
    start_trans / commit / rollback                native transaction calls
    last_insert_id()          → int | None         id from the last INSERT
    parse_value(value)        → str                SQL literal for a value

Placeholders are always `?`. Adapters whose driver binds natively pass
them through; the others substitute escaped literals (get_real_sql).

Adapters own exactly one native driver handle. It is opened in the
constructor and released by close() (or leaving a `with` block).
"""

import datetime
import importlib
import logging
import re
from abc import ABC, abstractmethod
from contextlib import contextmanager

from .errors import DatabaseConnectionError, DriverNotFoundError, QueryError

logger = logging.getLogger(__name__)

_INSERT_RE = re.compile(r"^\s*(INSERT|REPLACE)\b", re.IGNORECASE)


def bind_type(value) -> str:
    """
    Type tag used to pick a native bind type or escaping rule.

    bool counts as integer (drivers store it as 0/1).
    """
    if value is None:
        return "null"
    if isinstance(value, (bool, int)):
        return "integer"
    if isinstance(value, float):
        return "float"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "blob"
    return "text"


class NameFormatting:
    """
    Table and field name formatting.

    Both are no-ops here. Dialects that quote identifiers override them;
    an override must accept names that are already formatted.
    """

    def format_table(self, name: str) -> str:
        return name

    def format_field(self, name: str) -> str:
        return name


class Adapter(NameFormatting, ABC):
    """
    One native database client behind the uniform interface.

    Subclasses must provide:
      driver_module / driver_package — what to import, what to pip install
      _connect(driver)               — open and return the native handle
      start_trans                    — begin a transaction

    The default statement path is plain DB-API: cursor(), execute(),
    description, fetchone(), rowcount, lastrowid. Override the hooks
    (_cursor, _run, _convert_row, _insert_id) where the driver differs.
    """

    backend = None
    driver_module = None
    driver_package = None

    def __init__(self, prefix=""):
        self._prefix = prefix or ""
        self._conn = None
        self._driver_error = Exception
        self._last_insert_id = None

    # ── Connection lifecycle ──────────────────────────────────

    def _load_driver(self):
        try:
            return importlib.import_module(self.driver_module)
        except ImportError:
            raise DriverNotFoundError(self.driver_module, self.driver_package) from None

    def _open(self):
        """Import the driver and open the handle; called from __init__."""
        driver = self._load_driver()
        self._driver_error = driver.Error
        try:
            conn = self._connect(driver)
        except driver.Error as e:
            logger.warning("connect failed for %r: %s", self, e)
            raise DatabaseConnectionError(
                self._error_message(e), code=self._error_code(e), cause=e
            ) from e
        logger.debug("connected %r via %s", self, self.driver_module)
        self._conn = conn
        return conn

    @abstractmethod
    def _connect(self, driver):
        """Open the native connection. Driver errors propagate."""
        ...

    @property
    def connection(self):
        """The native driver handle, for anything the interface doesn't cover."""
        return self._conn

    def _handle(self):
        """The open driver handle; raises once close() has run."""
        if self._conn is None:
            raise DatabaseConnectionError(f"{self!r}: connection is closed")
        return self._conn

    @property
    def prefix(self) -> str:
        return self._prefix

    def close(self):
        """Release the driver handle. Safe to call twice."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        conn.close()
        logger.debug("closed %r", self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ── Driver error translation ──────────────────────────────

    def _error_code(self, exc):
        for attr in ("errno", "sqlite_errorcode"):
            code = getattr(exc, attr, None)
            if code is not None:
                return code
        if len(exc.args) > 1:
            return exc.args[0]
        return None

    def _error_message(self, exc) -> str:
        msg = getattr(exc, "msg", None)
        if isinstance(msg, str):
            return msg
        if len(exc.args) > 1 and isinstance(exc.args[1], str):
            return exc.args[1]
        return str(exc)

    @contextmanager
    def _driver_call(self, what):
        """Re-raise driver errors from the block as QueryError."""
        try:
            yield
        except self._driver_error as e:
            logger.warning("%s failed on %r: %s", what, self, e)
            raise QueryError(
                self._error_message(e), code=self._error_code(e), cause=e
            ) from e

    # ── Statement hooks ───────────────────────────────────────

    def _cursor(self):
        return self._handle().cursor()

    def _run(self, cursor, sql, params):
        """Execute one statement on cursor. Default: native `?` binding."""
        if params:
            cursor.execute(sql, tuple(params))
        else:
            cursor.execute(sql)

    def _convert_row(self, row: dict) -> dict:
        return row

    def _insert_id(self, cursor):
        return getattr(cursor, "lastrowid", None)

    def _statement(self, sql, params):
        """Run sql and return its open cursor. Caller closes it."""
        logger.debug("%r: %s params=%r", self, sql, params)
        with self._driver_call("statement"):
            cursor = self._cursor()
        try:
            with self._driver_call("statement"):
                self._run(cursor, sql, params)
        except QueryError:
            cursor.close()
            raise
        if _INSERT_RE.match(sql):
            self._last_insert_id = self._insert_id(cursor)
        return cursor

    def _release(self, cursor):
        """Read off any unread rows, then close cursor."""
        try:
            if cursor.description is not None:
                with self._driver_call("fetch"):
                    cursor.fetchall()
        finally:
            cursor.close()

    def _rows(self, cursor):
        columns = [d[0] for d in cursor.description]
        while True:
            with self._driver_call("fetch"):
                row = cursor.fetchone()
            if row is None:
                return
            yield self._convert_row(dict(zip(columns, row)))

    @staticmethod
    def _affected(cursor) -> int:
        count = cursor.rowcount
        return count if count and count > 0 else 0

    # ── Interface ─────────────────────────────────────────────

    def query(self, sql, params=(), callback=None):
        """
        Run sql and return its rows as a list of dicts.

        With callback, each row is passed to callback(row) as it is
        fetched and None is returned. Statements without a result set
        (UPDATE, DELETE, DDL...) return the affected row count.
        """
        cursor = self._statement(sql, params)
        try:
            if cursor.description is None:
                return self._affected(cursor)
            if callback is None:
                return list(self._rows(cursor))
            for row in self._rows(cursor):
                callback(row)
            return None
        finally:
            self._release(cursor)

    def execute(self, sql, params=()) -> int:
        """Run sql and return the affected row count. Result rows are discarded."""
        cursor = self._statement(sql, params)
        try:
            return self._affected(cursor)
        finally:
            self._release(cursor)

    def multi_query(self, queries) -> list:
        """Run each statement in order; one row list per statement."""
        results = []
        for sql in queries:
            cursor = self._statement(sql, ())
            try:
                if cursor.description is None:
                    results.append([])
                else:
                    results.append(list(self._rows(cursor)))
            finally:
                self._release(cursor)
        return results

    @abstractmethod
    def start_trans(self):
        """Begin a transaction."""
        ...

    def commit(self):
        with self._driver_call("commit"):
            self._handle().commit()

    def rollback(self):
        with self._driver_call("rollback"):
            self._handle().rollback()

    @contextmanager
    def transaction(self):
        """
        Commit on success, roll back and re-raise on error.

        A failed commit is rolled back too, so the connection is left
        outside any transaction.
        """
        self.start_trans()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        try:
            self.commit()
        except QueryError:
            try:
                self.rollback()
            except QueryError as e:
                logger.warning("rollback after failed commit on %r: %s", self, e)
            raise

    def last_insert_id(self, name=None):
        """
        Id generated by the last INSERT/REPLACE on this adapter.

        `name` is a sequence name for databases that have them; none of
        the backends here do, so it is ignored.
        """
        return self._last_insert_id

    def ping(self) -> bool:
        """
        Test connectivity. Returns True if the database answers.

        Must not raise; returns False on any failure.
        """
        try:
            self.query("SELECT 1")
            return True
        except Exception:
            return False

    def pretty(self, sql, params=()) -> str:
        """Run sql and return its rows as an aligned text table."""
        rows = self.query(sql, params)
        if not isinstance(rows, list) or not rows:
            return ""
        headers = list(rows[0])
        cells = [["NULL" if r[h] is None else str(r[h]) for h in headers] for r in rows]
        widths = [
            max([len(h)] + [len(c[i]) for c in cells])
            for i, h in enumerate(headers)
        ]
        lines = [
            " | ".join(h.ljust(w) for h, w in zip(headers, widths)),
            "-+-".join("-" * w for w in widths),
        ]
        for c in cells:
            lines.append(" | ".join(v.ljust(w) for v, w in zip(c, widths)))
        return "\n".join(lines)

    # ── Values and names ──────────────────────────────────────

    def quote(self, value: str) -> str:
        """Escape a string value for safe SQL interpolation."""
        return value.replace("'", "''")

    def parse_value(self, value) -> str:
        """
        Render value as a SQL literal.

        Used for manual placeholder substitution and for logging. Where
        the driver binds natively, prefer binding.
        """
        kind = bind_type(value)
        if kind == "null":
            return "null"
        if isinstance(value, bool):
            return "1" if value else "0"
        if kind in ("integer", "float"):
            return str(value)
        if kind == "blob":
            return "X'" + bytes(value).hex() + "'"
        if isinstance(value, (datetime.date, datetime.time)):
            value = value.isoformat(sep=" ") if isinstance(value, datetime.datetime) else value.isoformat()
        return "'" + self.quote(str(value)) + "'"

    def get_real_sql(self, sql, params=()) -> str:
        """Substitute each `?` in sql with the matching escaped parameter."""
        if not params:
            return sql
        parts = sql.split("?")
        if len(parts) - 1 != len(params):
            raise QueryError(
                f"Statement has {len(parts) - 1} placeholders "
                f"but {len(params)} parameters were given"
            )
        out = [parts[0]]
        for value, part in zip(params, parts[1:]):
            out.append(self.parse_value(value))
            out.append(part)
        return "".join(out)

    def table(self, name: str) -> str:
        """Full table name: prefix + name, formatted for the dialect."""
        return self.format_table(self._prefix + name)

    # ── Repr ──────────────────────────────────────────────────

    def __repr__(self):
        return f"<{self.__class__.__name__}>"


def quote_parts(name: str, left: str, right: str) -> str:
    """
    Wrap each dot-separated part of an identifier in left/right.

    `*` and parts that are already wrapped are left alone.
    """
    parts = []
    for part in name.split("."):
        part = part.strip()
        if part == "*" or (part.startswith(left) and part.endswith(right) and len(part) > 1):
            parts.append(part)
        else:
            parts.append(f"{left}{part}{right}")
    return ".".join(parts)
