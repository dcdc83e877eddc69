"""
Microsoft Access adapters — talk to .mdb/.accdb files over ODBC.

Two native bindings, same interface:
  1. pyodbc   — C extension; the driver transcodes narrow text itself
                (setencoding / setdecoding)
  2. pypyodbc — pure Python over ctypes; narrow text that comes back as
                bytes is decoded here

Access has no usable prepared statements through either binding, so `?`
markers are always substituted with escaped literals (get_real_sql)
before the statement is sent.

Narrow text on the driver side is GBK by default (Chinese-locale Jet
databases); pass charset= for anything else.

REQUIREMENTS:
  pip install pyodbc     # PyodbcAccessAdapter
  pip install pypyodbc   # PypyodbcAccessAdapter
  plus the Access ODBC driver (Windows) or an equivalent unixODBC driver
"""

import datetime
import logging
import os
from abc import abstractmethod

from .base import Adapter, quote_parts
from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_DRIVER = "Microsoft Access Driver (*.mdb, *.accdb)"


class AccessAdapter(Adapter):
    """
    DSN assembly, substitution, dialect and transactions for both bindings.

    Args:
        file:     Path to the .mdb/.accdb file (resolved with realpath).
        password: Database password, sent as PWD in the DSN.
        prefix:   Table name prefix used by table().
        driver:   ODBC driver name (default: the Microsoft Access driver).
        charset:  Encoding of narrow text on the driver side.
    """

    backend = "access"

    def __init__(self, file=None, password=None, prefix="", driver=None, charset="gbk"):
        super().__init__(prefix)
        if not file:
            raise ConfigError(f"{self.__class__.__name__} requires 'file'")
        self.file = os.path.realpath(os.path.expanduser(file))
        self.password = password
        self.driver_name = driver or DEFAULT_DRIVER
        self.charset = charset
        self._open()

    @property
    def dsn(self) -> str:
        dsn = f"Driver={{{self.driver_name}}};DSN='';DBQ={self.file};"
        if self.password:
            dsn += f"PWD={self.password};"
        return dsn

    # ── Statements ────────────────────────────────────────────

    def _run(self, cursor, sql, params):
        cursor.execute(self.get_real_sql(sql, params))

    def parse_value(self, value):
        """Access wants dates as #...# literals; everything else as usual."""
        if isinstance(value, datetime.datetime):
            return value.strftime("#%Y-%m-%d %H:%M:%S#")
        if isinstance(value, datetime.date):
            return value.strftime("#%Y-%m-%d#")
        return super().parse_value(value)

    def last_insert_id(self, name=None):
        """Counter value from the last INSERT on this connection (@@IDENTITY)."""
        cursor = self._statement("SELECT @@IDENTITY", ())
        try:
            with self._driver_call("fetch"):
                row = cursor.fetchone()
        finally:
            self._release(cursor)
        return row[0] if row else None

    # ── Transactions ──────────────────────────────────────────
    # ODBC has no BEGIN: turning autocommit off opens the transaction.

    @abstractmethod
    def _set_autocommit(self, enabled):
        ...

    def start_trans(self):
        logger.debug("%r: autocommit off", self)
        with self._driver_call("begin"):
            self._set_autocommit(False)

    def _end(self, what):
        try:
            with self._driver_call(what):
                getattr(self._handle(), what)()
        finally:
            with self._driver_call("autocommit"):
                self._set_autocommit(True)

    def commit(self):
        self._end("commit")

    def rollback(self):
        self._end("rollback")

    # ── Dialect ───────────────────────────────────────────────

    def format_table(self, name):
        return quote_parts(name, "[", "]")

    def format_field(self, name):
        return quote_parts(name, "[", "]")

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.file}>"


class PyodbcAccessAdapter(AccessAdapter):
    """Access via pyodbc."""

    driver_module = "pyodbc"
    driver_package = "pyodbc"

    def _connect(self, driver):
        conn = driver.connect(self.dsn, autocommit=True)
        conn.setdecoding(driver.SQL_CHAR, encoding=self.charset)
        conn.setencoding(encoding=self.charset)
        return conn

    def _set_autocommit(self, enabled):
        self._handle().autocommit = enabled


class PypyodbcAccessAdapter(AccessAdapter):
    """Access via pypyodbc."""

    driver_module = "pypyodbc"
    driver_package = "pypyodbc"

    def _connect(self, driver):
        return driver.connect(self.dsn, autocommit=True)

    def _set_autocommit(self, enabled):
        self._handle().set_autocommit(enabled)

    def _convert_row(self, row):
        # binary columns arrive as bytearray and are left alone
        for key, value in row.items():
            if isinstance(value, bytes):
                row[key] = value.decode(self.charset)
        return row
