"""
Fake native drivers for the MySQL and Access adapters (and sqlite3,
where a test needs to see exactly what was sent).

Each fake is a module object installed into sys.modules under the real
driver's import name, so the adapters' lazy import picks it up. The
fakes speak just enough DB-API for the adapters: connect(), cursor(),
execute(), description, fetchone(), rowcount, lastrowid, commit(),
rollback() plus each binding's own transaction/encoding calls.
"""

import sys
import types

import pytest


class FakeError(Exception):
    def __init__(self, *args, errno=None, msg=None):
        super().__init__(*args or (msg,))
        self.errno = errno
        self.msg = msg


class FakeCursor:
    def __init__(self, conn, **kwargs):
        self.conn = conn
        self.kwargs = kwargs
        self.description = None
        self.rowcount = -1
        self.lastrowid = None
        self.closed = False
        self.left_unread = 0
        self._rows = []

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, params))
        result = self.conn.results.get(sql, {})
        if "error" in result:
            raise result["error"]
        columns = result.get("columns")
        self.description = [(c, None, None, None, None, None, None) for c in columns] if columns else None
        self._rows = list(result.get("rows", []))
        self.rowcount = result.get("rowcount", len(self._rows) if columns else 0)
        self.lastrowid = result.get("lastrowid")

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def close(self):
        self.left_unread = len(self._rows)
        self.closed = True


class FakeConnection:
    def __init__(self, *args, **kwargs):
        self.args = args
        self.kwargs = kwargs
        self.autocommit = kwargs.get("autocommit")
        self.executed = []
        self.results = {}
        self.calls = []
        self.failures = {}
        self.cursors = []
        self.closed = False

    def script(self, sql, columns=None, rows=(), rowcount=None, lastrowid=None, error=None):
        result = {"columns": columns, "rows": rows, "lastrowid": lastrowid}
        if rowcount is not None:
            result["rowcount"] = rowcount
        if error is not None:
            result["error"] = error
        self.results[sql] = result

    def cursor(self, **kwargs):
        cursor = FakeCursor(self, **kwargs)
        self.cursors.append(cursor)
        return cursor

    def _call(self, name):
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def commit(self):
        self._call("commit")

    def rollback(self):
        self._call("rollback")

    def close(self):
        self.closed = True

    # mysql.connector
    def start_transaction(self):
        self._call("start_transaction")

    # pymysql
    def begin(self):
        self._call("begin")

    def escape_string(self, value):
        return value.replace("\\", "\\\\").replace("'", "\\'")

    def literal(self, value):
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return str(int(value))
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, bytes):
            return "_binary'" + self.escape_string(value.decode("latin-1")) + "'"
        return "'" + self.escape_string(str(value)) + "'"

    # sqlite3
    def execute(self, sql, params=None):
        cursor = self.cursor()
        cursor.execute(sql, params)
        return cursor

    # pyodbc
    def setdecoding(self, sqltype, encoding=None):
        self.calls.append(("setdecoding", sqltype, encoding))

    def setencoding(self, encoding=None):
        self.calls.append(("setencoding", encoding))

    # pypyodbc
    def set_autocommit(self, enabled):
        self.calls.append(("set_autocommit", enabled))
        self.autocommit = enabled


def _fake_module(name):
    module = types.ModuleType(name)
    module.Error = FakeError
    module.SQL_CHAR = 1
    module.connections = []
    module.connect_error = None

    def connect(*args, **kwargs):
        if module.connect_error is not None:
            raise module.connect_error
        conn = FakeConnection(*args, **kwargs)
        module.connections.append(conn)
        return conn

    module.connect = connect
    return module


@pytest.fixture
def fake_driver(monkeypatch):
    """install(name) → fake module registered as `name` in sys.modules."""

    def install(name):
        module = _fake_module(name)
        monkeypatch.setitem(sys.modules, name, module)
        if "." in name:
            parent = types.ModuleType(name.split(".")[0])
            setattr(parent, name.split(".", 1)[1], module)
            monkeypatch.setitem(sys.modules, parent.__name__, parent)
        return module

    return install


@pytest.fixture
def mysql_connector(fake_driver):
    return fake_driver("mysql.connector")


@pytest.fixture
def pymysql_driver(fake_driver):
    return fake_driver("pymysql")


@pytest.fixture
def pyodbc_driver(fake_driver):
    return fake_driver("pyodbc")


@pytest.fixture
def pypyodbc_driver(fake_driver):
    return fake_driver("pypyodbc")
