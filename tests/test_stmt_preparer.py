import pytest

from tcp_audit_pg_sink.conn import Conn
from tcp_audit_pg_sink.stmt_preparer import PGStatementPreparer
from tcp_audit_pg_sink.utils.error import StatementPreparationError


class MockConn(Conn):
    def __init__(self, error_to_raise=None):
        self.error_to_raise = error_to_raise
        self.prepared = []

    def execute(self, sql, *arguments):
        raise NotImplementedError

    def begin(self):
        raise NotImplementedError

    def prepare(self, name, sql):
        self.prepared.append((name, sql))
        if self.error_to_raise is not None:
            raise self.error_to_raise

    def close(self):
        pass

    def describe(self):
        return "mock"


class TestPGStatementPreparer:
    def test_prepare_statement(self):
        mock_conn = MockConn()

        PGStatementPreparer(mock_conn).prepare_statement(
            "INSERT INTO foo (bar) VALUES ($1)", "foo_insert"
        )

        assert mock_conn.prepared == [
            ("foo_insert", "INSERT INTO foo (bar) VALUES ($1)")
        ]

    def test_prepare_statement_error(self, in_chain):
        mock_error = RuntimeError("mock conn prepare error")

        with pytest.raises(StatementPreparationError) as excinfo:
            PGStatementPreparer(MockConn(mock_error)).prepare_statement(
                "INSERT INTO foo (bar) VALUES ($1)", "foo_insert"
            )

        assert in_chain(excinfo.value, mock_error)
        assert "foo_insert" in str(excinfo.value)
