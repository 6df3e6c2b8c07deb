from abc import ABC, abstractmethod
from typing import Dict, Sequence, Tuple

import singer
from sqlalchemy import exc, text
from sqlalchemy.engine import Connection, Transaction
from sqlalchemy.sql.elements import TextClause

from tcp_audit_pg_sink.records import SQLValue, to_bind_value

LOGGER = singer.get_logger()


class Tx(ABC):
    """A transaction in progress on a Conn."""

    @abstractmethod
    def execute(self, sql: str, *arguments: SQLValue) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...


class Conn(ABC):
    """
    A live database connection.

    `sql` passed to `execute` is either raw SQL text, with parameters referenced
    as :p0, :p1, ..., or the name of a statement registered with `prepare`.
    """

    @abstractmethod
    def execute(self, sql: str, *arguments: SQLValue) -> None:
        ...

    @abstractmethod
    def begin(self) -> Tx:
        ...

    @abstractmethod
    def prepare(self, name: str, sql: str) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def describe(self) -> str:
        """A description of the connection target which is safe to log."""


class SQLAlchemyConn(Conn):
    """
    A Conn backed by a single SQLAlchemy connection.

    Statements executed outside of `begin()` are committed one by one.
    Prepared statements are PostgreSQL server-side prepared statements, so they
    live exactly as long as the connection.
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection
        self.prepared: Dict[str, str] = {}

    def statement(
        self, sql: str, arguments: Sequence[SQLValue]
    ) -> Tuple[TextClause, Dict]:
        params = {f"p{i}": to_bind_value(arg) for i, arg in enumerate(arguments)}

        if sql in self.prepared:
            if params:
                placeholders = ", ".join(f":{key}" for key in params)
                sql = f"EXECUTE {sql} ({placeholders})"
            else:
                sql = f"EXECUTE {sql}"

        return text(sql), params

    def execute(self, sql: str, *arguments: SQLValue) -> None:
        statement, params = self.statement(sql, arguments)

        try:
            self.connection.execute(statement, params)
        except exc.SQLAlchemyError:
            # A failed statement leaves the implicit transaction aborted
            self.connection.rollback()
            raise

        self.connection.commit()

    def begin(self) -> Tx:
        return SQLAlchemyTx(self, self.connection.begin())

    def prepare(self, name: str, sql: str) -> None:
        self.execute(f"PREPARE {name} AS {sql}")
        self.prepared[name] = sql

    def reset(self) -> None:
        """Discard a transaction left behind by a failed COMMIT."""
        self.connection.rollback()
        # SQLite keeps its transaction open when a deferred constraint fails
        # COMMIT, PostgreSQL ends it; a DBAPI rollback is safe either way
        self.connection.connection.rollback()

    def close(self) -> None:
        engine = self.connection.engine
        self.connection.close()
        engine.dispose()
        self.prepared.clear()

    def describe(self) -> str:
        url = self.connection.engine.url
        if url.host:
            return f"{url.host}:{url.port}" if url.port else url.host
        return url.render_as_string(hide_password=True)


class SQLAlchemyTx(Tx):
    def __init__(self, conn: SQLAlchemyConn, transaction: Transaction) -> None:
        self.conn = conn
        self.transaction = transaction

    def execute(self, sql: str, *arguments: SQLValue) -> None:
        statement, params = self.conn.statement(sql, arguments)
        self.conn.connection.execute(statement, params)

    def commit(self) -> None:
        try:
            self.transaction.commit()
        except exc.SQLAlchemyError:
            try:
                self.conn.reset()
            except Exception as reset_ex:
                LOGGER.warning(
                    f"Error resetting connection after failed commit: {reset_ex}"
                )
            raise

    def rollback(self) -> None:
        self.transaction.rollback()
