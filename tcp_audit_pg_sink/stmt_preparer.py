from abc import ABC, abstractmethod

import singer

from tcp_audit_pg_sink.conn import Conn
from tcp_audit_pg_sink.utils.error import StatementPreparationError

LOGGER = singer.get_logger()


class StatementPreparer(ABC):
    """Registers named SQL statements for repeated use on a connection."""

    @abstractmethod
    def prepare_statement(self, sql: str, name: str) -> None:
        ...


class PGStatementPreparer(StatementPreparer):
    def __init__(self, conn: Conn) -> None:
        self.conn = conn

    def prepare_statement(self, sql: str, name: str) -> None:
        LOGGER.debug(f"Preparing statement {name}")

        try:
            self.conn.prepare(name, sql)
        except Exception as ex:
            raise StatementPreparationError(f"preparing statement {name}") from ex
