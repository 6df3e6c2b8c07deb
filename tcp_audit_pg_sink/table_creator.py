from abc import ABC, abstractmethod
from typing import List

import singer
from psycopg2 import errorcodes
from sqlalchemy import BigInteger, Column, ForeignKey, Integer, MetaData, Table, Text
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable
from sqlalchemy.types import TIMESTAMP

from tcp_audit_pg_sink.conn import Conn
from tcp_audit_pg_sink.utils.error import SchemaCreationError

LOGGER = singer.get_logger()

metadata = MetaData()

tcp_events = Table(
    "tcp_events",
    metadata,
    Column("uid", Text, primary_key=True),
    Column("timestamp", TIMESTAMP),
    Column("pid_on_cpu", Integer),
    Column("comm_on_cpu", Text),
    Column("src_ip", postgresql.INET),
    Column("dst_ip", postgresql.INET),
    Column("src_port", Integer),
    Column("dst_port", Integer),
    Column("old_state", Text),
    Column("new_state", Text),
)

# Inode, user and group ids are unsigned 32 bit values, which overflow INTEGER
tcp_events_socket_info = Table(
    "tcp_events_socket_info",
    metadata,
    Column("uid", Text, primary_key=True),
    Column("event_uid", Text, ForeignKey("tcp_events.uid", ondelete="CASCADE")),
    Column("socket_id", Text),
    Column("inode", BigInteger),
    Column("user_id", BigInteger),
    Column("group_id", BigInteger),
    Column("state", Text),
)

# Parents before children
TABLES: List[Table] = [tcp_events, tcp_events_socket_info]


def create_table_sql(table: Table) -> str:
    ddl = CreateTable(table, if_not_exists=True)
    return str(ddl.compile(dialect=postgresql.dialect())).strip()


def is_duplicate_table_error(ex: BaseException) -> bool:
    """
    Check if `ex` (or the DBAPI error it wraps) is PostgreSQL's signal that a
    relation already exists.
    """
    orig = getattr(ex, "orig", ex)
    return getattr(orig, "pgcode", None) == errorcodes.DUPLICATE_TABLE


class TableCreator(ABC):
    """Creates the database tables required to store TCP state-change events."""

    @abstractmethod
    def create_tables(self) -> None:
        ...


class PGTableCreator(TableCreator):
    def __init__(self, conn: Conn) -> None:
        self.conn = conn

    def create_tables(self) -> None:
        """
        Create the tables in the database if they do not already exist.
        """
        for table in TABLES:
            self.create_table(table)

    def create_table(self, table: Table) -> None:
        LOGGER.debug(f"Creating table {table.name} if it does not exist")

        try:
            self.conn.execute(create_table_sql(table))
        except Exception as ex:
            if is_duplicate_table_error(ex):
                # Created concurrently by another sink since IF NOT EXISTS was checked
                LOGGER.debug(f"Table {table.name} already exists")
                return

            raise SchemaCreationError(f"creating {table.name} table") from ex
