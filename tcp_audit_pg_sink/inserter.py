from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import singer

from tcp_audit_pg_sink.execer import Execer
from tcp_audit_pg_sink.records import EventRecord, SocketInfoRecord, SQLStatement, SQLValue
from tcp_audit_pg_sink.stmt_preparer import StatementPreparer
from tcp_audit_pg_sink.utils.error import InsertError, StatementPreparationError

LOGGER = singer.get_logger()

INSERT_EVENT_SQL = """
INSERT INTO tcp_events (
    uid,
    timestamp,
    pid_on_cpu,
    comm_on_cpu,
    src_ip,
    dst_ip,
    src_port,
    dst_port,
    old_state,
    new_state
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)"""

INSERT_EVENT_STMT_NAME = "tcp_events_insert"

INSERT_SOCKET_INFO_SQL = """
INSERT INTO tcp_events_socket_info (
    uid,
    event_uid,
    socket_id,
    inode,
    user_id,
    group_id,
    state
) VALUES ($1, $2, $3, $4, $5, $6, $7)"""

INSERT_SOCKET_INFO_STMT_NAME = "tcp_events_socket_info_insert"

# (sql, name) of every statement the inserter executes
PREPARED_STATEMENTS: List[Tuple[str, str]] = [
    (INSERT_EVENT_SQL, INSERT_EVENT_STMT_NAME),
    (INSERT_SOCKET_INFO_SQL, INSERT_SOCKET_INFO_STMT_NAME),
]


class Inserter(ABC):
    """Inserts TCP state-change data into the backing store."""

    @abstractmethod
    def prepare(self) -> None:
        ...

    @abstractmethod
    def insert(
        self, event: EventRecord, socket_info: Optional[SocketInfoRecord] = None
    ) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


def event_arguments(event: EventRecord) -> Tuple[SQLValue, ...]:
    return (
        event.uid,
        event.timestamp,
        event.pid_on_cpu,
        event.comm_on_cpu,
        event.src_ip,
        event.dst_ip,
        event.src_port,
        event.dst_port,
        event.old_state,
        event.new_state,
    )


def socket_info_arguments(socket_info: SocketInfoRecord) -> Tuple[SQLValue, ...]:
    return (
        socket_info.uid,
        socket_info.event_uid,
        socket_info.socket_id,
        socket_info.inode,
        socket_info.user_id,
        socket_info.group_id,
        socket_info.state,
    )


class PreparedStatementInserter(Inserter):
    """
    Inserts TCP state-change data into the database using SQL prepared
    statements.

    An event without socket info is a single INSERT. An event with socket info
    is two INSERTs (the event row first, as the socket info row references it)
    executed in one transaction, so that either both rows are stored or none.
    """

    def __init__(self, stmt_preparer: StatementPreparer, execer: Execer) -> None:
        self.stmt_preparer = stmt_preparer
        self.execer = execer

    def prepare(self) -> None:
        """
        Prepare the SQL insert statements for future use in `insert`.

        Fails on the first statement which cannot be prepared.
        """
        for sql, name in PREPARED_STATEMENTS:
            try:
                self.stmt_preparer.prepare_statement(sql, name)
            except Exception as ex:
                raise StatementPreparationError(f"preparing {name} statement") from ex

    def insert(
        self, event: EventRecord, socket_info: Optional[SocketInfoRecord] = None
    ) -> None:
        if socket_info is None:
            LOGGER.debug(f"Inserting event {event.uid}")
            try:
                self.execer.exec(INSERT_EVENT_STMT_NAME, *event_arguments(event))
            except Exception as ex:
                raise InsertError("inserting into tcp_events") from ex
            return

        if socket_info.event_uid != event.uid:
            raise InsertError(
                f"socket info {socket_info.uid} refers to event "
                f"{socket_info.event_uid}, not {event.uid}"
            )

        LOGGER.debug(f"Inserting event {event.uid} with socket info {socket_info.uid}")
        try:
            self.execer.exec_multiple(
                SQLStatement(INSERT_EVENT_STMT_NAME, event_arguments(event)),
                SQLStatement(
                    INSERT_SOCKET_INFO_STMT_NAME, socket_info_arguments(socket_info)
                ),
            )
        except Exception as ex:
            raise InsertError(
                "inserting into tcp_events and tcp_events_socket_info"
            ) from ex

    def close(self) -> None:
        self.execer.close()
