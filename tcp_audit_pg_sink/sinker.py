import uuid
from datetime import datetime, timezone
from typing import Optional

import singer

from tcp_audit_pg_sink.config import ConfigGetter, EnvVarConfigGetter
from tcp_audit_pg_sink.connector import Connector, SQLAlchemyConnector
from tcp_audit_pg_sink.event import Event
from tcp_audit_pg_sink.execer import PGExecer
from tcp_audit_pg_sink.inserter import Inserter, PreparedStatementInserter
from tcp_audit_pg_sink.records import EventRecord, SocketInfoRecord
from tcp_audit_pg_sink.stmt_preparer import PGStatementPreparer
from tcp_audit_pg_sink.table_creator import PGTableCreator, TableCreator
from tcp_audit_pg_sink.utils.error import SinkConstructionError, SinkError

LOGGER = singer.get_logger()


def utc_timestamp(time: datetime) -> datetime:
    """Timestamps are stored as naive UTC; aware datetimes are converted."""
    if time.tzinfo is None:
        return time
    return time.astimezone(timezone.utc).replace(tzinfo=None)


class Sinker:
    """
    Stores TCP state-change events in the database.

    Constructing a Sinker creates the tables (if required) and prepares the
    insert statements. If either fails, no Sinker is returned.
    """

    def __init__(self, table_creator: TableCreator, inserter: Inserter) -> None:
        try:
            table_creator.create_tables()
        except Exception as ex:
            raise SinkConstructionError("creating tables") from ex

        try:
            inserter.prepare()
        except Exception as ex:
            raise SinkConstructionError("preparing inserter") from ex

        self.inserter = inserter

    def sink(self, event: Event) -> None:
        event_record = EventRecord(
            uid=str(uuid.uuid4()),
            timestamp=utc_timestamp(event.time),
            pid_on_cpu=event.pid_on_cpu,
            comm_on_cpu=event.command_on_cpu,
            src_ip=event.source_ip,
            dst_ip=event.dest_ip,
            src_port=event.source_port,
            dst_port=event.dest_port,
            old_state=str(event.old_state),
            new_state=str(event.new_state),
        )

        socket_info_record = None
        if event.socket_info is not None:
            socket_info_record = SocketInfoRecord(
                uid=str(uuid.uuid4()),
                event_uid=event_record.uid,
                socket_id=event.socket_info.id,
                inode=event.socket_info.inode,
                user_id=event.socket_info.uid,
                group_id=event.socket_info.gid,
                state=str(event.socket_info.state),
            )

        try:
            self.inserter.insert(event_record, socket_info_record)
        except Exception as ex:
            raise SinkError("inserting event") from ex

    def close(self) -> None:
        try:
            self.inserter.close()
        except Exception as ex:
            raise SinkError("closing inserter") from ex

    def __enter__(self) -> "Sinker":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if exc_type is None:
            self.close()
            return

        # Keep the error from the body of the `with` block
        try:
            self.close()
        except SinkError as close_ex:
            LOGGER.warning(f"Error closing sinker: {close_ex.__cause__}")


def new(
    config_getter: Optional[ConfigGetter] = None,
    connector: Optional[Connector] = None,
    connect_timeout: Optional[int] = None,
    statement_timeout: Optional[int] = None,
) -> Sinker:
    """
    Connect to the database and return a ready-to-use Sinker.

    Connection parameters come from `config_getter`, or from the PG*
    environment variables when it is not given. `connector` replaces the
    default SQLAlchemy connector (the timeouts then have no effect).
    """
    if connector is None:
        connector = SQLAlchemyConnector(
            config_getter or EnvVarConfigGetter(),
            connect_timeout=connect_timeout,
            statement_timeout=statement_timeout,
        )

    try:
        conn = connector.connect()
    except Exception as ex:
        raise SinkConstructionError("connecting to database") from ex

    execer = PGExecer(conn)
    try:
        return Sinker(
            PGTableCreator(conn),
            PreparedStatementInserter(PGStatementPreparer(conn), execer),
        )
    except SinkConstructionError:
        try:
            execer.close()
        except Exception as close_ex:
            LOGGER.warning(f"Error closing connection after failed setup: {close_ex}")
        raise
