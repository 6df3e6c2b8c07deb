from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import singer
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from tcp_audit_pg_sink.config import ConfigGetter
from tcp_audit_pg_sink.conn import Conn, SQLAlchemyConn
from tcp_audit_pg_sink.utils.error import ConnectError

LOGGER = singer.get_logger()


class Connector(ABC):
    @abstractmethod
    def connect(self) -> Conn:
        ...


class SQLAlchemyConnector(Connector):
    """
    Creates a single connection to the database described by the URL returned
    by the ConfigGetter supplied in the constructor.

    `connect_timeout` (seconds) and `statement_timeout` (milliseconds) bound
    how long any one call may block on the database. They are passed to
    psycopg2 and are only valid for PostgreSQL URLs.
    """

    def __init__(
        self,
        config_getter: ConfigGetter,
        connect_timeout: Optional[int] = None,
        statement_timeout: Optional[int] = None,
    ) -> None:
        self.config_getter = config_getter
        self.connect_timeout = connect_timeout
        self.statement_timeout = statement_timeout

    def connect_args(self) -> Dict[str, Any]:
        connect_args: Dict[str, Any] = {}
        if self.connect_timeout is not None:
            connect_args["connect_timeout"] = int(self.connect_timeout)
        if self.statement_timeout is not None:
            connect_args["options"] = f"-c statement_timeout={int(self.statement_timeout)}"
        return connect_args

    def connect(self) -> Conn:
        url = self.config_getter.config()

        try:
            # NullPool: closing the connection closes the database session
            engine = create_engine(
                url, future=True, poolclass=NullPool, connect_args=self.connect_args()
            )
        except Exception as ex:
            raise ConnectError("Error creating database engine") from ex

        try:
            connection = engine.connect()
        except Exception as ex:
            engine.dispose()
            raise ConnectError(
                f"Error establishing connection to database at "
                f"'{engine.url.render_as_string(hide_password=True)}'"
            ) from ex

        conn = SQLAlchemyConn(connection)
        LOGGER.info(f"Connected to database: {conn.describe()}")

        return conn
