from dataclasses import dataclass
from datetime import datetime
from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Tuple, Union

# The closed set of values which may be bound to a SQL statement parameter.
# None is bound as SQL NULL.
SQLValue = Optional[Union[str, int, datetime, IPv4Address, IPv6Address, bytes]]


def to_bind_value(value: SQLValue) -> Optional[Union[str, int, datetime, bytes]]:
    """
    Convert a SQLValue into something the database driver can bind.

    IP addresses are passed in their text form: PostgreSQL casts the literal
    to INET itself.
    """
    if value is None or isinstance(value, (str, datetime, bytes)):
        return value
    # bool is an int subclass but has no place in the tables we write to
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, (IPv4Address, IPv6Address)):
        return str(value)

    raise TypeError(f"Unsupported SQL argument type: {type(value).__name__}")


@dataclass(frozen=True)
class SQLStatement:
    """
    A statement to execute as part of a batch.

    `sql` is either the name of a prepared statement or raw SQL text.
    """

    sql: str
    arguments: Tuple[SQLValue, ...] = ()


@dataclass(frozen=True)
class EventRecord:
    """A TCP state-change event, in a form ready to insert into the database."""

    uid: str
    timestamp: datetime
    pid_on_cpu: int
    comm_on_cpu: str
    src_ip: Union[IPv4Address, IPv6Address]
    dst_ip: Union[IPv4Address, IPv6Address]
    src_port: int
    dst_port: int
    old_state: str
    new_state: str


@dataclass(frozen=True)
class SocketInfoRecord:
    """
    Linux-internal information about a socket, in a form ready to insert into
    the database.

    `event_uid` refers to the uid of the EventRecord this socket info belongs to.
    """

    uid: str
    event_uid: str
    socket_id: str
    inode: int
    user_id: int
    group_id: int
    state: str
