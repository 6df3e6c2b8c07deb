"""
The shape of the events produced by the upstream TCP state-change tracer.

Only the data shape is described here: producing events is not the concern of
this package.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from ipaddress import IPv4Address, IPv6Address
from typing import Optional, Union

IPAddress = Union[IPv4Address, IPv6Address]


class TCPState(Enum):
    CLOSED = "CLOSED"
    LISTEN = "LISTEN"
    SYN_SENT = "SYN_SENT"
    SYN_RECEIVED = "SYN_RECEIVED"
    ESTABLISHED = "ESTABLISHED"
    FIN_WAIT_1 = "FIN_WAIT_1"
    FIN_WAIT_2 = "FIN_WAIT_2"
    CLOSE_WAIT = "CLOSE_WAIT"
    CLOSING = "CLOSING"
    LAST_ACK = "LAST_ACK"
    TIME_WAIT = "TIME_WAIT"
    NEW_SYN_RECEIVED = "NEW_SYN_RECEIVED"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_string(cls, label: str) -> "TCPState":
        try:
            return cls(label.upper())
        except ValueError:
            raise ValueError(f"Unknown TCP state: {label!r}") from None


@dataclass(frozen=True)
class SocketInfo:
    """Linux kernel information about the socket involved in an event."""

    id: str
    inode: int
    uid: int
    gid: int
    state: TCPState


@dataclass(frozen=True)
class Event:
    time: datetime
    pid_on_cpu: int
    command_on_cpu: str
    source_ip: IPAddress
    dest_ip: IPAddress
    source_port: int
    dest_port: int
    old_state: TCPState
    new_state: TCPState
    socket_info: Optional[SocketInfo] = None
