import json
from ipaddress import ip_address
from typing import Dict

import singer.utils
from jsonschema import Draft4Validator, FormatChecker, ValidationError

from tcp_audit_pg_sink.event import Event, SocketInfo, TCPState

# Helpers to turn one line of newline-delimited JSON into an Event:
#   {"time": "2021-06-01T12:00:00Z", "pid_on_cpu": 7337, ...,
#    "socket_info": {"id": "...", "inode": 1, "uid": 0, "gid": 0, "state": "LISTEN"}}

TCP_STATES = [state.value for state in TCPState]

UINT32 = {"type": "integer", "minimum": 0, "maximum": 0xFFFFFFFF}
PORT = {"type": "integer", "minimum": 0, "maximum": 65535}

EVENT_SCHEMA = {
    "type": "object",
    "properties": {
        "time": {"type": "string", "format": "date-time"},
        "pid_on_cpu": {"type": "integer"},
        "command_on_cpu": {"type": "string"},
        "source_ip": {"type": "string"},
        "dest_ip": {"type": "string"},
        "source_port": PORT,
        "dest_port": PORT,
        "old_state": {"type": "string", "enum": TCP_STATES},
        "new_state": {"type": "string", "enum": TCP_STATES},
        "socket_info": {
            "type": ["object", "null"],
            "properties": {
                "id": {"type": "string"},
                "inode": UINT32,
                "uid": UINT32,
                "gid": UINT32,
                "state": {"type": "string", "enum": TCP_STATES},
            },
            "required": ["id", "inode", "uid", "gid", "state"],
        },
    },
    "required": [
        "time",
        "pid_on_cpu",
        "command_on_cpu",
        "source_ip",
        "dest_ip",
        "source_port",
        "dest_port",
        "old_state",
        "new_state",
    ],
}

validator = Draft4Validator(EVENT_SCHEMA, format_checker=FormatChecker())


def parse_socket_info(o: Dict) -> SocketInfo:
    return SocketInfo(
        id=o["id"],
        inode=o["inode"],
        uid=o["uid"],
        gid=o["gid"],
        state=TCPState.from_string(o["state"]),
    )


def event_from_dict(o: Dict) -> Event:
    """
    Validate a decoded JSON event against EVENT_SCHEMA and build an Event from it.

    Raises a jsonschema ValidationError if the event is not valid.
    """
    validator.validate(o)

    try:
        source_ip = ip_address(o["source_ip"])
        dest_ip = ip_address(o["dest_ip"])
    except ValueError as ex:
        raise ValidationError(f"Invalid IP address in event: {ex}") from ex

    # tcp_events.timestamp has no time zone: store UTC
    try:
        time = singer.utils.strptime_to_utc(o["time"]).replace(tzinfo=None)
    except (ValueError, OverflowError) as ex:
        raise ValidationError(f"Invalid time in event: {o['time']}") from ex

    socket_info = None
    if o.get("socket_info") is not None:
        socket_info = parse_socket_info(o["socket_info"])

    return Event(
        time=time,
        pid_on_cpu=o["pid_on_cpu"],
        command_on_cpu=o["command_on_cpu"],
        source_ip=source_ip,
        dest_ip=dest_ip,
        source_port=o["source_port"],
        dest_port=o["dest_port"],
        old_state=TCPState.from_string(o["old_state"]),
        new_state=TCPState.from_string(o["new_state"]),
        socket_info=socket_info,
    )


def parse_event(line: str) -> Event:
    o = json.loads(line)
    if not isinstance(o, dict):
        raise ValidationError(f"Event must be a JSON object: {line}")
    return event_from_dict(o)
