from datetime import datetime
from ipaddress import ip_address

import pytest

from sqlalchemy import create_engine, text

from tcp_audit_pg_sink.config import DictConfigGetter
from tcp_audit_pg_sink.event import Event, SocketInfo, TCPState
from tcp_audit_pg_sink.sinker import new


@pytest.fixture(scope="class")
def pg_engine(config):
    engine = create_engine(DictConfigGetter(config).config(), future=True)
    try:
        yield engine
    finally:
        engine.dispose()


def make_event(comm, socket_info=None):
    return Event(
        time=datetime(2021, 6, 1, 12, 0, 0),
        pid_on_cpu=7337,
        command_on_cpu=comm,
        source_ip=ip_address("1.2.3.4"),
        dest_ip=ip_address("7.3.3.7"),
        source_port=1234,
        dest_port=7337,
        old_state=TCPState.CLOSED,
        new_state=TCPState.SYN_RECEIVED,
        socket_info=socket_info,
    )


@pytest.mark.slow
class TestPostgreSQL:
    def test_sink(self, config, pg_engine):
        comm = "test-sink"
        socket_info = SocketInfo(
            id="S1",
            inode=0xF00DF00D,
            uid=0xCAFEBABE,
            gid=0xDEADBEEF,
            state=TCPState.ESTABLISHED,
        )

        with new(DictConfigGetter(config)) as sinker:
            sinker.sink(make_event(comm))
            sinker.sink(make_event(comm, socket_info))

        with pg_engine.connect() as connection:
            rows = connection.execute(
                text(
                    "SELECT uid, host(src_ip), old_state, new_state "
                    "FROM tcp_events WHERE comm_on_cpu = :comm"
                ),
                {"comm": comm},
            ).fetchall()
            assert len(rows) == 2
            for _, src_ip, old_state, new_state in rows:
                assert src_ip == "1.2.3.4"
                assert old_state == "CLOSED"
                assert new_state == "SYN_RECEIVED"

            socket_rows = connection.execute(
                text(
                    "SELECT s.inode, s.user_id, s.group_id, s.state "
                    "FROM tcp_events_socket_info s "
                    "JOIN tcp_events e ON e.uid = s.event_uid "
                    "WHERE e.comm_on_cpu = :comm"
                ),
                {"comm": comm},
            ).fetchall()
            assert socket_rows == [(0xF00DF00D, 0xCAFEBABE, 0xDEADBEEF, "ESTABLISHED")]

        # Deleting the events cascades to their socket info
        with pg_engine.begin() as connection:
            connection.execute(
                text("DELETE FROM tcp_events WHERE comm_on_cpu = :comm"), {"comm": comm}
            )
            orphans = connection.execute(
                text(
                    "SELECT COUNT(*) FROM tcp_events_socket_info s "
                    "LEFT JOIN tcp_events e ON e.uid = s.event_uid "
                    "WHERE e.uid IS NULL"
                )
            ).scalar()
            assert orphans == 0

    def test_repeated_construction(self, config):
        # Tables already exist from the first construction
        for _ in range(2):
            sinker = new(DictConfigGetter(config))
            sinker.close()
