import argparse
import io
import json
import sys
from typing import Dict, Iterable, Optional

import singer
from jsonschema import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from tcp_audit_pg_sink.config import (
    CONNECT_TIMEOUT_CONFIG,
    STATEMENT_TIMEOUT_CONFIG,
    DictConfigGetter,
    EnvVarConfigGetter,
)
from tcp_audit_pg_sink.sinker import Sinker, new
from tcp_audit_pg_sink.utils.error import TCPAuditSinkError
from tcp_audit_pg_sink.utils.event_utils import parse_event

LOGGER = singer.get_logger()


def sinker_from_config(config: Optional[Dict]) -> Sinker:
    if config is None:
        return new(EnvVarConfigGetter())

    return new(
        DictConfigGetter(config),
        connect_timeout=config.get(CONNECT_TIMEOUT_CONFIG),
        statement_timeout=config.get(STATEMENT_TIMEOUT_CONFIG),
    )


def process_input(sinker: Sinker, lines: Iterable[str]) -> int:
    """
    The core processing loop

    Parse each line as one JSON event and sink it, in the order received.
    Returns the number of events stored.
    """
    count = 0

    for line in lines:
        if not line.strip():
            continue

        try:
            event = parse_event(line)
        except json.decoder.JSONDecodeError:
            LOGGER.error("Unable to parse:\n{}".format(line))
            raise

        sinker.sink(event)
        count += 1

    return count


def main_implementation():
    class CLINamespace(argparse.Namespace):
        config: Optional[io.TextIOWrapper]

    parser = argparse.ArgumentParser(
        description="Store TCP state-change events in PostgreSQL."
    )
    parser.add_argument(
        "-c",
        "--config",
        required=False,
        type=argparse.FileType("r"),
        help="Config file (defaults to the PG* environment variables)",
    )
    args = parser.parse_args(namespace=CLINamespace)
    config = json.load(args.config) if args.config else None

    with sinker_from_config(config) as sinker:
        count = process_input(
            sinker, io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8")
        )

    LOGGER.info(f"Stored {count} events")
    LOGGER.debug("Exiting normally")


def main():
    try:
        main_implementation()
    except (ValidationError, SQLAlchemyError, TCPAuditSinkError) as exc:
        for line in str(exc).splitlines():
            LOGGER.critical(line)
        cause = exc.__cause__
        while cause is not None:
            LOGGER.critical(f"caused by: {cause}")
            cause = cause.__cause__
        sys.exit(1)
    except Exception as exc:
        LOGGER.critical(exc)
        raise exc
