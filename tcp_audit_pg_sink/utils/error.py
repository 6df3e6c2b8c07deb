class TCPAuditSinkError(Exception):
    """Base class for all errors raised by tcp_audit_pg_sink."""


class ConfigError(TCPAuditSinkError):
    """Connection parameters are missing or invalid."""


class ConnectError(TCPAuditSinkError):
    """A connection to the database could not be established."""


class SchemaCreationError(TCPAuditSinkError):
    """Creating the tables failed for a reason other than them already existing."""


class StatementPreparationError(TCPAuditSinkError):
    """A named statement could not be prepared on the connection."""


class ExecutionError(TCPAuditSinkError):
    """Executing a statement (or beginning a transaction for it) failed."""


class CommitError(ExecutionError):
    """
    Committing a transaction failed after all of its statements executed.

    The writes may or may not be durable: callers must not assume either.
    """


class InsertError(TCPAuditSinkError):
    pass


class SinkConstructionError(TCPAuditSinkError):
    pass


class SinkError(TCPAuditSinkError):
    pass
