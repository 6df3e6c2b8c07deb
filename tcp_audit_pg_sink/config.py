import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote

from tcp_audit_pg_sink.utils.error import ConfigError

HOST_ENV_VAR = "PGHOST"
PORT_ENV_VAR = "PGPORT"
DB_ENV_VAR = "PGDATABASE"
USER_ENV_VAR = "PGUSER"
PASSWORD_ENV_VAR = "PGPASSWORD"

HOST_CONFIG = "host"
PORT_CONFIG = "port"
DB_CONFIG = "database"
USER_CONFIG = "user"
PASSWORD_CONFIG = "password"
CONNECT_TIMEOUT_CONFIG = "connect_timeout"
STATEMENT_TIMEOUT_CONFIG = "statement_timeout"

REQUIRED_CONFIG_KEYS = [
    HOST_CONFIG,
    DB_CONFIG,
    USER_CONFIG,
    PASSWORD_CONFIG,
]

DEFAULT_PORT = 5432


class ConfigGetter(ABC):
    """Provides a database connection URL based upon some configuration source."""

    @abstractmethod
    def config(self) -> str:
        ...


def build_url(host: str, port: int, database: str, user: str, password: str) -> str:
    return (
        f"postgresql://{quote(user, safe='')}:{quote(password, safe='')}"
        f"@{host}:{port}/{database}"
    )


def parse_port(value: Any, source: str) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{source} has invalid value") from None

    if not 0 < port <= 65535:
        raise ConfigError(f"{source} has invalid value")

    return port


class EnvVarConfigGetter(ConfigGetter):
    """
    Provides a PostgreSQL connection URL from the standard PostgreSQL client
    environment variables.

    See https://www.postgresql.org/docs/current/libpq-envars.html
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self.environ = os.environ if environ is None else environ

    def _required(self, name: str) -> str:
        value = self.environ.get(name, "")
        if not value:
            raise ConfigError(f"environment variable {name} not set")
        return value

    def config(self) -> str:
        host = self._required(HOST_ENV_VAR)

        port = DEFAULT_PORT
        if self.environ.get(PORT_ENV_VAR):
            port = parse_port(
                self.environ[PORT_ENV_VAR], f"environment variable {PORT_ENV_VAR}"
            )

        database = self._required(DB_ENV_VAR)
        user = self._required(USER_ENV_VAR)
        password = self._required(PASSWORD_ENV_VAR)

        return build_url(host, port, database, user, password)


class DictConfigGetter(ConfigGetter):
    """Provides a PostgreSQL connection URL from a config dictionary (e.g. a JSON config file)."""

    def __init__(self, config: Dict[str, Any]) -> None:
        self._config = config

    def config(self) -> str:
        missing_keys = [key for key in REQUIRED_CONFIG_KEYS if not self._config.get(key)]
        if missing_keys:
            raise ConfigError(f"Config is missing required keys: {missing_keys}")

        port = DEFAULT_PORT
        if self._config.get(PORT_CONFIG) is not None:
            port = parse_port(self._config[PORT_CONFIG], f"config key {PORT_CONFIG}")

        return build_url(
            self._config[HOST_CONFIG],
            port,
            self._config[DB_CONFIG],
            self._config[USER_CONFIG],
            self._config[PASSWORD_CONFIG],
        )


class StaticConfigGetter(ConfigGetter):
    def __init__(self, url: str) -> None:
        self.url = url

    def config(self) -> str:
        if not self.url:
            raise ConfigError("No database URL configured")
        return self.url
