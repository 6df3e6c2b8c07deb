import json
import pytest


class SilencedDict(dict):
    def __repr__(self):
        return "Dict[ ... sensitive_data ... ]"

    def __str__(self):
        return "Dict[ ... sensitive_data ... ]"


def pytest_addoption(parser):
    parser.addoption(
        "--config",
        default=None,
        help="Config file of a PostgreSQL database to run integration tests against",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: needs a live PostgreSQL (see --config)")


@pytest.fixture(scope="session")
def config(request):
    config = SilencedDict()

    config_file = request.config.getoption("--config")

    if not config_file:
        pytest.skip("No config file provided")

    with open(config_file) as input:
        config.update(json.load(input))

    return config


def error_chain(ex):
    """All the exceptions in the `raise ... from` chain starting at `ex`."""
    chain = []
    while ex is not None:
        chain.append(ex)
        ex = ex.__cause__
    return chain


@pytest.fixture
def in_chain():
    def check(ex, expected):
        return any(e is expected for e in error_chain(ex))

    return check
