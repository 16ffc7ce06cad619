import pytest

from tests.helpers import FakePop3Server, authenticated_client


@pytest.fixture
def transaction_client():
    """Factory for authenticated clients over a scripted transport."""
    return authenticated_client


@pytest.fixture
def pop3_server_factory():
    """Start fake POP3 servers; all are stopped at teardown."""
    servers = []

    def _start(**kwargs):
        server = FakePop3Server(**kwargs).start()
        servers.append(server)
        return server

    yield _start

    for server in servers:
        server.stop()
