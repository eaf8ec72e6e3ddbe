# tests/conftest.py
import ssl
import sys
from contextlib import suppress
from pathlib import Path

import pytest
import pytest_asyncio
import trustme

# Ensure project root (the directory that contains the "loggregator_consumer" package) is on sys.path
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from fake_aggregator import FakeAggregator, serve  # noqa: E402
from loggregator_consumer.errors import NotOpenError  # noqa: E402


@pytest_asyncio.fixture
async def aggregator():
    async with serve(FakeAggregator()) as fake:
        yield fake


@pytest.fixture
def ca():
    return trustme.CA()


@pytest_asyncio.fixture
async def tls_aggregator(ca, tmp_path):
    server_cert = ca.issue_cert("127.0.0.1")
    certfile = tmp_path / "server.pem"
    keyfile = tmp_path / "server.key"
    server_cert.cert_chain_pems[0].write_to_path(str(certfile))
    server_cert.private_key_pem.write_to_path(str(keyfile))
    async with serve(FakeAggregator(), ssl_certfile=str(certfile), ssl_keyfile=str(keyfile)) as fake:
        yield fake


@pytest.fixture
def client_tls(ca):
    context = ssl.create_default_context()
    ca.configure_trust(context)
    return context


@pytest_asyncio.fixture
async def connections():
    """Collects connections created by a test and closes whatever is still open."""
    opened = []
    yield opened
    for connection in opened:
        with suppress(NotOpenError):
            await connection.close()
