# tests/conftest.py
import pytest
import pytest_asyncio

from ..driver.connection import Connection
from ..driver.handles import HandleRegistry
from ..driver.options import Credentials
from ..transport.sqlite import SqliteTransport

pytest_plugins = ("pytest_asyncio",)

ADDRESS = "localhost:1729"


@pytest.fixture
def registry():
    """An isolated handle registry so leak checks only see this test's handles."""
    return HandleRegistry("test")


@pytest.fixture
def transport(tmp_path):
    return SqliteTransport(base_dir=str(tmp_path / "data"))


@pytest.fixture
def credentials(registry):
    creds = Credentials("admin", "password", registry=registry)
    yield creds
    creds.drop()


@pytest_asyncio.fixture
async def connection(transport, credentials, registry):
    conn = await Connection.open(ADDRESS, credentials, transport=transport, registry=registry)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def database(connection):
    await connection.create_database("test")
    return "test"
