from typing import AsyncGenerator, List, Tuple

import pytest
import pytest_asyncio
from provider_server import ProviderServer

BASE_URL_TEMPLATE = "http://localhost:{}"


class FakeClock:
    """Monotonic clock that only moves when something sleeps on it"""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


@pytest_asyncio.fixture
async def server(unused_tcp_port_factory) -> AsyncGenerator[Tuple[ProviderServer, str], None]:
    """Start and yield a ProviderServer together with its base URL."""
    port = unused_tcp_port_factory()
    server_instance = ProviderServer()
    await server_instance.start(port=port)
    try:
        yield server_instance, BASE_URL_TEMPLATE.format(port)
    finally:
        await server_instance.stop()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dead_url(unused_tcp_port_factory) -> str:
    """A base URL nothing is listening on."""
    return BASE_URL_TEMPLATE.format(unused_tcp_port_factory())
