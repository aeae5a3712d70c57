"""
Integration test configuration and fixtures.

Builds DataClient instances wired to in-process mock transports so whole
calls (routing, cache, retry, deadline, token handling) run end to end
without a network.
"""
import logging
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio

from resilient_data_client.client.context import ClientContext
from resilient_data_client.client.facade import DataClient
from resilient_data_client.config.settings import ClientSettings
from resilient_data_client.tokens.storage import KeyValueStorage


logger = logging.getLogger(__name__)


class ClientHarness:
    """A DataClient together with the transports that answer it."""

    def __init__(self, client: DataClient, primary, secondary=None):
        self.client = client
        self.primary = primary
        self.secondary = secondary


@pytest_asyncio.fixture
async def make_client(client_settings, make_recorder, envelope_body):
    """
    Factory for DataClient harnesses.

    Every client built through the factory is closed at teardown.
    """
    built: list[DataClient] = []

    def build(
        handler: Optional[Callable[[httpx.Request], Any]] = None,
        *,
        settings: Optional[ClientSettings] = None,
        secondary_handler: Optional[Callable[[httpx.Request], Any]] = None,
        clock: Optional[Callable[[], float]] = None,
        storage: Optional[KeyValueStorage] = None,
    ) -> ClientHarness:
        settings = settings or client_settings
        primary = make_recorder(handler or (lambda request: envelope_body([])))
        secondary = make_recorder(secondary_handler) if secondary_handler else None
        context = ClientContext.from_settings(settings, storage=storage, clock=clock)
        client = DataClient(
            settings,
            context=context,
            transport=primary.transport,
            secondary_transport=secondary.transport if secondary else None,
        )
        built.append(client)
        return ClientHarness(client, primary, secondary)

    yield build

    for client in built:
        await client.aclose()
