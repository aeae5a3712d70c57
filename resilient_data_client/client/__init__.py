"""
Data-access client Facade.

This module provides the DataClient Facade and the ClientContext that owns
its process-wide state.
"""

from resilient_data_client.client.context import ClientContext, create_token_storage
from resilient_data_client.client.facade import DataClient

__all__ = [
    "ClientContext",
    "create_token_storage",
    "DataClient",
]
