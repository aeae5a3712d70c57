"""
Resilient async data-access client.

This package provides:
- DataClient, the Facade every call site uses
- Envelope, the uniform response shape every call returns
- ClientSettings, the environment-driven configuration
- ErrorCode, the failure classification carried in `envelope.error.kind`
"""

from resilient_data_client.client import DataClient
from resilient_data_client.config import ClientSettings
from resilient_data_client.errors import ErrorCode
from resilient_data_client.models import Envelope

__version__ = "0.1.0"

__all__ = [
    "ClientSettings",
    "DataClient",
    "Envelope",
    "ErrorCode",
]
