"""Remote vault-data gateway and its HTTP implementation."""

from .base import BaseGateway
from .client import VaultsApiClient
from .errors import RemoteError
from .retry import RetryingGateway

__all__ = [
    "BaseGateway",
    "RemoteError",
    "RetryingGateway",
    "VaultsApiClient",
]
