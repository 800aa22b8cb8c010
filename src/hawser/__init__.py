"""hawser: transfer large binary objects to and from a media endpoint."""

from .client import Download, TransferClient, classify_response
from .config import EndpointConfig, load_endpoint_config
from .constants import HAWSER_VERSION as __version__
from .credentials import CredentialProvider, GitCredentialHelper, StaticCredentials, get_credential_provider
from .errors import HawserError, TransferError
from .models import TransferDescriptor

__all__ = [
    "__version__",
    "Download",
    "TransferClient",
    "classify_response",
    "EndpointConfig",
    "load_endpoint_config",
    "CredentialProvider",
    "GitCredentialHelper",
    "StaticCredentials",
    "get_credential_provider",
    "HawserError",
    "TransferError",
    "TransferDescriptor",
]
