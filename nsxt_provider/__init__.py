"""
NSX-T provider: declarative CRUD handlers for NSX-T Manager objects.

Library use:
    from nsxt_provider import Provider, ProviderConfig

    provider = Provider.from_config(ProviderConfig.load("nsx.yaml"))
    state, counts = provider.apply(document)
"""

from .client import NsxClient
from .config import ProviderConfig
from .errors import (
    ApplyError,
    ConfigError,
    NotFoundError,
    NsxApiError,
    NsxProviderError,
    ResourceError,
)
from .provider import Provider
from .schema import Field, ResourceData

__version__ = "0.1.0"

__all__ = [
    "ApplyError",
    "ConfigError",
    "Field",
    "NotFoundError",
    "NsxApiError",
    "NsxClient",
    "NsxProviderError",
    "Provider",
    "ProviderConfig",
    "ResourceData",
    "ResourceError",
    "__version__",
]
