"""Registry of resource and data source handlers by type name."""

from .base import DataSource, Resource
from .firewall_section import FirewallSection
from .l4_port_set_ns_service import L4PortSetNsService
from .lb_http_request_rewrite_rule import LbHttpRequestRewriteRule
from .nat_rule import NatRule
from .tier0_security_config import Tier0SecurityConfig
from .transport_zone_profile import TransportZoneProfile

RESOURCES = {
    cls.type_name: cls
    for cls in (
        FirewallSection,
        L4PortSetNsService,
        LbHttpRequestRewriteRule,
        NatRule,
        Tier0SecurityConfig,
    )
}

DATA_SOURCES = {
    cls.type_name: cls
    for cls in (
        TransportZoneProfile,
    )
}

__all__ = [
    "DATA_SOURCES",
    "RESOURCES",
    "DataSource",
    "FirewallSection",
    "L4PortSetNsService",
    "LbHttpRequestRewriteRule",
    "NatRule",
    "Resource",
    "Tier0SecurityConfig",
    "TransportZoneProfile",
]
