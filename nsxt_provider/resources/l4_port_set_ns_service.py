"""L4 port set NS service (TCP/UDP ports) on the NSX Manager API."""

from __future__ import annotations

from ..schema import Field, ResourceData
from .base import Resource
from .common import (
    description_field,
    display_name_field,
    get_tags_from_schema,
    omit_empty,
    revision_field,
    set_tags_in_schema,
    tags_field,
)

L4_PROTOCOL_VALUES = ["TCP", "UDP"]


class L4PortSetNsService(Resource):

    type_name = "nsxt_l4_port_set_ns_service"
    label = "NsService"
    schema = {
        "revision": revision_field(),
        "system_owned": Field("bool", "Indicates system owned resource", computed=True),
        "description": description_field(),
        "display_name": display_name_field(),
        "tag": tags_field(),
        "default_service": Field(
            "bool",
            "The default NSServices are created in the system by default. "
            "These NSServices can't be modified/deleted",
            computed=True,
        ),
        "destination_ports": Field("set", "Set of destination ports", optional=True, elem="string"),
        "source_ports": Field("set", "Set of source ports", optional=True, elem="string"),
        "l4_protocol": Field("string", "L4 Protocol", required=True, choices=L4_PROTOCOL_VALUES),
    }

    endpoint = "/api/v1/ns-services"

    def _body(self, d: ResourceData) -> dict:
        return omit_empty({
            "resource_type": "NSService",
            "description": d.get("description"),
            "display_name": d.get("display_name"),
            "tags": get_tags_from_schema(d),
            "default_service": d.get("default_service"),
            "nsservice_element": {
                "resource_type": "L4PortSetNSService",
                "l4_protocol": d.get("l4_protocol"),
                "destination_ports": d.get("destination_ports"),
                "source_ports": d.get("source_ports"),
            },
        })

    def create(self, d: ResourceData) -> None:
        ns_service = self.call_create("POST", self.endpoint, self._body(d))
        d.set_id(ns_service["id"])
        self.read(d)

    def read(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        ns_service = self.call_read(d, f"{self.endpoint}/{resource_id}")
        if ns_service is None:
            return

        element = ns_service.get("nsservice_element", {})
        d.set("revision", ns_service.get("_revision", 0))
        d.set("system_owned", ns_service.get("_system_owned", False))
        d.set("description", ns_service.get("description", ""))
        d.set("display_name", ns_service.get("display_name", ""))
        set_tags_in_schema(d, ns_service.get("tags"))
        d.set("default_service", ns_service.get("default_service", False))
        d.set("l4_protocol", element.get("l4_protocol", ""))
        d.set("destination_ports", element.get("destination_ports"))
        d.set("source_ports", element.get("source_ports"))

    def update(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        body = self._body(d)
        body["_revision"] = d.get("revision")
        self.call_update(d, "PUT", f"{self.endpoint}/{resource_id}", body)
        self.read(d)

    def delete(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        self.call_delete(d, f"{self.endpoint}/{resource_id}")
