"""NAT rule on a logical router (NSX Manager API)."""

from __future__ import annotations

from ..errors import ResourceError
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

NAT_RULE_ACTION_VALUES = ["SNAT", "DNAT", "NO_NAT", "REFLEXIVE"]

# Fields copied one-to-one between the record and the NSX NatRule object
_PLAIN_FIELDS = (
    "action",
    "enabled",
    "logging",
    "logical_router_id",
    "match_destination_network",
    "match_source_network",
    "nat_pass",
    "rule_priority",
    "translated_network",
    "translated_ports",
)


class NatRule(Resource):

    type_name = "nsxt_nat_rule"
    label = "NatRule"
    schema = {
        "revision": revision_field(),
        "description": description_field(),
        "display_name": display_name_field(),
        "tag": tags_field(),
        "action": Field(
            "string",
            "valid actions: SNAT, DNAT, NO_NAT, REFLEXIVE. All rules in a logical router are either "
            "stateless or stateful. Mix is not supported. SNAT and DNAT are stateful, can NOT be "
            "supported when the logical router is running at active-active HA mode; REFLEXIVE is "
            "stateless. NO_NAT has no translated_fields, only match fields",
            required=True,
            choices=NAT_RULE_ACTION_VALUES,
        ),
        "enabled": Field("bool", "enable/disable the rule", optional=True, default=True),
        "logging": Field("bool", "enable/disable the logging of rule", optional=True, default=False),
        "logical_router_id": Field("string", "Logical router id", required=True, force_new=True),
        "match_destination_network": Field("string", "IP Address | CIDR | (null implies Any)", optional=True),
        "match_source_network": Field("string", "IP Address | CIDR | (null implies Any)", optional=True),
        "nat_pass": Field(
            "bool",
            "Default is true. If the natPass is set to true, the following firewall stage will be skipped. "
            "Please note, if action is NO_NAT, then natPass must be set to true or omitted",
            optional=True,
            default=True,
        ),
        "rule_priority": Field(
            "int",
            "Ascending, valid range [0-2147483647]. If multiple rules have the same priority, "
            "evaluation sequence is undefined",
            computed=True,
        ),
        "translated_network": Field(
            "string", "IP Address | IP Range | CIDR. For DNAT rules only a single ip is supported", optional=True
        ),
        "translated_ports": Field("string", "port number or port range. DNAT only", optional=True),
    }

    def _router_id(self, d: ResourceData) -> str:
        logical_router_id = d.get("logical_router_id")
        if not logical_router_id:
            raise ResourceError("Error obtaining logical router id")
        return logical_router_id

    def _endpoint(self, logical_router_id: str) -> str:
        return f"/api/v1/logical-routers/{logical_router_id}/nat/rules"

    def _body(self, d: ResourceData) -> dict:
        body = {
            "description": d.get("description"),
            "display_name": d.get("display_name"),
            "tags": get_tags_from_schema(d),
        }
        for key in _PLAIN_FIELDS:
            body[key] = d.get(key)
        # rule_priority is server-assigned until the first read
        if not body["rule_priority"]:
            del body["rule_priority"]
        return omit_empty(body)

    def create(self, d: ResourceData) -> None:
        logical_router_id = self._router_id(d)
        nat_rule = self.call_create("POST", self._endpoint(logical_router_id), self._body(d))
        d.set_id(nat_rule["id"])
        self.read(d)

    def read(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        logical_router_id = self._router_id(d)
        nat_rule = self.call_read(d, f"{self._endpoint(logical_router_id)}/{resource_id}")
        if nat_rule is None:
            return

        d.set("revision", nat_rule.get("_revision", 0))
        d.set("description", nat_rule.get("description", ""))
        d.set("display_name", nat_rule.get("display_name", ""))
        set_tags_in_schema(d, nat_rule.get("tags"))
        for key in _PLAIN_FIELDS:
            field = self.schema[key]
            missing = field.default if field.default is not None else field.zero()
            d.set(key, nat_rule.get(key, missing))

    def update(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        logical_router_id = self._router_id(d)
        body = self._body(d)
        body["_revision"] = d.get("revision")
        self.call_update(d, "PUT", f"{self._endpoint(logical_router_id)}/{resource_id}", body)
        self.read(d)

    def delete(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        logical_router_id = self._router_id(d)
        self.call_delete(d, f"{self._endpoint(logical_router_id)}/{resource_id}")
