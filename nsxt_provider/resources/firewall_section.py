"""
Distributed firewall section with its rules (NSX Manager API).

A section is created and updated together with its rule list when rules are
configured ("create_with_rules" / "update_with_rules"). Without rules the
plain section endpoints are used, and an update then removes any rules still
left in the section.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests

from ..errors import NotFoundError, NsxApiError, ResourceError
from ..schema import Field, ResourceData
from .base import Resource
from .common import (
    description_field,
    display_name_field,
    get_resource_references,
    get_resource_references_from_schema,
    get_tags_from_schema,
    omit_empty,
    resource_references_field,
    return_resource_references,
    revision_field,
    set_resource_references_in_schema,
    set_tags_in_schema,
    tags_field,
)

logger = logging.getLogger(__name__)

FIREWALL_RULE_IP_PROTOCOL_VALUES = ["IPV4", "IPV6", "IPV4_IPV6"]
FIREWALL_RULE_ACTION_VALUES = ["ALLOW", "DROP", "REJECT"]
FIREWALL_RULE_DIRECTION_VALUES = ["IN", "OUT", "IN_OUT"]
FIREWALL_SECTION_TYPE_VALUES = ["LAYER2", "LAYER3"]

APPLIED_TO_TYPES = ["LogicalPort", "LogicalSwitch", "NSGroup"]
SOURCE_DESTINATION_TYPES = ["IPSet", "LogicalPort", "LogicalSwitch", "NSGroup", "MACSet"]
SERVICE_TYPES = ["NSService", "NSServiceGroup"]

RULE_SCHEMA = {
    "id": Field("string", "Identifier of the rule", computed=True),
    "revision": revision_field(),
    "description": description_field(),
    "display_name": Field("string", "Defaults to ID if not set", optional=True, computed=True),
    "action": Field(
        "string",
        "Action enforced on the packets which matches the firewall rule",
        required=True,
        choices=FIREWALL_RULE_ACTION_VALUES,
    ),
    "applied_to": resource_references_field(
        APPLIED_TO_TYPES,
        "List of object where rule will be enforced. The section level field overrides this one. "
        "Null will be treated as any",
    ),
    "destination": resource_references_field(
        SOURCE_DESTINATION_TYPES, "List of the destinations. Null will be treated as any"
    ),
    "destinations_excluded": Field("bool", "Negation of the destination", optional=True),
    "direction": Field(
        "string",
        "Rule direction in case of stateless firewall rules. Default to IN_OUT if not specified",
        optional=True,
        computed=True,
        choices=FIREWALL_RULE_DIRECTION_VALUES,
    ),
    "disabled": Field(
        "bool",
        "Flag to disable rule. Disabled will only be persisted but never provisioned/realized",
        optional=True,
    ),
    "ip_protocol": Field(
        "string",
        "Type of IP packet that should be matched while enforcing the rule (IPV4, IPV6, IPV4_IPV6)",
        optional=True,
        computed=True,
        choices=FIREWALL_RULE_IP_PROTOCOL_VALUES,
    ),
    "logged": Field("bool", "Flag to enable packet logging. Default is disabled", optional=True),
    "notes": Field("string", "User notes specific to the rule", optional=True),
    "rule_tag": Field("string", "User level field which will be printed in CLI and packet logs", optional=True),
    "source": resource_references_field(
        SOURCE_DESTINATION_TYPES, "List of sources. Null will be treated as any"
    ),
    "sources_excluded": Field("bool", "Negation of the source", optional=True),
    "service": resource_references_field(
        SERVICE_TYPES, "List of the services. Null will be treated as any"
    ),
}


def get_rules_from_schema(d: ResourceData) -> List[Dict[str, Any]]:
    """Build the NSX FirewallRule list from the configured rule blocks."""
    rules = []
    for data in d.get("rule"):
        rule = omit_empty({
            "id": data["id"],
            "display_name": data["display_name"],
            "description": data["description"],
            "rule_tag": data["rule_tag"],
            "notes": data["notes"],
            "action": data["action"],
            "logged": data["logged"],
            "disabled": data["disabled"],
            "sources_excluded": data["sources_excluded"],
            "destinations_excluded": data["destinations_excluded"],
            "ip_protocol": data["ip_protocol"],
            "direction": data["direction"],
            "sources": get_resource_references(data["source"]),
            "destinations": get_resource_references(data["destination"]),
            "services": get_resource_references(data["service"]),
            "applied_tos": get_resource_references(data["applied_to"]),
        })
        if data["revision"]:
            rule["_revision"] = data["revision"]
        rules.append(rule)
    return rules


def set_rules_in_schema(d: ResourceData, rules: List[dict]) -> None:
    rules_list = []
    for rule in rules or []:
        rules_list.append({
            "id": rule.get("id", ""),
            "revision": rule.get("_revision", 0),
            "display_name": rule.get("display_name", ""),
            "description": rule.get("description", ""),
            "rule_tag": rule.get("rule_tag", ""),
            "notes": rule.get("notes", ""),
            "logged": rule.get("logged", False),
            "action": rule.get("action", ""),
            "destinations_excluded": rule.get("destinations_excluded", False),
            "sources_excluded": rule.get("sources_excluded", False),
            "ip_protocol": rule.get("ip_protocol", ""),
            "disabled": rule.get("disabled", False),
            "direction": rule.get("direction", ""),
            "source": return_resource_references(rule.get("sources")),
            "destination": return_resource_references(rule.get("destinations")),
            "service": return_resource_references(rule.get("services")),
            "applied_to": return_resource_references(rule.get("applied_tos")),
        })
    d.set("rule", rules_list)


class FirewallSection(Resource):

    type_name = "nsxt_firewall_section"
    label = "FirewallSection"
    schema = {
        "revision": revision_field(),
        "description": description_field(),
        "display_name": display_name_field(),
        "tag": tags_field(),
        "is_default": Field(
            "bool",
            "A boolean flag which reflects whether a firewall section is default section or not. "
            "Each Layer 3 and Layer 2 section will have at least and at most one default section",
            computed=True,
        ),
        "section_type": Field(
            "string",
            "Type of the rules which a section can contain. Only homogeneous sections are supported",
            required=True,
            choices=FIREWALL_SECTION_TYPE_VALUES,
        ),
        "stateful": Field(
            "bool",
            "Stateful or Stateless nature of firewall section is enforced on all rules inside the section. "
            "Layer3 sections can be stateful or stateless. Layer2 sections can only be stateless",
            required=True,
            force_new=True,
        ),
        "applied_to": resource_references_field(
            APPLIED_TO_TYPES,
            "List of objects where the rules in this section will be enforced. "
            "This will take precedence over rule level appliedTo",
            is_set=True,
        ),
        "rule": Field(
            "list",
            "List of firewall rules in the section. Only homogeneous rules are supported",
            optional=True,
            elem=RULE_SCHEMA,
        ),
    }

    endpoint = "/api/v1/firewall/sections"

    def _section_body(self, d: ResourceData) -> dict:
        return omit_empty({
            "description": d.get("description"),
            "display_name": d.get("display_name"),
            "tags": get_tags_from_schema(d),
            "applied_tos": get_resource_references_from_schema(d, "applied_to"),
            "is_default": d.get("is_default"),
            "section_type": d.get("section_type"),
            "stateful": d.get("stateful"),
        })

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create(self, d: ResourceData) -> None:
        rules = get_rules_from_schema(d)
        body = self._section_body(d)
        if rules:
            body["rules"] = rules
            section = self.call_create("POST", self.endpoint, body, params={"action": "create_with_rules"})
        else:
            section = self.call_create("POST", self.endpoint, body)

        d.set_id(section["id"])
        self.read(d)

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def read(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        section = self.call_read(
            d, f"{self.endpoint}/{resource_id}", method="POST", params={"action": "list_with_rules"}
        )
        if section is None:
            return

        d.set("revision", section.get("_revision", 0))
        d.set("description", section.get("description", ""))
        d.set("display_name", section.get("display_name", ""))
        set_tags_in_schema(d, section.get("tags"))
        set_rules_in_schema(d, section.get("rules"))
        d.set("is_default", section.get("is_default", False))
        d.set("section_type", section.get("section_type", ""))
        d.set("stateful", section.get("stateful", False))

        # The rule listing does not carry applied_tos on older managers
        section = self.call_read(d, f"{self.endpoint}/{resource_id}")
        if section is None:
            return
        set_resource_references_in_schema(d, section.get("applied_tos"), "applied_to")

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def update(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        rules = get_rules_from_schema(d)
        if not rules:
            self._update_empty(d, resource_id)
            return

        body = self._section_body(d)
        body["_revision"] = d.get("revision")
        body["rules"] = rules
        self.call_update(
            d, "POST", f"{self.endpoint}/{resource_id}", body, params={"action": "update_with_rules"}
        )
        self.read(d)

    def _update_empty(self, d: ResourceData, resource_id: str) -> None:
        """Update the section ignoring rules, then remove every rule left in it."""
        body = self._section_body(d)
        body["_revision"] = d.get("revision")
        self.call_update(d, "PUT", f"{self.endpoint}/{resource_id}", body)

        try:
            current = self.client.post(
                f"{self.endpoint}/{resource_id}", params={"action": "list_with_rules"}
            ).json()
        except NotFoundError as err:
            raise ResourceError(
                f"{self.label} {resource_id} not found during update empty action"
            ) from err
        except (NsxApiError, requests.exceptions.RequestException) as err:
            raise ResourceError(
                f"Error during {self.label} {resource_id} update empty: cannot read the section: {err}"
            ) from err

        for rule in current.get("rules", []):
            try:
                self.client.delete(f"{self.endpoint}/{resource_id}/rules/{rule['id']}")
            except NotFoundError:
                logger.debug("Rule %s of %s %s already deleted", rule["id"], self.label, resource_id)
            except (NsxApiError, requests.exceptions.RequestException) as err:
                raise ResourceError(
                    f"Error during {self.label} {resource_id} update empty: "
                    f"cannot delete rule {rule['id']}: {err}"
                ) from err

        self.read(d)

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    def delete(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        self.call_delete(d, f"{self.endpoint}/{resource_id}", params={"cascade": "true"})
