"""
Load balancer HTTP request rewrite rule (NSX Manager API).

Match conditions are HTTP request cookie conditions; actions rewrite HTTP
request header fields. One action rewrites one header field, so several
headers need several actions.
"""

from __future__ import annotations

import logging

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

logger = logging.getLogger(__name__)

LB_MATCH_STRATEGY_VALUES = ["ALL", "ANY"]
LB_MATCH_TYPE_VALUES = ["STARTS_WITH", "ENDS_WITH", "EQUALS", "CONTAINS", "MATCHES_REGEX"]

COOKIE_CONDITION_TYPE = "LbHttpRequestCookieCondition"
HEADER_REWRITE_ACTION_TYPE = "LbHttpRequestHeaderRewriteAction"


class LbHttpRequestRewriteRule(Resource):

    type_name = "nsxt_lb_http_request_rewrite_rule"
    label = "LbRule"
    schema = {
        "revision": revision_field(),
        "description": description_field(),
        "display_name": display_name_field(),
        "tag": tags_field(),
        "match_strategy": Field(
            "string",
            "Strategy when multiple match conditions are specified in one rule (ANY vs ALL)",
            required=True,
            choices=LB_MATCH_STRATEGY_VALUES,
        ),
        "cookie_condition": Field(
            "list",
            "Rule condition based on http request cookie",
            optional=True,
            elem={
                "name": Field("string", "Name of cookie", required=True),
                "value": Field("string", "Value of cookie", required=True),
                "match_type": Field(
                    "string", "Match type of cookie value", optional=True,
                    default="EQUALS", choices=LB_MATCH_TYPE_VALUES,
                ),
                "case_sensitive": Field(
                    "bool", "If true, case is significant when comparing cookie value",
                    optional=True, default=True,
                ),
                "inverse": Field(
                    "bool", "A flag to indicate whether reverse the match result of this condition",
                    optional=True, default=False,
                ),
            },
        ),
        "header_rewrite_action": Field(
            "list",
            "Header to replace original header in outgoing message",
            required=True,
            elem={
                "name": Field("string", "Name of HTTP request header", required=True),
                "value": Field("string", "Value of HTTP request header", required=True),
            },
        ),
    }

    endpoint = "/api/v1/loadbalancer/rules"

    def _body(self, d: ResourceData) -> dict:
        conditions = [
            {
                "type": COOKIE_CONDITION_TYPE,
                "cookie_name": item["name"],
                "cookie_value": item["value"],
                "match_type": item["match_type"],
                "case_sensitive": item["case_sensitive"],
                "inverse": item["inverse"],
            }
            for item in d.get("cookie_condition")
        ]
        actions = [
            {
                "type": HEADER_REWRITE_ACTION_TYPE,
                "header_name": item["name"],
                "header_value": item["value"],
            }
            for item in d.get("header_rewrite_action")
        ]
        return omit_empty({
            "description": d.get("description"),
            "display_name": d.get("display_name"),
            "tags": get_tags_from_schema(d),
            "phase": "HTTP_REQUEST_REWRITE",
            "match_strategy": d.get("match_strategy"),
            "match_conditions": conditions,
            "actions": actions,
        })

    def create(self, d: ResourceData) -> None:
        rule = self.call_create("POST", self.endpoint, self._body(d))
        d.set_id(rule["id"])
        self.read(d)

    def read(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        rule = self.call_read(d, f"{self.endpoint}/{resource_id}")
        if rule is None:
            return

        d.set("revision", rule.get("_revision", 0))
        d.set("description", rule.get("description", ""))
        d.set("display_name", rule.get("display_name", ""))
        set_tags_in_schema(d, rule.get("tags"))
        d.set("match_strategy", rule.get("match_strategy", ""))

        conditions = []
        for condition in rule.get("match_conditions", []):
            if condition.get("type") != COOKIE_CONDITION_TYPE:
                logger.debug("Skipping unsupported condition type %s on %s %s",
                             condition.get("type"), self.label, resource_id)
                continue
            conditions.append({
                "name": condition.get("cookie_name", ""),
                "value": condition.get("cookie_value", ""),
                "match_type": condition.get("match_type", "EQUALS"),
                "case_sensitive": condition.get("case_sensitive", True),
                "inverse": condition.get("inverse", False),
            })
        d.set("cookie_condition", conditions)

        actions = []
        for action in rule.get("actions", []):
            if action.get("type") != HEADER_REWRITE_ACTION_TYPE:
                logger.debug("Skipping unsupported action type %s on %s %s",
                             action.get("type"), self.label, resource_id)
                continue
            actions.append({
                "name": action.get("header_name", ""),
                "value": action.get("header_value", ""),
            })
        d.set("header_rewrite_action", actions)

    def update(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        body = self._body(d)
        body["_revision"] = d.get("revision")
        self.call_update(d, "PUT", f"{self.endpoint}/{resource_id}", body)
        self.read(d)

    def delete(self, d: ResourceData) -> None:
        resource_id = self.require_id(d)
        self.call_delete(d, f"{self.endpoint}/{resource_id}")
