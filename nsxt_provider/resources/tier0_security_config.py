"""
Security feature configuration of a Tier-0 gateway (Policy API).

The object is a singleton under its gateway, so the resource id is the
Tier-0 id. Creation uses PATCH (create if absent, otherwise update); later
updates use PUT with the current _revision.
"""

from __future__ import annotations

from ..errors import ResourceError
from ..schema import Field, ResourceData
from .base import Resource
from .common import revision_field


class Tier0SecurityConfig(Resource):

    type_name = "nsxt_policy_tier0_security_config"
    label = "Tier0SecurityFeatures"
    create_status = 200
    schema = {
        "tier0_id": Field("string", "Tier-0 gateway id", required=True, force_new=True),
        "revision": revision_field(),
        "feature": Field(
            "list",
            "Security features enabled on the gateway",
            optional=True,
            elem={
                "feature": Field("string", "Security feature name", required=True),
                "enable": Field("bool", "Whether the feature is enabled", optional=True, default=True),
            },
        ),
    }

    def _endpoint(self, tier0_id: str) -> str:
        return f"/policy/api/v1/infra/tier-0s/{tier0_id}/security-config"

    def _body(self, d: ResourceData) -> dict:
        return {
            "features": [
                {"feature": item["feature"], "enable": item["enable"]} for item in d.get("feature")
            ],
        }

    def create(self, d: ResourceData) -> None:
        tier0_id = d.get("tier0_id")
        if not tier0_id:
            raise ResourceError("Error obtaining tier0 id")
        self.call_create("PATCH", self._endpoint(tier0_id), self._body(d))
        d.set_id(tier0_id)
        self.read(d)

    def read(self, d: ResourceData) -> None:
        tier0_id = self.require_id(d)
        config = self.call_read(d, self._endpoint(tier0_id))
        if config is None:
            return

        d.set("tier0_id", tier0_id)
        d.set("revision", config.get("_revision", 0))
        d.set("feature", [
            {"feature": item.get("feature", ""), "enable": item.get("enable", False)}
            for item in config.get("features", [])
        ])

    def update(self, d: ResourceData) -> None:
        tier0_id = self.require_id(d)
        body = self._body(d)
        body["_revision"] = d.get("revision")
        self.call_update(d, "PUT", self._endpoint(tier0_id), body)
        self.read(d)

    def delete(self, d: ResourceData) -> None:
        tier0_id = self.require_id(d)
        self.call_delete(d, self._endpoint(tier0_id))
