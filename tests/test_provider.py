# test_provider.py - apply / refresh / destroy through the fake manager

import copy

import pytest

from nsxt_provider.errors import ApplyError, ConfigError
from nsxt_provider.provider import changed_fields, check_document
from nsxt_provider.resources import FirewallSection

SECTIONS = "/api/v1/firewall/sections"
NS_SERVICES = "/api/v1/ns-services"
TZ_PROFILES = "/global-manager/api/v1/global-infra/transport-zone-profiles"


def nat_path(router):
    return f"/api/v1/logical-routers/{router}/nat/rules"


DOCUMENT = {
    "resources": [
        {
            "name": "https",
            "type": "nsxt_l4_port_set_ns_service",
            "fields": {"display_name": "https", "l4_protocol": "TCP", "destination_ports": ["443"]},
        },
        {
            "name": "web-section",
            "type": "nsxt_firewall_section",
            "fields": {
                "display_name": "web",
                "section_type": "LAYER3",
                "stateful": True,
                "applied_to": [{"target_id": "ls-web", "target_type": "LogicalSwitch"}],
                "rule": [
                    {"display_name": "allow-https", "action": "ALLOW",
                     "service": [{"target_id": "svc-https", "target_type": "NSService"}]},
                    {"display_name": "drop-rest", "action": "DROP"},
                ],
            },
        },
        {
            "name": "web-dnat",
            "type": "nsxt_nat_rule",
            "fields": {"logical_router_id": "lr-1", "action": "DNAT",
                       "match_destination_network": "192.168.1.10", "translated_network": "10.0.0.10"},
        },
        {
            "name": "edge-security",
            "type": "nsxt_policy_tier0_security_config",
            "fields": {"tier0_id": "t0-edge", "feature": [{"feature": "IDPS"}]},
        },
    ],
}


def document(**changes):
    """Copy of DOCUMENT with some resources' fields replaced"""
    doc = copy.deepcopy(DOCUMENT)
    for decl in doc["resources"]:
        if decl["name"] in changes:
            decl["fields"].update(changes[decl["name"]])
    return doc


@pytest.fixture
def applied(provider):
    state, _ = provider.apply(document())
    return state


def writes(fake_nsx):
    return [c for c in fake_nsx.calls if c["method"] in ("POST", "PUT", "PATCH", "DELETE")
            and c["params"].get("action") != "list_with_rules"]


class TestApply:
    """Create, update, recreate and delete decisions"""

    def test_first_apply_creates_everything(self, provider, fake_nsx):
        state, counts = provider.apply(document())

        assert counts["created"] == 4
        assert list(state["resources"]) == ["https", "web-section", "web-dnat", "edge-security"]
        assert all(entry["id"] for entry in state["resources"].values())
        assert state["resources"]["edge-security"]["id"] == "t0-edge"
        assert state["resources"]["web-dnat"]["fields"]["rule_priority"] == 1024
        assert len(fake_nsx.sections) == 1

    def test_second_apply_is_a_no_op(self, provider, applied, fake_nsx):
        fake_nsx.calls.clear()

        state, counts = provider.apply(document(), applied)

        assert counts["unchanged"] == 4
        assert counts["created"] == counts["updated"] == counts["recreated"] == 0
        assert writes(fake_nsx) == []
        assert state["resources"]["web-section"]["id"] == applied["resources"]["web-section"]["id"]

    def test_changed_field_updates(self, provider, applied, fake_nsx):
        fake_nsx.calls.clear()

        state, counts = provider.apply(document(https={"destination_ports": ["443", "8443"]}), applied)

        assert counts["updated"] == 1
        assert counts["unchanged"] == 3
        service_id = applied["resources"]["https"]["id"]
        assert [c["path"] for c in writes(fake_nsx)] == [f"{NS_SERVICES}/{service_id}"]
        assert state["resources"]["https"]["fields"]["destination_ports"] == ["443", "8443"]
        assert state["resources"]["https"]["fields"]["revision"] == 1

    def test_changed_rules_update_the_section(self, provider, applied, fake_nsx):
        doc = document()
        doc["resources"][1]["fields"]["rule"][1]["action"] = "REJECT"

        state, counts = provider.apply(doc, applied)

        assert counts["updated"] == 1
        rules = state["resources"]["web-section"]["fields"]["rule"]
        assert [r["action"] for r in rules] == ["ALLOW", "REJECT"]
        old_ids = [r["id"] for r in applied["resources"]["web-section"]["fields"]["rule"]]
        assert [r["id"] for r in rules] == old_ids

    def test_force_new_field_recreates(self, provider, applied, fake_nsx):
        old_id = applied["resources"]["web-dnat"]["id"]

        state, counts = provider.apply(document(**{"web-dnat": {"logical_router_id": "lr-2"}}), applied)

        assert counts["recreated"] == 1
        assert fake_nsx.objects[nat_path("lr-1")] == {}
        new_id = state["resources"]["web-dnat"]["id"]
        assert new_id != old_id
        assert new_id in fake_nsx.objects[nat_path("lr-2")]

    def test_removed_resources_are_deleted(self, provider, applied, fake_nsx):
        doc = document()
        doc["resources"] = doc["resources"][:2]

        state, counts = provider.apply(doc, applied)

        assert counts["deleted"] == 2
        assert list(state["resources"]) == ["https", "web-section"]
        assert fake_nsx.objects[nat_path("lr-1")] == {}
        assert fake_nsx.tier0_configs == {}
        deletes = [c["path"] for c in fake_nsx.calls_to("DELETE")]
        assert deletes[0].endswith("/security-config")

    def test_deleted_out_of_band_is_recreated(self, provider, applied, fake_nsx):
        service_id = applied["resources"]["https"]["id"]
        del fake_nsx.objects[NS_SERVICES][service_id]

        state, counts = provider.apply(document(), applied)

        assert counts["created"] == 1
        assert state["resources"]["https"]["id"] != service_id

    def test_type_change_replaces_object(self, provider, applied, fake_nsx):
        doc = document()
        doc["resources"][0] = {
            "name": "https",
            "type": "nsxt_lb_http_request_rewrite_rule",
            "fields": {"match_strategy": "ANY", "header_rewrite_action": [{"name": "X-A", "value": "1"}]},
        }

        state, counts = provider.apply(doc, applied)

        assert counts["created"] == 1
        assert fake_nsx.objects[NS_SERVICES] == {}
        assert state["resources"]["https"]["type"] == "nsxt_lb_http_request_rewrite_rule"

    def test_invalid_document_sends_nothing(self, provider, fake_nsx):
        fake_nsx.calls.clear()
        doc = document(https={"l4_protocol": "ICMP"})

        with pytest.raises(ConfigError, match="resources 'https': 'ICMP' is not one of"):
            provider.apply(doc)
        assert fake_nsx.calls == []

    def test_data_sources_are_read(self, provider, fake_nsx):
        fake_nsx.add_object(TZ_PROFILES, {"id": "tzp-1", "display_name": "overlay", "path": "/p/tzp-1"})
        doc = {"data": [{"name": "overlay", "type": "nsxt_transport_zone_profile",
                         "fields": {"display_name": "overlay"}}]}

        state, counts = provider.apply(doc)

        assert counts["read"] == 1
        assert state["data"]["overlay"]["id"] == "tzp-1"
        assert state["data"]["overlay"]["fields"]["path"] == "/p/tzp-1"

    def test_failure_keeps_objects_created_so_far(self, provider, fake_nsx):
        fake_nsx.fail("POST", SECTIONS, 500, {"error_code": 99, "error_message": "Internal error"})

        with pytest.raises(ApplyError, match="Error during FirewallSection create: HTTP 500") as e:
            provider.apply(document())

        assert list(e.value.state["resources"]) == ["https"]
        service_id = e.value.state["resources"]["https"]["id"]
        assert service_id in fake_nsx.objects[NS_SERVICES]

        fake_nsx.overrides.clear()
        state, counts = provider.apply(document(), e.value.state)

        assert counts["unchanged"] == 1
        assert counts["created"] == 3
        assert len(fake_nsx.objects[NS_SERVICES]) == 1
        assert state["resources"]["https"]["id"] == service_id

    def test_failure_keeps_entries_not_reached(self, provider, applied, fake_nsx):
        nat_id = applied["resources"]["web-dnat"]["id"]
        fake_nsx.fail("GET", nat_path("lr-1") + f"/{nat_id}", 500, {"error_message": "Internal error"})

        with pytest.raises(ApplyError) as e:
            provider.apply(document(), applied)

        assert list(e.value.state["resources"]) == ["https", "web-section", "web-dnat", "edge-security"]
        assert e.value.state["resources"]["web-dnat"]["id"] == nat_id
        assert e.value.state["resources"]["edge-security"]["id"] == "t0-edge"


class TestRefreshDestroy:

    def test_refresh_reports_gone_objects(self, provider, applied, fake_nsx):
        fake_nsx.sections.clear()

        state, counts = provider.refresh(applied)

        assert counts == {"refreshed": 3, "gone": 1, "read": 0}
        assert "web-section" not in state["resources"]

    def test_refresh_picks_up_remote_changes(self, provider, applied, fake_nsx):
        service_id = applied["resources"]["https"]["id"]
        fake_nsx.objects[NS_SERVICES][service_id]["display_name"] = "renamed"

        state, _ = provider.refresh(applied)

        assert state["resources"]["https"]["fields"]["display_name"] == "renamed"

    def test_destroy_deletes_in_reverse_order(self, provider, applied, fake_nsx):
        fake_nsx.calls.clear()

        state, counts = provider.destroy(applied)

        assert counts == {"deleted": 4}
        assert state == {"resources": {}, "data": {}}
        deletes = [c["path"] for c in fake_nsx.calls_to("DELETE")]
        assert deletes[0].endswith("/security-config")
        assert deletes[-1].startswith(NS_SERVICES)
        assert fake_nsx.sections == {}

    def test_destroy_tolerates_missing_objects(self, provider, applied, fake_nsx):
        fake_nsx.sections.clear()

        _, counts = provider.destroy(applied)

        assert counts == {"deleted": 4}

    def test_unknown_type(self, provider):
        with pytest.raises(ConfigError, match="Unknown resource type: nsxt_vm_tags"):
            provider.resource("nsxt_vm_tags")


class TestDocumentChecks:

    def test_duplicate_and_missing_names(self):
        doc = {"resources": [
            {"name": "a", "type": "nsxt_l4_port_set_ns_service", "fields": {"l4_protocol": "TCP"}},
            {"name": "a", "type": "nsxt_l4_port_set_ns_service", "fields": {"l4_protocol": "UDP"}},
            {"type": "nsxt_l4_port_set_ns_service", "fields": {"l4_protocol": "UDP"}},
            "not-a-mapping",
        ]}

        assert check_document(doc) == [
            "Duplicate resources name: 'a'",
            "resources[2]: missing 'name'",
            "resources[3]: expected a mapping",
        ]

    def test_unknown_types(self):
        doc = {
            "resources": [{"name": "x", "type": "nsxt_vm_tags"}],
            "data": [{"name": "y", "type": "nsxt_policy_tier0_gateway"}],
        }

        assert check_document(doc) == [
            "resources 'x': unknown type 'nsxt_vm_tags'",
            "data 'y': unknown type 'nsxt_policy_tier0_gateway'",
        ]

    def test_names_and_types_must_be_strings(self):
        doc = {"resources": [
            {"name": ["a"], "type": "nsxt_l4_port_set_ns_service", "fields": {"l4_protocol": "TCP"}},
            {"name": {"b": 1}, "type": "nsxt_l4_port_set_ns_service", "fields": {"l4_protocol": "TCP"}},
            {"name": "c", "type": ["nsxt_nat_rule"]},
        ]}

        assert check_document(doc) == [
            "resources[0]: 'name' must be a string",
            "resources[1]: 'name' must be a string",
            "resources 'c': unknown type '['nsxt_nat_rule']'",
        ]


class TestChangedFields:

    def test_computed_rule_fields_are_ignored(self, client):
        handler = FirewallSection(client)
        config = {"section_type": "LAYER3", "stateful": False, "rule": [{"action": "ALLOW"}]}
        d = handler.new_data(config)
        d.set("rule", [{"action": "ALLOW", "id": "rule-1", "revision": 4}])
        d.set("display_name", "server-default-name")

        assert changed_fields(handler.schema, config, d) == []

    def test_omitted_optional_field_reverts_to_default(self, client):
        handler = FirewallSection(client)
        config = {"section_type": "LAYER3", "stateful": False}
        d = handler.new_data(dict(config, description="old"))

        assert changed_fields(handler.schema, config, d) == ["description"]


class TestServerFilledRuleFields:
    """Rule fields the manager fills in when the document leaves them out"""

    def test_defaults_do_not_cause_updates(self, provider, fake_nsx):
        doc = document()
        doc["resources"][1]["fields"]["rule"][1] = {"action": "DROP"}
        state, _ = provider.apply(doc)
        rule = state["resources"]["web-section"]["fields"]["rule"][1]
        assert rule["display_name"] == rule["id"]
        assert rule["direction"] == "IN_OUT"
        assert rule["ip_protocol"] == "IPV4_IPV6"
        fake_nsx.calls.clear()

        _, counts = provider.apply(doc, state)

        assert counts["unchanged"] == 4
        assert writes(fake_nsx) == []

    def test_explicit_value_is_still_compared(self, provider, applied, fake_nsx):
        doc = document()
        doc["resources"][1]["fields"]["rule"][0]["direction"] = "IN"

        state, counts = provider.apply(doc, applied)

        assert counts["updated"] == 1
        assert state["resources"]["web-section"]["fields"]["rule"][0]["direction"] == "IN"
        assert state["resources"]["web-section"]["fields"]["rule"][1]["direction"] == "IN_OUT"
