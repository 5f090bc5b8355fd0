# conftest.py - shared fixtures for the nsxt_provider test suite
#
# FakeNsxManager stands in for requests.Session: it answers the handful of
# NSX-T Manager / Policy / Global Manager endpoints the handlers use from
# in-memory stores, and records every call so tests can assert on the
# exact method, path, query parameters and body.

import itertools
import json as jsonlib
import re
from urllib.parse import urlsplit

import pytest
import requests

from nsxt_provider.client import NsxClient
from nsxt_provider.provider import Provider

# =============================================================================
# FAKE HTTP LAYER
# =============================================================================

class FakeResponse:
    """Just enough of requests.Response for the client and handlers."""

    def __init__(self, status_code, body=None, headers=None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}
        if body is None:
            self.text = ""
        elif isinstance(body, str):
            self.text = body
        else:
            self.text = jsonlib.dumps(body)
        self.content = self.text.encode("utf-8")

    def json(self):
        if self._body is None or isinstance(self._body, str):
            raise ValueError("No JSON object could be decoded")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


def not_found(path):
    return FakeResponse(404, {
        "httpStatus": "NOT_FOUND",
        "error_code": 600,
        "module_name": "common-services",
        "error_message": f"The requested object : {path} could not be found.",
    })


def stale_revision():
    return FakeResponse(412, {
        "httpStatus": "PRECONDITION_FAILED",
        "error_code": 604,
        "module_name": "common-services",
        "error_message": "The object was modified by somebody else.",
    })


# Plain collections: POST creates, GET lists, item GET/PUT/DELETE
_COLLECTIONS = [
    re.compile(r"^(/api/v1/ns-services)(?:/([^/]+))?$"),
    re.compile(r"^(/api/v1/loadbalancer/rules)(?:/([^/]+))?$"),
    re.compile(r"^(/api/v1/logical-routers/[^/]+/nat/rules)(?:/([^/]+))?$"),
    re.compile(r"^(/global-manager/api/v1/global-infra/transport-zone-profiles)(?:/([^/]+))?$"),
]

_SECTIONS = re.compile(r"^/api/v1/firewall/sections(?:/([^/]+))?(?:/rules/([^/]+))?$")
_TIER0_SECURITY = re.compile(r"^/policy/api/v1/infra/tier-0s/([^/]+)/security-config$")


class FakeNsxManager:
    """In-memory NSX Manager behind a requests.Session interface."""

    def __init__(self):
        self.headers = {}
        self.verify = True

        self.session_auth_status = 200
        self.xsrf_token = "xsrf-token-1234"
        self.auth_calls = []

        self.calls = []
        self.overrides = {}
        self.page_size = 1000

        self.objects = {}
        self.sections = {}
        self.tier0_configs = {}
        self._ids = itertools.count(1)

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def fail(self, method, path, status_or_exc, body=None):
        """Answer (method, path) with a fixed status, or raise an exception."""
        self.overrides[(method, path)] = (status_or_exc, body)

    def calls_to(self, method, path=None):
        return [
            c for c in self.calls
            if c["method"] == method and (path is None or c["path"] == path)
        ]

    def add_object(self, collection, obj):
        obj = dict(obj)
        obj.setdefault("id", self._new_id())
        obj.setdefault("_revision", 0)
        self.objects.setdefault(collection, {})[obj["id"]] = obj
        return obj

    def _new_id(self):
        return f"00000000-0000-0000-0000-{next(self._ids):012d}"

    # -------------------------------------------------------------------------
    # requests.Session interface
    # -------------------------------------------------------------------------

    def post(self, url, data=None, headers=None):
        self.auth_calls.append({"path": urlsplit(url).path, "data": data, "headers": headers})
        if self.session_auth_status != 200:
            return FakeResponse(self.session_auth_status, "Unauthorized")
        response_headers = {"x-xsrf-token": self.xsrf_token} if self.xsrf_token else {}
        return FakeResponse(200, None, headers=response_headers)

    def request(self, method, url, params=None, json=None, headers=None):
        path = urlsplit(url).path
        params = dict(params or {})
        self.calls.append({
            "method": method,
            "path": path,
            "params": params,
            "json": json,
            "headers": dict(headers or {}),
            "session_headers": dict(self.headers),
        })

        if (method, path) in self.overrides:
            status, body = self.overrides[(method, path)]
            if isinstance(status, Exception):
                raise status
            return FakeResponse(status, body)

        for pattern in _COLLECTIONS:
            match = pattern.match(path)
            if match:
                return self._collection(match.group(1), match.group(2), method, params, json)

        match = _SECTIONS.match(path)
        if match:
            return self._firewall(path, match.group(1), match.group(2), method, params, json)

        match = _TIER0_SECURITY.match(path)
        if match:
            return self._tier0_security(path, match.group(1), method, json)

        return not_found(path)

    # -------------------------------------------------------------------------
    # Endpoint behaviour
    # -------------------------------------------------------------------------

    def _collection(self, collection, obj_id, method, params, body):
        store = self.objects.setdefault(collection, {})

        if obj_id is None:
            if method == "POST":
                obj = dict(body)
                obj["id"] = self._new_id()
                obj["_revision"] = 0
                if collection.endswith("/nat/rules"):
                    obj.setdefault("rule_priority", 1024)
                store[obj["id"]] = obj
                return FakeResponse(201, obj)
            if method == "GET":
                return self._page(list(store.values()), params)
            return FakeResponse(405, {"error_message": "Method not allowed"})

        path = f"{collection}/{obj_id}"
        obj = store.get(obj_id)
        if obj is None:
            return not_found(path)

        if method == "GET":
            return FakeResponse(200, obj)
        if method == "PUT":
            if body.get("_revision") != obj["_revision"]:
                return stale_revision()
            updated = dict(body)
            updated["id"] = obj_id
            updated["_revision"] = obj["_revision"] + 1
            for key in ("rule_priority", "_system_owned"):
                if key in obj and key not in updated:
                    updated[key] = obj[key]
            store[obj_id] = updated
            return FakeResponse(200, updated)
        if method == "DELETE":
            del store[obj_id]
            return FakeResponse(200)
        return FakeResponse(405, {"error_message": "Method not allowed"})

    def _page(self, items, params):
        start = int(params.get("cursor", 0))
        size = int(params.get("page_size", self.page_size))
        page = {"results": items[start:start + size], "result_count": len(items)}
        if start + size < len(items):
            page["cursor"] = str(start + size)
        return FakeResponse(200, page)

    def _new_rules(self, rules, existing=()):
        known = {rule["id"]: rule for rule in existing}
        result = []
        for rule in rules or []:
            rule = dict(rule)
            if rule.get("id") in known:
                rule["_revision"] = known[rule["id"]]["_revision"] + 1
            else:
                rule["id"] = self._new_id()
                rule["_revision"] = 0
            # Defaults the manager fills in for rules that leave them out
            rule["display_name"] = rule.get("display_name") or rule["id"]
            rule["direction"] = rule.get("direction") or "IN_OUT"
            rule["ip_protocol"] = rule.get("ip_protocol") or "IPV4_IPV6"
            result.append(rule)
        return result

    def _firewall(self, path, section_id, rule_id, method, params, body):
        action = params.get("action")

        if section_id is None:
            if method != "POST":
                return FakeResponse(405, {"error_message": "Method not allowed"})
            section = {k: v for k, v in body.items() if k != "rules"}
            section["id"] = self._new_id()
            section["_revision"] = 0
            section["rules"] = self._new_rules(body.get("rules")) if action == "create_with_rules" else []
            self.sections[section["id"]] = section
            return FakeResponse(201, section)

        section = self.sections.get(section_id)
        if section is None:
            return not_found(path)

        if rule_id is not None:
            if method != "DELETE":
                return FakeResponse(405, {"error_message": "Method not allowed"})
            remaining = [rule for rule in section["rules"] if rule["id"] != rule_id]
            if len(remaining) == len(section["rules"]):
                return not_found(path)
            section["rules"] = remaining
            return FakeResponse(200)

        if method == "POST" and action == "list_with_rules":
            # The rule listing leaves out applied_tos
            return FakeResponse(200, {k: v for k, v in section.items() if k != "applied_tos"})

        if method == "POST" and action == "update_with_rules":
            if body.get("_revision") != section["_revision"]:
                return stale_revision()
            rules = self._new_rules(body.get("rules"), section["rules"])
            section.update({k: v for k, v in body.items() if k != "rules"})
            section["rules"] = rules
            section["_revision"] += 1
            return FakeResponse(200, section)

        if method == "GET":
            return FakeResponse(200, {k: v for k, v in section.items() if k != "rules"})

        if method == "PUT":
            if body.get("_revision") != section["_revision"]:
                return stale_revision()
            rules = section["rules"]
            section.clear()
            section.update(body)
            section["id"] = section_id
            section["rules"] = rules
            section["_revision"] = body["_revision"] + 1
            return FakeResponse(200, {k: v for k, v in section.items() if k != "rules"})

        if method == "DELETE":
            if section["rules"] and params.get("cascade") != "true":
                return FakeResponse(400, {"error_code": 8227, "error_message": "Section is not empty"})
            del self.sections[section_id]
            return FakeResponse(200)

        return FakeResponse(405, {"error_message": "Method not allowed"})

    def _tier0_security(self, path, tier0_id, method, body):
        config = self.tier0_configs.get(tier0_id)

        if method == "PATCH":
            if config is None:
                self.tier0_configs[tier0_id] = {
                    "id": "default",
                    "features": list(body.get("features", [])),
                    "_revision": 0,
                }
            else:
                config["features"] = list(body.get("features", config["features"]))
                config["_revision"] += 1
            return FakeResponse(200)

        if config is None:
            return not_found(path)

        if method == "GET":
            return FakeResponse(200, config)
        if method == "PUT":
            if body.get("_revision") != config["_revision"]:
                return stale_revision()
            config["features"] = list(body.get("features", []))
            config["_revision"] += 1
            return FakeResponse(200, config)
        if method == "DELETE":
            del self.tier0_configs[tier0_id]
            return FakeResponse(200)
        return FakeResponse(405, {"error_message": "Method not allowed"})


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_nsx():
    """Fresh in-memory NSX Manager"""
    return FakeNsxManager()


@pytest.fixture
def client(fake_nsx):
    """NsxClient authenticated against the fake manager"""
    return NsxClient("nsx.example.com", "admin", "VMware1!VMware1!", session=fake_nsx)


@pytest.fixture
def provider(client):
    return Provider(client)
