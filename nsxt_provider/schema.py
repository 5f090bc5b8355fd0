"""
Declarative field definitions and the per-resource data record.

Every resource type describes its fields with a dict of ``Field`` objects:

    SCHEMA = {
        "display_name": Field("string", optional=True, computed=True),
        "action": Field("string", required=True, choices=["SNAT", "DNAT"]),
        "source_ports": Field("set", elem="string", optional=True),
    }

Handlers never touch raw dicts; they go through ``ResourceData`` which
returns zero values for unset fields so that request bodies can be built
without None checks.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Optional, Union

from jsonschema import Draft202012Validator

FIELD_TYPES = ("string", "bool", "int", "list", "set")

_ZERO_VALUES = {"string": "", "bool": False, "int": 0}

_JSON_TYPES = {"string": "string", "bool": "boolean", "int": "integer"}


class Field:
    """One field of a resource schema."""

    def __init__(
        self,
        type: str,
        description: str = "",
        required: bool = False,
        optional: bool = False,
        computed: bool = False,
        default: Any = None,
        choices: Optional[List[str]] = None,
        force_new: bool = False,
        elem: Union[str, Dict[str, "Field"], None] = None,
    ):
        if type not in FIELD_TYPES:
            raise ValueError(f"Unknown field type: {type}")
        if type in ("list", "set") and elem is None:
            raise ValueError(f"{type} fields need an elem")

        self.type = type
        self.description = description
        self.required = required
        self.optional = optional
        self.computed = computed
        self.default = default
        self.choices = choices
        self.force_new = force_new
        self.elem = elem

    @property
    def is_block(self) -> bool:
        """True for lists/sets of nested records (rules, tags, references)."""
        return isinstance(self.elem, dict)

    @property
    def settable(self) -> bool:
        """Computed-only fields are filled from the server, never configured."""
        return self.required or self.optional

    def zero(self) -> Any:
        if self.type in ("list", "set"):
            return []
        return _ZERO_VALUES[self.type]

    def __repr__(self) -> str:
        return f"Field({self.type!r}, required={self.required}, computed={self.computed})"


def fill_block(schema: Dict[str, Field], item: Optional[dict]) -> dict:
    """Return a copy of a nested record with every schema key present."""
    item = item or {}
    filled = {}
    for key, field in schema.items():
        if key in item and item[key] is not None:
            value = item[key]
        elif field.default is not None:
            value = field.default
        else:
            value = field.zero()
        if field.is_block:
            value = [fill_block(field.elem, v) for v in value]
        filled[key] = copy.deepcopy(value)
    return filled


def normalize_value(field: Field, value: Any) -> Any:
    if value is None:
        return field.zero()
    if field.type not in ("list", "set"):
        return value

    items = list(value)
    if field.is_block:
        items = [fill_block(field.elem, item) for item in items]
    if field.type == "set":
        # Sets are unordered: de-duplicate and sort so comparisons are stable
        unique = {json.dumps(item, sort_keys=True): item for item in items}
        items = [unique[key] for key in sorted(unique)]
    return items


class ResourceData:
    """
    The local record of one resource: its identifier plus field values.

    An empty identifier means the remote object does not exist (yet, or any
    more). Handlers clear it on a 404 so the caller can recreate the object.
    """

    def __init__(
        self,
        schema: Dict[str, Field],
        config: Optional[Dict[str, Any]] = None,
        resource_id: str = "",
    ):
        self.schema = schema
        self._id = resource_id or ""
        self._values: Dict[str, Any] = {}
        for key, value in (config or {}).items():
            self.set(key, value)

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: Optional[str]) -> None:
        self._id = value or ""

    def _field(self, key: str) -> Field:
        try:
            return self.schema[key]
        except KeyError:
            raise KeyError(f"Unknown field: {key}") from None

    def get(self, key: str) -> Any:
        field = self._field(key)
        if key in self._values:
            value = self._values[key]
        elif field.default is not None:
            value = normalize_value(field, field.default)
        else:
            value = field.zero()
        return copy.deepcopy(value)

    def has(self, key: str) -> bool:
        """True when the field was explicitly set (config or a Read)."""
        self._field(key)
        return key in self._values

    def set(self, key: str, value: Any) -> None:
        field = self._field(key)
        self._values[key] = normalize_value(field, value)

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the record, as stored in the state file."""
        return {
            "id": self._id,
            "fields": {key: self.get(key) for key in self.schema},
        }

    def __repr__(self) -> str:
        return f"ResourceData(id={self._id!r}, fields={sorted(self._values)})"


# =============================================================================
# JSON SCHEMA RENDERING & VALIDATION
# =============================================================================

def _field_json_schema(field: Field) -> dict:
    if field.type in ("list", "set"):
        if field.is_block:
            items = to_json_schema(field.elem)
        else:
            items = {"type": _JSON_TYPES[field.elem]}
        result: Dict[str, Any] = {"type": "array", "items": items}
        if field.type == "set":
            result["uniqueItems"] = True
        if field.required:
            result["minItems"] = 1
    else:
        result = {"type": _JSON_TYPES[field.type]}
        if field.choices:
            result["enum"] = list(field.choices)
    if field.description:
        result["description"] = field.description
    return result


def to_json_schema(schema: Dict[str, Field]) -> dict:
    """
    Render a resource schema as a Draft 2020-12 JSON schema.

    Only user-settable fields are properties; computed-only fields and unknown
    keys are rejected by additionalProperties.
    """
    properties = {
        key: _field_json_schema(field)
        for key, field in schema.items()
        if field.settable
    }
    result: Dict[str, Any] = {
        "type": "object",
        "properties": properties,
        "additionalProperties": False,
    }
    required = [key for key, field in schema.items() if field.required]
    if required:
        result["required"] = required
    return result


def validate_config(schema: Dict[str, Field], config: Any) -> List[str]:
    """Validate a configuration record; returns readable error messages."""
    validator = Draft202012Validator(to_json_schema(schema))
    messages = []
    for error in sorted(validator.iter_errors(config), key=lambda e: [str(p) for p in e.absolute_path]):
        path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        messages.append(f"{error.message} (at {path})")
    return messages
