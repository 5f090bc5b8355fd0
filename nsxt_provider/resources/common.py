"""Schema pieces and field converters shared by several resource types."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..schema import Field, ResourceData

REVISION_DESCRIPTION = (
    "The _revision property describes the current revision of the resource. "
    "PUT operations must include the current _revision of the resource; if it "
    "is missing or stale the operation is rejected"
)


def revision_field() -> Field:
    return Field("int", REVISION_DESCRIPTION, computed=True)


def description_field() -> Field:
    return Field("string", "Description of this resource", optional=True)


def display_name_field() -> Field:
    return Field(
        "string",
        "The display name of this resource. Defaults to ID if not set",
        optional=True,
        computed=True,
    )


def tags_field() -> Field:
    return Field(
        "set",
        "Set of opaque identifiers meaningful to the user",
        optional=True,
        elem={
            "scope": Field("string", optional=True),
            "tag": Field("string", optional=True),
        },
    )


def resource_references_field(
    allowed_types: List[str], description: str, is_set: bool = False, required: bool = False
) -> Field:
    """Reference list/set such as sources, destinations or applied_to."""
    return Field(
        "set" if is_set else "list",
        description,
        required=required,
        optional=not required,
        elem={
            "is_valid": Field("bool", "A boolean flag which will be set to false if the referenced NSX resource has been deleted", computed=True),
            "target_display_name": Field("string", "Display name of the NSX resource", optional=True, computed=True),
            "target_id": Field("string", "Identifier of the NSX resource", required=True),
            "target_type": Field("string", "Type of the NSX resource", optional=True, choices=allowed_types),
        },
    )


# =============================================================================
# CONVERTERS (local record <-> NSX JSON)
# =============================================================================

def get_tags_from_schema(d: ResourceData, key: str = "tag") -> List[Dict[str, str]]:
    return [{"scope": t["scope"], "tag": t["tag"]} for t in d.get(key)]


def set_tags_in_schema(d: ResourceData, tags: Optional[List[dict]], key: str = "tag") -> None:
    d.set(key, [{"scope": t.get("scope", ""), "tag": t.get("tag", "")} for t in tags or []])


def get_resource_references(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert reference records to NSX ResourceReference objects."""
    references = []
    for item in items:
        reference = {"target_id": item["target_id"]}
        if item.get("target_type"):
            reference["target_type"] = item["target_type"]
        if item.get("target_display_name"):
            reference["target_display_name"] = item["target_display_name"]
        references.append(reference)
    return references


def return_resource_references(references: Optional[List[dict]]) -> List[Dict[str, Any]]:
    """Convert NSX ResourceReference objects back to reference records."""
    return [
        {
            "is_valid": ref.get("is_valid", False),
            "target_display_name": ref.get("target_display_name", ""),
            "target_id": ref.get("target_id", ""),
            "target_type": ref.get("target_type", ""),
        }
        for ref in references or []
    ]


def get_resource_references_from_schema(d: ResourceData, key: str) -> List[Dict[str, Any]]:
    return get_resource_references(d.get(key))


def set_resource_references_in_schema(d: ResourceData, references: Optional[List[dict]], key: str) -> None:
    d.set(key, return_resource_references(references))


def omit_empty(body: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset strings so the server applies its own defaults."""
    return {key: value for key, value in body.items() if value is not None and value != ""}
