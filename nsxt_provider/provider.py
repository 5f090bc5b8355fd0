"""
Provider: drives the resource handlers for a whole resource document.

The provider plays the part of the declarative engine:

    apply    - read what the state knows, then create / update / recreate
               each declared resource; delete resources no longer declared
    refresh  - re-read every resource in the state
    destroy  - delete every resource in the state, last declared first
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from .client import NsxClient
from .config import ProviderConfig
from .documents import empty_state
from .errors import ApplyError, ConfigError, NsxProviderError
from .resources import DATA_SOURCES, RESOURCES, DataSource, Resource
from .schema import Field, ResourceData, normalize_value, validate_config

logger = logging.getLogger(__name__)

State = Dict[str, Dict[str, Any]]


class Provider:

    def __init__(self, client: NsxClient):
        self.client = client

    @classmethod
    def from_config(cls, config: ProviderConfig, session: Optional[requests.Session] = None) -> "Provider":
        client = NsxClient(
            host=config.host,
            username=config.username,
            password=config.password,
            verify_ssl=config.verify_ssl,
            auth_method=config.auth_method,
            session=session,
        )
        return cls(client)

    def resource(self, type_name: str) -> Resource:
        try:
            return RESOURCES[type_name](self.client)
        except KeyError:
            raise ConfigError(f"Unknown resource type: {type_name}") from None

    def data_source(self, type_name: str) -> DataSource:
        try:
            return DATA_SOURCES[type_name](self.client)
        except KeyError:
            raise ConfigError(f"Unknown data source type: {type_name}") from None

    # =========================================================================
    # APPLY
    # =========================================================================

    def apply(self, document: Dict[str, Any], state: Optional[State] = None) -> Tuple[State, Dict[str, int]]:
        """
        Bring the manager in line with a resource document.

        Args:
            document: Parsed resource document ("resources" / "data" lists)
            state:    State from the previous run (None for a first run)

        Returns:
            (new_state, counts) with counts for created, updated, recreated,
            unchanged, deleted and read

        Raises:
            ConfigError:   Invalid document; nothing is sent to the manager
            ApplyError:    A handler failed; earlier changes are not rolled back
                           and the error carries the state as it stands
        """
        problems = check_document(document)
        if problems:
            raise ConfigError("Invalid resource document:\n  " + "\n  ".join(problems))

        old = copy.deepcopy(state) if state else empty_state()
        new = empty_state()
        counts = {"created": 0, "updated": 0, "recreated": 0, "unchanged": 0, "deleted": 0, "read": 0}

        try:
            self._apply_declared(document, old, new, counts)

            orphans = [name for name in old["resources"] if name not in new["resources"]]
            for name in reversed(orphans):
                if self._delete_entry(name, old["resources"][name]):
                    counts["deleted"] += 1
                del old["resources"][name]
        except NsxProviderError as err:
            raise ApplyError(str(err), _partial_state(new, old)) from err

        return new, counts

    def _apply_declared(self, document: Dict[str, Any], old: State, new: State, counts: Dict[str, int]) -> None:
        for decl in document.get("data", []):
            handler = self.data_source(decl["type"])
            d = handler.new_data(decl.get("fields"), decl.get("id", ""))
            handler.read(d)
            new["data"][decl["name"]] = {"type": decl["type"], **d.to_dict()}
            counts["read"] += 1

        for decl in document.get("resources", []):
            name, type_name = decl["name"], decl["type"]
            fields = decl.get("fields") or {}
            handler = self.resource(type_name)

            d = self._refresh_entry(name, old["resources"].get(name), type_name)
            if d is None:
                # The previous object (if any) is gone; only the new one counts from here
                old["resources"].pop(name, None)
                d = handler.new_data(fields)
                handler.create(d)
                logger.info("Created %s %s (%s)", type_name, name, d.id)
                counts["created"] += 1
            else:
                changed = changed_fields(handler.schema, fields, d)
                if any(handler.schema[key].force_new for key in changed):
                    handler.delete(d)
                    old["resources"].pop(name, None)
                    d = handler.new_data(fields)
                    handler.create(d)
                    logger.info("Recreated %s %s (%s): %s", type_name, name, d.id, ", ".join(changed))
                    counts["recreated"] += 1
                elif changed:
                    _apply_config(handler.schema, fields, d)
                    handler.update(d)
                    logger.info("Updated %s %s: %s", type_name, name, ", ".join(changed))
                    counts["updated"] += 1
                else:
                    counts["unchanged"] += 1

            new["resources"][name] = {"type": type_name, **d.to_dict()}

    def _refresh_entry(self, name: str, entry: Optional[dict], type_name: str) -> Optional[ResourceData]:
        """Read a state entry back; None when it has to be (re)created."""
        if not entry or not entry.get("id"):
            return None
        if entry.get("type") != type_name:
            # Type changed under the same name: remove the old object first
            self._delete_entry(name, entry)
            return None

        handler = self.resource(type_name)
        d = handler.new_data(entry.get("fields"), entry["id"])
        handler.read(d)
        if not d.id:
            logger.info("%s %s no longer exists, it will be recreated", type_name, name)
            return None
        return d

    def _delete_entry(self, name: str, entry: dict) -> bool:
        if not entry.get("id"):
            return False
        handler = self.resource(entry["type"])
        d = handler.new_data(entry.get("fields"), entry["id"])
        handler.delete(d)
        logger.info("Deleted %s %s", entry["type"], name)
        return True

    # =========================================================================
    # REFRESH / DESTROY
    # =========================================================================

    def refresh(self, state: State) -> Tuple[State, Dict[str, int]]:
        new = empty_state()
        counts = {"refreshed": 0, "gone": 0, "read": 0}

        for name, entry in state.get("data", {}).items():
            handler = self.data_source(entry["type"])
            d = handler.new_data(entry.get("fields"), entry.get("id", ""))
            handler.read(d)
            new["data"][name] = {"type": entry["type"], **d.to_dict()}
            counts["read"] += 1

        for name, entry in state.get("resources", {}).items():
            d = self._refresh_entry(name, entry, entry["type"])
            if d is None:
                counts["gone"] += 1
                continue
            new["resources"][name] = {"type": entry["type"], **d.to_dict()}
            counts["refreshed"] += 1

        return new, counts

    def destroy(self, state: State) -> Tuple[State, Dict[str, int]]:
        counts = {"deleted": 0}
        for name in reversed(list(state.get("resources", {}))):
            if self._delete_entry(name, state["resources"][name]):
                counts["deleted"] += 1
        return empty_state(), counts


# =============================================================================
# DOCUMENT CHECKS & DIFFING
# =============================================================================

def _partial_state(new: State, old: State) -> State:
    """Entries handled so far, followed by the previous entries not reached yet."""
    state = empty_state()
    for section in ("resources", "data"):
        state[section].update(new[section])
        for name, entry in old[section].items():
            state[section].setdefault(name, entry)
    return state


def check_document(document: Dict[str, Any]) -> List[str]:
    """
    Validate a resource document without contacting the manager.

    Checks unknown types, missing/duplicate names, and each record against
    its type's JSON schema.
    """
    problems: List[str] = []
    for section, registry in (("resources", RESOURCES), ("data", DATA_SOURCES)):
        names = set()
        for index, decl in enumerate(document.get(section, []) or []):
            if not isinstance(decl, dict):
                problems.append(f"{section}[{index}]: expected a mapping")
                continue
            name = decl.get("name")
            if name is not None and not isinstance(name, str):
                problems.append(f"{section}[{index}]: 'name' must be a string")
                name = None
                label = f"{section}[{index}]"
            else:
                label = f"{section}[{index}]" if not name else f"{section} '{name}'"
                if not name:
                    problems.append(f"{label}: missing 'name'")
                elif name in names:
                    problems.append(f"Duplicate {section} name: '{name}'")
                names.add(name)

            type_name = decl.get("type")
            if not isinstance(type_name, str) or type_name not in registry:
                problems.append(f"{label}: unknown type '{type_name}'")
                continue

            for message in validate_config(registry[type_name].schema, decl.get("fields") or {}):
                problems.append(f"{label}: {message}")
    return problems


def _comparable(field: Field, value: Any, configured: Any = None) -> Any:
    """
    Normalize a value and blank the server-owned sub-fields of nested records.

    Computed-only sub-fields are always blanked. Optional+computed ones
    (server-filled defaults such as a rule's display_name) are blanked where
    the configured record leaves them out, on both sides of the comparison.
    """
    value = normalize_value(field, value)
    if not field.is_block:
        return value

    items = [item if isinstance(item, dict) else {} for item in configured or []]
    if field.type == "set":
        # Set members have no stable position: a key is left out only when no member sets it
        shared = {key for key in field.elem if all(key not in item for item in items)}
        left_out = [shared] * len(value)
        nested = [{}] * len(value)
    else:
        left_out = [{key for key in field.elem if key not in item} for item in items]
        nested = items

    masked = []
    for index, item in enumerate(value):
        omitted = left_out[index] if index < len(left_out) else set(field.elem)
        raw = nested[index] if index < len(nested) else {}
        item = dict(item)
        for key, sub in field.elem.items():
            if not sub.settable or (sub.computed and key in omitted):
                item[key] = sub.zero()
            elif sub.is_block:
                item[key] = _comparable(sub, item[key], raw.get(key))
        masked.append(item)
    return normalize_value(field, masked)


def changed_fields(schema: Dict[str, Field], config: Dict[str, Any], d: ResourceData) -> List[str]:
    """Names of configurable fields whose configured value differs from d."""
    changed = []
    for key, field in schema.items():
        if not field.settable:
            continue
        if key in config:
            wanted = config[key]
        elif field.computed:
            # Optional+computed fields left out of the config keep the server value
            continue
        else:
            wanted = field.default

        if _comparable(field, wanted, wanted) != _comparable(field, d.get(key), wanted):
            changed.append(key)
    return changed


def _carry_computed(field: Field, wanted: Any, current: List[dict]) -> Any:
    """Keep server-assigned sub-fields (rule ids, revisions, defaults) of list items by position."""
    if field.type != "list" or not field.is_block or not wanted:
        return wanted

    merged = []
    for index, item in enumerate(wanted):
        item = dict(item)
        if index < len(current):
            for key, sub in field.elem.items():
                if sub.computed and key not in item:
                    item[key] = current[index][key]
        merged.append(item)
    return merged


def _apply_config(schema: Dict[str, Field], config: Dict[str, Any], d: ResourceData) -> None:
    for key, field in schema.items():
        if not field.settable:
            continue
        if key in config:
            d.set(key, _carry_computed(field, config[key], d.get(key)))
        elif not field.computed:
            d.set(key, field.default)
