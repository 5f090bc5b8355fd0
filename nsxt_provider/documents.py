"""
YAML resource documents and state files.

Resource document:

    resources:
      - name: web-dnat
        type: nsxt_nat_rule
        fields:
          logical_router_id: 1b2c...
          action: DNAT
          translated_network: 10.0.0.10
    data:
      - name: overlay-profile
        type: nsxt_transport_zone_profile
        fields:
          display_name: overlay-tz-profile

State file (written by apply/refresh/destroy):

    resources:
      web-dnat:
        type: nsxt_nat_rule
        id: 3f0d...
        fields: {...}
    data:
      overlay-profile: {...}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

from .errors import ConfigError

STATE_HEADER = """\
# =============================================================================
# NSX-T provider state - written by nsxt-provider, do not edit by hand
# =============================================================================
"""


class _StateDumper(yaml.SafeDumper):
    pass


def _str_representer(dumper, data):
    # Multiline strings (descriptions, notes) in block style
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_StateDumper.add_representer(str, _str_representer)


def load_yaml_file(path: Path) -> Any:
    """Load and parse a YAML file, raising ConfigError on failure."""
    try:
        with open(path, "r") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML file {path}: {e}") from e
    except FileNotFoundError as e:
        raise ConfigError(f"File not found: {path}") from e


def load_document(path: Path) -> Dict[str, Any]:
    document = load_yaml_file(path) or {}
    if not isinstance(document, dict):
        raise ConfigError(f"{path}: expected a mapping with 'resources' and/or 'data' lists")
    for section in ("resources", "data"):
        if not isinstance(document.get(section, []), list):
            raise ConfigError(f"{path}: '{section}' must be a list")
    return document


def empty_state() -> Dict[str, Dict[str, Any]]:
    return {"resources": {}, "data": {}}


def load_state(path: Path) -> Dict[str, Dict[str, Any]]:
    """Load a state file; a missing file is an empty state."""
    if not path.exists():
        return empty_state()
    state = load_yaml_file(path) or {}
    if not isinstance(state, dict):
        raise ConfigError(f"{path}: state file is not a mapping")
    result = empty_state()
    result["resources"].update(state.get("resources") or {})
    result["data"].update(state.get("data") or {})
    return result


def write_state(path: Path, state: Dict[str, Any]) -> None:
    """
    Write the state file.

    Features:
        - Adds a header comment
        - Uses block style for readability
        - Preserves key order (no sorting)
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(STATE_HEADER)
        f.write("\n")
        yaml.dump(
            state,
            f,
            Dumper=_StateDumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            width=120,
        )
