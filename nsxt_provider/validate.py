"""
Offline validation of resource documents.

Checks for:
- Schema compliance of every resource record
- Unknown types and duplicate names
- Field combinations the manager ignores or rejects (reported as warnings)
"""

from __future__ import annotations

from typing import Any, Dict

from .provider import check_document


class ValidationResult:
    """Holds validation results."""

    def __init__(self):
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def print_results(self) -> None:
        if self.warnings:
            print("\nWarnings:")
            for warning in self.warnings:
                print(f"  [WARN] {warning}")

        if self.errors:
            print("\nErrors:")
            for error in self.errors:
                print(f"  [ERROR] {error}")

        if self.is_valid:
            print("\n[OK] Validation passed!")
        else:
            print(f"\n[FAIL] Validation failed with {len(self.errors)} error(s)")


def check_firewall_section(name: str, fields: Dict[str, Any], result: ValidationResult) -> None:
    """Warn about rule settings that a section's type makes meaningless."""
    if fields.get("section_type") == "LAYER2" and fields.get("stateful"):
        result.add_error(f"Firewall section '{name}': LAYER2 sections can only be stateless")

    if fields.get("stateful"):
        for rule in fields.get("rule", []) or []:
            if rule.get("direction"):
                rule_name = rule.get("display_name", "unnamed")
                result.add_warning(
                    f"Rule '{rule_name}' in firewall section '{name}' sets direction, "
                    "which is only considered in stateless sections"
                )


def check_nat_rule(name: str, fields: Dict[str, Any], result: ValidationResult) -> None:
    """NO_NAT rules only carry match fields."""
    if fields.get("action") != "NO_NAT":
        return
    for key in ("translated_network", "translated_ports"):
        if fields.get(key):
            result.add_warning(f"NAT rule '{name}': {key} is ignored for NO_NAT rules")
    if fields.get("nat_pass") is False:
        result.add_error(f"NAT rule '{name}': nat_pass must be true or omitted for NO_NAT rules")


def check_translated_ports(name: str, fields: Dict[str, Any], result: ValidationResult) -> None:
    if fields.get("translated_ports") and fields.get("action") in ("SNAT", "REFLEXIVE"):
        result.add_warning(f"NAT rule '{name}': translated_ports is only used by DNAT rules")


_CHECKS = {
    "nsxt_firewall_section": (check_firewall_section,),
    "nsxt_nat_rule": (check_nat_rule, check_translated_ports),
}


def validate_document(document: Dict[str, Any]) -> ValidationResult:
    result = ValidationResult()

    for problem in check_document(document):
        result.add_error(problem)

    for decl in document.get("resources", []) or []:
        if not isinstance(decl, dict):
            continue
        fields = decl.get("fields") or {}
        for check in _CHECKS.get(decl.get("type"), ()):
            check(decl.get("name", "unnamed"), fields, result)

    return result
