"""Recognition of custom-path criteria in admission rules."""

RULE_CUSTOM = "customPath"
REGO_DIR = "rego_policies"
KUBEWARDEN_PACKAGE = "package kubernetes.admission"


def is_custom_rule(name: str) -> bool:
    """Return True if a criterion with this name is a custom-path criterion."""
    return name in (RULE_CUSTOM, "")