"""Shared types, constants and helpers used throughout rule conversion."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

MSG_NEUVECTOR_RULE_ONLY = "neuvector environment only rule"
MSG_ONLY_DENY_RULE_SUPPORTED = 'only "deny" rule supported'
MSG_RULE_DISABLED = "rule is disabled"
MSG_RULE_CONVERTED_SUCCESSFULLY = "rule converted successfully"
MSG_UNSUPPORTED_RULE_CRITERIA = "unsupported criteria"
MSG_UNSUPPORTED_CRITERIA_OPERATOR = "unsupported operator"
MSG_RULE_PARSING_ERROR = "failed to parse rule"
MSG_RULE_GENERATE_KW_POLICY_ERROR = "failed to generate Kubewarden policy"

# Criterion operators used by NeuVector admission rules.
CRITERIA_OP_EQUAL = "="
CRITERIA_OP_NOT_EQUAL = "!="
CRITERIA_OP_CONTAINS_ALL = "containsAll"
CRITERIA_OP_CONTAINS_ANY = "containsAny"
CRITERIA_OP_NOT_CONTAINS_ANY = "notContainsAny"
CRITERIA_OP_CONTAINS_OTHER_THAN = "containsOtherThan"
CRITERIA_OP_REGEX = "regex"
CRITERIA_OP_NOT_REGEX = "!regex"
CRITERIA_OP_BIGGER_EQUAL_THAN = ">="
CRITERIA_OP_EXIST = "exist"

CRITERIA_KEY_NAMESPACE = "namespace"

# Admission rule types.
RULE_TYPE_DENY = "deny"
RULE_TYPE_EXCEPTION = "exception"
RULE_TYPE_ALLOW = "allow"

_UINT32_MAX = 2**32 - 1


class ConversionError(Exception):
    """Raised when rules cannot be read or converted."""


@dataclass
class ConversionConfig:
    """Settings that control how rules are converted."""

    output_file: str = ""
    vul_report_namespace: str = ""
    platform: str = ""
    policy_server: str = ""
    mode: str = ""
    background_audit: bool = False
    show_summary: bool = False


def _as_str(value: Any, name: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise TypeError(f"field {name!r} must be a string, got {type(value).__name__}")


def _as_bool(value: Any, name: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    raise TypeError(f"field {name!r} must be a boolean, got {type(value).__name__}")


def _as_uint32(value: Any, name: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"field {name!r} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= _UINT32_MAX:
        raise ValueError(f"field {name!r} out of range: {value}")
    return value


def _as_list(value: Any, name: str) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    raise TypeError(f"field {name!r} must be a list, got {type(value).__name__}")


def _require_mapping(data: Any, what: str) -> Mapping:
    if not isinstance(data, Mapping):
        raise TypeError(f"{what} must be a mapping, got {type(data).__name__}")
    return data


@dataclass
class Criterion:
    """One condition of an admission rule."""

    name: str = ""
    op: str = ""
    value: str = ""
    path: str = ""
    type: str = ""
    value_type: str = ""
    kind: str = ""
    sub_criteria: list[Criterion] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Criterion:
        """Build a criterion from its exported JSON/YAML form."""
        data = _require_mapping(data, "criterion")
        return cls(
            name=_as_str(data.get("name"), "name"),
            op=_as_str(data.get("op"), "op"),
            value=_as_str(data.get("value"), "value"),
            path=_as_str(data.get("path"), "path"),
            type=_as_str(data.get("type"), "type"),
            value_type=_as_str(data.get("value_type"), "value_type"),
            kind=_as_str(data.get("template_kind"), "template_kind"),
            sub_criteria=[
                cls.from_dict(sub) for sub in _as_list(data.get("sub_criteria"), "sub_criteria")
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the exported form, leaving out empty optional fields."""
        result: dict[str, Any] = {"name": self.name, "op": self.op, "value": self.value}
        if self.value_type:
            result["value_type"] = self.value_type
        if self.sub_criteria:
            result["sub_criteria"] = [sub.to_dict() for sub in self.sub_criteria]
        if self.type:
            result["type"] = self.type
        if self.kind:
            result["template_kind"] = self.kind
        if self.path:
            result["path"] = self.path
        return result


@dataclass
class AdmissionRule:
    """A NeuVector admission control rule."""

    id: int = 0
    category: str = ""
    comment: str = ""
    criteria: list[Criterion] = field(default_factory=list)
    disable: bool = False
    critical: bool = False
    cfg_type: str = ""
    rule_type: str = ""
    rule_mode: str = ""
    containers: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> AdmissionRule:
        """Build a rule from its exported JSON form."""
        data = _require_mapping(data, "rule")
        return cls(
            id=_as_uint32(data.get("id"), "id"),
            category=_as_str(data.get("category"), "category"),
            comment=_as_str(data.get("comment"), "comment"),
            criteria=[Criterion.from_dict(c) for c in _as_list(data.get("criteria"), "criteria")],
            disable=_as_bool(data.get("disable"), "disable"),
            critical=_as_bool(data.get("critical"), "critical"),
            cfg_type=_as_str(data.get("cfg_type"), "cfg_type"),
            rule_type=_as_str(data.get("rule_type"), "rule_type"),
            rule_mode=_as_str(data.get("rule_mode"), "rule_mode"),
            containers=[
                _as_str(c, "containers") for c in _as_list(data.get("containers"), "containers")
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the exported JSON form of the rule."""
        return {
            "id": self.id,
            "category": self.category,
            "comment": self.comment,
            "criteria": [c.to_dict() for c in self.criteria],
            "disable": self.disable,
            "critical": self.critical,
            "cfg_type": self.cfg_type,
            "rule_type": self.rule_type,
            "rule_mode": self.rule_mode,
            "containers": list(self.containers),
        }


def extract_module_name(module: str) -> str:
    """Derive a policy name from a module reference such as ``registry://host/a/b-c:v1``."""
    idx = module.find("://")
    if idx != -1:
        module = module[idx + 3 :]
    idx = module.rfind(":")
    if idx != -1:
        module = module[:idx]
    return module.split("/")[-1].replace("-", "_")