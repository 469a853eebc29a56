"""Handlers for service account risk and image vulnerability criteria."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from nvrules2kw.handlers.base import RESOURCE_WORKLOAD, PolicyHandler
from nvrules2kw.share import (
    CRITERIA_OP_BIGGER_EQUAL_THAN,
    CRITERIA_OP_CONTAINS_ANY,
    CRITERIA_OP_EQUAL,
    ConversionError,
    Criterion,
    extract_module_name,
)
from nvrules2kw.handlers.security import _parse_bool

RULE_HIGH_RISK_SERVICE_ACCOUNT = "saBindRiskyRole"
RULE_IMAGE_SCANNED = "imageScanned"
RULE_HIGH_CVE_COUNT = "cveHighCount"
RULE_MED_CVE_COUNT = "cveMediumCount"

POLICY_HIGH_RISK_SERVICE_ACCOUNT_URI = (
    "registry://ghcr.io/kubewarden/policies/high-risk-service-account:v0.1.2"
)
IMAGE_CVE_POLICY_URI = "registry://ghcr.io/kubewarden/policies/image-cve-policy:v0.5.0"

_INTEGER = re.compile(r"[+-]?[0-9]+")
_CORE_GROUP = ""
_RISK_PREFIX = "risky_role_"


def _block_rule(api_group: str, resources: list[str], verbs: list[str]) -> dict[str, list[str]]:
    return {"apiGroups": [api_group], "resources": resources, "verbs": verbs}


_RISKY_ROLE_RULES: dict[str, tuple[dict[str, list[str]], ...]] = dict(
    (_RISK_PREFIX + suffix, rules)
    for suffix, rules in (
        (
            "view_secret",
            (_block_rule(_CORE_GROUP, ["secrets"], ["list", "get"]),),
        ),
        (
            "any_action_workload",
            (
                _block_rule(_CORE_GROUP, ["pods", "pods/log"], ["*"]),
                _block_rule(
                    "apps", ["deployments", "statefulsets", "daemonsets", "replicasets"], ["*"]
                ),
                _block_rule("batch", ["jobs", "cronjobs"], ["*"]),
                _block_rule("autoscaling", ["horizontalpodautoscalers"], ["*"]),
            ),
        ),
        (
            "any_action_rbac",
            (_block_rule("rbac.authorization.k8s.io", ["roles", "rolebindings"], ["*"]),),
        ),
        (
            "create_pod",
            (_block_rule(_CORE_GROUP, ["pods"], ["create"]),),
        ),
        (
            "exec_into_container",
            (_block_rule(_CORE_GROUP, ["pods/exec"], ["create"]),),
        ),
    )
)


class HighRiskServiceAccountHandler(PolicyHandler):
    """Denies workloads whose service account is bound to risky roles."""

    module = POLICY_HIGH_RISK_SERVICE_ACCOUNT_URI
    name = extract_module_name(POLICY_HIGH_RISK_SERVICE_ACCOUNT_URI)
    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = frozenset({CRITERIA_OP_CONTAINS_ANY})

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        if len(criteria) != 1:
            raise ConversionError("only one criterion is allowed")
        block_rules = [
            {key: list(values) for key, values in rule.items()}
            for risk_type in criteria[0].value.split(",")
            for rule in _RISKY_ROLE_RULES.get(risk_type, ())
        ]
        return {"blockRules": block_rules or None}


class ImageCVEHandler(PolicyHandler):
    """Denies images that are unscanned or carry too many vulnerabilities."""

    module = IMAGE_CVE_POLICY_URI
    name = extract_module_name(IMAGE_CVE_POLICY_URI)
    applicable_resource = RESOURCE_WORKLOAD
    supported_ops = frozenset({CRITERIA_OP_BIGGER_EQUAL_THAN, CRITERIA_OP_EQUAL})
    context_aware_resources = (
        {"apiVersion": "storage.sbomscanner.kubewarden.io/v1alpha1", "kind": "VulnerabilityReport"},
    )

    def __init__(self, vul_report_namespace: str, platform: str) -> None:
        self.vul_report_namespace = vul_report_namespace
        self.platform = platform

    @staticmethod
    def _max_accepted(criterion: Criterion) -> int:
        # A NeuVector threshold X rejects at X, so Kubewarden accepts at most X - 1.
        if not _INTEGER.fullmatch(criterion.value):
            raise ConversionError(
                f'invalid {criterion.name} value "{criterion.value}": invalid syntax'
            )
        return int(criterion.value) - 1

    def build_policy_settings(self, criteria: Sequence[Criterion]) -> dict[str, Any]:
        ignore_missing: bool | None = None
        max_severity: dict[str, dict[str, int]] = {}

        for criterion in criteria:
            if criterion.name == RULE_IMAGE_SCANNED:
                ignore_missing = _parse_bool(criterion.value)
            elif criterion.name == RULE_HIGH_CVE_COUNT:
                max_severity["high"] = {"total": self._max_accepted(criterion)}
            elif criterion.name == RULE_MED_CVE_COUNT:
                max_severity["medium"] = {"total": self._max_accepted(criterion)}
            else:
                raise ConversionError(f"unsupported criterion: {criterion.name}")

        settings: dict[str, Any] = {}
        if ignore_missing is not None:
            settings["ignoreMissingVulnerabilityReport"] = ignore_missing
        if self.vul_report_namespace:
            settings["vulnerabilityReportNamespace"] = self.vul_report_namespace
        if max_severity:
            settings["maxSeverity"] = {
                level: max_severity[level] for level in ("high", "medium") if level in max_severity
            }
        platform: dict[str, str] = {}
        if self.platform:
            platform["arch"] = self.platform
        platform["os"] = "linux"
        settings["platform"] = platform
        return settings